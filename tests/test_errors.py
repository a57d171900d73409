# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Tests for lionpile error classes."""

import pytest

from lionpile._errors import (
    InvalidStateError,
    PileError,
    TransportError,
    ValidationError,
)


class TestPileError:
    """Tests for base PileError class."""

    def test_default_initialization(self):
        error = PileError()
        assert str(error) == "lionpile error"
        assert error.message == "lionpile error"
        assert error.details == {}
        assert error.status_code == 500

    def test_custom_message_and_status(self):
        error = PileError("boom", status_code=404)
        assert str(error) == "boom"
        assert error.status_code == 404

    def test_with_cause(self):
        cause = ValueError("Original error")
        error = PileError("Wrapped error", cause=cause)
        assert error.get_cause() is cause
        assert error.__cause__ is cause

    def test_to_dict(self):
        error = PileError("Error", details={"key": "value"})
        assert error.to_dict() == {
            "error": "PileError",
            "message": "Error",
            "status_code": 500,
            "details": {"key": "value"},
        }

    def test_to_dict_with_cause(self):
        error = PileError("Error", cause=KeyError("k"))
        assert error.to_dict(include_cause=True)["cause"] == "KeyError('k')"

    def test_to_dict_omits_empty_details(self):
        assert "details" not in PileError("x").to_dict()


class TestSubclasses:
    @pytest.mark.parametrize(
        "cls, status",
        [(ValidationError, 422), (InvalidStateError, 500), (TransportError, 502)],
    )
    def test_hierarchy_and_status(self, cls, status):
        error = cls()
        assert isinstance(error, PileError)
        assert error.status_code == status

    def test_validation_error_from_record(self, item_cls):
        record = item_cls({"title": "a"})
        error = ValidationError.from_record(record, "bad title")
        assert error.details == {"cid": record.cid, "error": "bad title"}
        assert error.message == "Can't add an invalid record to a pile"

    def test_transport_error_from_exception(self):
        cause = ConnectionError("refused")
        error = TransportError.from_failure(cause)
        assert error.message == "refused"
        assert error.get_cause() is cause

    def test_transport_error_from_response(self):
        error = TransportError.from_failure({"status": 500})
        assert error.details == {"response": {"status": 500}}
        assert error.message == "Transport failure"

    def test_transport_error_passthrough(self):
        original = TransportError("down")
        assert TransportError.from_failure(original) is original
