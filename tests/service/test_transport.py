# Copyright (c) 2023 - 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

import logging

import pytest

from lionpile import MemoryStore, Pile, Record, SyncMethod, TransportError, wrap_error


def _call(store, method, target, **options):
    outcome = {}
    options["success"] = lambda response: outcome.setdefault("ok", response)
    options["error"] = lambda failure: outcome.setdefault("err", failure)
    store(method, target, options)
    return outcome


class TestMemoryStore:
    def test_read_pile_returns_copies(self):
        store = MemoryStore([{"id": 1}, {"id": 2}])
        outcome = _call(store, "read", Pile())
        assert outcome["ok"] == [{"id": 1}, {"id": 2}]
        outcome["ok"][0]["id"] = 5
        assert 1 in store.rows

    def test_create_assigns_sequential_ids(self):
        store = MemoryStore([{"id": 4}])
        first = _call(store, "create", Record({"v": "a"}))["ok"]
        second = _call(store, "create", Record({"v": "b"}))["ok"]
        assert first == {"v": "a", "id": 5}
        assert second["id"] == 6

    def test_create_keeps_given_id(self):
        store = MemoryStore()
        assert _call(store, "create", Record({"id": "k"}))["ok"] == {"id": "k"}
        assert "k" in store.rows

    def test_update_replaces_and_patch_merges(self):
        store = MemoryStore([{"id": 1, "a": 1, "b": 2}])
        _call(store, "patch", Record({"id": 1}), attrs={"b": 3})
        assert store.rows[1] == {"id": 1, "a": 1, "b": 3}
        _call(store, "update", Record({"id": 1, "c": 0}))
        assert store.rows[1] == {"id": 1, "c": 0}

    def test_delete(self):
        store = MemoryStore([{"id": 1}])
        assert _call(store, "delete", Record({"id": 1}))["ok"] == {}
        assert store.rows == {}

    def test_missing_row(self):
        store = MemoryStore()
        err = _call(store, "read", Record({"id": 3}))["err"]
        assert isinstance(err, TransportError)
        assert err.status_code == 404
        assert err.details == {"id": 3}

    def test_pile_only_supports_read(self):
        err = _call(MemoryStore(), "create", Pile())["err"]
        assert err.status_code == 405

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            MemoryStore()("upsert", Pile(), {})

    def test_records_calls(self):
        store = MemoryStore()
        pile = Pile()
        _call(store, "read", pile)
        assert store.calls == [(SyncMethod.READ, pile)]

    def test_fail_next_applies_once(self):
        store = MemoryStore([{"id": 1}])
        store.fail_next("offline")
        assert _call(store, "read", Pile()) == {"err": "offline"}
        assert "ok" in _call(store, "read", Pile())

    def test_deferred_flush(self):
        store = MemoryStore([{"id": 1}], deferred=True)
        outcome = _call(store, "read", Pile())
        assert outcome == {}
        assert len(store.pending) == 1
        assert store.flush() == 1
        assert outcome == {"ok": [{"id": 1}]}
        assert store.flush() == 0

    def test_custom_id_attribute(self):
        store = MemoryStore([{"key": "x"}], id_attribute="key")
        assert "x" in store.rows


class TestWrapError:
    def test_calls_handler_with_normalized_error(self):
        calls = []
        target = Record()
        options = {"tag": 1}
        wrap_error(lambda *args: calls.append(args), target, options)("bad")

        ((got_target, err, got_options),) = calls
        assert got_target is target
        assert got_options is options
        assert isinstance(err, TransportError)
        assert err.details == {"response": "bad"}

    def test_transport_errors_pass_through(self):
        calls = []
        original = TransportError("gone", status_code=410)
        wrap_error(lambda t, e, o: calls.append(e), Record(), {})(original)
        assert calls == [original]

    def test_without_handler_triggers_error_event(self, caplog, event_log):
        target = Record()
        log = event_log(target)
        with caplog.at_level(logging.WARNING, logger="lionpile.service.transport"):
            wrap_error(None, target, {})(ValueError("broken"))

        assert log.names == ["error"]
        _, err, _ = log.of("error")[0]
        assert err.message == "broken"
        assert "Unhandled transport failure" in caplog.text
