# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Tests for Record, the default pile member."""

import pytest

from lionpile import InvalidStateError, MemoryStore, Record, RecordLike


class TestIdentity:
    def test_cids_are_unique(self):
        a, b = Record(), Record()
        assert a.cid != b.cid
        assert a.cid.startswith("c")

    def test_id_follows_id_attribute(self):
        class Doc(Record):
            id_attribute = "_id"

        doc = Doc({"_id": "x", "id": "ignored"})
        assert doc.id == "x"
        assert doc.is_new() is False
        assert Record().is_new() is True

    def test_satisfies_record_protocol(self):
        assert isinstance(Record(), RecordLike)
        assert not isinstance({"id": 1}, RecordLike)


class TestAttributes:
    def test_defaults_are_copied(self):
        class Tagged(Record):
            defaults = {"tags": []}

        a, b = Tagged(), Tagged()
        a.get("tags").append("x")
        assert b.get("tags") == []

    def test_constructor_values_override_defaults(self, item_cls):
        assert item_cls({"title": "a", "key": 3}).get("key") == 3

    def test_parse_on_construction(self):
        class Wrapped(Record):
            def parse(self, response):
                return response["data"]

        assert Wrapped({"data": {"a": 1}}, parse=True).to_dict() == {"a": 1}

    def test_has_and_get_default(self):
        record = Record({"a": None, "b": 1})
        assert record.has("b")
        assert not record.has("a")
        assert record.get("c", "fallback") == "fallback"

    def test_attributes_view_is_read_only(self):
        record = Record({"a": 1})
        with pytest.raises(TypeError):
            record.attributes["a"] = 2


class TestSet:
    def test_change_events(self, event_log):
        record = Record({"a": 1, "b": 2})
        log = event_log(record)
        assert record.set({"a": 1, "b": 3, "c": 4}, source="test")
        assert log.names == ["change:b", "change:c", "change"]
        assert log.of("change:b") == [(record, 3, {"source": "test"})]
        assert log.of("change") == [(record, {"source": "test"})]

    def test_no_change_no_events(self, event_log):
        record = Record({"a": 1})
        log = event_log(record)
        record.set({"a": 1})
        assert log.events == []

    def test_silent(self, event_log):
        record = Record()
        log = event_log(record)
        record.set({"a": 1}, silent=True)
        assert record.get("a") == 1
        assert log.events == []

    def test_previous_and_changed(self):
        record = Record({"a": 1, "b": 2})
        record.set({"a": 5, "c": 1})
        assert record.previous("a") == 1
        assert record.previous_attributes() == {"a": 1, "b": 2}
        assert record.has_changed("a")
        assert not record.has_changed("b")
        assert record.changed_attributes() == {"a": 5, "c": 1}

    def test_unset_and_clear(self, event_log):
        record = Record({"a": 1, "b": 2})
        log = event_log(record)
        record.unset("a")
        assert "a" not in record.to_dict()
        assert log.of("change:a") == [(record, None, {})]
        record.clear()
        assert record.to_dict() == {}

    def test_nested_set_folds_into_one_change(self, event_log):
        record = Record({"a": 0})
        record.on("change:a", lambda r, v, o: r.set({"b": v * 2}))
        log = event_log(record)
        record.set({"a": 2})
        assert record.get("b") == 4
        assert log.count("change") == 1
        assert record.previous("b") is None

    def test_copy_from_record(self):
        target = Record({"a": 1})
        target.set(Record({"a": 2, "b": 3}))
        assert target.to_dict() == {"a": 2, "b": 3}


class TestValidation:
    def test_schema_failure_blocks_set(self, item_cls, event_log):
        item = item_cls({"title": "ok"})
        log = event_log(item)
        assert item.set({"title": None}) is False
        assert item.get("title") == "ok"
        assert log.names == ["error"]
        (errored, errors, _), = log.of("error")
        assert errored is item
        assert errors[0]["loc"] == ("title",)

    def test_custom_validate(self):
        class Positive(Record):
            def validate(self, attributes):
                if attributes.get("n", 0) < 0:
                    return "n must be positive"
                return None

        record = Positive({"n": 1})
        assert record.set({"n": -1}) is False
        assert record.get("n") == 1
        assert record.is_valid()

    def test_no_schema_accepts_anything(self):
        assert Record().validate({"anything": object()}) is None


class TestSerialization:
    def test_to_json(self):
        assert Record({"a": 1}).to_json() == '{"a":1}'

    def test_clone_has_fresh_cid(self):
        original = Record({"a": {"nested": 1}})
        copy_ = original.clone()
        assert copy_.to_dict() == original.to_dict()
        assert copy_.cid != original.cid
        copy_.get("a")["nested"] = 2
        assert original.get("a") == {"nested": 1}

    def test_repr(self):
        record = Record({"id": 3})
        assert repr(record) == f"Record(cid={record.cid!r}, id=3)"


class TestTransport:
    def test_no_transport(self):
        with pytest.raises(InvalidStateError):
            Record({"id": 1}).save()

    def test_save_new_record_gets_id(self, event_log):
        store = MemoryStore()
        record = Record({"title": "a"}, sync=store)
        log = event_log(record)
        record.save()
        assert record.id == 1
        assert store.rows[1] == {"title": "a", "id": 1}
        assert log.names == ["change:id", "change", "sync"]

    def test_save_existing_uses_update(self):
        store = MemoryStore([{"id": 1, "title": "a"}])
        record = Record({"id": 1, "title": "a"}, sync=store)
        record.save({"title": "b"})
        assert store.calls[-1][0] == "update"
        assert store.rows[1]["title"] == "b"

    def test_patch(self):
        store = MemoryStore([{"id": 1, "title": "a", "n": 1}])
        record = Record({"id": 1, "title": "a", "n": 5}, sync=store)
        record.save({"title": "b"}, patch=True)
        assert store.calls[-1][0] == "patch"
        assert store.rows[1] == {"id": 1, "title": "b", "n": 1}

    def test_save_wait_applies_after_success(self):
        store = MemoryStore([{"id": 1, "title": "a"}], deferred=True)
        record = Record({"id": 1, "title": "a"}, sync=store)
        record.save({"title": "b"}, wait=True)
        assert record.get("title") == "a"
        store.flush()
        assert record.get("title") == "b"

    def test_save_invalid_makes_no_request(self, item_cls):
        store = MemoryStore()
        item = item_cls({"title": "a"}, sync=store)
        assert item.save({"title": 5.5}) is False
        assert store.calls == []

    def test_save_failure_goes_to_error(self):
        store = MemoryStore()
        store.fail_next(ConnectionError("down"))
        failures = []
        record = Record({"title": "a"}, sync=store)
        record.save(error=lambda r, e, o: failures.append((r, e.message)))
        assert failures == [(record, "down")]
        assert record.is_new()

    def test_fetch(self):
        store = MemoryStore([{"id": 1, "title": "fresh"}])
        record = Record({"id": 1, "title": "stale"}, sync=store)
        record.fetch()
        assert record.get("title") == "fresh"

    def test_destroy_new_record_skips_transport(self, event_log):
        store = MemoryStore()
        record = Record(sync=store)
        log = event_log(record)
        assert record.destroy() is False
        assert store.calls == []
        assert log.names == ["destroyed"]

    def test_destroy_wait(self, event_log):
        store = MemoryStore([{"id": 1}], deferred=True)
        record = Record({"id": 1}, sync=store)
        log = event_log(record)
        record.destroy(wait=True)
        assert log.names == []
        store.flush()
        assert log.names == ["destroyed", "sync"]
        assert store.rows == {}
