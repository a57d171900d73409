# tests/conftest.py
import pytest
from pydantic import BaseModel

from lionpile import PileSettings, Record
from lionpile.protocols.generic import pile as pile_module


class ItemSchema(BaseModel):
    title: str
    key: int = 0


class Item(Record):
    schema = ItemSchema
    defaults = {"key": 0}


class EventLog:
    """Collects every event an observable emits on its ``all`` channel."""

    def __init__(self, target=None):
        self.events = []
        if target is not None:
            target.on("all", self)

    def __call__(self, event, *args):
        self.events.append((event, args))

    @property
    def names(self):
        return [name for name, _ in self.events]

    def of(self, name):
        return [args for event, args in self.events if event == name]

    def count(self, name):
        return len(self.of(name))


@pytest.fixture(autouse=True)
def verify_integrity(monkeypatch):
    """Check pile invariants after every mutation in every test."""
    monkeypatch.setattr(
        pile_module, "settings", PileSettings(VERIFY_INTEGRITY=True)
    )


@pytest.fixture
def item_cls():
    return Item


@pytest.fixture
def event_log():
    return EventLog
