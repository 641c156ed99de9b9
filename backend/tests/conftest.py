import os

# Settings are read at import time
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/anon_drop_test")
os.environ.setdefault("ENCRYPTION_PEPPER", "test-pepper")
os.environ.setdefault("ENCRYPTION_SALT", "test-salt")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from itertools import count
from types import SimpleNamespace

import pytest
from pymongo.errors import OperationFailure


class FakeCursor:
    def __init__(self, docs):
        self._docs = list(docs)

    def sort(self, keys):
        for field, direction in reversed(keys):
            self._docs.sort(key=lambda d: d[field], reverse=direction < 0)
        return self

    def __iter__(self):
        return iter(self._docs)


class FakeDatabase:
    def __init__(self, collection):
        self._collection = collection

    def list_collection_names(self, filter=None):
        return [self._collection.name] if self._collection.created else []


class FakeCollection:
    """In-memory stand-in for the pymongo calls MessageStore makes."""

    def __init__(self, name="messages"):
        self.name = name
        self.created = False
        self.docs = []
        self.indexes = {}
        self.database = FakeDatabase(self)
        self._ids = count(1)

    def insert_one(self, doc):
        self.created = True
        doc = dict(doc, _id=next(self._ids))
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    def find(self, query):
        def matches(doc):
            for field, cond in query.items():
                if isinstance(cond, dict):
                    if not doc[field] > cond["$gt"]:
                        return False
                elif doc[field] != cond:
                    return False
            return True

        return FakeCursor(d for d in self.docs if matches(d))

    def index_information(self):
        info = {"_id_": {"key": [("_id", 1)], "v": 2}} if self.created else {}
        info.update(self.indexes)
        return info

    def create_index(self, keys, name, **options):
        self.created = True
        self.indexes[name] = {"key": list(keys), "v": 2, **options}
        return name

    def drop_index(self, name):
        if name not in self.indexes:
            raise OperationFailure("index not found", code=27)
        del self.indexes[name]


class Ticker:
    """Clock advancing one second per call."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def clock():
    return Ticker()


@pytest.fixture
def store(collection, clock):
    from app.services.message_store import MessageStore

    return MessageStore(collection, clock=clock)


@pytest.fixture
def service(store):
    from app.core.message import MessageService

    return MessageService(store)
