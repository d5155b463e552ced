"""Shared pytest fixtures: an in-memory stand-in for MongoDB collections."""

import asyncio
import copy
from collections.abc import Mapping
from types import SimpleNamespace
from typing import Any

import pytest
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from autoincrement.core.modules.counter.service import SequenceGenerator


class FakeCollection:
    """Async collection supporting the operations the sequence generator uses.

    Updates of an existing document happen without yielding, so they are
    atomic per document. Upserting a missing document yields once before the
    insert, which lets concurrent callers race and lose with a duplicate key
    exactly like a real server does.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: dict[Any, dict[str, Any]] = {}
        self.failures: list[BaseException] = []  # raised by the next calls, in order
        self.calls = 0
        self.indexes: list[tuple[list[tuple[str, int]], bool]] = []

    def _match(self, query: Mapping[str, Any]) -> dict[str, Any] | None:
        for doc in self.docs.values():
            if all(doc.get(key) == value for key, value in query.items()):
                return doc
        return None

    @staticmethod
    def _apply(doc: dict[str, Any], update: Mapping[str, Any]) -> None:
        for key, amount in update.get("$inc", {}).items():
            doc[key] = doc.get(key, 0) + amount
        for key, value in update.get("$set", {}).items():
            doc[key] = value

    async def _upsert(self, query: Mapping[str, Any], update: Mapping[str, Any], upsert: bool) -> tuple[Any, Any]:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        doc = self._match(query)
        before = copy.deepcopy(doc)
        if doc is None:
            if not upsert:
                return None, None
            await asyncio.sleep(0)
            if query["_id"] in self.docs:
                raise DuplicateKeyError("E11000 duplicate key error", code=11000)
            doc = {key: value for key, value in query.items() if not key.startswith("$")}
            self.docs[doc["_id"]] = doc
        self._apply(doc, update)
        return before, copy.deepcopy(doc)

    async def find_one_and_update(
        self,
        query: Mapping[str, Any],
        update: Mapping[str, Any],
        upsert: bool = False,
        return_document: ReturnDocument = ReturnDocument.BEFORE,
    ) -> dict[str, Any] | None:
        before, after = await self._upsert(query, update, upsert)
        return after if return_document == ReturnDocument.AFTER else before

    async def find_one(self, query: Mapping[str, Any]) -> dict[str, Any] | None:
        return copy.deepcopy(self._match(query))

    async def delete_many(self, query: Mapping[str, Any]) -> SimpleNamespace:
        matching = [key for key, doc in self.docs.items() if all(doc.get(k) == v for k, v in query.items())]
        for key in matching:
            del self.docs[key]
        return SimpleNamespace(deleted_count=len(matching))

    async def insert_one(self, doc: dict[str, Any]) -> SimpleNamespace:
        doc.setdefault("_id", len(self.docs) + 1)
        if doc["_id"] in self.docs:
            raise DuplicateKeyError("E11000 duplicate key error", code=11000)
        self.docs[doc["_id"]] = copy.deepcopy(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def replace_one(self, query: Mapping[str, Any], doc: dict[str, Any], upsert: bool = False) -> None:
        self.docs[query["_id"]] = copy.deepcopy(doc)

    async def create_index(self, keys: list[tuple[str, int]], unique: bool = False) -> None:
        self.indexes.append((keys, unique))


class LegacyCollection(FakeCollection):
    """Collection of an older async driver: only `find_and_modify`, raw command replies."""

    find_one_and_update = None  # type: ignore[assignment]

    def find_and_modify(
        self, query: Mapping[str, Any], update: Mapping[str, Any], upsert: bool = False, new: bool = False
    ) -> Any:
        async def reply() -> dict[str, Any]:
            before, after = await self._upsert(query, update, upsert)
            return {"ok": 1.0, "value": after if new else before}

        return reply()


class BareCollection:
    def __init__(self, name: str) -> None:
        self.name = name


class FakeDatabase:
    def __init__(self, collection_class: type = FakeCollection) -> None:
        self.collection_class = collection_class
        self.collections: dict[str, Any] = {}

    def __getitem__(self, name: str) -> Any:
        if name not in self.collections:
            self.collections[name] = self.collection_class(name)
        return self.collections[name]


@pytest.fixture
def database():
    """In-memory database using the current `find_one_and_update` API."""
    return FakeDatabase()


@pytest.fixture
def legacy_database():
    """In-memory database exposing only the legacy `find_and_modify` API."""
    return FakeDatabase(LegacyCollection)


@pytest.fixture
def bare_database():
    """Database whose collections support no atomic update at all."""
    return FakeDatabase(BareCollection)


@pytest.fixture
def generator():
    """Sequence generator with default options."""
    return SequenceGenerator()
