"""Adapters over the two generations of MongoDB's atomic update API."""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, OperationFailure

from autoincrement.core.modules.counter.models import IncrementResult, UpsertOptions
from autoincrement.errors import UnexpectedResponseError, UnsupportedStoreError

DUPLICATE_KEY_CODE = 11000

MODERN_METHOD = "find_one_and_update"
LEGACY_METHOD = "find_and_modify"


class CounterStore(ABC):
    """Atomic upsert-increment against one counters collection."""

    def __init__(self, collection: Any) -> None:
        self.collection = collection

    @abstractmethod
    async def upsert_increment(
        self, query: Mapping[str, Any], update: Mapping[str, Any], options: UpsertOptions
    ) -> IncrementResult:
        """Apply `update` to the document matching `query` and return its new seq.

        Raises:
            UnexpectedResponseError: If the store returns no sequence value
        """


class FindOneAndUpdateStore(CounterStore):
    """Current driver API: `find_one_and_update(..., return_document=AFTER)`."""

    async def upsert_increment(
        self, query: Mapping[str, Any], update: Mapping[str, Any], options: UpsertOptions
    ) -> IncrementResult:
        response = await _resolve(
            self.collection.find_one_and_update(
                query,
                update,
                upsert=options.upsert,
                return_document=ReturnDocument.AFTER if options.return_updated else ReturnDocument.BEFORE,
            )
        )
        return normalize_response(response)


class FindAndModifyStore(CounterStore):
    """Legacy combined `find_and_modify(query=, update=, upsert=, new=)` API."""

    async def upsert_increment(
        self, query: Mapping[str, Any], update: Mapping[str, Any], options: UpsertOptions
    ) -> IncrementResult:
        response = await _resolve(
            self.collection.find_and_modify(
                query=query,
                update=update,
                upsert=options.upsert,
                new=options.return_updated,
            )
        )
        return normalize_response(response)


def select_store(collection: Any) -> CounterStore:
    """Pick the adapter matching what the collection handle supports."""
    if callable(getattr(collection, MODERN_METHOD, None)):
        return FindOneAndUpdateStore(collection)
    if callable(getattr(collection, LEGACY_METHOD, None)):
        return FindAndModifyStore(collection)
    raise UnsupportedStoreError(str(getattr(collection, "name", collection)), (MODERN_METHOD, LEGACY_METHOD))


def normalize_response(response: Any) -> IncrementResult:
    """Accept either the document itself or a raw command reply wrapping it in `value`."""
    if isinstance(response, Mapping):
        if response.get("seq") is not None:
            return IncrementResult(seq=response["seq"])
        value = response.get("value")
        if isinstance(value, Mapping) and value.get("seq") is not None:
            return IncrementResult(seq=value["seq"])
    raise UnexpectedResponseError(f"Counter response has no seq value: {response!r}")


def is_duplicate_key(error: BaseException) -> bool:
    if isinstance(error, DuplicateKeyError):
        return True
    return isinstance(error, OperationFailure) and error.code == DUPLICATE_KEY_CODE


async def _resolve(result: Any) -> Any:
    # Legacy synchronous drivers return the reply directly
    if inspect.isawaitable(result):
        return await result
    return result
