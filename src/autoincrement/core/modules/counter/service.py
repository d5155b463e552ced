import asyncio
from collections.abc import Callable, Mapping
from typing import Any, TypeAlias

import structlog
from pymongo.errors import OperationFailure

from autoincrement.core.db import Connection, ConnectionState
from autoincrement.core.modules.counter.models import Counter, SequenceOptions, UpsertOptions
from autoincrement.core.modules.counter.options import SequenceOptionsResolver
from autoincrement.core.modules.counter.store import is_duplicate_key, select_store
from autoincrement.errors import RetryLimitExceededError, ValidationError

logger = structlog.get_logger(__name__)

SequenceCallback: TypeAlias = Callable[[BaseException | None, int | None], None]


class SequenceGenerator:
    """Issues strictly increasing numbers per named sequence.

    Each sequence is backed by one counter document `{_id: name, field, seq}`
    that is advanced with a single atomic upsert-increment. Two callers racing
    to create a missing counter make one upsert fail with a duplicate key;
    that attempt is retried after yielding to the event loop. Any other store
    error is raised unchanged.
    """

    def __init__(self, defaults: SequenceOptions | None = None, max_retries: int | None = None) -> None:
        self.options = SequenceOptionsResolver(defaults)
        self.max_retries = max_retries

    @property
    def defaults(self) -> SequenceOptions:
        return self.options.defaults

    def set_defaults(self, options: Mapping[str, Any]) -> SequenceOptions:
        """Merge `collection`, `field` and `step` overrides into the defaults."""
        return self.options.set_defaults(options)

    def configure_sequence(self, sequence_name: str, options: Mapping[str, Any]) -> None:
        self.options.configure_sequence(sequence_name, options)

    async def get_next_sequence(self, connection: Any, sequence_name: str, field_name: str | None = None) -> int:
        """Standalone entry point; waits for a connection that is still opening."""
        if isinstance(connection, Connection):
            if connection.state == ConnectionState.CONNECTING:
                logger.debug("waiting_for_connection", sequence=sequence_name)
                await connection.wait_open()
            return await self.increment(connection.database, sequence_name, field_name)
        return await self.increment(connection, sequence_name, field_name)

    async def increment(self, database: Any, sequence_name: str, field_name: str | None = None) -> int:
        """Atomically advance the sequence by its step and return the new value.

        Args:
            database: Database handle holding the counters collection
            sequence_name: Name of the sequence, usually the collection being numbered
            field_name: Field the sequence feeds; defaults to the resolved `field` option

        Returns:
            The new sequence value

        Raises:
            ValidationError: If sequence_name is empty
            UnsupportedStoreError: If the counters collection has no atomic update API
            RetryLimitExceededError: If max_retries is set and conflicts persist
        """
        if not sequence_name:
            raise ValidationError("Sequence name must not be empty")

        options = self.options.resolve_all(sequence_name)
        field_name = field_name or options.field
        query = {"_id": sequence_name, "field": field_name}
        update = {"$inc": {"seq": options.step}}
        store = select_store(database[options.collection])

        attempt = 0
        while True:
            attempt += 1
            try:
                result = await store.upsert_increment(query, update, UpsertOptions())
            except OperationFailure as e:
                if not is_duplicate_key(e):
                    raise
                if self.max_retries is not None and attempt > self.max_retries:
                    raise RetryLimitExceededError(sequence_name, attempt) from e
                logger.debug("duplicate_key_retry", sequence=sequence_name, attempt=attempt)
                await asyncio.sleep(0)
                continue

            logger.debug("sequence_incremented", sequence=sequence_name, field=field_name, seq=result.seq)
            return result.seq

    async def current(self, database: Any, sequence_name: str, field_name: str | None = None) -> int:
        """Get the current sequence value without incrementing."""
        options = self.options.resolve_all(sequence_name)
        doc = await database[options.collection].find_one({"_id": sequence_name, "field": field_name or options.field})
        if doc:
            return Counter.model_validate(doc).seq
        return 0

    async def set_sequence(self, database: Any, sequence_name: str, value: int, field_name: str | None = None) -> None:
        """Set the counter to an explicit value, e.g. after importing numbered documents."""
        if value < 0:
            raise ValidationError(f"Sequence value must not be negative: {value}")
        options = self.options.resolve_all(sequence_name)
        counter = Counter(id=sequence_name, field=field_name or options.field, seq=value)
        await database[options.collection].replace_one({"_id": sequence_name}, counter.to_mongo(), upsert=True)
        logger.info("sequence_set", sequence=sequence_name, seq=value)

    async def reset(self, database: Any, sequence_name: str) -> int:
        """Delete the counter of a sequence and return the number of deleted counters."""
        options = self.options.resolve_all(sequence_name)
        result = await database[options.collection].delete_many({"_id": sequence_name})
        return result.deleted_count


def next_sequence_with_callback(
    generator: SequenceGenerator,
    connection: Any,
    sequence_name: str,
    field_name: str | None = None,
    *,
    callback: SequenceCallback,
) -> asyncio.Task[int]:
    """Schedule `get_next_sequence` and report through `callback(error, value)`."""
    task = asyncio.ensure_future(generator.get_next_sequence(connection, sequence_name, field_name))

    def _done(finished: asyncio.Task[int]) -> None:
        if finished.cancelled():
            callback(asyncio.CancelledError(), None)
        elif (error := finished.exception()) is not None:
            callback(error, None)
        else:
            callback(None, finished.result())

    task.add_done_callback(_done)
    return task
