from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from autoincrement.config import Config
from autoincrement.core.db import Connection
from autoincrement.core.modules.counter.models import SequenceOptions
from autoincrement.core.modules.counter.service import SequenceGenerator


class Core:
    """Container providing config, the MongoDB connection and the sequence generator."""

    config: Config
    connection: Connection
    sequences: SequenceGenerator

    def __init__(self, config: Config, connection: Connection | None = None) -> None:
        self.config = config
        self.connection = connection or Connection.from_url(config.database_url)
        self.sequences = SequenceGenerator(
            SequenceOptions(collection=config.counters_collection, field=config.field, step=config.step),
            max_retries=config.max_retries,
        )

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None, None]:
        """Open the connection for the duration of the block."""
        await self.connection.open()
        try:
            yield
        finally:
            await self.connection.close()

    async def next_sequence(self, sequence_name: str, field_name: str | None = None) -> int:
        return await self.sequences.get_next_sequence(self.connection, sequence_name, field_name)
