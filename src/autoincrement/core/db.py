import asyncio
from enum import StrEnum
from typing import Any, Self
from urllib.parse import urlparse

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

logger = structlog.get_logger(__name__)


class MongoModel(BaseModel):
    """Base for documents stored by name, with the name kept in `_id`."""

    id: str = Field(alias="_id", serialization_alias="id")

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    def to_mongo(self) -> dict[str, Any]:
        """Convert the model to a dictionary for MongoDB storage with _id field."""
        data = self.model_dump()
        if "id" in data:
            data["_id"] = data.pop("id")  # Rename id → _id for MongoDB
        return data


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Connection:
    """MongoDB client handle that tracks whether the server is reachable yet.

    Callers that receive a connection while it is still CONNECTING can await
    `wait_open()` to be resumed once `open()` completes. If opening fails, the
    waiters receive the same exception.
    """

    def __init__(self, client: Any, database_name: str) -> None:
        self.client = client
        self.database_name = database_name
        self._state = ConnectionState.DISCONNECTED
        self._opened: asyncio.Future[None] | None = None

    @classmethod
    def from_url(cls, database_url: str) -> Self:
        client: AsyncMongoClient[dict[str, Any]] = AsyncMongoClient(database_url, uuidRepresentation="standard")
        return cls(client, urlparse(database_url).path[1:])

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def database(self) -> AsyncDatabase[dict[str, Any]]:
        return self.client.get_database(self.database_name)

    async def open(self) -> None:
        """Ping the server and mark the connection open."""
        if self._state == ConnectionState.OPEN:
            return
        if self._state == ConnectionState.CONNECTING:
            await self.wait_open()
            return

        self._state = ConnectionState.CONNECTING
        self._opened = asyncio.get_running_loop().create_future()
        try:
            await self.client.admin.command("ping")
        except Exception as exc:
            self._state = ConnectionState.DISCONNECTED
            self._opened.set_exception(exc)
            self._opened.exception()  # mark retrieved; waiters still see it
            raise
        self._state = ConnectionState.OPEN
        self._opened.set_result(None)
        logger.debug("connection_opened", database=self.database_name)

    async def wait_open(self) -> None:
        """Suspend until a pending `open()` finishes."""
        if self._state == ConnectionState.OPEN:
            return
        if self._opened is None:
            raise RuntimeError("Connection is not being opened")
        await asyncio.shield(self._opened)

    async def close(self) -> None:
        await self.client.aclose()
        self._state = ConnectionState.CLOSED
