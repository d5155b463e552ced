"""Minimal schema/document layer with pre-save hooks."""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeAlias

import structlog
from pydantic import BaseModel

from autoincrement.errors import ValidationError

logger = structlog.get_logger(__name__)

PreSaveHook: TypeAlias = Callable[["Document", Any], Awaitable[None]]


class FieldSpec(BaseModel):
    """Declared field of a schema."""

    type: type
    unique: bool = False
    required: bool = False


class Schema:
    """Describes the documents of one collection.

    `manage_id` tells plugins that the schema lets them own its identity
    field, i.e. they may declare it.
    """

    def __init__(self, collection_name: str, fields: Mapping[str, FieldSpec] | None = None, *, manage_id: bool = True) -> None:
        self.collection_name = collection_name
        self.fields: dict[str, FieldSpec] = dict(fields or {})
        self.manage_id = manage_id
        self._pre_save: list[PreSaveHook] = []

    def add(self, fields: Mapping[str, FieldSpec]) -> None:
        self.fields.update(fields)

    def pre_save(self, hook: PreSaveHook) -> PreSaveHook:
        """Register a hook run before every save, in registration order."""
        self._pre_save.append(hook)
        return hook

    async def run_pre_save(self, document: "Document", database: Any) -> None:
        for hook in self._pre_save:
            await hook(document, database)

    async def ensure_indexes(self, database: Any) -> None:
        """Create unique indexes for unique fields (`_id` is always unique)."""
        collection = database[self.collection_name]
        for name, spec in self.fields.items():
            if spec.unique and name != "_id":
                await collection.create_index([(name, 1)], unique=True)

    def validate(self, values: Mapping[str, Any]) -> None:
        for name, spec in self.fields.items():
            value = values.get(name)
            if value is None:
                if spec.required:
                    raise ValidationError(f"Missing required field: {name}")
                continue
            if not isinstance(value, spec.type) or (spec.type is int and isinstance(value, bool)):
                raise ValidationError(f"Field {name} must be {spec.type.__name__}, got {type(value).__name__}")


class Document:
    """A mutable document bound to a schema."""

    def __init__(self, schema: Schema, values: Mapping[str, Any] | None = None) -> None:
        self.schema = schema
        self.values: dict[str, Any] = dict(values or {})
        self.is_new = True

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.values[name] = value

    async def save(self, database: Any) -> None:
        """Run pre-save hooks, validate, then insert (new) or replace by `_id`."""
        await self.schema.run_pre_save(self, database)
        self.schema.validate(self.values)

        collection = database[self.schema.collection_name]
        if self.is_new:
            result = await collection.insert_one(self.values)
            self.values.setdefault("_id", result.inserted_id)
            self.is_new = False
            logger.debug("document_inserted", collection=self.schema.collection_name, id=self.values["_id"])
        else:
            await collection.replace_one({"_id": self.values["_id"]}, self.values)
