"""Auto-incrementing counters for sequential numbering."""

from pydantic import BaseModel, ConfigDict, Field

from autoincrement.core.db import MongoModel

DEFAULT_COLLECTION = "counters"
DEFAULT_FIELD = "_id"
DEFAULT_STEP = 1


class Counter(MongoModel):
    """Atomic counter for one named sequence.

    `_id` is the sequence name, so the counters collection holds at most one
    document per sequence and a concurrent first upsert fails with a
    duplicate key instead of creating a second counter.
    """

    field: str  # Field the sequence feeds, e.g. "_id" or "number"
    seq: int = 0  # Last issued value; next one is seq + step


class SequenceOptions(BaseModel):
    """Effective options of a sequence: where its counter lives and how it advances."""

    collection: str = DEFAULT_COLLECTION
    field: str = DEFAULT_FIELD
    step: int = Field(default=DEFAULT_STEP, ge=1, strict=True)

    model_config = ConfigDict(extra="allow")


class UpsertOptions(BaseModel):
    upsert: bool = True
    return_updated: bool = True


class IncrementResult(BaseModel):
    """Canonical response of an atomic increment, whatever the store API."""

    seq: int
