from collections.abc import Mapping
from typing import Any

import structlog

from autoincrement.core.modules.counter.service import SequenceGenerator
from autoincrement.core.modules.document.models import Document, FieldSpec, Schema

logger = structlog.get_logger(__name__)


def autoincrement_plugin(generator: SequenceGenerator, schema: Schema, options: Mapping[str, Any] | None = None) -> str:
    """Number new documents of `schema` from a sequence named after its collection.

    The options are registered as the sequence's overrides the first time a
    new document of the collection is saved, not here. Returns the numbered
    field name.
    """
    options = dict(options or {})
    field_name: str = options.get("field") or generator.defaults.field

    if schema.manage_id:
        schema.add({field_name: FieldSpec(type=int, unique=True, required=True)})

    async def assign_sequence(document: Document, database: Any) -> None:
        if not document.is_new:
            return
        sequence_name = schema.collection_name
        if generator.options.register_sequence(sequence_name, options):
            logger.debug("sequence_registered", sequence=sequence_name, options=options)
        document[field_name] = await generator.increment(database, sequence_name, field_name)

    schema.pre_save(assign_sequence)
    return field_name
