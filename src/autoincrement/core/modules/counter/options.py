from collections.abc import Mapping
from typing import Any

import pydantic
import structlog

from autoincrement.core.modules.counter.models import SequenceOptions
from autoincrement.errors import ConfigurationError

logger = structlog.get_logger(__name__)


class SequenceOptionsResolver:
    """Overlays per-sequence overrides onto generator-wide defaults.

    Overrides are kept as the raw mappings they were registered with, so a
    sequence only overrides the keys it names; everything else falls back to
    the defaults at the time of the lookup.
    """

    def __init__(self, defaults: SequenceOptions | None = None) -> None:
        self._defaults = defaults or SequenceOptions()
        self._overrides: dict[str, dict[str, Any]] = {}

    @property
    def defaults(self) -> SequenceOptions:
        return self._defaults

    def set_defaults(self, options: Mapping[str, Any]) -> SequenceOptions:
        """Merge the given keys into the defaults and return the new defaults."""
        self._defaults = _validate({**self._defaults.model_dump(), **options})
        unknown = sorted(set(options) - set(SequenceOptions.model_fields))
        if unknown:
            logger.warning("unrecognized_sequence_options", keys=unknown)
        return self._defaults

    def configure_sequence(self, sequence_name: str, options: Mapping[str, Any]) -> None:
        """Record overrides for one sequence, replacing earlier ones."""
        _validate({**self._defaults.model_dump(), **_present(options)})
        self._overrides[sequence_name] = dict(options)

    def register_sequence(self, sequence_name: str, options: Mapping[str, Any]) -> bool:
        """Record overrides only if the sequence has none yet.

        Returns True when the options were recorded.
        """
        if sequence_name in self._overrides:
            return False
        self.configure_sequence(sequence_name, options)
        return True

    def has_overrides(self, sequence_name: str) -> bool:
        return sequence_name in self._overrides

    def resolve(self, sequence_name: str, option_name: str) -> Any:
        override = self._overrides.get(sequence_name, {}).get(option_name)
        if override is not None:
            return override
        return getattr(self._defaults, option_name)

    def resolve_all(self, sequence_name: str) -> SequenceOptions:
        return _validate({**self._defaults.model_dump(), **_present(self._overrides.get(sequence_name, {}))})


def _present(options: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in options.items() if value is not None}


def _validate(data: dict[str, Any]) -> SequenceOptions:
    try:
        return SequenceOptions.model_validate(data)
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid sequence options: {e}") from e
