from abc import ABC


class AutoincrementError(ABC, Exception):
    """Base class for errors raised by the sequence generator.

    Errors coming from the store itself (network failures, permission
    errors, ...) are never wrapped and keep their original pymongo type.
    """


class ValidationError(AutoincrementError):
    """Raised when a caller passes an invalid argument."""


class ConfigurationError(AutoincrementError):
    """Raised when sequence options cannot be applied."""


class UnsupportedStoreError(ConfigurationError):
    """Raised when a collection exposes no supported atomic update primitive."""

    def __init__(self, collection_name: str, missing: tuple[str, ...]) -> None:
        self.collection_name = collection_name
        self.missing = missing
        super().__init__(f"Collection {collection_name!r} supports neither of: {', '.join(missing)}")


class UnexpectedResponseError(AutoincrementError):
    """Raised when the store returns a document without a sequence value."""


class RetryLimitExceededError(AutoincrementError):
    """Raised when duplicate-key retries exceed the configured limit."""

    def __init__(self, sequence_name: str, attempts: int) -> None:
        self.sequence_name = sequence_name
        self.attempts = attempts
        super().__init__(f"Sequence {sequence_name!r} still conflicting after {attempts} attempts")
