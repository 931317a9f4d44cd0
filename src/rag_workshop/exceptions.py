"""Exception hierarchy shared by ingestion, retrieval and chat.

Every error carries a human-readable message plus an optional ``details``
dict that the HTTP layer returns to callers as-is.
"""

from __future__ import annotations

from typing import Any


class RAGWorkshopError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class SourceUnavailable(RAGWorkshopError):
    """A document source could not be read; fatal to the ingestion run."""

    def __init__(self, source: str, reason: str = "", details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["source"] = source
        message = f"Source unavailable: {source}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, details)


class ModelUnavailable(RAGWorkshopError):
    """The embedding or chat backend could not be reached."""


class ModelTimeout(ModelUnavailable):
    """A call to the embedding or chat backend exceeded its timeout."""


class DimensionMismatch(RAGWorkshopError):
    """An embedding vector does not have the configured dimension."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}",
            {"expected": expected, "actual": actual},
        )


class IndexUnavailable(RAGWorkshopError):
    """The vector index has not been initialised or cannot be reached."""


class ParseFailure(RAGWorkshopError):
    """Model text did not match the declared output schema."""

    def __init__(self, message: str, raw: str = "", details: dict[str, Any] | None = None) -> None:
        self.raw = raw
        super().__init__(message, details)
