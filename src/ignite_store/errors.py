"""Typed errors for embedding, storage and configuration failures.

Every error carries the pipeline ``stage`` that failed so callers can tell an
embedding failure apart from a storage failure without string matching.
"""

from typing import Any, Literal, Optional

Stage = Literal["embedding", "storage", "configuration"]


class IgniteStoreError(RuntimeError):
    """Base class for all ignite-store errors."""

    default_stage: Stage = "storage"

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[Stage] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.stage: Stage = stage or self.default_stage
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


class InvalidRequestError(IgniteStoreError):
    """Raised for null or malformed input. Never retried."""

    default_stage: Stage = "embedding"


class ConfigurationError(IgniteStoreError):
    """Raised for out-of-range settings or unresolvable option merges."""

    default_stage: Stage = "configuration"


class EmbeddingDependenciesMissingError(ConfigurationError):
    """Raised when an embedding provider dependency is unavailable or misconfigured."""


class EmbeddingServiceError(IgniteStoreError):
    """Raised when a remote embedding service call fails transiently."""

    default_stage: Stage = "embedding"


class StoreUnavailableError(IgniteStoreError):
    """Raised when the storage backend cannot be reached."""


class NotFoundError(IgniteStoreError):
    """Raised when a collection or document is missing on read."""
