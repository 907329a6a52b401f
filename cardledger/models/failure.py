"""
Failure classification for the data layer.

Every error the core raises on purpose derives from `KnownError` and carries
a `FailureKind`, so the presentation layer can tell the cases apart without
inspecting storage-driver exceptions.

Propagation policy:
- Construction/initialization failures always surface (no silent fallback)
- Search degrades to partial or empty results instead of raising
- Mutation failures always surface so callers can undo optimistic UI state
"""

from enum import Enum


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Storage lifecycle
    STORAGE_UNAVAILABLE = "storage_unavailable"
    NOT_INITIALIZED = "not_initialized"

    # Catalogue rebuild
    RECONCILIATION_FAILED = "reconciliation_failed"

    # Reads
    QUERY_FAILED = "query_failed"

    # Caller contract violations
    INVALID_ARGUMENT = "invalid_argument"


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        super().__init__(message)


class StorageUnavailableError(KnownError):
    """A store could not be opened, created or read."""

    def __init__(self, store_name: str, detail: str | None = None):
        self.store_name = store_name
        super().__init__(
            kind=FailureKind.STORAGE_UNAVAILABLE,
            message=f"The {store_name} store is unavailable.",
            detail=detail,
            suggestion="Retry opening the stores from scratch.",
        )


class NotInitializedError(KnownError):
    """A store handle was used before `open()` completed."""

    def __init__(self, store_name: str):
        self.store_name = store_name
        super().__init__(
            kind=FailureKind.NOT_INITIALIZED,
            message=f"The {store_name} store has not been opened.",
            suggestion="Call CatalogueStore.open() during startup before any query.",
        )


class ReconciliationFailedError(KnownError):
    """
    The atomic encyclopedia rebuild failed.

    Everything written by the failed attempt has been rolled back and the
    version marker is unchanged, so the same call can be retried.
    """

    def __init__(self, target_version: int, detail: str | None = None):
        self.target_version = target_version
        super().__init__(
            kind=FailureKind.RECONCILIATION_FAILED,
            message=f"Failed to rebuild the card encyclopedia to version {target_version}.",
            detail=detail,
            suggestion="The previous catalogue is intact. Retry the reconciliation.",
        )


class QueryFailedError(KnownError):
    """A read against the stores failed."""

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        super().__init__(
            kind=FailureKind.QUERY_FAILED,
            message=f"Could not complete {operation}.",
            detail=detail,
        )


class InvalidArgumentError(KnownError):
    """A caller passed a value the operation rejects. Nothing was written."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.INVALID_ARGUMENT,
            message=message,
            detail=detail,
        )
