"""Typed exception hierarchy for page synchronization errors.

Structural problems (bad arguments, entities in the wrong state) are raised
immediately to the caller. Remote problems are never raised by SyncClient;
instead a RemoteFailure instance is recorded as the client's last error and
the operation returns None or False.
"""

from typing import List, Optional


class SyncError(Exception):
    """Base exception for all page-sync errors.

    Use this to catch any application-level error from the library.
    """
    pass


class ConfluenceError(SyncError):
    """Base exception for all Confluence-related errors."""
    pass


class ValidationError(ConfluenceError, ValueError):
    """Raised when a public operation receives malformed or missing input."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class UsageError(ConfluenceError):
    """Raised when an operation is invoked on an entity in the wrong state."""
    pass


class StateError(UsageError):
    """Raised when an entity lacks state an operation depends on."""
    pass


class InvalidCredentialsError(ConfluenceError):
    """Raised when API credentials are missing or invalid."""

    def __init__(self, user: str, endpoint: str):
        super().__init__(
            f"API key is invalid (user: {user}, endpoint: {endpoint})"
        )
        self.user = user
        self.endpoint = endpoint


class RemoteFailure(ConfluenceError):
    """A failed exchange with the server.

    Instances are recorded as ``SyncClient.last_error`` rather than raised.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        super().__init__(f"[{operation}] {message}")
        self.operation = operation
        self.status_code = status_code


class VersionConflict(RemoteFailure):
    """The server rejected a write because the version number was stale."""

    def __init__(self, operation: str, page_id: str, version: Optional[int]):
        super().__init__(
            operation,
            f"Version conflict updating page {page_id} (version {version} is stale)",
            status_code=409,
        )
        self.page_id = page_id
        self.version = version


class PartialFailure(RemoteFailure):
    """Some label sub-operations of a reconciliation failed.

    Sub-operations that succeeded stay applied on the server.
    """

    def __init__(
        self,
        operation: str,
        failed_removals: List[str],
        failed_additions: List[str],
    ):
        parts = []
        if failed_removals:
            parts.append(f"could not remove {', '.join(failed_removals)}")
        if failed_additions:
            parts.append(f"could not add {', '.join(failed_additions)}")
        super().__init__(operation, "Label reconciliation incomplete: " + "; ".join(parts))
        self.failed_removals = failed_removals
        self.failed_additions = failed_additions


class ConversionError(ConfluenceError):
    """Raised when page content cannot be converted for display."""

    def __init__(self, message: str):
        super().__init__(message)
