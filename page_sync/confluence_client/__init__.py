"""Confluence REST client for page synchronization.

This package holds the transport capability, credential loading, input
validators and the typed exception hierarchy. The SyncClient itself lives in
``page_sync.confluence_client.sync_client`` and is re-exported from
``page_sync``.
"""

from .errors import (
    SyncError,
    ConfluenceError,
    ValidationError,
    UsageError,
    StateError,
    InvalidCredentialsError,
    RemoteFailure,
    VersionConflict,
    PartialFailure,
    ConversionError,
)
from .auth import Authenticator, Credentials
from .http_client import HttpClient, HttpResponse, ConfluenceHttpClient

__all__ = [
    "SyncError",
    "ConfluenceError",
    "ValidationError",
    "UsageError",
    "StateError",
    "InvalidCredentialsError",
    "RemoteFailure",
    "VersionConflict",
    "PartialFailure",
    "ConversionError",
    "Authenticator",
    "Credentials",
    "HttpClient",
    "HttpResponse",
    "ConfluenceHttpClient",
]
