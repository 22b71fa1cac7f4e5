"""Data models for CLI operations."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from ..confluence_client.sync_client import DEFAULT_PAGE_SIZE, DEFAULT_TIMEOUT_MS


class ExitCode(IntEnum):
    """Process exit codes of the page-sync command.

    - SUCCESS (0): Operation completed successfully
    - GENERAL_ERROR (1): Invalid arguments, configuration or usage
    - AUTH_ERROR (3): Missing or invalid credentials
    - REMOTE_ERROR (4): The server rejected a request or was unreachable
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    AUTH_ERROR = 3
    REMOTE_ERROR = 4


@dataclass
class ClientSettings:
    """Client settings read from the YAML settings file.

    Attributes:
        url: Confluence base URL; overrides CONFLUENCE_URL when set
        timeout_ms: Request timeout in milliseconds
        page_size: Results requested per search/listing call
    """
    url: Optional[str] = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    page_size: int = DEFAULT_PAGE_SIZE
