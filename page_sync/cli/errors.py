"""Typed exception hierarchy for CLI-related errors."""

from typing import Optional

from ..confluence_client.errors import SyncError


class CLIError(SyncError):
    """Base exception for all CLI-related errors."""
    pass


class ConfigError(CLIError):
    """Raised when the settings file is unreadable or invalid."""

    def __init__(self, message: str, config_path: Optional[str] = None):
        if config_path:
            message = f"Invalid configuration in {config_path}: {message}"
        super().__init__(message)
        self.config_path = config_path
