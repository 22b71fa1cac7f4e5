"""Command-line interface for inspecting and editing Confluence pages.

This package provides the `page-sync` CLI tool, a thin front end over
SyncClient with YAML settings, colored output and mapped exit codes.
"""

from .config import ConfigLoader
from .errors import CLIError, ConfigError
from .models import ClientSettings, ExitCode
from .output import OutputHandler

__all__ = [
    'ConfigLoader',
    'CLIError',
    'ConfigError',
    'ClientSettings',
    'ExitCode',
    'OutputHandler',
]
