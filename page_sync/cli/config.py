"""Settings file loading and validation.

The optional settings file is YAML:

    url: https://example.atlassian.net/wiki
    timeout_ms: 20000
    page_size: 200

A missing file yields the defaults. Credentials never live in this file;
they come from CONFLUENCE_* environment variables or a .env file.
"""

from typing import Any, Dict

import yaml

from ..confluence_client.validators import is_valid_url
from .errors import ConfigError
from .models import ClientSettings


class ConfigLoader:
    """Loads ClientSettings from YAML files."""

    DEFAULT_CONFIG_FILE = '.page-sync.yaml'

    @classmethod
    def load(cls, config_path: str) -> ClientSettings:
        """Load and validate settings from ``config_path``.

        Raises:
            ConfigError: If the file is unreadable, not valid YAML or holds
                         values of the wrong type
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            return ClientSettings()
        except OSError as e:
            raise ConfigError(f"Cannot read file: {e}", config_path)

        if not content.strip():
            return ClientSettings()

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {e}", config_path)

        if data is None:
            return ClientSettings()
        if not isinstance(data, dict):
            raise ConfigError("Top level must be a mapping", config_path)

        return cls._from_dict(data, config_path)

    @staticmethod
    def _from_dict(data: Dict[str, Any], config_path: str) -> ClientSettings:
        unknown = set(data) - {'url', 'timeout_ms', 'page_size'}
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}", config_path)

        settings = ClientSettings()

        url = data.get('url')
        if url is not None:
            if not isinstance(url, str) or not is_valid_url(url):
                raise ConfigError(f"'url' is not a valid http(s) URL: {url!r}", config_path)
            settings.url = url

        for key in ('timeout_ms', 'page_size'):
            value = data.get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"'{key}' must be a positive integer", config_path)
            setattr(settings, key, value)

        return settings
