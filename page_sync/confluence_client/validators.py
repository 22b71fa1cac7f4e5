"""Syntax checks for identifiers, space keys, label names and URLs.

Every check converts its argument with ``str()`` first, so numeric page IDs
may be passed as ``int`` as well.
"""

import re
from typing import Any
from urllib.parse import urlparse

_INTEGER_PATTERN = re.compile(r'^[0-9]+$')

# alphanumerics, underscore, hyphen, tilde, braces, percent, plus
_LABEL_NAME_PATTERN = re.compile(r'^[0-9a-zA-Z_\-~{}%+]+$')

# Global spaces are alphanumeric; personal spaces start with "~" and may
# carry an account id with colons, dashes and underscores.
_SPACE_KEY_PATTERN = re.compile(r'^(?:[0-9a-zA-Z]{1,255}|~[0-9a-zA-Z:_\-]{1,254})$')

_HOST_PATTERN = re.compile(
    r'^(localhost|(\d{1,3}\.){3}\d{1,3}|([a-zA-Z0-9\-À-ſ]+\.)+[a-zA-Z]{2,})$'
)


def is_valid_integer(value: Any) -> bool:
    """Check that ``value`` is a non-negative integer or digit-only string."""
    if value is None or isinstance(value, bool):
        return False
    return bool(_INTEGER_PATTERN.match(str(value)))


def is_valid_label_name(value: Any) -> bool:
    """Check that ``value`` only contains characters allowed in label names."""
    if value is None:
        return False
    return bool(_LABEL_NAME_PATTERN.match(str(value)))


def is_valid_space_key(value: Any) -> bool:
    """Check that ``value`` looks like a Confluence space key."""
    if value is None:
        return False
    return bool(_SPACE_KEY_PATTERN.match(str(value)))


def is_valid_url(value: Any) -> bool:
    """Check that ``value`` is an absolute http(s) URL with a plausible host.

    Args:
        value: URL to check

    Returns:
        True for URLs like ``https://example.atlassian.net/wiki``
    """
    if value is None:
        return False

    text = str(value)
    if any(ch.isspace() for ch in text):
        return False

    try:
        parsed = urlparse(text)
        # raises for non-numeric or out-of-range ports
        parsed.port
    except ValueError:
        return False

    if parsed.scheme not in ('http', 'https'):
        return False

    return bool(_HOST_PATTERN.match(parsed.hostname or ''))
