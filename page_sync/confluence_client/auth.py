"""Authentication module for loading Confluence credentials.

Credentials are read from environment variables, optionally populated from a
``.env`` file with python-dotenv. Missing values raise InvalidCredentialsError.
"""

import os
from typing import NamedTuple, Optional

from dotenv import load_dotenv

from .errors import InvalidCredentialsError


class Credentials(NamedTuple):
    """Confluence API credentials."""
    url: str
    user: str
    api_token: str


class Authenticator:
    """Loads and validates Confluence credentials from environment variables.

    Credentials are never cached or logged.

    Required environment variables:
        CONFLUENCE_URL: Confluence base URL (e.g., https://yourinstance.atlassian.net/wiki)
        CONFLUENCE_USER: Confluence user email address
        CONFLUENCE_API_TOKEN: Confluence API token

    Example:
        >>> creds = Authenticator().get_credentials()
        >>> print(f"Connecting to {creds.url}")
    """

    def __init__(self, dotenv_path: Optional[str] = None):
        """Load environment variables from a .env file.

        Args:
            dotenv_path: Explicit .env file; python-dotenv searches upwards
                from the working directory when omitted.
        """
        load_dotenv(dotenv_path)

    def get_credentials(self) -> Credentials:
        """Get Confluence credentials from environment variables.

        Returns:
            Credentials with url, user and api_token

        Raises:
            InvalidCredentialsError: If any required variable is missing
        """
        url = os.getenv('CONFLUENCE_URL')
        user = os.getenv('CONFLUENCE_USER')
        api_token = os.getenv('CONFLUENCE_API_TOKEN')

        if not (url and user and api_token):
            raise InvalidCredentialsError(
                user=user if user else "unknown",
                endpoint=url if url else "unknown",
            )

        return Credentials(url=url, user=user, api_token=api_token)
