"""HTTP capability consumed by SyncClient.

SyncClient never talks to a network library directly. It configures an
HttpClient (endpoint, method, body, headers, timeout), calls ``execute()``
and inspects the returned HttpResponse. ConfluenceHttpClient is the
production implementation on top of atlassian-python-api.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

from atlassian import Confluence
from requests.exceptions import ConnectionError, RequestException, Timeout

from .auth import Authenticator

logger = logging.getLogger(__name__)


@dataclass
class HttpResponse:
    """Outcome of one HTTP exchange.

    Attributes:
        status_code: HTTP status, 0 when no response was received
        body: Response body as text ("" when there is none)
        headers: Response headers
        error_code: Transport error code, None when the exchange completed
        error_message: Human readable transport error
    """
    status_code: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def has_transport_error(self) -> bool:
        """True when the request did not complete at the transport level."""
        return self.error_code is not None


class HttpClient(ABC):
    """Configurable single-request HTTP capability.

    Configuration persists between calls to ``execute()``; callers set what
    they need for the next request before executing it.
    """

    @abstractmethod
    def set_endpoint(self, url: str) -> None:
        """Set the absolute URL of the next request."""

    @abstractmethod
    def set_method(self, method: str) -> None:
        """Set the HTTP verb of the next request."""

    @abstractmethod
    def set_request_body(self, body: Optional[str]) -> None:
        """Set the raw request body, None for no body."""

    @abstractmethod
    def set_header(self, name: str, value: str) -> None:
        """Set a header sent with every following request."""

    @abstractmethod
    def set_timeout(self, timeout_ms: int) -> None:
        """Set the request timeout in milliseconds."""

    @abstractmethod
    def execute(self) -> HttpResponse:
        """Send the configured request and return its outcome."""


class ConfluenceHttpClient(HttpClient):
    """HttpClient backed by the authenticated session of atlassian-python-api.

    The Confluence client is created lazily on the first request, so building
    a ConfluenceHttpClient never touches credentials.

    Example:
        >>> http = ConfluenceHttpClient(Authenticator())
        >>> http.set_endpoint("https://example.atlassian.net/wiki/rest/api/space")
        >>> http.set_method("get")
        >>> response = http.execute()
    """

    def __init__(self, authenticator: Authenticator, cloud: bool = True):
        self._authenticator = authenticator
        self._cloud = cloud
        self._client: Optional[Confluence] = None
        self._endpoint: Optional[str] = None
        self._method = "GET"
        self._body: Optional[str] = None
        self._headers: Dict[str, str] = {}
        self._timeout_ms = 10000

    def _get_client(self) -> Confluence:
        """Get or create the Confluence API client.

        Raises:
            InvalidCredentialsError: If credentials are missing
        """
        if self._client is None:
            creds = self._authenticator.get_credentials()
            logger.debug(f"Opening Confluence session for {creds.url}")
            self._client = Confluence(
                url=creds.url,
                username=creds.user,
                password=creds.api_token,
                cloud=self._cloud,
                timeout=self._timeout_ms / 1000,
            )
        return self._client

    def set_endpoint(self, url: str) -> None:
        self._endpoint = url

    def set_method(self, method: str) -> None:
        self._method = method.upper()

    def set_request_body(self, body: Optional[str]) -> None:
        self._body = body

    def set_header(self, name: str, value: str) -> None:
        self._headers[name] = value

    def set_timeout(self, timeout_ms: int) -> None:
        self._timeout_ms = timeout_ms
        if self._client is not None:
            self._client.timeout = timeout_ms / 1000

    def execute(self) -> HttpResponse:
        """Send the configured request through the Confluence session.

        Timeouts and connection failures come back as a response with status
        0 and a transport error instead of an exception.

        Raises:
            ValueError: If no endpoint was configured
            InvalidCredentialsError: If credentials are missing
        """
        if not self._endpoint:
            raise ValueError("No endpoint configured for HTTP request")

        client = self._get_client()

        try:
            # atlassian-python-api has no raw-body passthrough, so the
            # request goes through its authenticated session directly.
            response = client._session.request(
                self._method,
                self._endpoint,
                data=self._body.encode("utf-8") if self._body is not None else None,
                headers=dict(self._headers),
                timeout=self._timeout_ms / 1000,
            )
        except Timeout as e:
            return HttpResponse(status_code=0, error_code="timeout", error_message=str(e))
        except ConnectionError as e:
            return HttpResponse(status_code=0, error_code="connection", error_message=str(e))
        except RequestException as e:
            return HttpResponse(status_code=0, error_code="request", error_message=str(e))

        return HttpResponse(
            status_code=response.status_code,
            body=response.text or "",
            headers=dict(response.headers),
        )
