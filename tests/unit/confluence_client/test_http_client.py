"""Unit tests for confluence_client.http_client module."""

import pytest
from unittest.mock import Mock
from requests.exceptions import ConnectionError, RequestException, Timeout

from page_sync.confluence_client.auth import Authenticator, Credentials
from page_sync.confluence_client.errors import InvalidCredentialsError
from page_sync.confluence_client.http_client import ConfluenceHttpClient, HttpResponse


@pytest.fixture
def mock_authenticator(mocker):
    """Create a mock authenticator with credentials."""
    auth = mocker.Mock(spec=Authenticator)
    auth.get_credentials.return_value = Credentials(
        url="https://test.atlassian.net/wiki",
        user="test@example.com",
        api_token="test-token",
    )
    return auth


@pytest.fixture
def mock_confluence(mocker):
    return mocker.patch('page_sync.confluence_client.http_client.Confluence')


def _configured(http):
    http.set_endpoint("https://test.atlassian.net/wiki/rest/api/content/100")
    http.set_method("put")
    http.set_request_body('{"title": "Ä"}')
    http.set_header("Content-Type", "application/json")
    http.set_timeout(2500)
    return http


class TestHttpResponse:
    """Test cases for HttpResponse."""

    def test_http_status_is_not_transport_error(self):
        assert HttpResponse(status_code=500, body="boom").has_transport_error() is False

    def test_transport_error(self):
        response = HttpResponse(status_code=0, error_code="timeout", error_message="Read timed out")

        assert response.has_transport_error() is True
        assert response.body == ""


class TestConfluenceHttpClient:
    """Test cases for the atlassian-python-api backed transport."""

    def test_construction_does_not_load_credentials(self, mock_authenticator, mock_confluence):
        ConfluenceHttpClient(mock_authenticator)

        mock_authenticator.get_credentials.assert_not_called()
        mock_confluence.assert_not_called()

    def test_execute_sends_configured_request(self, mock_authenticator, mock_confluence):
        session = mock_confluence.return_value._session
        session.request.return_value = Mock(status_code=200, text='{"id": "100"}', headers={"X-A": "1"})
        http = _configured(ConfluenceHttpClient(mock_authenticator))

        response = http.execute()

        mock_confluence.assert_called_once_with(
            url="https://test.atlassian.net/wiki",
            username="test@example.com",
            password="test-token",
            cloud=True,
            timeout=2.5,
        )
        session.request.assert_called_once_with(
            "PUT",
            "https://test.atlassian.net/wiki/rest/api/content/100",
            data='{"title": "Ä"}'.encode("utf-8"),
            headers={"Content-Type": "application/json"},
            timeout=2.5,
        )
        assert response == HttpResponse(status_code=200, body='{"id": "100"}', headers={"X-A": "1"})

    def test_session_reused(self, mock_authenticator, mock_confluence):
        session = mock_confluence.return_value._session
        session.request.return_value = Mock(status_code=204, text="", headers={})
        http = _configured(ConfluenceHttpClient(mock_authenticator))

        http.execute()
        http.set_request_body(None)
        http.execute()

        mock_confluence.assert_called_once()
        assert session.request.call_args.kwargs["data"] is None

    def test_error_status_is_returned(self, mock_authenticator, mock_confluence):
        session = mock_confluence.return_value._session
        session.request.return_value = Mock(status_code=409, text="conflict", headers={})
        http = _configured(ConfluenceHttpClient(mock_authenticator))

        response = http.execute()

        assert response.status_code == 409
        assert response.has_transport_error() is False

    @pytest.mark.parametrize("exception, code", [
        (Timeout("Read timed out"), "timeout"),
        (ConnectionError("Name or service not known"), "connection"),
        (RequestException("Invalid URL"), "request"),
    ])
    def test_transport_errors_become_responses(self, mock_authenticator, mock_confluence, exception, code):
        mock_confluence.return_value._session.request.side_effect = exception
        http = _configured(ConfluenceHttpClient(mock_authenticator))

        response = http.execute()

        assert response.status_code == 0
        assert response.error_code == code
        assert response.has_transport_error() is True

    def test_missing_endpoint_raises(self, mock_authenticator, mock_confluence):
        with pytest.raises(ValueError):
            ConfluenceHttpClient(mock_authenticator).execute()

    def test_missing_credentials_raise(self, mock_confluence, mocker):
        auth = mocker.Mock(spec=Authenticator)
        auth.get_credentials.side_effect = InvalidCredentialsError("unknown", "unknown")
        http = _configured(ConfluenceHttpClient(auth))

        with pytest.raises(InvalidCredentialsError):
            http.execute()
