"""Unit tests for confluence_client.auth module."""

import pytest
from unittest.mock import patch

from page_sync.confluence_client.auth import Authenticator, Credentials
from page_sync.confluence_client.errors import InvalidCredentialsError

ENV = {
    'CONFLUENCE_URL': 'https://test.atlassian.net/wiki',
    'CONFLUENCE_USER': 'test@example.com',
    'CONFLUENCE_API_TOKEN': 'test-token-123',
}


class TestCredentials:
    """Test cases for Credentials NamedTuple."""

    def test_credentials_are_immutable(self):
        creds = Credentials(**{'url': 'u', 'user': 'x', 'api_token': 't'})
        with pytest.raises(AttributeError):
            creds.url = "different-url"


class TestAuthenticator:
    """Test cases for Authenticator class."""

    @patch('page_sync.confluence_client.auth.load_dotenv')
    def test_init_loads_dotenv(self, mock_load_dotenv):
        """Authenticator __init__ should call load_dotenv()."""
        Authenticator()
        mock_load_dotenv.assert_called_once_with(None)

    @patch('page_sync.confluence_client.auth.load_dotenv')
    def test_explicit_dotenv_path(self, mock_load_dotenv):
        Authenticator('.env.test')
        mock_load_dotenv.assert_called_once_with('.env.test')

    @patch('page_sync.confluence_client.auth.load_dotenv')
    def test_get_credentials_success(self, mock_load_dotenv, monkeypatch):
        for key, value in ENV.items():
            monkeypatch.setenv(key, value)

        creds = Authenticator().get_credentials()

        assert creds == Credentials(
            url='https://test.atlassian.net/wiki',
            user='test@example.com',
            api_token='test-token-123',
        )

    @pytest.mark.parametrize('missing', list(ENV))
    @patch('page_sync.confluence_client.auth.load_dotenv')
    def test_missing_variable_raises(self, mock_load_dotenv, monkeypatch, missing):
        for key, value in ENV.items():
            monkeypatch.setenv(key, value)
        monkeypatch.delenv(missing)

        with pytest.raises(InvalidCredentialsError):
            Authenticator().get_credentials()

    @patch('page_sync.confluence_client.auth.load_dotenv')
    def test_error_does_not_contain_token(self, mock_load_dotenv, monkeypatch):
        monkeypatch.setenv('CONFLUENCE_URL', ENV['CONFLUENCE_URL'])
        monkeypatch.delenv('CONFLUENCE_USER', raising=False)
        monkeypatch.setenv('CONFLUENCE_API_TOKEN', ENV['CONFLUENCE_API_TOKEN'])

        with pytest.raises(InvalidCredentialsError) as exc_info:
            Authenticator().get_credentials()

        assert 'test-token-123' not in str(exc_info.value)
        assert exc_info.value.user == 'unknown'
