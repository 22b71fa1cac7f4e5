"""Root pytest configuration for all tests."""

import logging

import pytest

from page_sync import SyncClient
from tests.fixtures.sample_pages import BASE_URL
from tests.helpers.fake_http import FakeHttpClient

# atlassian-python-api logs expected lookup failures at ERROR level.
logging.getLogger("atlassian").setLevel(logging.WARNING)


@pytest.fixture
def fake_http():
    """Recording HttpClient double with an empty response queue."""
    return FakeHttpClient()


@pytest.fixture
def client(fake_http):
    """SyncClient wired to the fake transport."""
    return SyncClient(BASE_URL, fake_http)
