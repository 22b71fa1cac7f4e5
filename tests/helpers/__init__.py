"""Test helper modules.

- fake_http: recording HttpClient double with queued responses
"""

from .fake_http import FakeHttpClient, RecordedRequest

__all__ = [
    'FakeHttpClient',
    'RecordedRequest',
]
