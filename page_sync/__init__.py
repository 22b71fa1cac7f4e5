"""Client library for reading, mutating and persisting Confluence pages.

Usage:
    from page_sync import SyncClient

    client = SyncClient.from_environment()
    page = client.fetch_by_id("123456")
    page.title = "Release notes"
    page.add_label("released")
    if not page.sync():
        print(client.last_error_message)
"""

from .confluence_client.sync_client import SyncClient
from .models import FormField, PageEntity, PageStatus

__version__ = "0.6.0"

__all__ = ["SyncClient", "PageEntity", "PageStatus", "FormField"]
