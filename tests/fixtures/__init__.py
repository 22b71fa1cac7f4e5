"""Test fixtures for page-sync tests.

This module provides sample REST API payloads for Confluence pages,
labels and Scaffolding form data.
"""

from .sample_pages import (
    BASE_URL,
    SCAFFOLDING_FIELDS,
    labels_json,
    page_json,
    results_json,
)

__all__ = [
    "BASE_URL",
    "SCAFFOLDING_FIELDS",
    "labels_json",
    "page_json",
    "results_json",
]
