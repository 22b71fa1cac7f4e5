"""Data models for Confluence pages and their Scaffolding form data."""

from .form_field import FormField, Modifier
from .page_entity import (
    LABEL_PREFIX,
    PageEntity,
    PageStatus,
    normalize_label_name,
)

__all__ = [
    "FormField",
    "Modifier",
    "PageEntity",
    "PageStatus",
    "LABEL_PREFIX",
    "normalize_label_name",
]
