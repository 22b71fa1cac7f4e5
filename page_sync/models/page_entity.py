"""In-memory projection of one Confluence page with change tracking.

A PageEntity is either decoded from a REST response (fully populated, nothing
dirty) or built bare by the host application before it is created on the
server. Setters only mark a field group dirty when the value actually
changes; a dirty flag stays set until the server confirms a new version.
"""

import json
import logging
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Union

from ..confluence_client.errors import StateError, UsageError, ValidationError
from ..confluence_client.validators import (
    is_valid_integer,
    is_valid_label_name,
    is_valid_space_key,
)
from .form_field import FormField, Modifier

if TYPE_CHECKING:
    from ..confluence_client.sync_client import SyncClient

logger = logging.getLogger(__name__)

LABEL_PREFIX = "global"


class PageStatus(str, Enum):
    """Lifecycle status of a page as reported by the server."""

    CURRENT = "current"
    TRASHED = "trashed"
    DRAFT = "draft"
    ARCHIVED = "archived"
    HISTORICAL = "historical"


# Only these may be assigned locally; the rest are decoded from responses.
WRITABLE_STATUSES = (PageStatus.CURRENT, PageStatus.TRASHED)


def normalize_label_name(name: Any) -> str:
    """Validate a label name and return its stored form (trimmed, lowercase).

    Raises:
        ValidationError: If the name is empty or has disallowed characters
    """
    if not isinstance(name, str):
        raise ValidationError(f"Invalid label name: {name!r}", field="label")

    stripped = name.strip()
    if not is_valid_label_name(stripped):
        raise ValidationError(
            f"Invalid label name: '{name}'. Allowed are letters, digits and _-~{{}}%+",
            field="label",
        )
    return stripped.lower()


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp from Confluence, None if unparseable."""
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (ValueError, AttributeError):
        logger.debug(f"Could not parse timestamp '{value}'")
        return None


def _dig(data: Any, *keys: str, default: Any = None) -> Any:
    """Walk nested mappings, returning ``default`` at the first missing key."""
    current = data
    for key in keys:
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]
    return default if current is None else current


class PageEntity:
    """A Confluence page bound to the SyncClient that produced it.

    Usage:
        page = client.fetch_by_id("100")
        page.title = "Final"
        page.add_label("released")
        page.sync()

    Attributes are exposed as properties. Writable ones (title, space_key,
    parent_id, body, status, id, version_number) validate their input and
    raise ValidationError on malformed values.
    """

    def __init__(self, client: "SyncClient", data: Optional[Mapping[str, Any]] = None):
        """Create a page bound to ``client``.

        Args:
            client: The SyncClient all write operations are delegated to
            data: A decoded page object from the REST API; None builds an
                  empty page for later creation

        Raises:
            ValidationError: If client is missing or data is not a mapping
        """
        if client is None:
            raise ValidationError("A PageEntity needs the SyncClient it belongs to")
        if data is not None and not isinstance(data, Mapping):
            raise ValidationError(f"Page data must be a JSON object, got {type(data).__name__}")

        self._client = client

        self._id: Optional[str] = None
        self._status: Optional[PageStatus] = None
        self._title: Optional[str] = None
        self._space_key: Optional[str] = None
        self._version_number: Optional[int] = None
        self._body: Optional[str] = None
        self._rendered_view: Optional[str] = None
        self._parent_id: Optional[str] = None
        self._ancestors: Optional[List["PageEntity"]] = None
        self._labels: List[str] = []
        self._scaffolding_data: Optional[List[FormField]] = None

        self._user_read_restrictions: List[Dict[str, Any]] = []
        self._group_read_restrictions: List[Dict[str, Any]] = []
        self._user_write_restrictions: List[Dict[str, Any]] = []
        self._group_write_restrictions: List[Dict[str, Any]] = []
        self._modified_by: Optional[Modifier] = None
        self._modified_at: Optional[datetime] = None

        self._title_changed = False
        self._space_key_changed = False
        self._parent_id_changed = False
        self._body_changed = False
        self._labels_changed = False
        self._scaffolding_changed = False

        if data is not None:
            self._load(data)

    def _load(self, data: Mapping[str, Any]) -> None:
        """Populate all fields from a REST API page object."""
        if data.get("id") is not None:
            self._id = str(data["id"])

        status = data.get("status")
        if status:
            try:
                self._status = PageStatus(status)
            except ValueError:
                logger.debug(f"Ignoring unknown page status '{status}' of page {self._id}")

        self._title = data.get("title")
        self._space_key = _dig(data, "space", "key")

        version = _dig(data, "version", "number")
        if version is not None:
            self._version_number = int(version)

        self._body = _dig(data, "body", "storage", "value")
        self._rendered_view = _dig(data, "body", "styled_view", "value")

        for item in _dig(data, "metadata", "labels", "results", default=[]):
            name = str(item.get("name", "")).strip().lower()
            if name and name not in self._labels:
                self._labels.append(name)

        restrictions = data.get("restrictions") or {}
        self._user_read_restrictions = list(
            _dig(restrictions, "read", "restrictions", "user", "results", default=[]))
        self._group_read_restrictions = list(
            _dig(restrictions, "read", "restrictions", "group", "results", default=[]))
        self._user_write_restrictions = list(
            _dig(restrictions, "update", "restrictions", "user", "results", default=[]))
        self._group_write_restrictions = list(
            _dig(restrictions, "update", "restrictions", "group", "results", default=[]))

        last_updated = _dig(data, "history", "lastUpdated", default={})
        author = last_updated.get("by")
        if author:
            self._modified_by = Modifier(
                username=author.get("username"),
                display_name=author.get("displayName"),
            )
        if last_updated.get("when"):
            self._modified_at = parse_timestamp(last_updated["when"])

        ancestors = data.get("ancestors")
        if isinstance(ancestors, list) and ancestors:
            # root first, direct parent last
            self._parent_id = str(ancestors[-1]["id"])
            self._ancestors = [PageEntity(self._client, item) for item in ancestors]

    def __repr__(self) -> str:
        return (
            f"PageEntity(id={self._id!r}, title={self._title!r}, "
            f"space_key={self._space_key!r}, version={self._version_number!r})"
        )

    # ------------------------------------------------------------------
    # identity and status

    @property
    def client(self) -> "SyncClient":
        """The SyncClient this page belongs to."""
        return self._client

    def is_valid(self, client: Optional["SyncClient"] = None) -> bool:
        """Check that this page belongs to ``client``.

        Without an argument only checks that the page is bound to a client.
        """
        if client is None:
            return self._client is not None
        return self._client is client

    @property
    def id(self) -> Optional[str]:
        return self._id

    @id.setter
    def id(self, value: Union[str, int]) -> None:
        """Set the page ID once; changing an existing ID is not allowed."""
        if not is_valid_integer(value):
            raise ValidationError(f"Invalid page ID: {value!r}", field="id")

        new_id = str(value)
        if self._id is not None and self._id != new_id:
            raise UsageError(f"Page ID {self._id} cannot be changed to {new_id}")
        self._id = new_id

    @property
    def status(self) -> Optional[PageStatus]:
        return self._status

    @status.setter
    def status(self, value: Union[PageStatus, str]) -> None:
        try:
            status = PageStatus(value)
        except ValueError:
            status = None
        if status not in WRITABLE_STATUSES:
            raise ValidationError(
                f"Invalid page status: {value!r} (allowed: current, trashed)", field="status"
            )
        self._status = status

    # ------------------------------------------------------------------
    # page data

    @property
    def title(self) -> Optional[str]:
        return self._title

    @title.setter
    def title(self, value: str) -> None:
        if not (isinstance(value, str) and value):
            raise ValidationError("Page title must be a non-empty string", field="title")
        self._title_changed = self._title_changed or self._title != value
        self._title = value

    @property
    def space_key(self) -> Optional[str]:
        return self._space_key

    @space_key.setter
    def space_key(self, value: str) -> None:
        if not (isinstance(value, str) and is_valid_space_key(value)):
            raise ValidationError(f"Invalid space key: {value!r}", field="space_key")
        self._space_key_changed = self._space_key_changed or self._space_key != value
        self._space_key = value

    @property
    def parent_id(self) -> Optional[str]:
        return self._parent_id

    @parent_id.setter
    def parent_id(self, value: Union[str, int]) -> None:
        if not is_valid_integer(value):
            raise ValidationError(f"Invalid parent page ID: {value!r}", field="parent_id")
        new_parent = str(value)
        self._parent_id_changed = self._parent_id_changed or self._parent_id != new_parent
        self._parent_id = new_parent

    @property
    def body(self) -> Optional[str]:
        """Page content in storage format (XHTML)."""
        return self._body

    @body.setter
    def body(self, value: str) -> None:
        if not isinstance(value, str):
            raise ValidationError("Page body must be a string", field="body")
        self._body_changed = self._body_changed or self._body != value
        self._body = value

    @property
    def rendered_view(self) -> Optional[str]:
        """Server-rendered HTML of the page; never written back."""
        return self._rendered_view

    @property
    def ancestors(self) -> Optional[List["PageEntity"]]:
        """Ancestor pages ordered from the space root to the direct parent."""
        return list(self._ancestors) if self._ancestors is not None else None

    # ------------------------------------------------------------------
    # versioning

    @property
    def version_number(self) -> Optional[int]:
        return self._version_number

    @version_number.setter
    def version_number(self, value: int) -> None:
        self.set_version_number(value)

    def set_version_number(self, value: Union[int, str]) -> None:
        """Accept a version number confirmed by the server.

        A version different from the current one clears the title, space,
        parent and body dirty flags. Label and scaffolding changes are synced
        through separate calls and keep their flags.

        Raises:
            ValidationError: If value is not a positive integer
        """
        if not is_valid_integer(value) or int(value) < 1:
            raise ValidationError(
                f"Version number must be a positive integer, got {value!r}", field="version_number"
            )

        version = int(value)
        if version != self._version_number:
            self._mark_page_data_clean()
        self._version_number = version

    def increase_version_number(self) -> None:
        """Add one to the version after a write the server did not echo back.

        Raises:
            StateError: If the page has no version number yet
        """
        if self._version_number is None:
            raise StateError(f"Page {self._id} has no version number to increase")
        self._version_number += 1

    # ------------------------------------------------------------------
    # labels

    @property
    def labels(self) -> List[str]:
        """Label names in insertion order, normalized to lowercase."""
        return list(self._labels)

    def has_label(self, name: str) -> bool:
        return normalize_label_name(name) in self._labels

    def add_label(self, name: str) -> None:
        """Add a label locally; adding an existing label changes nothing."""
        normalized = normalize_label_name(name)
        if normalized not in self._labels:
            self._labels.append(normalized)
            self._labels_changed = True

    def remove_label(self, name: str) -> None:
        """Remove a label locally; removing a missing label changes nothing."""
        normalized = normalize_label_name(name)
        if normalized in self._labels:
            self._labels.remove(normalized)
            self._labels_changed = True

    def _confirm_labels_added(self, names: Iterable[str]) -> None:
        """Mirror labels the server accepted without marking them dirty."""
        for name in names:
            if name not in self._labels:
                self._labels.append(name)

    def _confirm_label_removed(self, name: str) -> None:
        if name in self._labels:
            self._labels.remove(name)

    # ------------------------------------------------------------------
    # access restrictions and provenance (read-only)

    @property
    def user_read_restrictions(self) -> List[Dict[str, Any]]:
        return list(self._user_read_restrictions)

    @property
    def group_read_restrictions(self) -> List[Dict[str, Any]]:
        return list(self._group_read_restrictions)

    @property
    def user_write_restrictions(self) -> List[Dict[str, Any]]:
        return list(self._user_write_restrictions)

    @property
    def group_write_restrictions(self) -> List[Dict[str, Any]]:
        return list(self._group_write_restrictions)

    @property
    def modified_by(self) -> Optional[Modifier]:
        return self._modified_by

    @property
    def modified_at(self) -> Optional[datetime]:
        return self._modified_at

    # ------------------------------------------------------------------
    # scaffolding form data

    @property
    def scaffolding_data(self) -> Optional[List[FormField]]:
        """Form fields loaded from the Scaffolding add-on, None if not loaded."""
        if self._scaffolding_data is None:
            return None
        return list(self._scaffolding_data)

    def set_scaffolding_data(self, fields: Iterable[Union[FormField, Mapping[str, Any]]]) -> None:
        """Replace all form fields and mark them for saving."""
        self._scaffolding_data = self._coerce_fields(fields)
        self._scaffolding_changed = True

    def _load_scaffolding_data(self, fields: Iterable[Union[FormField, Mapping[str, Any]]]) -> None:
        self._scaffolding_data = self._coerce_fields(fields)
        self._scaffolding_changed = False

    @staticmethod
    def _coerce_fields(fields: Any) -> List[FormField]:
        if isinstance(fields, (str, bytes, Mapping)) or not isinstance(fields, Iterable):
            raise ValidationError("Scaffolding data must be a list of fields", field="scaffolding_data")
        return [
            item if isinstance(item, FormField) else FormField.from_dict(item)
            for item in fields
        ]

    def get_scaffolding_value(self, name: str) -> Any:
        """Value of the form field ``name``, None if there is no such field."""
        if not (isinstance(name, str) and name):
            raise ValidationError("Field name must be a non-empty string", field="name")

        for form_field in self._scaffolding_data or []:
            if form_field.name == name:
                return form_field.value
        return None

    def set_scaffolding_value(self, name: str, value: Any) -> None:
        """Set a form field, creating it when it does not exist yet.

        None is stored as an empty string.
        """
        if not (isinstance(name, str) and name):
            raise ValidationError("Field name must be a non-empty string", field="name")

        if value is None:
            value = ""
        if self._scaffolding_data is None:
            self._scaffolding_data = []

        self._scaffolding_changed = True
        for form_field in self._scaffolding_data:
            if form_field.name == name:
                form_field.value = value
                return
        self._scaffolding_data.append(FormField(name=name, value=value))

    # ------------------------------------------------------------------
    # dirty state

    @property
    def has_title_changed(self) -> bool:
        return self._title_changed

    @property
    def has_space_key_changed(self) -> bool:
        return self._space_key_changed

    @property
    def has_parent_id_changed(self) -> bool:
        return self._parent_id_changed

    @property
    def has_body_changed(self) -> bool:
        return self._body_changed

    @property
    def have_labels_changed(self) -> bool:
        return self._labels_changed

    @property
    def has_scaffolding_changed(self) -> bool:
        return self._scaffolding_changed

    @property
    def has_page_data_changed(self) -> bool:
        """True if any field written by an update call may differ from the server."""
        return (
            self._title_changed
            or self._space_key_changed
            or self._parent_id_changed
            or self._body_changed
        )

    @property
    def dirty_fields(self) -> List[str]:
        """Names of all field groups with pending local changes."""
        flags = [
            ("title", self._title_changed),
            ("space_key", self._space_key_changed),
            ("parent_id", self._parent_id_changed),
            ("body", self._body_changed),
            ("labels", self._labels_changed),
            ("scaffolding_data", self._scaffolding_changed),
        ]
        return [name for name, changed in flags if changed]

    @property
    def is_dirty(self) -> bool:
        return bool(self.dirty_fields)

    def _mark_page_data_clean(self) -> None:
        self._title_changed = False
        self._space_key_changed = False
        self._parent_id_changed = False
        self._body_changed = False

    def _mark_labels_clean(self) -> None:
        self._labels_changed = False

    def _mark_scaffolding_clean(self) -> None:
        self._scaffolding_changed = False

    # ------------------------------------------------------------------
    # serialization

    def to_payload(self, is_create: bool = False, suppress_notifications: bool = False) -> Dict[str, Any]:
        """Build the REST payload for creating or updating this page.

        Updates carry the ID and the next version number; creates leave both
        to the server. Labels are never part of the payload.

        Args:
            is_create: Build a create payload (no id, no version)
            suppress_notifications: Mark the update as minor edit so watchers
                                    are not notified

        Raises:
            StateError: If an update payload is requested without a version
        """
        payload: Dict[str, Any] = {}

        if not is_create:
            if self._version_number is None:
                raise StateError(f"Page {self._id} has no version number to update from")
            version: Dict[str, Any] = {"number": self._version_number + 1}
            if suppress_notifications:
                version["minorEdit"] = True
            payload["id"] = self._id
            payload["version"] = version

        payload["type"] = "page"
        payload["title"] = self._title
        payload["space"] = {"key": self._space_key}

        # an empty body is left out, the same as a missing one
        if self._body:
            payload["body"] = {"storage": {"value": self._body, "representation": "storage"}}

        if self._parent_id:
            payload["ancestors"] = [{"id": self._parent_id}]

        return payload

    def serialize_for_write(self, is_create: bool = False, suppress_notifications: bool = False) -> str:
        """JSON-encoded form of :meth:`to_payload`."""
        return json.dumps(self.to_payload(is_create, suppress_notifications))

    # ------------------------------------------------------------------
    # delegation to the owning client

    def save(self, suppress_notifications: bool = False) -> bool:
        """Write changed page data back; a clean page sends nothing."""
        if not self.has_page_data_changed:
            logger.debug(f"Page {self._id}: page data unchanged, skipping update")
            return True
        return self._client.update(self, suppress_notifications)

    def save_labels(self) -> bool:
        """Make the server's labels match the local ones when they changed."""
        if not self._labels_changed:
            logger.debug(f"Page {self._id}: labels unchanged, skipping reconciliation")
            return True
        return self._client.reconcile_labels(self)

    def save_scaffolding(self) -> bool:
        """Write changed form fields back to the Scaffolding add-on."""
        if not self._scaffolding_changed:
            logger.debug(f"Page {self._id}: scaffolding data unchanged, skipping update")
            return True
        return self._client.update_scaffolding_data(self)

    def sync(self, suppress_notifications: bool = False) -> bool:
        """Save page data, then labels, then form fields.

        Stops at the first failing step; later steps are not attempted.
        """
        if not self.save(suppress_notifications):
            return False
        if not self.save_labels():
            return False
        return self.save_scaffolding()

    def load_scaffolding_data(self, allowed_fields: Optional[Iterable[str]] = None) -> bool:
        """Fetch the form fields of this page from the server.

        Args:
            allowed_fields: Only keep fields with these names

        Raises:
            UsageError: If the page has no ID yet
        """
        if not self._id:
            raise UsageError("Page has no ID; create or fetch it before loading scaffolding data")

        fields = self._client.fetch_scaffolding_data(self._id, allowed_fields)
        if fields is None:
            return False

        self._load_scaffolding_data(fields)
        return True

    def create(self) -> bool:
        return self._client.create(self)

    def delete(self) -> bool:
        """Move this page to the space's trash."""
        return self._client.delete(self)
