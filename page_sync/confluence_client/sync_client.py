"""Synchronization client for Confluence pages.

SyncClient owns every network exchange: searching and listing pages,
fetching single pages and their Scaffolding form data, writing pages back,
reconciling labels and moving pages to the trash.

Error policy:
    - Malformed arguments raise ValidationError, entities in the wrong state
      raise UsageError. Both happen before any request is sent.
    - Remote failures (unexpected status codes, transport errors, undecodable
      responses) are never raised. They are logged, stored as ``last_error``
      and the operation returns None (reads) or False (writes), so bulk
      callers can carry on past individual failures.
"""

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote, urlencode

from ..models.form_field import FormField
from ..models.page_entity import LABEL_PREFIX, PageEntity, PageStatus, normalize_label_name
from .auth import Authenticator
from .errors import (
    PartialFailure,
    RemoteFailure,
    UsageError,
    ValidationError,
    VersionConflict,
)
from .http_client import ConfluenceHttpClient, HttpClient, HttpResponse
from .sanitizer import sanitize_credentials
from .validators import is_valid_integer, is_valid_space_key, is_valid_url

DEFAULT_TIMEOUT_MS = 10000
DEFAULT_PAGE_SIZE = 1000

# Shorter queries are almost certainly accidental.
MIN_QUERY_LENGTH = 6

_PAGE_TYPE_FILTER = re.compile(r'type\s*=\s*"?page"?', re.IGNORECASE)

_COMMON_EXPANSIONS = (
    "version",
    "space",
    "metadata.labels",
    "history.lastUpdated",
    "restrictions.read.restrictions.group",
    "restrictions.update.restrictions.group",
    "restrictions.read.restrictions.user",
    "restrictions.update.restrictions.user",
)
_CONTENT_EXPANSIONS = ("body.storage", "body.styled_view")

_SCAFFOLDING_PATH = "/rest/scaffolding/1.0/api/form/{page_id}"


def _expansions(include_content: bool) -> str:
    """Build the ``expand`` parameter for page reads.

    Ancestors get the same expansions as the page itself so they decode
    into fully populated PageEntity objects.
    """
    parts = list(_COMMON_EXPANSIONS)
    parts.append("ancestors")
    parts.extend(f"ancestors.{name}" for name in _COMMON_EXPANSIONS)
    if include_content:
        parts.extend(_CONTENT_EXPANSIONS)
    return ",".join(parts)


class SyncClient:
    """Reads and writes Confluence pages through an HttpClient.

    Usage:
        client = SyncClient("https://example.atlassian.net/wiki", http_client)

        page = client.fetch_by_title("TEAM", "Release notes")
        page.body = "<p>Shipped</p>"
        if not client.update(page):
            print(client.last_error_message)

        new_page = client.new_page(title="Draft", space_key="TEAM", parent_id="100")
        new_page.add_label("draft")
        client.create(new_page)

    Every PageEntity remembers the client that built it; write operations
    reject pages from another client with ValidationError.
    """

    def __init__(
        self,
        base_url: str,
        http_client: Optional[HttpClient] = None,
        logger: Optional[logging.Logger] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """Initialize the client and configure the HTTP capability once.

        Args:
            base_url: Confluence base URL, e.g. https://example.atlassian.net/wiki
            http_client: Transport to use; defaults to a ConfluenceHttpClient
                         with credentials from the environment
            logger: Logger for request tracing and failures; defaults to the
                    module logger
            timeout_ms: Request timeout in milliseconds
            page_size: Maximum number of results requested per page

        Raises:
            ValidationError: If base_url, timeout_ms or page_size are invalid
        """
        if not is_valid_url(base_url):
            raise ValidationError(f"Invalid Confluence URL: {base_url!r}", field="base_url")
        if not (is_valid_integer(timeout_ms) and int(timeout_ms) > 0):
            raise ValidationError(f"Invalid timeout: {timeout_ms!r}", field="timeout_ms")
        if not (is_valid_integer(page_size) and int(page_size) > 0):
            raise ValidationError(f"Invalid page size: {page_size!r}", field="page_size")

        self._base_url = str(base_url).rstrip("/")
        self._http = http_client if http_client is not None else ConfluenceHttpClient(Authenticator())
        self._logger = logger or logging.getLogger(__name__)
        self._page_size = int(page_size)
        self._last_error: Optional[RemoteFailure] = None

        self._http.set_header("Accept", "application/json")
        self._http.set_header("Content-Type", "application/json")
        self._http.set_timeout(int(timeout_ms))

    @classmethod
    def from_environment(
        cls,
        authenticator: Optional[Authenticator] = None,
        logger: Optional[logging.Logger] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> "SyncClient":
        """Build a client from CONFLUENCE_* environment variables.

        Raises:
            InvalidCredentialsError: If a credential variable is missing
        """
        authenticator = authenticator or Authenticator()
        creds = authenticator.get_credentials()
        return cls(
            creds.url,
            ConfluenceHttpClient(authenticator),
            logger=logger,
            timeout_ms=timeout_ms,
            page_size=page_size,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def http_client(self) -> HttpClient:
        """The preconfigured transport, e.g. for adding custom headers."""
        return self._http

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def last_error(self) -> Optional[RemoteFailure]:
        """The most recent remote failure, None if nothing failed yet."""
        return self._last_error

    @property
    def last_error_message(self) -> str:
        return str(self._last_error) if self._last_error is not None else ""

    def new_page(self, **fields: Any) -> PageEntity:
        """Create an unsaved page owned by this client.

        Keyword arguments title, space_key, parent_id and body are assigned
        through the validating setters; labels is an iterable of label names.

        Raises:
            ValidationError: For unknown keywords or invalid values
        """
        page = PageEntity(self)
        labels = fields.pop("labels", None) or []
        for name, value in fields.items():
            if name not in ("title", "space_key", "parent_id", "body"):
                raise ValidationError(f"Unknown page field: {name}", field=name)
            setattr(page, name, value)
        for label in labels:
            page.add_label(label)
        return page

    # ------------------------------------------------------------------
    # reads

    def search(self, cql: str, include_content: bool = False) -> Optional[List[PageEntity]]:
        """Search pages with a CQL query, following all result pages.

        A ``type=page`` restriction is appended unless the query has one.

        Args:
            cql: CQL query, e.g. ``space=TEAM AND label=release``
            include_content: Also load storage body and rendered view

        Returns:
            All matching pages, or None if any request failed

        Raises:
            ValidationError: If the query is not a string of at least
                             MIN_QUERY_LENGTH characters
        """
        if not (isinstance(cql, str) and len(cql.strip()) >= MIN_QUERY_LENGTH):
            raise ValidationError(f"Invalid CQL query: {cql!r}", field="cql")

        final_cql = cql.strip()
        if not _PAGE_TYPE_FILTER.search(final_cql):
            final_cql += " AND type=page"

        return self._paginate(
            "SyncClient.search",
            "/rest/api/content/search",
            [("cql", final_cql), ("expand", _expansions(include_content))],
        )

    def list_children(self, parent_id: str, include_content: bool = False) -> Optional[List[PageEntity]]:
        """Load all direct child pages of ``parent_id``.

        Raises:
            ValidationError: If parent_id is not a valid page ID
        """
        self._require_page_id(parent_id, "parent_id")
        return self._paginate(
            "SyncClient.list_children",
            f"/rest/api/content/{parent_id}/child/page",
            [("expand", _expansions(include_content))],
        )

    def list_descendants(self, parent_id: str, include_content: bool = False) -> Optional[List[PageEntity]]:
        """Load all pages below ``parent_id`` at any depth.

        Raises:
            ValidationError: If parent_id is not a valid page ID
        """
        self._require_page_id(parent_id, "parent_id")
        return self.search(f"ancestor={parent_id}", include_content)

    def fetch_by_id(self, page_id: str) -> Optional[PageEntity]:
        """Load a single page including its content.

        Raises:
            ValidationError: If page_id is not a valid page ID
        """
        operation = "SyncClient.fetch_by_id"
        self._require_page_id(page_id, "page_id")

        try:
            response = self._request(
                operation, "GET", f"/rest/api/content/{page_id}",
                params=[("expand", _expansions(True))],
            )
            if response.status_code == 200:
                return PageEntity(self, self._decode_json(response.body))
            self._record_response_failure(operation, response)
        except Exception as e:
            self._record_exception(operation, e)

        return None

    def fetch_by_title(self, space_key: str, title: str) -> Optional[PageEntity]:
        """Load the page titled ``title`` in space ``space_key``.

        Returns:
            The first match, or None if nothing matched or the request failed

        Raises:
            ValidationError: If space_key or title are invalid
        """
        operation = "SyncClient.fetch_by_title"
        if not is_valid_space_key(space_key):
            raise ValidationError(f"Invalid space key: {space_key!r}", field="space_key")
        if not (isinstance(title, str) and title):
            raise ValidationError("Page title must be a non-empty string", field="title")

        try:
            response = self._request(
                operation, "GET", "/rest/api/content",
                params=[
                    ("spaceKey", space_key),
                    ("title", title),
                    ("expand", _expansions(True)),
                ],
            )
            if response.status_code == 200:
                results = self._decode_json(response.body).get("results") or []
                if results:
                    return PageEntity(self, results[0])
                self._logger.debug(f"[{operation}] No page titled '{title}' in space {space_key}")
                return None
            self._record_response_failure(operation, response)
        except Exception as e:
            self._record_exception(operation, e)

        return None

    def fetch_scaffolding_data(
        self,
        page_id: str,
        allowed_fields: Optional[Iterable[str]] = None,
    ) -> Optional[List[FormField]]:
        """Load the Scaffolding form fields of a page.

        Args:
            page_id: ID of the page
            allowed_fields: If given, only fields with these names are
                            returned; filtering happens locally

        Returns:
            The form fields, or None if the request failed

        Raises:
            ValidationError: If page_id is not a valid page ID
        """
        operation = "SyncClient.fetch_scaffolding_data"
        self._require_page_id(page_id, "page_id")

        if isinstance(allowed_fields, str):
            allowed_fields = [allowed_fields]
        allowed = set(allowed_fields) if allowed_fields else None

        try:
            response = self._request(operation, "GET", _SCAFFOLDING_PATH.format(page_id=page_id))
            if response.status_code == 200:
                # the add-on answers "" or "[]" for pages without form data
                data = json.loads(response.body) if len(response.body.strip()) > 2 else []
                if not isinstance(data, list):
                    raise ValueError(f"Expected a list of form fields, got {type(data).__name__}")

                fields = [FormField.from_dict(item) for item in data]
                if allowed is not None:
                    fields = [item for item in fields if item.name in allowed]
                return fields
            self._record_response_failure(operation, response)
        except Exception as e:
            self._record_exception(operation, e)

        return None

    # ------------------------------------------------------------------
    # writes

    def update(self, page: PageEntity, suppress_notifications: bool = False) -> bool:
        """Write title, space, parent and body of ``page`` back to Confluence.

        The request carries version + 1. On success the page takes the version
        the server reports, which stays unchanged when the server saw nothing
        to change.

        Args:
            page: A page fetched or created by this client
            suppress_notifications: Save as minor edit without notifying watchers

        Raises:
            ValidationError: If page is foreign or lacks id, version, parent,
                             title or space key
        """
        operation = "SyncClient.update"
        self._require_own_page(page, operation)
        if not (page.id and page.version_number and page.parent_id and page.title and page.space_key):
            raise ValidationError(
                f"[{operation}] Page has not the minimum values for an update "
                "(id, version_number, parent_id, title, space_key)"
            )

        try:
            response = self._request(
                operation, "PUT", f"/rest/api/content/{page.id}",
                body=page.serialize_for_write(False, suppress_notifications),
            )
            if response.status_code == 200:
                returned = PageEntity(self, self._decode_json(response.body))
                page._mark_page_data_clean()
                if returned.version_number is not None:
                    page.set_version_number(returned.version_number)
                else:
                    page.increase_version_number()
                return True

            if response.status_code == 409:
                self._record(VersionConflict(operation, page.id, page.version_number))
            else:
                self._record_response_failure(operation, response)
        except Exception as e:
            self._record_exception(operation, e)

        return False

    def update_scaffolding_data(self, page: PageEntity) -> bool:
        """Write the Scaffolding form fields of ``page`` back.

        A 304 answer means the server already holds identical data and
        counts as success.

        Raises:
            ValidationError: If page is foreign
            UsageError: If page has no ID or no form data was loaded
        """
        operation = "SyncClient.update_scaffolding_data"
        self._require_own_page(page, operation)
        self._require_created(page, operation)
        if not page.scaffolding_data:
            raise UsageError(
                f"[{operation}] Page {page.id} has no scaffolding values; "
                "call load_scaffolding_data() first"
            )

        try:
            response = self._request(
                operation, "PUT", _SCAFFOLDING_PATH.format(page_id=page.id),
                body=json.dumps([item.to_dict() for item in page.scaffolding_data]),
            )
            if response.status_code == 200:
                # Confluence stores a new page version without returning it
                if page.version_number is not None:
                    page.increase_version_number()
                page._mark_scaffolding_clean()
                return True

            if response.status_code == 304:
                page._mark_scaffolding_clean()
                return True

            self._record_response_failure(operation, response)
        except Exception as e:
            self._record_exception(operation, e)

        return False

    def create(self, page: PageEntity) -> bool:
        """Create ``page`` on the server.

        On success the page receives its ID, status ``current`` and the
        server's version number. Labels cannot be sent with the create
        request, so existing local labels are added by a second request;
        if that one fails the page still exists and False is returned.

        Raises:
            ValidationError: If page is foreign or lacks parent, title or space key
            UsageError: If page already has an ID
        """
        operation = "SyncClient.create"
        self._require_own_page(page, operation)
        if page.id:
            raise UsageError(f"[{operation}] Page {page.id} already exists")
        if not (page.parent_id and page.title and page.space_key):
            raise ValidationError(
                f"[{operation}] Page has not the minimum values for creation "
                "(parent_id, title, space_key)"
            )

        try:
            response = self._request(
                operation, "POST", "/rest/api/content",
                body=page.serialize_for_write(True),
            )
            if response.status_code != 200:
                self._record_response_failure(operation, response)
                return False

            returned = PageEntity(self, self._decode_json(response.body))
            new_id = returned.id
            new_version = returned.version_number
            if not new_id or new_version is None or new_version < 1:
                self._record(RemoteFailure(
                    operation,
                    f"Create response is missing the page ID or version number "
                    f"(id={new_id!r}, version={new_version!r})",
                    status_code=response.status_code,
                ))
                return False

            # page is only touched once the response is known to be complete
            page.id = new_id
            page.status = PageStatus.CURRENT
            page.set_version_number(new_version)
            page._mark_page_data_clean()
        except Exception as e:
            self._record_exception(operation, e)
            return False

        self._logger.info(f"[{operation}] Created page {page.id} '{page.title}'")

        labels = page.labels
        if labels and not self._send_label_addition(operation, page.id, labels):
            return False

        page._mark_labels_clean()
        return True

    def delete(self, page: PageEntity) -> bool:
        """Move ``page`` to the trash of its space.

        Raises:
            ValidationError: If page is foreign
            UsageError: If page has no ID or is already trashed
        """
        operation = "SyncClient.delete"
        self._require_own_page(page, operation)
        self._require_created(page, operation)
        if page.status == PageStatus.TRASHED:
            raise UsageError(f"[{operation}] Page {page.id} is already trashed")

        try:
            response = self._request(operation, "DELETE", f"/rest/api/content/{page.id}")
            if response.status_code in (200, 204):
                page.status = PageStatus.TRASHED
                return True
            self._record_response_failure(operation, response)
        except Exception as e:
            self._record_exception(operation, e)

        return False

    # ------------------------------------------------------------------
    # labels

    def add_labels(self, page: PageEntity, names: Sequence[str]) -> bool:
        """Add labels on the server and mirror them onto ``page``.

        Raises:
            ValidationError: If page is foreign, names is empty or a name is invalid
            UsageError: If page has no ID
        """
        operation = "SyncClient.add_labels"
        self._require_own_page(page, operation)
        self._require_created(page, operation)

        if isinstance(names, str):
            names = [names]
        if not names:
            raise ValidationError(f"[{operation}] No label names given", field="names")

        normalized: List[str] = []
        for name in names:
            label = normalize_label_name(name)
            if label not in normalized:
                normalized.append(label)

        if not self._send_label_addition(operation, page.id, normalized):
            return False

        page._confirm_labels_added(normalized)
        return True

    def remove_label(self, page: PageEntity, name: str) -> bool:
        """Remove one label on the server and from ``page``.

        Raises:
            ValidationError: If page is foreign or name is invalid
            UsageError: If page has no ID
        """
        operation = "SyncClient.remove_label"
        self._require_own_page(page, operation)
        self._require_created(page, operation)
        label = normalize_label_name(name)

        if not self._send_label_removal(operation, page.id, label):
            return False

        page._confirm_label_removed(label)
        return True

    def reconcile_labels(self, page: PageEntity) -> bool:
        """Make the server's label set equal to the local labels of ``page``.

        The server has no "replace all labels" call, so the labels it holds
        are compared with the local ones by normalized name: every server
        label missing locally is removed, every local label missing on the
        server is added, one request each. All requests are attempted even
        after a failure; the result is True only if every one succeeded.

        Raises:
            ValidationError: If page is foreign
            UsageError: If page has no ID
        """
        operation = "SyncClient.reconcile_labels"
        self._require_own_page(page, operation)
        self._require_created(page, operation)

        try:
            response = self._request(operation, "GET", f"/rest/api/content/{page.id}/label")
            if response.status_code != 200:
                self._record_response_failure(operation, response)
                return False

            remote: List[str] = []
            for item in self._decode_json(response.body).get("results") or []:
                name = str(item.get("name", "")).strip().lower()
                if name and name not in remote:
                    remote.append(name)
        except Exception as e:
            self._record_exception(operation, e)
            return False

        local = page.labels
        to_remove, to_add = self._diff_labels(local, remote)
        self._logger.debug(
            f"[{operation}] Page {page.id}: removing {to_remove}, adding {to_add}"
        )

        failed_removals = [
            name for name in to_remove
            if not self._send_label_removal(operation, page.id, name)
        ]
        failed_additions = [
            name for name in to_add
            if not self._send_label_addition(operation, page.id, [name])
        ]

        if failed_removals or failed_additions:
            self._record(PartialFailure(operation, failed_removals, failed_additions))
            return False

        page._mark_labels_clean()
        return True

    @staticmethod
    def _diff_labels(local: List[str], remote: List[str]) -> Tuple[List[str], List[str]]:
        """Return (server labels to remove, local labels to add)."""
        local_set = set(local)
        remote_set = set(remote)
        to_remove = [name for name in remote if name not in local_set]
        to_add = [name for name in local if name not in remote_set]
        return to_remove, to_add

    def _send_label_addition(self, operation: str, page_id: str, names: List[str]) -> bool:
        try:
            body = json.dumps([{"prefix": LABEL_PREFIX, "name": name} for name in names])
            response = self._request(operation, "POST", f"/rest/api/content/{page_id}/label", body=body)
            if response.status_code == 200:
                return True
            self._record_response_failure(operation, response)
        except Exception as e:
            self._record_exception(operation, e)
        return False

    def _send_label_removal(self, operation: str, page_id: str, name: str) -> bool:
        try:
            response = self._request(
                operation, "DELETE", f"/rest/api/content/{page_id}/label",
                params=[("name", name)],
            )
            if response.status_code == 204:
                return True
            self._record_response_failure(operation, response)
        except Exception as e:
            self._record_exception(operation, e)
        return False

    # ------------------------------------------------------------------
    # plumbing

    def _paginate(
        self,
        operation: str,
        path: str,
        params: List[Tuple[str, str]],
    ) -> Optional[List[PageEntity]]:
        """Collect results page by page until the server returns an empty page."""
        pages: List[PageEntity] = []
        start = 0

        try:
            while True:
                response = self._request(
                    operation, "GET", path,
                    params=[("limit", str(self._page_size)), ("start", str(start))] + params,
                )
                if response.status_code != 200:
                    self._record_response_failure(operation, response)
                    return None

                results = self._decode_json(response.body).get("results") or []
                self._logger.debug(f"[{operation}] {len(results)} results loaded at offset {start}")
                if not results:
                    break

                pages.extend(PageEntity(self, item) for item in results)
                start += len(results)
        except Exception as e:
            self._record_exception(operation, e)
            return None

        return pages

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        params: Optional[List[Tuple[str, str]]] = None,
        body: Optional[str] = None,
    ) -> HttpResponse:
        """Configure the transport for one request and execute it."""
        endpoint = self._base_url + path
        if params:
            endpoint += "?" + urlencode(params, quote_via=quote)

        self._http.set_endpoint(endpoint)
        self._http.set_method(method)
        self._http.set_request_body(body)

        self._logger.debug(
            f"[{operation}] Sending {method} {endpoint}"
            + (f" with body {sanitize_credentials(body)}" if body else "")
        )
        response = self._http.execute()
        self._logger.debug(
            f"[{operation}] {method} {endpoint} returned status {response.status_code}: "
            f"{sanitize_credentials(response.body)}"
        )
        return response

    @staticmethod
    def _decode_json(body: str) -> Any:
        data = json.loads(body) if body and body.strip() else {}
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    def _require_page_id(self, value: Any, field: str) -> None:
        if not is_valid_integer(value):
            raise ValidationError(f"Invalid page ID for {field}: {value!r}", field=field)

    def _require_own_page(self, page: Any, operation: str) -> None:
        if not (isinstance(page, PageEntity) and page.is_valid(self)):
            raise ValidationError(
                f"[{operation}] Please pass a PageEntity created by this client"
            )

    @staticmethod
    def _require_created(page: PageEntity, operation: str) -> None:
        if not page.id:
            raise UsageError(f"[{operation}] Page has no ID; create or fetch it first")

    def _record(self, failure: RemoteFailure) -> None:
        self._last_error = failure
        self._logger.error(str(failure))

    def _record_response_failure(self, operation: str, response: HttpResponse) -> None:
        if response.has_transport_error():
            message = (
                f"Transport error {response.error_code}: "
                f"{sanitize_credentials(response.error_message or '')}"
            )
        else:
            message = (
                f"Unexpected status code {response.status_code}: "
                f"{sanitize_credentials(response.body[:500])}"
            )
        self._record(RemoteFailure(operation, message, status_code=response.status_code))

    def _record_exception(self, operation: str, error: Exception) -> None:
        message = f"{type(error).__name__}: {sanitize_credentials(str(error))}"
        self._record(RemoteFailure(operation, message))
