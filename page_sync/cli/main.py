"""Main CLI entry point for the page-sync command.

A thin Typer front end over SyncClient for inspecting and editing single
pages from a terminal. Credentials come from CONFLUENCE_* environment
variables (or a .env file); optional client settings from .page-sync.yaml.
"""

import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from .. import __version__
from ..confluence_client.auth import Authenticator
from ..confluence_client.errors import (
    ConversionError,
    InvalidCredentialsError,
    UsageError,
    ValidationError,
)
from ..confluence_client.http_client import ConfluenceHttpClient
from ..confluence_client.sync_client import SyncClient
from ..content_converter import MarkdownConverter
from ..models import PageEntity
from .config import ConfigLoader
from .errors import ConfigError
from .models import ExitCode
from .output import OutputHandler

app = typer.Typer(
    name="page-sync",
    help="""Read and edit Confluence pages from the command line.

EXAMPLES:
  page-sync show 123456 --markdown
  page-sync search "space=TEAM AND label=release"
  page-sync labels 123456 --add released --remove draft
  page-sync field 123456 status Done""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)


@dataclass
class CliContext:
    """Options shared by all commands."""
    config_path: str
    output: OutputHandler
    client: Optional[SyncClient] = None


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure the ``page_sync`` logger from the verbosity level.

    Third-party loggers and the root logger are left unchanged.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2=DEBUG
        logdir: Optional directory for a timestamped log file
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    app_logger = logging.getLogger("page_sync")
    app_logger.setLevel(level)

    date_format = "%Y-%m-%d %H:%M:%S"
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)8s] %(message)s", datefmt=date_format)
    )
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"page-sync_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt=date_format)
        )
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def _build_client(config_path: str) -> SyncClient:
    """Create a SyncClient from the settings file and the environment.

    Raises:
        ConfigError: If the settings file is invalid
        InvalidCredentialsError: If credentials are missing
    """
    settings = ConfigLoader.load(config_path)
    authenticator = Authenticator()

    if settings.url:
        # fail here rather than on the first request
        authenticator.get_credentials()
        return SyncClient(
            settings.url,
            ConfluenceHttpClient(authenticator),
            timeout_ms=settings.timeout_ms,
            page_size=settings.page_size,
        )
    return SyncClient.from_environment(
        authenticator,
        timeout_ms=settings.timeout_ms,
        page_size=settings.page_size,
    )


def _client(state: CliContext) -> SyncClient:
    if state.client is None:
        state.client = _build_client(state.config_path)
    return state.client


@contextmanager
def _handle_errors(output: OutputHandler) -> Iterator[None]:
    """Map library exceptions onto exit codes."""
    try:
        yield
    except typer.Exit:
        raise
    except InvalidCredentialsError as e:
        output.error(str(e))
        output.print("Set CONFLUENCE_URL, CONFLUENCE_USER and CONFLUENCE_API_TOKEN (or use a .env file).")
        raise typer.Exit(ExitCode.AUTH_ERROR)
    except (ConfigError, ValidationError, UsageError, ConversionError) as e:
        output.error(str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def _remote_failure(state: CliContext, what: str) -> typer.Exit:
    message = state.client.last_error_message if state.client else ""
    state.output.error(f"{what}: {message}" if message else what)
    return typer.Exit(ExitCode.REMOTE_ERROR)


def _load_page(state: CliContext, page_id: str) -> PageEntity:
    client = _client(state)
    with state.output.spinner(f"Loading page {page_id}..."):
        page = client.fetch_by_id(page_id)
    if page is None:
        raise _remote_failure(state, f"Could not load page {page_id}")
    return page


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"page-sync version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: str = typer.Option(
        ConfigLoader.DEFAULT_CONFIG_FILE,
        "--config",
        "-c",
        help="Settings file (YAML with url, timeout_ms, page_size)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Read and edit Confluence pages from the command line."""
    _configure_logging(verbosity, logdir)
    ctx.obj = CliContext(config_path=config, output=OutputHandler(verbosity=verbosity, no_color=no_color))


@app.command()
def show(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="Page ID"),
    markdown: bool = typer.Option(False, "--markdown", "-m", help="Print the rendered content as markdown"),
    fields: bool = typer.Option(False, "--fields", help="Print the Scaffolding form fields"),
) -> None:
    """Show one page."""
    state: CliContext = ctx.obj
    with _handle_errors(state.output):
        page = _load_page(state, page_id)

        content = MarkdownConverter().html_to_markdown(page.rendered_view) if markdown else None
        state.output.print_page(page, content)

        if fields:
            if not page.load_scaffolding_data():
                raise _remote_failure(state, f"Could not load form fields of page {page_id}")
            for form_field in page.scaffolding_data or []:
                state.output.print(f"  {form_field.name} = {form_field.value}")


@app.command()
def search(
    ctx: typer.Context,
    cql: str = typer.Argument(..., help="CQL query, e.g. \"space=TEAM AND label=release\""),
) -> None:
    """List all pages matching a CQL query."""
    state: CliContext = ctx.obj
    with _handle_errors(state.output):
        client = _client(state)
        with state.output.spinner("Searching..."):
            pages = client.search(cql)
        if pages is None:
            raise _remote_failure(state, "Search failed")
        state.output.print_pages(pages, title=cql)


@app.command()
def children(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="Parent page ID"),
    descendants: bool = typer.Option(False, "--descendants", "-r", help="Include all levels below the page"),
) -> None:
    """List the pages below a page."""
    state: CliContext = ctx.obj
    with _handle_errors(state.output):
        client = _client(state)
        with state.output.spinner("Loading pages..."):
            if descendants:
                pages = client.list_descendants(page_id)
            else:
                pages = client.list_children(page_id)
        if pages is None:
            raise _remote_failure(state, f"Could not list pages below {page_id}")
        state.output.print_pages(pages)


@app.command()
def create(
    ctx: typer.Context,
    space: str = typer.Option(..., "--space", "-s", help="Space key"),
    parent: str = typer.Option(..., "--parent", "-p", help="Parent page ID"),
    title: str = typer.Option(..., "--title", "-t", help="Page title"),
    body_file: Optional[Path] = typer.Option(None, "--body-file", help="File with storage-format content"),
    label: Optional[List[str]] = typer.Option(None, "--label", "-l", help="Label to add (repeatable)"),
) -> None:
    """Create a new page."""
    state: CliContext = ctx.obj
    with _handle_errors(state.output):
        client = _client(state)
        fields = {"title": title, "space_key": space, "parent_id": parent, "labels": label or []}
        if body_file:
            fields["body"] = body_file.read_text(encoding="utf-8")
        page = client.new_page(**fields)
        with state.output.spinner("Creating page..."):
            created = page.create()
        if not created:
            if page.id:
                raise _remote_failure(state, f"Page {page.id} created, but labels could not be added")
            raise _remote_failure(state, "Could not create page")
        state.output.success(f"Created page {page.id} '{page.title}' (version {page.version_number})")


@app.command()
def edit(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="Page ID"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    body_file: Optional[Path] = typer.Option(None, "--body-file", help="File with new storage-format content"),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="New parent page ID"),
    minor: bool = typer.Option(False, "--minor", help="Save as minor edit without notifying watchers"),
) -> None:
    """Change title, content or parent of a page."""
    state: CliContext = ctx.obj
    with _handle_errors(state.output):
        page = _load_page(state, page_id)
        if title is not None:
            page.title = title
        if body_file is not None:
            page.body = body_file.read_text(encoding="utf-8")
        if parent is not None:
            page.parent_id = parent

        if not page.has_page_data_changed:
            state.output.warning(f"Nothing to change on page {page_id}")
            return

        if not page.save(suppress_notifications=minor):
            raise _remote_failure(state, f"Could not update page {page_id}")
        state.output.success(f"Updated page {page_id} (version {page.version_number})")


@app.command()
def labels(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="Page ID"),
    add: Optional[List[str]] = typer.Option(None, "--add", "-a", help="Label to add (repeatable)"),
    remove: Optional[List[str]] = typer.Option(None, "--remove", "-r", help="Label to remove (repeatable)"),
) -> None:
    """Add or remove labels and make the server match."""
    state: CliContext = ctx.obj
    with _handle_errors(state.output):
        page = _load_page(state, page_id)
        for name in add or []:
            page.add_label(name)
        for name in remove or []:
            page.remove_label(name)

        if not page.have_labels_changed:
            state.output.warning(f"Labels of page {page_id} unchanged: {', '.join(page.labels) or '-'}")
            return

        with state.output.spinner("Saving labels..."):
            saved = page.save_labels()
        if not saved:
            raise _remote_failure(state, f"Labels of page {page_id} only partially saved")
        state.output.success(f"Labels of page {page_id}: {', '.join(page.labels) or '-'}")


@app.command()
def field(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="Page ID"),
    name: str = typer.Argument(..., help="Form field name"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Set one Scaffolding form field of a page."""
    state: CliContext = ctx.obj
    with _handle_errors(state.output):
        page = _load_page(state, page_id)
        if not page.load_scaffolding_data():
            raise _remote_failure(state, f"Could not load form fields of page {page_id}")

        page.set_scaffolding_value(name, value)
        if not page.save_scaffolding():
            raise _remote_failure(state, f"Could not save form field '{name}'")
        state.output.success(f"Set '{name}' on page {page_id}")


@app.command()
def trash(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="Page ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Move a page to the trash of its space."""
    state: CliContext = ctx.obj
    with _handle_errors(state.output):
        page = _load_page(state, page_id)
        if not yes and not typer.confirm(f"Move '{page.title}' ({page_id}) to the trash?"):
            raise typer.Exit(ExitCode.SUCCESS)

        if not page.delete():
            raise _remote_failure(state, f"Could not trash page {page_id}")
        state.output.success(f"Moved page {page_id} to the trash")


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
