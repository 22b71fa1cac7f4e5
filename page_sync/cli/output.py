"""Terminal output handling using the Rich library.

Provides colored status messages, a spinner for network calls and table
rendering of pages, with verbosity levels and a --no-color switch.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.spinner import Spinner
from rich.table import Table

from ..models import PageEntity


class OutputHandler:
    """Handles all terminal output of the page-sync command.

    Attributes:
        verbosity: 0=summary, 1=info, 2=debug
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1)
        >>> with handler.spinner("Loading page..."):
        ...     page = client.fetch_by_id("123")
        >>> handler.print_page(page)
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False):
        self.verbosity = verbosity
        self.console = Console(
            no_color=no_color,
            highlight=False,
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {escape(message)}", style="red")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {escape(message)}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(escape(message))

    def debug(self, message: str) -> None:
        """Display debug message (only if verbosity >= 2)."""
        if self.verbosity >= 2:
            self.console.print(f"[dim]{escape(message)}[/dim]")

    def print(self, message: str) -> None:
        self.console.print(escape(message))

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display a spinner while a single operation runs."""
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10, transient=True):
            yield

    def print_pages(self, pages: List[PageEntity], title: Optional[str] = None) -> None:
        """Render pages as a table of id, title, space, version and labels."""
        if not pages:
            self.console.print("[yellow]No pages found[/yellow]")
            return

        table = Table(title=title)
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("Space")
        table.add_column("Version", justify="right")
        table.add_column("Labels", style="dim")

        for page in pages:
            table.add_row(
                page.id or "",
                escape(page.title or ""),
                page.space_key or "",
                str(page.version_number or ""),
                escape(", ".join(page.labels)),
            )

        self.console.print(table)
        self.console.print(f"{len(pages)} page(s)")

    def print_page(self, page: PageEntity, markdown: Optional[str] = None) -> None:
        """Render the details of one page, optionally followed by its content."""
        self.console.print(f"[bold]{escape(page.title or '')}[/bold]")
        self.console.print(f"  ID:       {page.id}")
        self.console.print(f"  Space:    {page.space_key}")
        self.console.print(f"  Version:  {page.version_number}")
        if page.status is not None:
            self.console.print(f"  Status:   {page.status.value}")
        if page.ancestors:
            path = " / ".join(ancestor.title or ancestor.id or "?" for ancestor in page.ancestors)
            self.console.print(f"  Path:     {escape(path)}")
        if page.labels:
            self.console.print(f"  Labels:   {escape(', '.join(page.labels))}")
        if page.modified_by is not None or page.modified_at is not None:
            who = page.modified_by.display_name or page.modified_by.username if page.modified_by else "?"
            when = page.modified_at.isoformat() if page.modified_at else "?"
            self.console.print(f"  Modified: {escape(str(who))} at {when}")
        if page.user_read_restrictions or page.group_read_restrictions:
            self.console.print("  [yellow]Read access is restricted[/yellow]")

        if markdown:
            self.console.print("")
            self.console.print(escape(markdown))
