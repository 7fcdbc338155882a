"""Console output and log routing for CLI commands."""

import logging
import os

from rich.box import ROUNDED
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text

_QUIET_LOGGERS = ("aiohttp", "asyncio")

console = Console(
    highlight=False,
    no_color=os.environ.get("NO_COLOR", "").lower() in ("1", "true", "yes"),
)


def _indented(markup: str) -> None:
    console.print(f"  {markup}")


def success(msg: str) -> None:
    _indented(f"[green]✓[/green] {msg}")


def dim(msg: str) -> None:
    _indented(f"[dim]{msg}[/dim]")


def nl() -> None:
    console.print()


def error_panel(msg: str, *, title: str = "Failed") -> None:
    """Print ``msg`` boxed under a red ``title``."""
    body = Text.assemble(("✗ ", "red bold"), (title, "red"), "\n\n", (msg, "dim"))
    console.print(Panel.fit(body, border_style="red dim", box=ROUNDED, padding=(0, 1)))


def setup_logging(verbose: bool = False) -> None:
    """Route zonewatch logs through rich; DEBUG with ``--verbose``, else WARNING."""
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(
        console=console,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=verbose,
    )
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)
    logging.getLogger("zonewatch").setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
