"""Console output and logging helpers shared by the commands."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

console = Console()
err_console = Console(stderr=True)


def setup_logging(log_level: str, log_file: str | None, *, quiet: bool) -> None:
    """Route all loggers through Rich, and optionally to a file.

    Args:
        log_level: Logging level name (e.g. ``INFO``).
        log_file: Extra plain-text log destination, if any.
        quiet: Only show warnings and errors on the console.

    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    handler = RichHandler(
        console=err_console,
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(max(level, logging.WARNING) if quiet else level)
    handlers: list[logging.Handler] = [handler]

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"),
        )
        file_handler.setLevel(level)
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def print_error_message(message: str, suggestion: str | None = None) -> None:
    """Show an error in a red panel, with an optional hint below it."""
    body = Text(message)
    if suggestion:
        body.append(f"\n\n{suggestion}", style="dim")
    err_console.print(Panel(body, title="Error", border_style="bold red"))


def print_with_style(message: str, style: str = "bold green") -> None:
    console.print(Text(message, style=style))


def create_progress(*, quiet: bool) -> Progress:
    """Progress bar advanced once per summarized chapter."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        disable=quiet,
        transient=False,
    )
