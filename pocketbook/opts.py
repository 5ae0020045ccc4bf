"""Shared CLI options for pocketbook commands."""

from __future__ import annotations

import typer

from pocketbook import config
from pocketbook.summarizer.client import DEFAULT_BASE_URL


def _conf_callback(ctx: typer.Context, _param: typer.CallbackParam, value: str | None) -> str | None:
    """Load config file defaults before the other options are resolved."""
    if not ctx.resilient_parsing:
        from pocketbook.cli import set_config_defaults  # noqa: PLC0415

        set_config_defaults(ctx, value)
    return value


# --- LLM Options ---
API_KEY = typer.Option(
    None,
    "--api-key",
    envvar=["POCKETBOOK_API_KEY", "OPENROUTER_API_KEY", "OPENAI_API_KEY"],
    help="API key for the completion service.",
    rich_help_panel="LLM Options",
    show_default=False,
)
BASE_URL = typer.Option(
    DEFAULT_BASE_URL,
    "--base-url",
    envvar="POCKETBOOK_BASE_URL",
    help="Base URL of an OpenAI-compatible API.",
    rich_help_panel="LLM Options",
)
MODEL = typer.Option(
    config.DEFAULT_MODEL,
    "--model",
    "-m",
    envvar="POCKETBOOK_MODEL",
    help="Name of the model to use.",
    rich_help_panel="LLM Options",
)
MAX_ATTEMPTS = typer.Option(
    3,
    "--max-attempts",
    min=1,
    help="Attempts per request for timeouts, rate limits and server errors.",
    rich_help_panel="LLM Options",
)
MAX_ELAPSED = typer.Option(
    300.0,
    "--max-elapsed",
    min=1.0,
    help="Seconds allowed per request, retries included.",
    rich_help_panel="LLM Options",
)
REQUEST_TIMEOUT = typer.Option(
    120.0,
    "--request-timeout",
    min=1.0,
    help="Seconds allowed for a single HTTP request.",
    rich_help_panel="LLM Options",
)

# --- Summary Options ---
LANGUAGE = typer.Option(
    "en",
    "--language",
    "-l",
    envvar="POCKETBOOK_LANGUAGE",
    help="Language of the summary.",
    rich_help_panel="Summary Options",
)
OUTPUT_DIR = typer.Option(
    ".",
    "--output-dir",
    "-o",
    envvar="POCKETBOOK_OUTPUT_DIR",
    help="Directory holding one output folder per book.",
    rich_help_panel="Summary Options",
)
CHAPTER_LIMIT = typer.Option(
    None,
    "--chapter-limit",
    min=1,
    help="Summarize at most this many pending chapters in this run.",
    rich_help_panel="Summary Options",
)

# --- Processing Options ---
MAX_SECTION_TOKENS = typer.Option(
    2000,
    "--max-section-tokens",
    min=1,
    help="Maximum tokens of chapter text sent per request.",
    rich_help_panel="Processing Options",
)
SECTION_ATTEMPTS = typer.Option(
    3,
    "--section-attempts",
    min=1,
    help="Attempts per section before it is skipped.",
    rich_help_panel="Processing Options",
)
MAX_CONCURRENT = typer.Option(
    4,
    "--max-concurrent",
    min=1,
    help="Maximum number of chapters summarized in parallel.",
    rich_help_panel="Processing Options",
)
ENCODING = typer.Option(
    "cl100k_base",
    "--encoding",
    help="tiktoken encoding used to measure sections.",
    rich_help_panel="Processing Options",
)

# --- General Options ---
LOG_LEVEL = typer.Option(
    "WARNING",
    "--log-level",
    help="Set the log level (e.g., DEBUG, INFO, WARNING).",
)
LOG_FILE = typer.Option(
    None,
    "--log-file",
    help="Path to a file to write logs to.",
)
QUIET = typer.Option(
    False,  # noqa: FBT003
    "--quiet",
    "-q",
    help="Suppress progress output; only warnings, errors and the final status.",
)
CONFIG_FILE = typer.Option(
    None,
    "--config-file",
    help="Path to a custom config file.",
    callback=_conf_callback,
    is_eager=True,
)
