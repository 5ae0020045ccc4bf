"""Summarize one or more EPUB files into Markdown or HTML and an EPUB."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path  # noqa: TC003

import typer

from pocketbook import config, opts
from pocketbook.cli import app
from pocketbook.core.utils import (
    console,
    create_progress,
    print_error_message,
    print_with_style,
    setup_logging,
)
from pocketbook.ebook import EpubReader
from pocketbook.summarizer import (
    CompletionClient,
    DocumentReport,
    SummarizationError,
    SummarizerConfig,
    process_document,
)
from pocketbook.summarizer.models import AuthError, CheckpointError

logger = logging.getLogger(__name__)


class DetailLevel(str, Enum):
    """How much of each chapter to keep."""

    short = "short"
    medium = "medium"
    long = "long"


class OutputFormat(str, Enum):
    """Format of the assembled summary file."""

    markdown = "markdown"
    html = "html"


class ResponseFormat(str, Enum):
    """Reply shape requested from the model."""

    json = "json"
    delimited = "delimited"


def _status_line(reports: list[DocumentReport], failed: list[Path]) -> str:
    completed = sum(1 for r in reports if r.total_chapters and r.finished)
    chapters = sum(r.chapters_completed for r in reports)
    with_skips = sum(r.chapters_with_skips for r in reports)
    return (
        f"Documents: {completed} completed, {len(failed)} failed. "
        f"Chapters: {chapters} completed, {with_skips} with skipped sections."
    )


def _print_report(report: DocumentReport, *, quiet: bool) -> None:
    if quiet:
        return
    if report.total_chapters == 0:
        print_with_style(f"{report.document_id}: no chapters found, skipped", style="yellow")
        return
    console.print(
        f"[bold]{report.document_id}[/bold]: "
        f"{report.chapters_completed}/{report.total_chapters} chapters",
    )
    if report.sections_skipped:
        print_with_style(
            f"  {report.sections_skipped} sections skipped in "
            f"{report.chapters_with_skips} chapters (see log)",
            style="yellow",
        )
    if report.output_path:
        console.print(f"  Summary: {report.output_path}")
    if report.epub_path:
        console.print(f"  EPUB: {report.epub_path}")


async def _async_process(
    files: list[Path],
    *,
    llm_cfg: config.LLMSettings,
    summary_cfg: config.SummarySettings,
    general_cfg: config.General,
) -> bool:
    """Process every file in turn; return whether all of them succeeded."""
    setup_logging(general_cfg.log_level, general_cfg.log_file, quiet=general_cfg.quiet)

    client = CompletionClient(
        api_key=llm_cfg.api_key or "",
        model=llm_cfg.model,
        base_url=llm_cfg.base_url,
        max_attempts=llm_cfg.max_attempts,
        max_elapsed=llm_cfg.max_elapsed,
        request_timeout=llm_cfg.request_timeout,
    )
    summarizer_config = SummarizerConfig(
        output_language=summary_cfg.output_language,
        detail_level=summary_cfg.detail_level,
        response_format=summary_cfg.response_format,
        output_format=summary_cfg.output_format,
        max_section_tokens=summary_cfg.max_section_tokens,
        section_attempts=summary_cfg.section_attempts,
        max_concurrent_chapters=summary_cfg.max_concurrent_chapters,
        encoding_name=summary_cfg.encoding_name,
        output_root=summary_cfg.output_dir,
        chapter_limit=summary_cfg.chapter_limit,
    )
    reader = EpubReader()
    reports: list[DocumentReport] = []
    failed: list[Path] = []

    for path in files:
        if not general_cfg.quiet:
            console.print(f"[bold cyan]Processing {path.name}[/bold cyan]")
        try:
            with create_progress(quiet=general_cfg.quiet) as progress:
                report = await process_document(
                    path,
                    summarizer_config,
                    client,
                    reader=reader,
                    progress=progress,
                )
        except AuthError as e:
            logger.exception("Authentication failed while processing %s", path)
            print_error_message(str(e), "Check your API key and base URL.")
            failed.append(path)
        except CheckpointError as e:
            print_error_message(
                str(e),
                "Fix or remove the processing state file to start this book over.",
            )
            failed.append(path)
        except SummarizationError as e:
            logger.exception("Processing %s failed", path)
            print_error_message(
                f"{path.name}: {e}",
                "Progress so far is saved; run the command again to resume.",
            )
            failed.append(path)
        except OSError as e:
            logger.exception("I/O error while processing %s", path)
            print_error_message(f"{path.name}: {e}", "Check the output directory and try again.")
            failed.append(path)
        except Exception as e:
            logger.exception("Unexpected error while processing %s", path)
            print_error_message(
                f"{path.name}: {type(e).__name__}: {e}",
                "Continuing with the next file; see the log for the traceback.",
            )
            failed.append(path)
        else:
            reports.append(report)
            _print_report(report, quiet=general_cfg.quiet)

    style = "bold red" if failed else "bold green"
    print_with_style(_status_line(reports, failed), style=style)
    return not failed


@app.command("process")
def process_command(
    *,
    files: list[Path] = typer.Argument(  # noqa: B008
        ...,
        help="EPUB files to summarize.",
    ),
    # --- Summary Options ---
    language: str = opts.LANGUAGE,
    detail_level: DetailLevel = typer.Option(  # noqa: B008
        DetailLevel.medium,
        "--detail",
        "-d",
        envvar="POCKETBOOK_DETAIL",
        help="How much of each chapter to keep.",
        rich_help_panel="Summary Options",
    ),
    output_format: OutputFormat = typer.Option(  # noqa: B008
        OutputFormat.markdown,
        "--format",
        "-f",
        help="Format of the summary file.",
        rich_help_panel="Summary Options",
    ),
    output_dir: str = opts.OUTPUT_DIR,
    chapter_limit: int | None = opts.CHAPTER_LIMIT,
    # --- Processing Options ---
    response_format: ResponseFormat = typer.Option(  # noqa: B008
        ResponseFormat.json,
        "--response-format",
        help="Reply shape requested from the model: 'json' or 'delimited' labelled text.",
        rich_help_panel="Processing Options",
    ),
    max_section_tokens: int = opts.MAX_SECTION_TOKENS,
    section_attempts: int = opts.SECTION_ATTEMPTS,
    max_concurrent: int = opts.MAX_CONCURRENT,
    encoding: str = opts.ENCODING,
    # --- LLM Options ---
    api_key: str | None = opts.API_KEY,
    base_url: str = opts.BASE_URL,
    model: str = opts.MODEL,
    max_attempts: int = opts.MAX_ATTEMPTS,
    max_elapsed: float = opts.MAX_ELAPSED,
    request_timeout: float = opts.REQUEST_TIMEOUT,
    # --- General Options ---
    log_level: str = opts.LOG_LEVEL,
    log_file: str | None = opts.LOG_FILE,
    quiet: bool = opts.QUIET,
    config_file: str | None = opts.CONFIG_FILE,  # noqa: ARG001
) -> None:
    """Summarize e-books chapter by chapter.

    Each book gets its own folder under the output directory holding the
    summary, the extracted images and the processing state. Running the
    command again on the same book resumes where the previous run stopped.

    Examples:
        # Summarize a book in German with long chapter summaries
        pocketbook process book.epub --language de --detail long

        # Two books, HTML output, at most 10 chapters each for now
        pocketbook process a.epub b.epub --format html --chapter-limit 10

    """
    if not api_key:
        print_error_message(
            "No API key provided.",
            "Pass --api-key or set POCKETBOOK_API_KEY (or OPENROUTER_API_KEY / OPENAI_API_KEY).",
        )
        raise typer.Exit(1)

    llm_cfg = config.LLMSettings(
        api_key=api_key,
        model=model,
        base_url=base_url,
        max_attempts=max_attempts,
        max_elapsed=max_elapsed,
        request_timeout=request_timeout,
    )
    summary_cfg = config.SummarySettings(
        output_language=language,
        detail_level=detail_level.value,
        output_format=output_format.value,
        response_format=response_format.value,
        max_section_tokens=max_section_tokens,
        section_attempts=section_attempts,
        max_concurrent_chapters=max_concurrent,
        encoding_name=encoding,
        output_dir=output_dir,
        chapter_limit=chapter_limit,
    )
    general_cfg = config.General(log_level=log_level, log_file=log_file, quiet=quiet)

    ok = asyncio.run(
        _async_process(
            files,
            llm_cfg=llm_cfg,
            summary_cfg=summary_cfg,
            general_cfg=general_cfg,
        ),
    )
    if not ok:
        raise typer.Exit(1)
