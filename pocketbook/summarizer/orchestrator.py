"""Resumable plan-then-summarize pipeline for one document.

Stages run in a fixed order and each is recorded in the document's
``ProcessingState`` before the next begins:

1. Images are extracted from the source.
2. Chapter text and the table of contents are cached in ``chapters.json``.
3. A summary plan is requested (every run, only when chapters are pending).
4. Pending chapters are summarized concurrently, one result file each.
5. The summary is assembled in chapter order and, once every chapter is
   done, written out as an EPUB.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pydantic import ValidationError

from pocketbook.output import create_epub, output_extension, render_document
from pocketbook.summarizer._prompts import build_section_prompt
from pocketbook.summarizer._utils import split_text_by_tokens
from pocketbook.summarizer.checkpoint import (
    CheckpointStore,
    ProcessingState,
    atomic_write_text,
    sanitize_document_name,
)
from pocketbook.summarizer.client import user_message
from pocketbook.summarizer.models import (
    ChapterResult,
    DocumentError,
    DocumentReport,
    MalformedResponseError,
    SummarizerConfig,
    TransientError,
)
from pocketbook.summarizer.parsing import ResponseParser, get_response_parser
from pocketbook.summarizer.plan import align_plan_sections, generate_plan

if TYPE_CHECKING:
    from rich.progress import Progress

    from pocketbook.summarizer.client import CompletionClient

logger = logging.getLogger(__name__)

SECTION_TEMPERATURE = 0.7
TEXT_CACHE_FILENAME = "chapters.json"
CHAPTERS_DIRNAME = "chapters"
IMAGES_DIRNAME = "images"
SUMMARY_STEM = "summary"


class DocumentReader(Protocol):
    """Source of chapter text, table of contents, images and metadata."""

    def read(self, path: Path) -> tuple[list[str], list[str]]:
        """Return (chapters, table_of_contents) in reading order."""
        ...

    def extract_images(self, path: Path, dest_dir: Path) -> int:
        """Write embedded images to ``dest_dir`` and return how many."""
        ...

    def read_metadata(self, path: Path) -> dict[str, str]:
        """Return document metadata such as ``title``, ``author``, ``language``."""
        ...


@dataclass
class BookText:
    """Extracted text of a document as cached between runs."""

    chapters: list[str]
    toc: list[str]
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return self.metadata.get("title", "")


def chapter_result_path(output_dir: Path, index: int) -> Path:
    """Path of the persisted result for one chapter."""
    return output_dir / CHAPTERS_DIRNAME / f"chapter_{index:04d}.json"


def _load_text_cache(path: Path) -> BookText | None:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return BookText(
            chapters=list(data["chapters"]),
            toc=list(data["toc"]),
            metadata=dict(data.get("metadata", {})),
        )
    except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
        logger.warning("Ignoring unreadable text cache %s: %s", path, e)
        return None


def _load_chapter_result(path: Path) -> ChapterResult | None:
    try:
        return ChapterResult.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.warning("Ignoring unreadable chapter result %s: %s", path, e)
        return None


def _read_book(path: Path, reader: DocumentReader) -> BookText:
    chapters, toc = reader.read(path)
    return BookText(chapters=chapters, toc=toc, metadata=reader.read_metadata(path))


async def _summarize_section(
    client: CompletionClient,
    prompt: str,
    parser: ResponseParser,
    *,
    attempts: int,
    context: str,
) -> ChapterResult | None:
    """Summarize one section, returning ``None`` once retries are exhausted."""
    for attempt in range(1, attempts + 1):
        try:
            raw = await client.complete([user_message(prompt)], temperature=SECTION_TEMPERATURE)
            if not raw.strip():
                msg = "The model returned an empty reply."
                raise MalformedResponseError(msg)  # noqa: TRY301
            return parser(raw)
        except (TransientError, MalformedResponseError) as e:
            logger.warning("%s attempt %d/%d failed: %s", context, attempt, attempts, e)
    logger.error("%s skipped after %d attempts", context, attempts)
    return None


async def summarize_chapter(
    client: CompletionClient,
    text: str,
    plan_section: str,
    config: SummarizerConfig,
    *,
    document_id: str = "",
    chapter_index: int = 0,
) -> ChapterResult:
    """Summarize a chapter section by section, in order.

    Sections whose summarization keeps failing with a transient or malformed
    reply are skipped and counted in ``skipped_sections``. Any other error
    propagates to the caller.

    Args:
        client: Completion client shared by all chapters.
        text: Plain chapter text.
        plan_section: The summary plan entry for this chapter (may be empty).
        config: Summarizer configuration.
        document_id: Used only for log context.
        chapter_index: Used only for log context.

    Returns:
        The merged result of every section that succeeded.

    """
    parser = get_response_parser(config.response_format)
    sections = split_text_by_tokens(text, config.max_section_tokens, config.encoding_name)
    logger.debug(
        "Document %s chapter %d: %d sections",
        document_id,
        chapter_index,
        len(sections),
    )

    result = ChapterResult()
    for section_index, section in enumerate(sections):
        prompt = build_section_prompt(
            section,
            plan_section,
            language=config.output_language,
            detail_level=config.detail_level,
            response_format=config.response_format,
        )
        parsed = await _summarize_section(
            client,
            prompt,
            parser,
            attempts=config.section_attempts,
            context=f"Document {document_id} chapter {chapter_index} section {section_index}",
        )
        if parsed is None:
            result.skipped_sections += 1
        else:
            result.merge(parsed)
    return result


class _DocumentRun:
    """State shared by the chapter workers of one ``process_document`` call."""

    def __init__(
        self,
        document_id: str,
        state: ProcessingState,
        store: CheckpointStore,
        output_dir: Path,
        report: DocumentReport,
        progress: Progress | None,
    ) -> None:
        self.document_id = document_id
        self.state = state
        self.store = store
        self.output_dir = output_dir
        self.report = report
        self.progress = progress
        self.task_id = None
        self.lock = asyncio.Lock()

    def save(self) -> None:
        self.store.save(self.document_id, self.state)

    async def record_chapter(self, index: int, result: ChapterResult) -> None:
        """Persist a chapter result, then mark it processed."""
        atomic_write_text(
            chapter_result_path(self.output_dir, index),
            result.model_dump_json(indent=2) + "\n",
        )
        async with self.lock:
            self.state.chapters_processed.add(index)
            self.save()
            self.report.chapters_completed += 1
            if result.skipped_sections:
                self.report.chapters_with_skips += 1
                self.report.sections_skipped += result.skipped_sections
            if self.progress is not None and self.task_id is not None:
                self.progress.advance(self.task_id)


async def process_document(
    path: Path,
    config: SummarizerConfig,
    client: CompletionClient,
    *,
    reader: DocumentReader,
    store: CheckpointStore | None = None,
    progress: Progress | None = None,
) -> DocumentReport:
    """Summarize one document, resuming from its saved processing state.

    Output goes to ``{config.output_root}/{document_id}/``.

    Raises:
        DocumentError: The source is missing or unreadable.
        CheckpointError: The saved state is corrupt.
        SummarizationError: Any other document-level failure (auth, empty
            plan, schema violation, encoding). State saved so far is kept.

    """
    path = Path(path)
    if not path.is_file():
        msg = f"Document not found: {path}"
        raise DocumentError(msg)

    document_id = sanitize_document_name(path)
    output_dir = config.output_root / document_id
    output_dir.mkdir(parents=True, exist_ok=True)
    store = store or CheckpointStore(config.output_root)
    state = store.load(document_id)
    report = DocumentReport(document_id=document_id)
    run = _DocumentRun(document_id, state, store, output_dir, report, progress)

    if not state.images_extracted:
        count = reader.extract_images(path, output_dir / IMAGES_DIRNAME)
        logger.info("Extracted %d images from %s", count, path.name)
        state.images_extracted = True
        run.save()

    cache_path = output_dir / TEXT_CACHE_FILENAME
    book = _load_text_cache(cache_path) if state.text_extracted else None
    if book is None:
        book = _read_book(path, reader)
        atomic_write_text(cache_path, json.dumps(asdict(book), ensure_ascii=False, indent=2))
        if not state.text_extracted:
            state.text_extracted = True
            run.save()

    report.total_chapters = len(book.chapters)
    if not book.chapters:
        logger.warning("Document %s has no chapters; skipping", document_id)
        return report

    pending = _pending_chapters(run, len(book.chapters))
    report.chapters_completed = len(book.chapters) - len(pending)
    if config.chapter_limit is not None and len(pending) > config.chapter_limit:
        logger.info(
            "Processing %d of %d pending chapters (chapter limit)",
            config.chapter_limit,
            len(pending),
        )
        pending = pending[: config.chapter_limit]

    if pending:
        plan = await generate_plan(client, book.toc, language=config.output_language)
        plan_sections = align_plan_sections(plan, len(book.chapters))
        await _run_chapters(run, client, config, book, plan_sections, pending)

    _assemble_output(run, config, book)
    return report


def _pending_chapters(run: _DocumentRun, chapter_count: int) -> list[int]:
    """Chapter indices still to summarize, re-queuing lost result files."""
    stale = {
        i
        for i in run.state.chapters_processed
        if i >= chapter_count or not chapter_result_path(run.output_dir, i).exists()
    }
    if stale:
        logger.warning(
            "Document %s: re-processing chapters %s with missing results",
            run.document_id,
            sorted(stale),
        )
        run.state.chapters_processed -= stale
        run.save()
    return [i for i in range(chapter_count) if i not in run.state.chapters_processed]


async def _run_chapters(
    run: _DocumentRun,
    client: CompletionClient,
    config: SummarizerConfig,
    book: BookText,
    plan_sections: list[str],
    pending: list[int],
) -> None:
    semaphore = asyncio.Semaphore(config.max_concurrent_chapters)
    if run.progress is not None:
        run.task_id = run.progress.add_task(
            f"Summarizing {run.document_id}",
            total=len(pending),
        )

    async def worker(index: int) -> None:
        async with semaphore:
            result = await summarize_chapter(
                client,
                book.chapters[index],
                plan_sections[index],
                config,
                document_id=run.document_id,
                chapter_index=index,
            )
        await run.record_chapter(index, result)

    logger.info("Document %s: summarizing %d chapters", run.document_id, len(pending))
    tasks = [asyncio.create_task(worker(i)) for i in pending]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _assemble_output(run: _DocumentRun, config: SummarizerConfig, book: BookText) -> None:
    """Write the summary from every chapter result available so far."""
    results: list[tuple[str, ChapterResult]] = []
    for index in sorted(run.state.chapters_processed):
        result = _load_chapter_result(chapter_result_path(run.output_dir, index))
        if result is None:
            continue
        title = book.toc[index] if index < len(book.toc) else f"Chapter {index + 1}"
        results.append((title, result))

    title = book.title or run.document_id
    output_path = run.output_dir / f"{SUMMARY_STEM}{output_extension(config.output_format)}"
    text = render_document(
        title,
        results,
        config.output_format,
        standalone=True,
        language=config.output_language,
    )
    atomic_write_text(output_path, text)
    run.report.output_path = output_path
    logger.info("Wrote %s", output_path)

    if len(run.state.chapters_processed) < len(book.chapters):
        return
    epub_path = run.output_dir / f"{SUMMARY_STEM}.epub"
    if not run.state.epub_created:
        create_epub(
            epub_path,
            title=title,
            body_html=render_document(title, results, "html"),
            author=book.metadata.get("author", ""),
            language=config.output_language,
        )
        run.state.epub_created = True
        run.save()
        logger.info("Wrote %s", epub_path)
    run.report.epub_path = epub_path
