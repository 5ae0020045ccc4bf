"""Plan-then-summarize pipeline for long documents.

A document is summarized in three steps:
1. One request turns the table of contents into a summary plan with a
   level-2 heading per chapter.
2. Each chapter is split into token-bounded sections that are summarized in
   order, grounded on the chapter's part of the plan.
3. Chapter results are merged and assembled in reading order.

Progress is checkpointed after every step, so an interrupted run resumes
without repeating requests that already succeeded.

Example:
    from pocketbook.ebook import EpubReader
    from pocketbook.summarizer import CompletionClient, SummarizerConfig, process_document

    client = CompletionClient(api_key="sk-...", model="openai/gpt-4o-mini")
    config = SummarizerConfig(output_language="en", detail_level="short")
    report = await process_document(Path("book.epub"), config, client, reader=EpubReader())

    print(f"{report.chapters_completed}/{report.total_chapters} chapters")

"""

from pocketbook.summarizer.checkpoint import CheckpointStore, ProcessingState
from pocketbook.summarizer.client import CompletionClient
from pocketbook.summarizer.models import (
    ChapterResult,
    DocumentReport,
    SummarizationError,
    SummarizerConfig,
)
from pocketbook.summarizer.orchestrator import process_document, summarize_chapter

__all__ = [
    "ChapterResult",
    "CheckpointStore",
    "CompletionClient",
    "DocumentReport",
    "ProcessingState",
    "SummarizationError",
    "SummarizerConfig",
    "process_document",
    "summarize_chapter",
]
