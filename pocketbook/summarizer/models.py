"""Data models and error types for book summarization."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

DetailLevel = Literal["short", "medium", "long"]
ResponseFormat = Literal["json", "delimited"]
OutputFormat = Literal["markdown", "html"]


class SummarizationError(Exception):
    """Base class for every error raised while summarizing a document."""


class CompletionError(SummarizationError):
    """The completion service rejected a request or could not be reached."""


class TransientError(CompletionError):
    """Retryable transport fault (timeout, connection reset, 429 or 5xx)."""


class AuthError(CompletionError):
    """The completion service refused the credentials (401/403)."""


class MalformedResponseError(CompletionError):
    """The request succeeded but the reply envelope could not be decoded."""


class EmptyPlanError(SummarizationError):
    """The model returned a blank summary plan."""


class FatalParseError(SummarizationError):
    """A structured reply violated the JSON schema given in the prompt."""


class EncodingError(SummarizationError):
    """Chapter text could not be encoded by the tokenizer."""


class CheckpointError(SummarizationError):
    """The persisted processing state exists but cannot be read."""


class DocumentError(SummarizationError):
    """The input document is missing, unreadable or has an unusable name."""


@dataclass
class SummarizerConfig:
    """Configuration for a summarization run.

    Example:
        config = SummarizerConfig(output_language="en", detail_level="long")
        report = await process_document(path, config, client, reader=EpubReader())

    """

    output_language: str = "en"
    detail_level: DetailLevel = "medium"
    response_format: ResponseFormat = "json"
    output_format: OutputFormat = "markdown"
    max_section_tokens: int = 2000
    section_attempts: int = 3
    max_concurrent_chapters: int = 4
    encoding_name: str = "cl100k_base"
    output_root: Path = field(default_factory=Path.cwd)
    chapter_limit: int | None = None

    def __post_init__(self) -> None:
        """Validate numeric limits and normalize the output root."""
        for name in ("max_section_tokens", "section_attempts", "max_concurrent_chapters"):
            if getattr(self, name) < 1:
                msg = f"{name} must be at least 1, got {getattr(self, name)}"
                raise ValueError(msg)
        if self.chapter_limit is not None and self.chapter_limit < 1:
            msg = f"chapter_limit must be at least 1, got {self.chapter_limit}"
            raise ValueError(msg)
        self.output_root = Path(self.output_root).expanduser()


class ChapterResult(BaseModel):
    """Structured summary of one chapter, merged from its sections in order."""

    summary: str = ""
    keywords: list[str] = Field(default_factory=list)
    glossary: list[str] = Field(default_factory=list)
    references: list[str] = Field(default_factory=list)
    additional_resources: list[str] = Field(default_factory=list)
    skipped_sections: int = Field(default=0, ge=0)

    def merge(self, other: ChapterResult) -> None:
        """Append ``other`` (the next section's result) to this one in place."""
        if other.summary:
            self.summary = f"{self.summary}\n\n{other.summary}" if self.summary else other.summary
        for keyword in other.keywords:
            if keyword not in self.keywords:
                self.keywords.append(keyword)
        self.glossary.extend(other.glossary)
        self.references.extend(other.references)
        self.additional_resources.extend(other.additional_resources)
        self.skipped_sections += other.skipped_sections

    @property
    def is_empty(self) -> bool:
        """Whether no section contributed any content."""
        return not (
            self.summary
            or self.keywords
            or self.glossary
            or self.references
            or self.additional_resources
        )


@dataclass
class DocumentReport:
    """Outcome of processing one document."""

    document_id: str
    total_chapters: int = 0
    chapters_completed: int = 0
    chapters_with_skips: int = 0
    sections_skipped: int = 0
    output_path: Path | None = None
    epub_path: Path | None = None

    @property
    def finished(self) -> bool:
        """Whether every chapter of the document has been summarized."""
        return self.chapters_completed >= self.total_chapters
