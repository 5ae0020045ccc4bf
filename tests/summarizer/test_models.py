"""Unit tests for summarizer models."""

from __future__ import annotations

from pathlib import Path

import pytest

from pocketbook.summarizer.models import (
    AuthError,
    ChapterResult,
    CompletionError,
    DocumentReport,
    MalformedResponseError,
    SummarizationError,
    SummarizerConfig,
    TransientError,
)


class TestSummarizerConfig:
    """Tests for SummarizerConfig initialization."""

    def test_defaults(self) -> None:
        """Defaults match the documented configuration surface."""
        config = SummarizerConfig()
        assert config.max_section_tokens == 2000
        assert config.section_attempts == 3
        assert config.max_concurrent_chapters == 4
        assert config.encoding_name == "cl100k_base"
        assert config.response_format == "json"
        assert config.chapter_limit is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_section_tokens": 0},
            {"section_attempts": 0},
            {"max_concurrent_chapters": 0},
            {"chapter_limit": 0},
        ],
    )
    def test_rejects_non_positive(self, kwargs: dict[str, int]) -> None:
        """Limits below one are rejected."""
        with pytest.raises(ValueError, match="at least 1"):
            SummarizerConfig(**kwargs)

    def test_output_root_expanded(self) -> None:
        """The output root accepts strings and expands the home directory."""
        config = SummarizerConfig(output_root="~/summaries")  # type: ignore[arg-type]
        assert config.output_root == Path.home() / "summaries"


class TestChapterResult:
    """Tests for ChapterResult.merge."""

    def test_merge_in_order(self) -> None:
        """Summaries join with a blank line; keywords stay unique and ordered."""
        result = ChapterResult(summary="First.", keywords=["a", "b"], glossary=["g1"])
        result.merge(
            ChapterResult(
                summary="Second.",
                keywords=["b", "c"],
                glossary=["g2"],
                references=["r"],
                additional_resources=["x"],
            ),
        )
        assert result.summary == "First.\n\nSecond."
        assert result.keywords == ["a", "b", "c"]
        assert result.glossary == ["g1", "g2"]
        assert result.references == ["r"]
        assert result.additional_resources == ["x"]

    def test_merge_into_empty(self) -> None:
        """Merging into an empty result adds no leading separator."""
        result = ChapterResult()
        assert result.is_empty
        result.merge(ChapterResult(summary="Only."))
        assert result.summary == "Only."
        assert not result.is_empty

    def test_json_round_trip(self) -> None:
        """Results persist as JSON."""
        result = ChapterResult(summary="S", keywords=["k"], skipped_sections=2)
        assert ChapterResult.model_validate_json(result.model_dump_json()) == result


class TestDocumentReport:
    """Tests for DocumentReport."""

    def test_finished(self) -> None:
        """A report is finished once every chapter is complete."""
        assert DocumentReport("book", total_chapters=2, chapters_completed=2).finished
        assert not DocumentReport("book", total_chapters=2, chapters_completed=1).finished


def test_error_taxonomy() -> None:
    """Completion failures share a base; everything is a SummarizationError."""
    for error in (TransientError, AuthError, MalformedResponseError):
        assert issubclass(error, CompletionError)
    assert issubclass(CompletionError, SummarizationError)
