"""Tests for the persisted processing state."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from pocketbook.summarizer.checkpoint import (
    STATE_FILENAME,
    CheckpointStore,
    ProcessingState,
    atomic_write_text,
    sanitize_document_name,
)
from pocketbook.summarizer.models import CheckpointError, DocumentError


class TestCheckpointStore:
    """Tests for CheckpointStore load/save."""

    def test_missing_state_is_default(self, tmp_path: Path) -> None:
        """A document never seen before starts from a fresh state."""
        state = CheckpointStore(tmp_path).load("book")
        assert state == ProcessingState()
        assert not (tmp_path / "book").exists()

    def test_round_trip(self, tmp_path: Path) -> None:
        """A saved state loads back equal, with sorted chapter indices on disk."""
        store = CheckpointStore(tmp_path)
        state = ProcessingState(
            images_extracted=True,
            text_extracted=True,
            chapters_processed={5, 0, 2},
        )
        store.save("book", state)

        assert store.load("book") == state
        data = json.loads((tmp_path / "book" / STATE_FILENAME).read_text())
        assert data == {
            "images_extracted": True,
            "text_extracted": True,
            "chapters_processed": [0, 2, 5],
            "epub_created": False,
        }

    def test_save_is_idempotent(self, tmp_path: Path) -> None:
        """Saving the same state twice changes nothing."""
        store = CheckpointStore(tmp_path)
        state = ProcessingState(images_extracted=True, chapters_processed={1})
        store.save("book", state)
        first = store.path_for("book").read_bytes()
        store.save("book", state)
        assert store.path_for("book").read_bytes() == first
        assert store.load("book") == state

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        """Only the state file remains after a save."""
        store = CheckpointStore(tmp_path)
        store.save("book", ProcessingState(text_extracted=True))
        assert [p.name for p in (tmp_path / "book").iterdir()] == [STATE_FILENAME]

    def test_interrupted_save_keeps_previous_state(self, tmp_path: Path) -> None:
        """A save that fails before the rename leaves the old state readable."""
        store = CheckpointStore(tmp_path)
        old = ProcessingState(images_extracted=True, chapters_processed={0})
        store.save("book", old)

        new = ProcessingState(images_extracted=True, chapters_processed={0, 1})
        with (
            patch.object(Path, "replace", side_effect=OSError("disk full")),
            pytest.raises(CheckpointError, match="disk full"),
        ):
            store.save("book", new)

        assert store.load("book") == old
        assert [p.name for p in (tmp_path / "book").iterdir()] == [STATE_FILENAME]

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "[]",
            '{"chapters_processed": "0,1"}',
            '{"chapters_processed": [-1]}',
            '{"images_extracted": "yes"}',
        ],
    )
    def test_corrupt_state_raises(self, tmp_path: Path, content: str) -> None:
        """A corrupt file is reported instead of silently restarting."""
        path = tmp_path / "book" / STATE_FILENAME
        path.parent.mkdir()
        path.write_text(content)
        with pytest.raises(CheckpointError, match="Corrupt processing state"):
            CheckpointStore(tmp_path).load("book")


class TestAtomicWriteText:
    """Tests for atomic_write_text."""

    def test_creates_parents_and_overwrites(self, tmp_path: Path) -> None:
        """Parent directories are created and existing content replaced."""
        path = tmp_path / "a" / "b" / "file.json"
        atomic_write_text(path, "one")
        atomic_write_text(path, "two")
        assert path.read_text() == "two"
        assert list(path.parent.iterdir()) == [path]


class TestSanitizeDocumentName:
    """Tests for sanitize_document_name."""

    def test_unsafe_characters_replaced(self) -> None:
        """Characters outside the safe set become underscores."""
        assert sanitize_document_name(Path("/books/My Book: Vol 1?.epub")) == "My Book_ Vol 1_"

    def test_safe_name_unchanged(self) -> None:
        """Letters, digits, dots, dashes, underscores and spaces are kept."""
        assert sanitize_document_name(Path("clean_name-2.0 final.epub")) == "clean_name-2.0 final"

    def test_empty_name(self) -> None:
        """A name that sanitizes to nothing is an error."""
        with pytest.raises(DocumentError):
            sanitize_document_name(Path(" ..epub"))
