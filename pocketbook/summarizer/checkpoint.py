"""Persisted processing state for resumable summarization runs."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pocketbook.summarizer.models import CheckpointError, DocumentError

logger = logging.getLogger(__name__)

STATE_FILENAME = "processing_state.json"


@dataclass
class ProcessingState:
    """Which steps of a document's processing have completed."""

    images_extracted: bool = False
    text_extracted: bool = False
    chapters_processed: set[int] = field(default_factory=set)
    epub_created: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the processed chapter indices sorted."""
        return {
            "images_extracted": self.images_extracted,
            "text_extracted": self.text_extracted,
            "chapters_processed": sorted(self.chapters_processed),
            "epub_created": self.epub_created,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessingState:
        """Build a state from its serialized form, rejecting bad types."""
        flags = {}
        for name in ("images_extracted", "text_extracted", "epub_created"):
            value = data.get(name, False)
            if not isinstance(value, bool):
                msg = f"{name} must be a boolean, got {value!r}"
                raise TypeError(msg)
            flags[name] = value
        chapters = data.get("chapters_processed", [])
        if not isinstance(chapters, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) and i >= 0 for i in chapters
        ):
            msg = f"chapters_processed must be a list of chapter indices, got {chapters!r}"
            raise TypeError(msg)
        return cls(chapters_processed=set(chapters), **flags)


def sanitize_document_name(path: Path) -> str:
    """Derive a filesystem-safe document id from a source path.

    Raises:
        DocumentError: If nothing usable remains after sanitizing.

    """
    name = re.sub(r"[^A-Za-z0-9._ -]", "_", Path(path).stem).strip(" .")
    if not name:
        msg = f"Cannot derive a document name from {path}"
        raise DocumentError(msg)
    return name


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` so readers see either the old or new content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        tmp.replace(path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


class CheckpointStore:
    """Reads and writes ``{root}/{document_id}/processing_state.json``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, document_id: str) -> Path:
        """Return the state file path for a document."""
        return self.root / document_id / STATE_FILENAME

    def load(self, document_id: str) -> ProcessingState:
        """Load a document's state, or a fresh state if none was saved.

        Raises:
            CheckpointError: If the state file exists but cannot be read.

        """
        path = self.path_for(document_id)
        if not path.exists():
            return ProcessingState()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                msg = f"expected a JSON object, got {type(data).__name__}"
                raise TypeError(msg)  # noqa: TRY301
            state = ProcessingState.from_dict(data)
        except (OSError, ValueError, TypeError) as e:
            msg = f"Corrupt processing state at {path}: {e}"
            raise CheckpointError(msg) from e
        logger.debug("Loaded state for %s: %s", document_id, state.to_dict())
        return state

    def save(self, document_id: str, state: ProcessingState) -> None:
        """Atomically persist a document's state."""
        path = self.path_for(document_id)
        try:
            atomic_write_text(path, json.dumps(state.to_dict(), indent=2) + "\n")
        except OSError as e:
            msg = f"Could not save processing state to {path}: {e}"
            raise CheckpointError(msg) from e
