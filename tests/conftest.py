"""Shared test fixtures and configuration."""

from __future__ import annotations

import contextlib
import io
import zipfile
from typing import TYPE_CHECKING

import pytest
from rich.console import Console

if TYPE_CHECKING:
    from pathlib import Path


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Set default timeout for all tests."""
    for item in items:
        with contextlib.suppress(AttributeError):
            item.add_marker(pytest.mark.timeout(10))


@pytest.fixture
def mock_console() -> Console:
    """Provide a console that writes to a StringIO for testing."""
    return Console(file=io.StringIO(), width=80, force_terminal=True)


class FakeReader:
    """In-memory document reader recording how often it is used."""

    def __init__(
        self,
        chapters: list[str],
        toc: list[str] | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        self.chapters = chapters
        self.toc = toc if toc is not None else [f"Chapter {i + 1}" for i in range(len(chapters))]
        self.metadata = metadata or {"title": "Test Book", "author": "Ada Writer"}
        self.read_calls = 0
        self.image_calls = 0

    def read(self, path: Path) -> tuple[list[str], list[str]]:  # noqa: ARG002
        self.read_calls += 1
        return list(self.chapters), list(self.toc)

    def extract_images(self, path: Path, dest_dir: Path) -> int:  # noqa: ARG002
        self.image_calls += 1
        return 0

    def read_metadata(self, path: Path) -> dict[str, str]:  # noqa: ARG002
        return dict(self.metadata)


@pytest.fixture
def book_path(tmp_path: Path) -> Path:
    """A source file on disk; its contents are never parsed by FakeReader."""
    path = tmp_path / "book.epub"
    path.write_bytes(b"placeholder")
    return path


@pytest.fixture
def reader_factory() -> type[FakeReader]:
    """Build in-memory readers: ``reader_factory(["chapter text", ...])``."""
    return FakeReader


_CONTAINER_XML = (
    '<?xml version="1.0"?>'
    '<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">'
    '<rootfiles><rootfile full-path="OEBPS/content.opf" '
    'media-type="application/oebps-package+xml"/></rootfiles></container>'
)


@pytest.fixture
def broken_epub_path(tmp_path: Path) -> Path:
    """A zip that looks like an EPUB but whose package document is truncated."""
    path = tmp_path / "broken.epub"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        zf.writestr("META-INF/container.xml", _CONTAINER_XML)
        zf.writestr("OEBPS/content.opf", "<package><metadata>")
    return path
