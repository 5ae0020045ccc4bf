"""Tests for the EPUB reader."""

from __future__ import annotations

from pathlib import Path

import pytest
from ebooklib import epub

from pocketbook.ebook import EpubReader, _flatten_toc, html_to_text
from pocketbook.summarizer.models import DocumentError

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"


@pytest.fixture
def epub_path(tmp_path: Path) -> Path:
    """A small two-chapter EPUB with one image."""
    book = epub.EpubBook()
    book.set_identifier("test-book")
    book.set_title("Thermodynamics Made Simple")
    book.set_language("en")
    book.add_author("Ada Writer")

    c1 = epub.EpubHtml(title="Heat", file_name="c1.xhtml", lang="en")
    c1.content = "<h1>Heat</h1><p>Heat flows from hot to cold.</p>"
    c2 = epub.EpubHtml(title="Entropy", file_name="c2.xhtml", lang="en")
    c2.content = "<h1>Entropy</h1><p>Entropy never decreases.<br/>Mostly.</p>"
    image = epub.EpubImage(
        uid="fig1",
        file_name="images/fig1.png",
        media_type="image/png",
        content=PNG_BYTES,
    )
    for item in (c1, c2, image):
        book.add_item(item)
    book.toc = (
        epub.Link("c1.xhtml", "Heat", "heat"),
        epub.Link("c2.xhtml", "Entropy", "entropy"),
    )
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = [c1, c2]

    path = tmp_path / "thermo.epub"
    epub.write_epub(str(path), book)
    return path


class TestEpubReader:
    """Tests for EpubReader against a real EPUB file."""

    def test_read_chapters_and_toc(self, epub_path: Path) -> None:
        """Chapters follow the spine and the ToC titles are flattened."""
        chapters, toc = EpubReader().read(epub_path)
        assert len(chapters) == 2
        assert "Heat flows from hot to cold." in chapters[0]
        assert "Entropy never decreases." in chapters[1]
        assert "<p>" not in chapters[1]
        assert toc == ["Heat", "Entropy"]

    def test_extract_images(self, epub_path: Path, tmp_path: Path) -> None:
        """Images are written under sanitized names with a MIME-based extension."""
        dest = tmp_path / "images"
        assert EpubReader().extract_images(epub_path, dest) == 1
        assert (dest / "images_fig1.png").read_bytes() == PNG_BYTES

    def test_read_metadata(self, epub_path: Path) -> None:
        """Title, author and language come from the Dublin Core metadata."""
        metadata = EpubReader().read_metadata(epub_path)
        assert metadata == {
            "title": "Thermodynamics Made Simple",
            "author": "Ada Writer",
            "language": "en",
        }

    @pytest.mark.parametrize("content", [None, b"not a zip archive"])
    def test_unreadable_file(self, tmp_path: Path, content: bytes | None) -> None:
        """Missing or corrupt files raise DocumentError."""
        path = tmp_path / "broken.epub"
        if content is not None:
            path.write_bytes(content)
        with pytest.raises(DocumentError, match="Cannot read EPUB"):
            EpubReader().read(path)

    def test_truncated_package_document(self, broken_epub_path: Path, tmp_path: Path) -> None:
        """Parser errors from a broken content.opf become DocumentError too."""
        reader = EpubReader()
        with pytest.raises(DocumentError, match="Cannot read EPUB"):
            reader.extract_images(broken_epub_path, tmp_path / "images")
        with pytest.raises(DocumentError, match="Cannot read EPUB"):
            reader.read(broken_epub_path)


def test_flatten_toc_nested() -> None:
    """Sections and their children are yielded depth first."""
    toc = [
        epub.Link("a.xhtml", "Part One", "a"),
        (
            epub.Section("Part Two"),
            [
                epub.Link("b.xhtml", "Chapter 2.1", "b"),
                (epub.Section("Chapter 2.2"), [epub.Link("c.xhtml", "2.2.1", "c")]),
            ],
        ),
        [epub.Link("d.xhtml", "Appendix", "d")],
    ]
    assert list(_flatten_toc(toc)) == ["Part One", "Part Two", "Chapter 2.1", "Chapter 2.2", "2.2.1", "Appendix"]


def test_html_to_text() -> None:
    """Markup is stripped and runs of blank lines collapse."""
    text = html_to_text("<div><p>One</p>\n\n\n\n<p>Two<br>Three</p></div>")
    assert text.startswith("One\n")
    assert text.endswith("Three")
    assert "Two" in text
    assert "<" not in text
    assert "\n\n\n" not in text
