"""EPUB reader: chapter text, table of contents, images and metadata."""

from __future__ import annotations

import logging
import re
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from bs4 import BeautifulSoup
from ebooklib import epub

from pocketbook.summarizer.models import DocumentError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/svg+xml": "svg",
    "image/webp": "webp",
}


def _sanitize_filename(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "_", name).strip("._") or "image"


def html_to_text(content: bytes | str) -> str:
    """Strip markup, keeping line breaks between blocks."""
    soup = BeautifulSoup(content, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    text = soup.get_text("\n")
    text = re.sub(r"[ \t]+\n", "\n", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def _flatten_toc(entries: Any) -> Iterator[str]:
    """Yield titles from nested navigation entries, depth first."""
    for entry in entries:
        if isinstance(entry, tuple) and len(entry) >= 2:  # noqa: PLR2004
            head, children = entry[0], entry[1]
            if getattr(head, "title", None):
                yield head.title
            yield from _flatten_toc(children)
        elif isinstance(entry, list):
            yield from _flatten_toc(entry)
        elif getattr(entry, "title", None):
            yield entry.title


class EpubReader:
    """Document reader for EPUB files built on ``ebooklib``."""

    def _open(self, path: Path) -> epub.EpubBook:
        try:
            return epub.read_epub(str(path))
        except (epub.EpubException, zipfile.BadZipFile, KeyError, OSError) as e:
            msg = f"Cannot read EPUB {path}: {e}"
            raise DocumentError(msg) from e
        except Exception as e:
            # ebooklib surfaces broken package documents as lxml or attribute errors
            msg = f"Cannot read EPUB {path}: {type(e).__name__}: {e}"
            raise DocumentError(msg) from e

    def read(self, path: Path) -> tuple[list[str], list[str]]:
        """Return plain chapter texts in spine order and the flattened ToC."""
        book = self._open(path)
        chapters: list[str] = []
        for idref, _linear in book.spine:
            item = book.get_item_with_id(idref)
            if not isinstance(item, epub.EpubHtml) or not item.is_chapter():
                continue
            chapters.append(html_to_text(item.get_body_content()))
        toc = [re.sub(r"\s+", " ", title).strip() for title in _flatten_toc(book.toc)]
        logger.info("Read %d chapters and %d ToC entries from %s", len(chapters), len(toc), path.name)
        return chapters, toc

    def extract_images(self, path: Path, dest_dir: Path) -> int:
        """Save every image resource under a sanitized name."""
        book = self._open(path)
        count = 0
        for item in book.get_items():
            media_type = getattr(item, "media_type", "") or ""
            if not media_type.startswith("image/"):
                continue
            extension = IMAGE_EXTENSIONS.get(media_type, "bin")
            stem = _sanitize_filename(str(Path(item.get_name()).with_suffix("")))
            dest_dir.mkdir(parents=True, exist_ok=True)
            (dest_dir / f"{stem}.{extension}").write_bytes(item.get_content())
            count += 1
        return count

    def read_metadata(self, path: Path) -> dict[str, str]:
        """Return title, author and language where the EPUB declares them."""
        book = self._open(path)
        metadata: dict[str, str] = {}
        for key, field_name in (("title", "title"), ("author", "creator"), ("language", "language")):
            values = book.get_metadata("DC", field_name)
            if values and values[0][0]:
                metadata[key] = str(values[0][0]).strip()
        return metadata
