"""Rendering of summaries as Markdown, HTML and EPUB."""

from __future__ import annotations

import html
import logging
import os
import re
import uuid
from typing import TYPE_CHECKING

from ebooklib import epub

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from pocketbook.summarizer.models import ChapterResult, OutputFormat

logger = logging.getLogger(__name__)

_EXTENSIONS = {"markdown": ".md", "html": ".html"}

_HTML_PAGE = """<!DOCTYPE html>
<html lang="{language}">
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
{body}
</body>
</html>
"""


def output_extension(output_format: OutputFormat) -> str:
    """File extension for a rendered summary."""
    return _EXTENSIONS[output_format]


def _paragraphs(text: str) -> list[str]:
    return [p.strip() for p in re.split(r"\n[ \t]*\n", text) if p.strip()]


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern[str] | None:
    words = sorted({k.strip() for k in keywords if k.strip()}, key=len, reverse=True)
    if not words:
        return None
    alternatives = "|".join(re.escape(w) for w in words)
    return re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)")


def highlight_keywords(text: str, keywords: Iterable[str], output_format: OutputFormat) -> str:
    """Emphasize each keyword occurrence in ``text``.

    Longer keywords win over keywords they contain, and a match is never
    wrapped twice. For ``html`` the surrounding text is escaped as well.
    """
    pattern = _keyword_pattern(keywords)
    if output_format == "markdown":
        if pattern is None:
            return text
        return pattern.sub(lambda m: f"**{m.group(0)}**", text)

    if pattern is None:
        return html.escape(text)
    pieces: list[str] = []
    last = 0
    for match in pattern.finditer(text):
        pieces.append(html.escape(text[last : match.start()]))
        pieces.append(f"<strong>{html.escape(match.group(0))}</strong>")
        last = match.end()
    pieces.append(html.escape(text[last:]))
    return "".join(pieces)


def format_title(title: str, output_format: OutputFormat) -> str:
    if output_format == "html":
        return f"<h1>{html.escape(title)}</h1>\n\n"
    return f"# {title}\n\n"


def format_section(title: str, content: str, output_format: OutputFormat) -> str:
    """Format one chapter; ``content`` is already in the target format."""
    if output_format == "html":
        return f"<h2>{html.escape(title)}</h2>\n\n{content}\n"
    return f"## {title}\n\n{content}\n"


def format_keywords(keywords: Sequence[str], output_format: OutputFormat) -> str:
    if not keywords:
        return ""
    if output_format == "html":
        return f"<p><strong>Keywords:</strong> {html.escape(', '.join(keywords))}</p>\n"
    return f"**Keywords:** {', '.join(keywords)}\n"


def _format_entries(heading: str, entries: Sequence[str], output_format: OutputFormat) -> str:
    if not entries:
        return ""
    if output_format == "html":
        items = "\n".join(f"<p>{html.escape(entry)}</p>" for entry in entries)
        return f"<h1>{heading}</h1>\n\n{items}\n"
    items = "\n".join(f"- {entry}" for entry in entries)
    return f"# {heading}\n\n{items}\n"


def format_glossary(glossary: Sequence[str], output_format: OutputFormat) -> str:
    return _format_entries("Glossary", glossary, output_format)


def format_references(references: Sequence[str], output_format: OutputFormat) -> str:
    return _format_entries("References", references, output_format)


def format_additional_resources(resources: Sequence[str], output_format: OutputFormat) -> str:
    return _format_entries("Additional Resources", resources, output_format)


def _chapter_body(result: ChapterResult, output_format: OutputFormat) -> str:
    if output_format == "html":
        return "\n".join(
            f"<p>{highlight_keywords(p, result.keywords, 'html')}</p>"
            for p in _paragraphs(result.summary)
        )
    return highlight_keywords(result.summary.strip(), result.keywords, "markdown")


def render_document(
    title: str,
    chapters: Sequence[tuple[str, ChapterResult]],
    output_format: OutputFormat,
    *,
    standalone: bool = False,
    language: str = "en",
) -> str:
    """Render a whole summary, chapters first, then book-level sections.

    Args:
        title: Document title.
        chapters: ``(chapter title, result)`` pairs in reading order.
        output_format: ``markdown`` or ``html``.
        standalone: Wrap HTML output in a complete page.
        language: Page language for standalone HTML.

    """
    parts = [format_title(title, output_format)]
    glossary: list[str] = []
    references: list[str] = []
    resources: list[str] = []
    for chapter_title, result in chapters:
        parts.append(format_section(chapter_title, _chapter_body(result, output_format), output_format))
        parts.append(format_keywords(result.keywords, output_format))
        glossary.extend(result.glossary)
        references.extend(result.references)
        resources.extend(result.additional_resources)

    parts.append(format_glossary(list(dict.fromkeys(glossary)), output_format))
    parts.append(format_references(list(dict.fromkeys(references)), output_format))
    parts.append(format_additional_resources(list(dict.fromkeys(resources)), output_format))
    body = "\n".join(part for part in parts if part)

    if output_format == "html" and standalone:
        return _HTML_PAGE.format(
            language=html.escape(language),
            title=html.escape(title),
            body=body,
        )
    return body


def create_epub(
    path: Path,
    *,
    title: str,
    body_html: str,
    author: str = "",
    language: str = "en",
) -> None:
    """Write a single-chapter EPUB holding the rendered summary.

    The file is written next to ``path`` first and moved into place, so an
    interrupted run never leaves a truncated book behind.
    """
    book = epub.EpubBook()
    book.set_identifier(f"pocketbook-{uuid.uuid4()}")
    book.set_title(title)
    book.set_language(language)
    if author:
        book.add_author(author)

    chapter = epub.EpubHtml(title="Summary", file_name="summary.xhtml", lang=language)
    chapter.content = body_html
    book.add_item(chapter)
    book.toc = (epub.Link("summary.xhtml", "Summary", "summary"),)
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        epub.write_epub(str(tmp), book)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("EPUB written to %s", path)
