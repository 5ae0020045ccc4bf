"""Parsers turning model replies into chapter results.

Two reply shapes are supported and selected by configuration, never guessed:

- ``json``: a single JSON object (see ``SECTION_JSON_PROMPT``).
- ``delimited``: blank-line separated blocks with leading labels.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

from pocketbook.summarizer.models import ChapterResult, FatalParseError

ResponseParser = Callable[[str], ChapterResult]

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n")

_LIST_FIELDS = ("keywords", "glossary", "references", "additional_resources")

# Order matters: longer labels first so "Citations and References:" wins over "References:"
_FIELD_LABELS: tuple[tuple[str, str], ...] = (
    ("Citations and References:", "references"),
    ("Additional Resources:", "additional_resources"),
    ("References:", "references"),
    ("Keywords:", "keywords"),
    ("Glossary:", "glossary"),
)

_ADMIN_LABELS = (
    "Dedication",
    "Foreword",
    "About the Author",
    "Author Biography",
    "Preface",
    "Acknowledgments",
    "Acknowledgements",
)


# --- JSON replies ---


def _strip_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = _FENCE_RE.sub("", text).strip()
    return text


def _glossary_entry(item: Any) -> str:
    if isinstance(item, str):
        return item.strip()
    if isinstance(item, dict) and "term" in item:
        term = str(item["term"]).strip()
        definition = str(item.get("definition", "")).strip()
        return f"{term}: {definition}" if definition else term
    msg = f"Invalid glossary entry: {item!r}"
    raise FatalParseError(msg)


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        msg = f"Expected a list for {key!r}, got {type(value).__name__}"
        raise FatalParseError(msg)
    if key == "glossary":
        entries = [_glossary_entry(item) for item in value]
    else:
        if not all(isinstance(item, str) for item in value):
            msg = f"Expected only strings in {key!r}: {value!r}"
            raise FatalParseError(msg)
        entries = [item.strip() for item in value]
    return [entry for entry in entries if entry]


def parse_json_response(raw: str) -> ChapterResult:
    """Parse a structured JSON reply.

    Missing keys default to empty values and unknown keys are ignored.

    Raises:
        FatalParseError: If the reply is not a JSON object or a known key has
            the wrong type.

    """
    text = _strip_fence(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Reply is not valid JSON ({e}): {raw[:200]!r}"
        raise FatalParseError(msg) from e
    if not isinstance(data, dict):
        msg = f"Reply must be a JSON object, got {type(data).__name__}"
        raise FatalParseError(msg)

    summary = data.get("summary")
    if summary is None:
        summary = ""
    elif not isinstance(summary, str):
        msg = f"Expected a string for 'summary', got {type(summary).__name__}"
        raise FatalParseError(msg)

    fields = {key: _string_list(data, key) for key in _LIST_FIELDS}
    keywords = list(dict.fromkeys(fields.pop("keywords")))
    return ChapterResult(summary=summary.strip(), keywords=keywords, **fields)


# --- Delimited replies ---


def _normalize(block: str) -> str:
    """Drop Markdown decoration (``#``, ``*``) in front of a label."""
    return block.lstrip("#* \t").replace("**", "", 2)


def _match_field(block: str) -> tuple[str, str] | None:
    """Return (field, body) if the block starts with a field label."""
    text = _normalize(block)
    for label, field_name in _FIELD_LABELS:
        if text.startswith(label):
            return field_name, text[len(label) :].strip()
    return None


def _is_admin_block(block: str) -> tuple[bool, bool]:
    """Return (is_admin, is_bare_heading) for a block."""
    text = _normalize(block)
    for label in _ADMIN_LABELS:
        if text.startswith(label):
            first_line, _, rest = text.partition("\n")
            bare = not rest.strip() and first_line[len(label) :].strip(" :") == ""
            return True, bare
    return False, False


def _add_to_field(result: ChapterResult, field_name: str, body: str) -> None:
    if not body:
        return
    if field_name == "keywords":
        for word in body.split(","):
            word = word.strip()  # noqa: PLW2901
            if word and word not in result.keywords:
                result.keywords.append(word)
    else:
        getattr(result, field_name).append(body)


def parse_delimited_response(raw: str) -> ChapterResult:
    """Parse a free-text reply made of labelled, blank-line separated blocks.

    Unlabelled blocks become the narrative summary. Administrative blocks
    (dedication, foreword, author biography, ...) are dropped; a label that
    stands alone on its block applies to the block that follows it.
    """
    result = ChapterResult()
    summary_parts: list[str] = []
    pending_field: str | None = None
    skip_next = False

    for raw_block in _BLOCK_SPLIT_RE.split(raw.strip()):
        block = raw_block.strip()
        if not block:
            continue

        if skip_next:
            skip_next = False
            if _match_field(block) is None and not _is_admin_block(block)[0]:
                continue
        if pending_field is not None:
            field_name, pending_field = pending_field, None
            if _match_field(block) is None and not _is_admin_block(block)[0]:
                _add_to_field(result, field_name, block)
                continue

        matched = _match_field(block)
        if matched is not None:
            field_name, body = matched
            if body:
                _add_to_field(result, field_name, body)
            else:
                pending_field = field_name
            continue

        is_admin, bare = _is_admin_block(block)
        if is_admin:
            skip_next = bare
            continue

        summary_parts.append(block)

    result.summary = "\n\n".join(summary_parts)
    return result


_PARSERS: dict[str, ResponseParser] = {
    "json": parse_json_response,
    "delimited": parse_delimited_response,
}


def get_response_parser(response_format: str) -> ResponseParser:
    """Return the parser for a configured reply format."""
    try:
        return _PARSERS[response_format]
    except KeyError:
        msg = f"Unknown response format {response_format!r}; expected one of {sorted(_PARSERS)}"
        raise ValueError(msg) from None
