"""Summary plan generation and per-chapter plan sections."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pocketbook.summarizer._prompts import build_plan_prompt
from pocketbook.summarizer.client import user_message
from pocketbook.summarizer.models import EmptyPlanError

if TYPE_CHECKING:
    from pocketbook.summarizer.client import CompletionClient

logger = logging.getLogger(__name__)

PLAN_TEMPERATURE = 0.7

# "## Title" but not "### Title"
_HEADING_RE = re.compile(r"^##(?!#)[ \t]*\S.*$", re.MULTILINE)


@dataclass(frozen=True)
class SummaryPlan:
    """A model-written outline used to ground every chapter's summary."""

    text: str

    @property
    def sections(self) -> list[str]:
        """Plan sections, one per level-2 heading, in order.

        Each section starts at its heading and runs to the next one. Text
        before the first heading is not part of any section.
        """
        starts = [m.start() for m in _HEADING_RE.finditer(self.text)]
        ends = [*starts[1:], len(self.text)]
        return [self.text[s:e].strip() for s, e in zip(starts, ends, strict=True)]


async def generate_plan(
    client: CompletionClient,
    toc: list[str],
    *,
    language: str,
) -> SummaryPlan:
    """Ask the model for a summary plan based on the table of contents.

    Raises:
        EmptyPlanError: If the model returns a blank plan.

    """
    prompt = build_plan_prompt(toc, language)
    logger.info("Requesting summary plan for %d table-of-contents entries", len(toc))
    text = await client.complete([user_message(prompt)], temperature=PLAN_TEMPERATURE)
    if not text or not text.strip():
        msg = "The model returned an empty summary plan."
        raise EmptyPlanError(msg)
    return SummaryPlan(text=text.strip())


def align_plan_sections(plan: SummaryPlan, chapter_count: int) -> list[str]:
    """Map plan sections onto chapters by position.

    Returns exactly ``chapter_count`` entries; chapters beyond the last plan
    heading get an empty plan section. Diverging counts are logged.
    """
    sections = plan.sections
    if len(sections) != chapter_count:
        logger.warning(
            "Summary plan has %d sections for %d chapters; aligning by position",
            len(sections),
            chapter_count,
        )
    return [sections[i] if i < len(sections) else "" for i in range(chapter_count)]
