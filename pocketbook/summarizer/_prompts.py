"""Prompt templates for plan generation and section summarization.

Prompts are written for instruction-tuned chat models and ask for a direct,
note-taking style in the requested output language.
"""

from __future__ import annotations

# PLAN - one call per document, grounded on the table of contents
PLAN_PROMPT = """You are an expert at creating detailed, content-rich summary plans for e-books.
Based on the table of contents below, create a summary plan that focuses on the main
content and key learnings of each chapter.

Rules:
- Start the plan for each chapter with a level-2 Markdown heading ("## <chapter title>"),
  one heading per chapter, in table-of-contents order.
- Exclude dedications, forewords, author biographies and any other meta-information.
- Include what to capture for Citations and References and for Additional Resources.
- Use a direct, note-taking style in {language}.

Table of Contents:
{toc}""".strip()

DETAIL_INSTRUCTIONS = {
    "short": "Keep it brief: only the essential ideas, a few sentences per section.",
    "medium": "Cover the key points and important insights with moderate detail.",
    "long": "Be thorough: keep key points, insights, examples, technical terms and arguments.",
}

# SECTION (JSON) - one call per chunk of a chapter
SECTION_JSON_PROMPT = """Using the summary plan below, summarize the text that follows.
Focus on key points, important insights, technical terms and main learnings.
Use a direct, note-taking style and avoid phrases like "the text discusses" or
"this chapter explains". Do not include dedications, forewords or author biographies.
Write in {language}. {detail}

Reply with a single JSON object and nothing else, using exactly these keys:
{{
  "summary": "<the summary as Markdown text>",
  "keywords": ["<keyword>", ...],
  "glossary": [{{"term": "<term>", "definition": "<definition>"}}, ...],
  "references": ["<citation or reference mentioned in the text>", ...],
  "additional_resources": ["<resource worth consulting>", ...]
}}
Use empty lists when a category does not apply.

Summary Plan:
{plan}

Text:
{content}""".strip()

# SECTION (delimited) - plain text reply with labelled blocks
SECTION_DELIMITED_PROMPT = """Using the summary plan below, summarize the text that follows.
Focus on key points, important insights, technical terms and main learnings.
Use a direct, note-taking style and avoid phrases like "the text discusses" or
"this chapter explains". Do not include dedications, forewords or author biographies.
Write in {language}. {detail}

Format the reply as blocks separated by blank lines:
- the summary paragraphs first, without any label;
- then "Keywords: <comma separated keywords>";
- then "Glossary: <term: definition entries>";
- then "References: <citations and references mentioned in the text>";
- then "Additional Resources: <resources worth consulting>".
Leave out a labelled block when it does not apply.

Summary Plan:
{plan}

Text:
{content}""".strip()

NO_PLAN = "(No plan available for this chapter; summarize the text on its own terms.)"


def format_toc(toc: list[str]) -> str:
    """Format table-of-contents titles one per line."""
    return "\n".join(title.strip() for title in toc if title.strip())


def build_plan_prompt(toc: list[str], language: str) -> str:
    """Build the prompt that asks for a per-chapter summary plan."""
    return PLAN_PROMPT.format(toc=format_toc(toc), language=language)


def build_section_prompt(
    content: str,
    plan_section: str,
    *,
    language: str,
    detail_level: str,
    response_format: str,
) -> str:
    """Build the summarization prompt for one section of a chapter."""
    template = SECTION_JSON_PROMPT if response_format == "json" else SECTION_DELIMITED_PROMPT
    return template.format(
        content=content,
        plan=plan_section.strip() or NO_PLAN,
        language=language,
        detail=DETAIL_INSTRUCTIONS.get(detail_level, DETAIL_INSTRUCTIONS["medium"]),
    )
