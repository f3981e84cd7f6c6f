"""Summary: Plain-text helpers shared by history, routing, and generation.

Importance: Keeps every stored or echoed string free of markdown styling.
Alternatives: Ask the model nicely and trust it never emits markdown.
"""

from __future__ import annotations

import re
from datetime import datetime

_LINK_PATTERN = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_FENCE_PATTERN = re.compile(r"^\s*```[^\n]*$", re.MULTILINE)
_HEADING_PATTERN = re.compile(r"^\s{0,3}#{1,6}\s+", re.MULTILINE)
_QUOTE_PATTERN = re.compile(r"^\s{0,3}>\s?", re.MULTILINE)
_BULLET_PATTERN = re.compile(r"^(\s*)[-*+]\s+", re.MULTILINE)
_RULE_PATTERN = re.compile(r"^\s*([-*_])(\s*\1){2,}\s*$", re.MULTILINE)
_BOLD_PATTERN = re.compile(r"(\*\*|__)(.+?)\1", re.DOTALL)
_ITALIC_STAR_PATTERN = re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])")
_ITALIC_UNDERSCORE_PATTERN = re.compile(r"(?<![\w_])_(?!\s)(.+?)(?<!\s)_(?![\w_])")
_STRIKE_PATTERN = re.compile(r"~~(.+?)~~")
_CODE_PATTERN = re.compile(r"`([^`]*)`")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def strip_markdown(text: str) -> str:
    """Summary: Remove markdown styling markers while keeping the words.

    Importance: The system never stores or echoes markdown; all consumers assume plain text.
    Alternatives: Render markdown to HTML and strip tags.
    """

    if not text:
        return ""
    result = _FENCE_PATTERN.sub("", text)
    result = _LINK_PATTERN.sub(r"\1", result)
    result = _RULE_PATTERN.sub("", result)
    result = _HEADING_PATTERN.sub("", result)
    result = _QUOTE_PATTERN.sub("", result)
    result = _BULLET_PATTERN.sub(r"\1", result)
    result = _BOLD_PATTERN.sub(r"\2", result)
    result = _STRIKE_PATTERN.sub(r"\1", result)
    result = _ITALIC_STAR_PATTERN.sub(r"\1", result)
    result = _ITALIC_UNDERSCORE_PATTERN.sub(r"\1", result)
    result = _CODE_PATTERN.sub(r"\1", result)
    result = re.sub(r"\n{3,}", "\n\n", result)
    return result.strip()


def format_timestamp(value: datetime) -> str:
    """Summary: Render a timestamp for model context, e.g. "Jan 05, 2026 14:03"."""

    return value.strftime("%b %d, %Y %H:%M")


def is_valid_email(value: str | None) -> bool:
    if not value:
        return False
    return bool(_EMAIL_PATTERN.match(value.strip()))


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()
