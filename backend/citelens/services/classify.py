from __future__ import annotations

import math
import re
from collections.abc import Sequence

from citelens.services.text_model import BlockType, DocumentFormat, ListType, TextLine

BULLET_GLYPHS = "\u2022\u2023\u2043\u2219\u00b7\u25a0-\u25ff"
BULLET_RE = re.compile(rf"^[{BULLET_GLYPHS}]")
NUMBERED_RE = re.compile(r"^\d+\.")
ALPHA_RE = re.compile(r"^[a-zA-Z]\.")
ROMAN_RE = re.compile(r"^[ivxlcdm]+\.", re.IGNORECASE)
DASH_RE = re.compile(r"^[-*+]")

PAGED_LIST_MARKERS = (BULLET_RE, NUMBERED_RE, ALPHA_RE, ROMAN_RE)
FLOWING_LIST_MARKERS = (*PAGED_LIST_MARKERS, DASH_RE)

INDENT_POINTS_PER_LEVEL = 20
INDENT_SPACES_PER_LEVEL = 2
LIST_MAJORITY = 0.5
HEADING_MAX_CHARS = 100
TABLE_MIN_LINES = 3
TABLE_MIN_COLUMNS = 2


def is_list_item(text: str, fmt: DocumentFormat) -> bool:
    stripped = text.strip()
    markers = FLOWING_LIST_MARKERS if fmt == "flowing" else PAGED_LIST_MARKERS
    return any(pattern.match(stripped) for pattern in markers)


def has_list_marker(text: str) -> bool:
    stripped = text.strip()
    return any(pattern.match(stripped) for pattern in FLOWING_LIST_MARKERS)


def list_type(text: str) -> ListType | None:
    # Roman is checked before alpha, so "i." and "c." count as roman.
    stripped = text.strip()
    if BULLET_RE.match(stripped) or DASH_RE.match(stripped):
        return "bullet"
    if NUMBERED_RE.match(stripped):
        return "numbered"
    if ROMAN_RE.match(stripped):
        return "roman"
    if ALPHA_RE.match(stripped):
        return "alpha"
    return None


def paged_indent_level(x: float) -> int:
    return math.floor(x / INDENT_POINTS_PER_LEVEL)


def flowing_indent_level(leading_whitespace: int) -> int:
    return leading_whitespace // INDENT_SPACES_PER_LEVEL


def classify_block(lines: Sequence[TextLine], fmt: DocumentFormat, *, heading_font_size: float = 14.0) -> BlockType:
    """Label a block from cheap local signals, first matching rule wins."""
    total = len(lines)
    if total == 0:
        return "paragraph"

    list_items = sum(1 for line in lines if line.is_list_item)
    if list_items > total * LIST_MAJORITY:
        return "list"
    if total == 1 and _looks_like_heading(lines[0], fmt, heading_font_size):
        return "heading"
    if total > TABLE_MIN_LINES and _has_table_structure(lines, fmt):
        return "table"
    return "paragraph"


def _looks_like_heading(line: TextLine, fmt: DocumentFormat, heading_font_size: float) -> bool:
    if fmt == "paged":
        return line.font_size is not None and line.font_size > heading_font_size
    return len(line.text) < HEADING_MAX_CHARS and line.text.endswith(":")


def _has_table_structure(lines: Sequence[TextLine], fmt: DocumentFormat) -> bool:
    if fmt == "paged":
        return len({line.x for line in lines}) > TABLE_MIN_COLUMNS
    return any("\t" in line.text or "|" in line.text for line in lines)
