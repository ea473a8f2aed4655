from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from citelens.core.settings import Settings, get_settings
from citelens.services.text_model import PositionedTextUnit


@dataclass(frozen=True)
class RawFragment:
    """One glyph run as handed over by the page text source.

    ``transform`` is a 2D affine matrix; only its translation part
    (``transform[4]``, ``transform[5]``) is read, as the run's baseline origin.
    """

    text: str
    width: float
    height: float
    transform: Sequence[float]


def normalize_page_fragments(fragments: Iterable[RawFragment], page: int) -> list[PositionedTextUnit]:
    units: list[PositionedTextUnit] = []
    for fragment in fragments:
        text = fragment.text.strip()
        if not text:
            continue
        units.append(
            PositionedTextUnit(
                text=text,
                x=float(fragment.transform[4]),
                y=float(fragment.transform[5]),
                width=float(fragment.width),
                height=float(fragment.height),
                font_size=float(fragment.height),
                page=page,
            )
        )
    return units


def normalize_paragraphs(text: str, settings: Settings | None = None) -> list[PositionedTextUnit]:
    """Turn flow text into units, one per non-blank paragraph.

    Flow documents carry no geometry, so each paragraph is laid out on a
    synthetic grid: ``y`` grows with the paragraph index, ``x`` is the left
    margin and the width is estimated from the character count.
    """
    settings = settings or get_settings()
    paragraphs = [p for p in text.split("\n") if p.strip()]
    units: list[PositionedTextUnit] = []
    for index, paragraph in enumerate(paragraphs):
        stripped = paragraph.strip()
        leading = len(paragraph) - len(paragraph.lstrip())
        units.append(
            PositionedTextUnit(
                text=stripped,
                x=0.0,
                y=index * settings.flow_line_spacing,
                width=min(len(paragraph) * settings.flow_char_width, settings.flow_max_width),
                height=settings.flow_line_height,
                font_size=None,
                page=1,
                paragraph_index=index,
                leading_whitespace=leading,
            )
        )
    return units
