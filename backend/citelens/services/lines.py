from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Sequence

from citelens.services.classify import flowing_indent_level, is_list_item, list_type, paged_indent_level
from citelens.services.text_model import DocumentFormat, PositionedTextUnit, TextLine, union_box


def band_key(y: float, tolerance: float) -> float:
    # Half-up rounding keeps glyphs a fraction of a unit apart in one band.
    return math.floor(y / tolerance + 0.5) * tolerance


def group_units_into_lines(
    units: Sequence[PositionedTextUnit],
    fmt: DocumentFormat,
    *,
    tolerance: float = 2.0,
    min_chars: int = 15,
) -> list[TextLine]:
    """Merge units sharing a vertical band into lines.

    Paged units are bucketed per page by a rounded baseline and emitted
    top-to-bottom. Flow units are already one paragraph each and map 1:1 to
    lines. Lines shorter than ``min_chars`` are dropped as page furniture.
    """
    if fmt == "flowing":
        lines = [_flowing_line(unit) for unit in units]
    else:
        lines = _paged_lines(units, tolerance)
    return [line for line in lines if len(line.text) >= min_chars]


def _paged_lines(units: Sequence[PositionedTextUnit], tolerance: float) -> list[TextLine]:
    buckets: dict[tuple[int, float], list[PositionedTextUnit]] = defaultdict(list)
    for unit in units:
        buckets[(unit.page, band_key(unit.y, tolerance))].append(unit)

    # Source coordinates are bottom-up: higher bands come first.
    ordered_keys = sorted(buckets, key=lambda key: (key[0], -key[1]))
    lines: list[TextLine] = []
    for key in ordered_keys:
        members = sorted(buckets[key], key=lambda unit: unit.x)
        lines.append(_paged_line(members))
    return lines


def _paged_line(members: list[PositionedTextUnit]) -> TextLine:
    box = union_box([unit.box for unit in members])
    text = " ".join(unit.text for unit in members)
    sizes = [unit.font_size for unit in members if unit.font_size is not None]
    listed = is_list_item(text, "paged")
    return TextLine(
        text=text,
        x=box.x,
        y=box.y,
        width=box.width,
        height=box.height,
        page=members[0].page,
        units=tuple(members),
        font_size=max(sizes) if sizes else None,
        is_list_item=listed,
        indent_level=paged_indent_level(box.x),
        list_type=list_type(text) if listed else None,
    )


def _flowing_line(unit: PositionedTextUnit) -> TextLine:
    listed = is_list_item(unit.text, "flowing")
    return TextLine(
        text=unit.text,
        x=unit.x,
        y=unit.y,
        width=unit.width,
        height=unit.height,
        page=unit.page,
        units=(unit,),
        font_size=unit.font_size,
        is_list_item=listed,
        indent_level=flowing_indent_level(unit.leading_whitespace),
        list_type=list_type(unit.text) if listed else None,
        paragraph_index=unit.paragraph_index,
    )
