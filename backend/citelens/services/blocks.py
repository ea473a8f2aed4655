from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from citelens.services.classify import classify_block, has_list_marker
from citelens.services.text_model import DocumentFormat, TextBlock, TextLine, union_box

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockRules:
    block_tolerance: float
    x_tolerance: float = 100.0
    heading_font_size: float = 14.0


@dataclass
class _OpenBlock:
    lines: list[TextLine] = field(default_factory=list)

    def close(self, fmt: DocumentFormat, rules: BlockRules) -> TextBlock:
        box = union_box([line.box for line in self.lines])
        return TextBlock(
            lines=tuple(self.lines),
            x=box.x,
            y=box.y,
            width=box.width,
            height=box.height,
            page=self.lines[0].page,
            block_type=classify_block(self.lines, fmt, heading_font_size=rules.heading_font_size),
        )


def reading_order_key(line: TextLine, fmt: DocumentFormat) -> tuple[int, float, float]:
    # Paged y grows upwards, synthesized flow y grows downwards.
    if fmt == "paged":
        return (line.page, -line.y, line.x)
    return (line.page, line.y, line.x)


def are_related_lines(prev: TextLine, curr: TextLine) -> bool:
    """Structural relatedness for coordinate-free lines."""
    if prev.is_list_item and curr.is_list_item and prev.list_type == curr.list_type:
        return True
    if abs(prev.indent_level - curr.indent_level) <= 1:
        return True
    if prev.text.endswith(":"):
        return True
    return has_list_marker(prev.text) and has_list_marker(curr.text)


def group_lines_into_blocks(lines: Sequence[TextLine], fmt: DocumentFormat, rules: BlockRules) -> list[TextBlock]:
    """Greedy single pass: a line either continues the open block or starts a new one.

    Over-grouping is preferred to splitting, since a heading orphaned from
    its list makes a poor citation while a slightly large block is still fine.
    """
    ordered = sorted(lines, key=lambda line: reading_order_key(line, fmt))
    blocks: list[TextBlock] = []
    current = _OpenBlock()
    for line in ordered:
        if current.lines and _continues(current.lines[-1], line, fmt, rules):
            current.lines.append(line)
            continue
        if current.lines:
            blocks.append(current.close(fmt, rules))
        current = _OpenBlock(lines=[line])
    if current.lines:
        blocks.append(current.close(fmt, rules))

    logger.debug("grouped %s lines into %s blocks (%s)", len(ordered), len(blocks), fmt)
    return blocks


def _continues(last: TextLine, line: TextLine, fmt: DocumentFormat, rules: BlockRules) -> bool:
    if line.page != last.page:
        return False
    if abs(line.y - last.y) > rules.block_tolerance:
        return False
    if fmt == "paged":
        return abs(line.x - last.x) <= rules.x_tolerance
    return are_related_lines(last, line)
