from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

DocumentFormat = Literal["paged", "flowing"]
BlockType = Literal["paragraph", "list", "table", "heading", "mixed"]
ListType = Literal["bullet", "numbered", "roman", "alpha"]
SnippetKind = Literal["single-line", "multi-line"]


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def x1(self) -> float:
        return self.x + self.width

    @property
    def y1(self) -> float:
        return self.y + self.height


def union_box(boxes: list[Box]) -> Box:
    if not boxes:
        raise ValueError("union of no boxes")
    x0 = min(b.x for b in boxes)
    y0 = min(b.y for b in boxes)
    x1 = max(b.x1 for b in boxes)
    y1 = max(b.y1 for b in boxes)
    return Box(x=x0, y=y0, width=x1 - x0, height=y1 - y0)


@dataclass(frozen=True)
class PositionedTextUnit:
    text: str
    x: float
    y: float
    width: float
    height: float
    font_size: float | None = None
    page: int = 1
    paragraph_index: int | None = None
    leading_whitespace: int = 0

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class TextLine:
    text: str
    x: float
    y: float
    width: float
    height: float
    page: int
    units: tuple[PositionedTextUnit, ...]
    font_size: float | None = None
    is_list_item: bool = False
    indent_level: int = 0
    list_type: ListType | None = None
    paragraph_index: int | None = None

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class TextBlock:
    lines: tuple[TextLine, ...]
    x: float
    y: float
    width: float
    height: float
    page: int
    block_type: BlockType = "paragraph"

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width, self.height)

    @property
    def paragraph_indices(self) -> tuple[int, ...]:
        return tuple(line.paragraph_index for line in self.lines if line.paragraph_index is not None)


@dataclass(frozen=True)
class SingleLineSnippet:
    format: DocumentFormat
    text: str
    page: int
    x: float
    y: float
    width: float
    height: float
    paragraph_index: int | None = None
    sentence_index: int | None = None
    kind: Literal["single-line"] = "single-line"

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class MultiLineSnippet:
    format: DocumentFormat
    text: str
    page: int
    x: float
    y: float
    width: float
    height: float
    lines: tuple[TextLine, ...]
    block_type: BlockType
    paragraph_indices: tuple[int, ...] = ()
    kind: Literal["multi-line"] = "multi-line"

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width, self.height)


Snippet = Union[SingleLineSnippet, MultiLineSnippet]


@dataclass(frozen=True)
class Citation:
    id: str
    text: str
    snippet: Snippet


@dataclass(frozen=True)
class ContextWindow:
    lines: list[str]
    highlighted_index: int
    found: bool = True


@dataclass(frozen=True)
class SurfaceBox:
    x: float
    y: float
    width: float
    height: float


@dataclass
class Relocation:
    citation_id: str
    format: DocumentFormat
    context: ContextWindow
    page: int | None = None
    region: Box | None = None
    surface_box: SurfaceBox | None = None
