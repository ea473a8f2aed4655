from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from citelens.services.snippets import ExtractionMode
from citelens.services.text_model import (
    BlockType,
    Box,
    Citation,
    ContextWindow,
    DocumentFormat,
    ListType,
    MultiLineSnippet,
    Relocation,
    SnippetKind,
    SurfaceBox,
    TextLine,
)

DocumentStatus = Literal["ready", "empty"]


class BoxOut(BaseModel):
    x: float
    y: float
    width: float
    height: float


class LineOut(BaseModel):
    text: str
    x: float
    y: float
    width: float
    height: float
    is_list_item: bool = False
    indent_level: int = 0
    list_type: ListType | None = None


class SnippetOut(BaseModel):
    kind: SnippetKind
    format: DocumentFormat
    text: str
    page: int
    x: float
    y: float
    width: float
    height: float
    block_type: BlockType | None = None
    lines: list[LineOut] = Field(default_factory=list)
    paragraph_index: int | None = None
    sentence_index: int | None = None
    paragraph_indices: list[int] = Field(default_factory=list)


class CitationOut(BaseModel):
    id: str
    text: str
    snippet: SnippetOut
    link: str


class CreateDocumentResponse(BaseModel):
    document_id: str
    filename: str
    format: DocumentFormat
    page_count: int
    status: DocumentStatus
    mode: ExtractionMode
    line_count: int
    block_count: int
    citations: list[CitationOut]
    warnings: list[str] = Field(default_factory=list)
    expires_at: datetime


class DocumentState(BaseModel):
    document_id: str
    filename: str
    format: DocumentFormat
    page_count: int
    status: DocumentStatus
    mode: ExtractionMode
    citation_count: int
    created_at: datetime
    expires_at: datetime


class CitationList(BaseModel):
    document_id: str
    mode: ExtractionMode
    citations: list[CitationOut]


class ResampleRequest(BaseModel):
    mode: ExtractionMode | None = None
    count: int | None = Field(default=None, ge=0, le=100)


class ContextWindowOut(BaseModel):
    lines: list[str]
    highlighted_index: int
    found: bool = True


class RelocationOut(BaseModel):
    citation_id: str
    format: DocumentFormat
    page: int | None = None
    region: BoxOut | None = None
    surface_box: BoxOut | None = None
    context: ContextWindowOut


class HighlightLinkOut(BaseModel):
    citation_id: str
    url: str


class ErrorResponse(BaseModel):
    detail: str


def box_out(box: Box | SurfaceBox | None) -> BoxOut | None:
    if box is None:
        return None
    return BoxOut(x=box.x, y=box.y, width=box.width, height=box.height)


def line_out(line: TextLine) -> LineOut:
    return LineOut(
        text=line.text,
        x=line.x,
        y=line.y,
        width=line.width,
        height=line.height,
        is_list_item=line.is_list_item,
        indent_level=line.indent_level,
        list_type=line.list_type,
    )


def citation_out(citation: Citation, link: str) -> CitationOut:
    snippet = citation.snippet
    fields = dict(
        kind=snippet.kind,
        format=snippet.format,
        text=snippet.text,
        page=snippet.page,
        x=snippet.x,
        y=snippet.y,
        width=snippet.width,
        height=snippet.height,
    )
    if isinstance(snippet, MultiLineSnippet):
        out = SnippetOut(
            **fields,
            block_type=snippet.block_type,
            lines=[line_out(line) for line in snippet.lines],
            paragraph_indices=list(snippet.paragraph_indices),
        )
    else:
        out = SnippetOut(
            **fields,
            paragraph_index=snippet.paragraph_index,
            sentence_index=snippet.sentence_index,
        )
    return CitationOut(id=citation.id, text=citation.text, snippet=out, link=link)


def context_out(context: ContextWindow) -> ContextWindowOut:
    return ContextWindowOut(lines=list(context.lines), highlighted_index=context.highlighted_index, found=context.found)


def relocation_out(relocation: Relocation) -> RelocationOut:
    return RelocationOut(
        citation_id=relocation.citation_id,
        format=relocation.format,
        page=relocation.page,
        region=box_out(relocation.region),
        surface_box=box_out(relocation.surface_box),
        context=context_out(relocation.context),
    )
