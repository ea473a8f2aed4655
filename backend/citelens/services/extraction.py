from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass, field
from pathlib import PurePath

import fitz
import mammoth

from citelens.core.settings import Settings, get_settings
from citelens.services.blocks import BlockRules, group_lines_into_blocks
from citelens.services.lines import group_units_into_lines
from citelens.services.text_model import DocumentFormat, PositionedTextUnit, TextBlock, TextLine
from citelens.services.units import RawFragment, normalize_page_fragments, normalize_paragraphs

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: dict[str, DocumentFormat] = {
    ".pdf": "paged",
    ".docx": "flowing",
}


class DocumentReadError(RuntimeError):
    pass


@dataclass(frozen=True)
class FlowText:
    text: str
    messages: list[str] = field(default_factory=list)


@dataclass
class PageLines:
    page_no: int
    page_height: float
    lines: list[TextLine]


@dataclass
class ExtractedDocument:
    format: DocumentFormat
    page_count: int
    units: list[PositionedTextUnit]
    lines: list[TextLine]
    blocks: list[TextBlock]
    warnings: list[str] = field(default_factory=list)


def detect_format(filename: str | None) -> DocumentFormat | None:
    if not filename:
        return None
    return SUPPORTED_EXTENSIONS.get(PurePath(filename).suffix.lower())


class PagedTextSource:
    """PyMuPDF-backed page text source.

    Spans are reported in PDF user space (origin bottom-left) through a
    pdf-style affine transform, so the rest of the pipeline sees true
    document coordinates.
    """

    def __init__(self, *, display_errors: bool = False) -> None:
        self.display_errors = display_errors

    def configure(self) -> None:
        fitz.TOOLS.mupdf_display_errors(self.display_errors)

    def open(self, content: bytes) -> fitz.Document:
        try:
            return fitz.open(stream=content, filetype="pdf")
        except Exception as exc:  # noqa: BLE001
            raise DocumentReadError(f"Invalid PDF: {exc}") from exc

    def page_height(self, doc: fitz.Document, page_no: int) -> float:
        return float(doc[page_no - 1].rect.height)

    def page_fragments(self, doc: fitz.Document, page_no: int) -> list[RawFragment]:
        page = doc[page_no - 1]
        height = float(page.rect.height)
        try:
            page_dict = page.get_text("dict")
        except Exception as exc:  # noqa: BLE001
            raise DocumentReadError(f"Failed to read page {page_no}: {exc}") from exc

        fragments: list[RawFragment] = []
        for block in page_dict.get("blocks", []):
            if block.get("type", -1) != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    x0, _, x1, _ = [float(v) for v in span.get("bbox", (0, 0, 0, 0))]
                    origin_x, origin_y = [float(v) for v in span.get("origin", (x0, 0))]
                    size = float(span.get("size", 0.0))
                    fragments.append(
                        RawFragment(
                            text=span.get("text", ""),
                            width=max(0.0, x1 - x0),
                            height=size,
                            transform=(size, 0.0, 0.0, size, origin_x, height - origin_y),
                        )
                    )
        return fragments


class FlowTextSource:
    def extract(self, content: bytes) -> FlowText:
        try:
            result = mammoth.extract_raw_text(io.BytesIO(content))
        except Exception as exc:  # noqa: BLE001
            raise DocumentReadError(f"Invalid DOCX: {exc}") from exc
        messages = [getattr(message, "message", str(message)) for message in result.messages]
        for message in messages:
            logger.warning("flow source message: %s", message)
        return FlowText(text=result.value or "", messages=messages)


@dataclass
class TextSources:
    paged: PagedTextSource
    flowing: FlowTextSource


def init_text_sources(settings: Settings | None = None) -> TextSources:
    """Build and configure the text sources. The host calls this once at startup."""
    settings = settings or get_settings()
    paged = PagedTextSource(display_errors=settings.pdf_display_errors)
    paged.configure()
    return TextSources(paged=paged, flowing=FlowTextSource())


def block_rules(settings: Settings, fmt: DocumentFormat) -> BlockRules:
    tolerance = settings.paged_block_tolerance if fmt == "paged" else settings.flowing_block_tolerance
    return BlockRules(
        block_tolerance=tolerance,
        x_tolerance=settings.block_x_tolerance,
        heading_font_size=settings.heading_font_size,
    )


def min_line_chars(settings: Settings, fmt: DocumentFormat) -> int:
    return settings.paged_min_line_chars if fmt == "paged" else settings.flowing_min_line_chars


def segment_units(units: list[PositionedTextUnit], fmt: DocumentFormat, settings: Settings) -> tuple[list[TextLine], list[TextBlock]]:
    lines = group_units_into_lines(
        units,
        fmt,
        tolerance=settings.line_tolerance,
        min_chars=min_line_chars(settings, fmt),
    )
    blocks = group_lines_into_blocks(lines, fmt, block_rules(settings, fmt))
    return lines, blocks


async def extract_document(
    content: bytes,
    fmt: DocumentFormat,
    sources: TextSources,
    settings: Settings | None = None,
) -> ExtractedDocument:
    settings = settings or get_settings()
    warnings: list[str] = []
    if fmt == "paged":
        units, page_count = await _extract_paged_units(content, sources.paged)
    else:
        flow = await asyncio.to_thread(sources.flowing.extract, content)
        warnings.extend(flow.messages)
        units = normalize_paragraphs(flow.text, settings)
        page_count = 1

    lines, blocks = segment_units(units, fmt, settings)
    logger.info(
        "extracted %s document: pages=%s units=%s lines=%s blocks=%s",
        fmt,
        page_count,
        len(units),
        len(lines),
        len(blocks),
    )
    return ExtractedDocument(
        format=fmt,
        page_count=page_count,
        units=units,
        lines=lines,
        blocks=blocks,
        warnings=warnings,
    )


async def _extract_paged_units(content: bytes, source: PagedTextSource) -> tuple[list[PositionedTextUnit], int]:
    doc = await asyncio.to_thread(source.open, content)
    try:
        page_count = doc.page_count
        units: list[PositionedTextUnit] = []
        # Pages are awaited one at a time; the result stays page-ordered.
        for page_no in range(1, page_count + 1):
            fragments = await asyncio.to_thread(source.page_fragments, doc, page_no)
            units.extend(normalize_page_fragments(fragments, page_no))
        return units, page_count
    finally:
        doc.close()


async def extract_page_lines(
    content: bytes,
    page_no: int,
    source: PagedTextSource,
    settings: Settings | None = None,
) -> PageLines:
    """Line index for one page, with the looser threshold used for context rows."""
    settings = settings or get_settings()

    def _read() -> tuple[list[RawFragment], float]:
        with source.open(content) as doc:
            if page_no < 1 or page_no > doc.page_count:
                return [], 0.0
            return source.page_fragments(doc, page_no), source.page_height(doc, page_no)

    fragments, height = await asyncio.to_thread(_read)
    units = normalize_page_fragments(fragments, page_no)
    lines = group_units_into_lines(
        units,
        "paged",
        tolerance=settings.line_tolerance,
        min_chars=settings.context_min_line_chars,
    )
    return PageLines(page_no=page_no, page_height=height, lines=lines)


async def extract_flow_text(content: bytes, source: FlowTextSource) -> str:
    flow = await asyncio.to_thread(source.extract, content)
    return flow.text
