from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal, Union, get_args
from urllib.parse import urlencode

import orjson

from citelens.services.text_model import BlockType, Box, Citation, MultiLineSnippet

BLOCK_TYPES = frozenset(get_args(BlockType))
GEOMETRY_FIELDS = ("x", "y", "width", "height")


@dataclass(frozen=True)
class LineRef:
    text: str
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class PagedHighlightQuery:
    file: str
    page: int
    x: float
    y: float
    width: float
    height: float
    block_type: BlockType | None = None
    lines: tuple[LineRef, ...] = ()
    citation_id: str = ""
    format: Literal["paged"] = "paged"

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class FlowingHighlightQuery:
    file: str
    text: str
    block_type: BlockType | None = None
    multiline: bool = False
    citation_id: str = ""
    format: Literal["flowing"] = "flowing"


HighlightQuery = Union[PagedHighlightQuery, FlowingHighlightQuery]


def _num(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


def highlight_params(file_locator: str, citation: Citation, text_limit: int = 1000) -> dict[str, str]:
    snippet = citation.snippet
    multi = isinstance(snippet, MultiLineSnippet)
    params: dict[str, str] = {"file": file_locator, "citation": citation.id}
    if snippet.format == "paged":
        params["page"] = str(snippet.page)
        params.update({name: _num(getattr(snippet, name)) for name in GEOMETRY_FIELDS})
        if multi:
            params["type"] = snippet.block_type
            params["lines"] = orjson.dumps(
                [
                    {"text": line.text, "x": line.x, "y": line.y, "width": line.width, "height": line.height}
                    for line in snippet.lines
                ]
            ).decode("utf-8")
        return params

    # Raw text rides in the URL, so it is capped.
    params["text"] = citation.text[:text_limit]
    if multi:
        params["type"] = snippet.block_type
        params["multiline"] = "true"
    return params


def build_highlight_url(base_url: str, file_locator: str, citation: Citation, text_limit: int = 1000) -> str:
    return f"{base_url}?{urlencode(highlight_params(file_locator, citation, text_limit))}"


def parse_highlight_query(params: Mapping[str, str], text_limit: int = 1000) -> HighlightQuery:
    """Decode either highlight shape. Raises ``ValueError`` when neither is complete."""
    file_locator = (params.get("file") or "").strip()
    if not file_locator:
        raise ValueError("Missing file locator")
    block_type = _block_type(params.get("type"))
    citation_id = params.get("citation") or ""

    text = params.get("text")
    if text is not None:
        if not text.strip():
            raise ValueError("Empty highlight text")
        return FlowingHighlightQuery(
            file=file_locator,
            text=text[:text_limit],
            block_type=block_type,
            multiline=(params.get("multiline") or "").lower() in {"1", "true", "yes"},
            citation_id=citation_id,
        )

    missing = [name for name in ("page", *GEOMETRY_FIELDS) if params.get(name) in (None, "")]
    if missing:
        raise ValueError(f"Incomplete highlight query, missing: {', '.join(missing)}")
    try:
        page = int(params["page"])
        x, y, width, height = (float(params[name]) for name in GEOMETRY_FIELDS)
    except ValueError as exc:
        raise ValueError(f"Malformed highlight geometry: {exc}") from exc
    if page < 1:
        raise ValueError("Page numbers start at 1")
    return PagedHighlightQuery(
        file=file_locator,
        page=page,
        x=x,
        y=y,
        width=width,
        height=height,
        block_type=block_type,
        lines=_line_refs(params.get("lines")),
        citation_id=citation_id,
    )


def _block_type(raw: str | None) -> BlockType | None:
    if not raw:
        return None
    if raw not in BLOCK_TYPES:
        raise ValueError(f"Unknown block type: {raw}")
    return raw  # type: ignore[return-value]


def _line_refs(raw: str | None) -> tuple[LineRef, ...]:
    if not raw:
        return ()
    try:
        items = orjson.loads(raw)
        return tuple(
            LineRef(
                text=str(item.get("text", "")),
                x=float(item["x"]),
                y=float(item["y"]),
                width=float(item["width"]),
                height=float(item["height"]),
            )
            for item in items
        )
    except (orjson.JSONDecodeError, KeyError, TypeError, AttributeError, ValueError) as exc:
        raise ValueError(f"Malformed lines payload: {exc}") from exc
