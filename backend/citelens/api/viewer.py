from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, Response

from citelens.api.deps import get_sources, require_document
from citelens.core.settings import get_settings
from citelens.schemas.document import ErrorResponse, RelocationOut, relocation_out
from citelens.services.document_store import OpenDocument
from citelens.services.highlight_links import (
    FlowingHighlightQuery,
    HighlightQuery,
    PagedHighlightQuery,
    parse_highlight_query,
)
from citelens.services.overlay import HighlightStyle, to_surface_box
from citelens.services.text_model import Box

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/viewer", tags=["viewer"])


def _decode(request: Request) -> tuple[HighlightQuery, OpenDocument]:
    try:
        query = parse_highlight_query(request.query_params, get_settings().flow_text_param_limit)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    document = require_document(request, query.file)
    if query.format != document.format:
        raise HTTPException(status_code=400, detail=f"Highlight query is {query.format}, document is {document.format}")
    if isinstance(query, PagedHighlightQuery) and query.page > document.page_count:
        raise HTTPException(status_code=404, detail="Page not found")
    return query, document


@router.get(
    "",
    response_model=RelocationOut,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def view_highlight(request: Request) -> RelocationOut:
    query, document = _decode(request)
    relocator = document.relocator(get_sources(request), get_settings())
    if isinstance(query, FlowingHighlightQuery):
        relocation = await relocator.relocate_flowing(query.citation_id, query.text)
    else:
        anchor = None
        if query.lines:
            first = query.lines[0]
            anchor = Box(first.x, first.y, first.width, first.height)
        relocation = await relocator.relocate_paged(query.citation_id, query.page, query.box, anchor)
    return relocation_out(relocation)


@router.get(
    "/page.png",
    responses={
        200: {"content": {"image/png": {}}},
        204: {"description": "Superseded by a newer render"},
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def view_highlight_page(request: Request) -> Response:
    settings = get_settings()
    query, document = _decode(request)
    if not isinstance(query, PagedHighlightQuery):
        raise HTTPException(status_code=400, detail="Only paged highlights can be rendered")

    surface = await request.app.state.renderer.render(
        document.document_id,
        document.content,
        query.page,
        settings.render_scale,
    )
    if surface is None:
        return Response(status_code=204)

    box = to_surface_box(
        query.box,
        scale=settings.render_scale,
        surface_height=surface.height,
        offset=settings.highlight_y_offset,
    )
    if not surface.draw_highlight(box, HighlightStyle()):
        logger.info("empty highlight box on page %s of %s", query.page, document.document_id)
    return Response(content=surface.to_png(), media_type="image/png")
