from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, File, Form, HTTPException, Request, Response, UploadFile, status

from citelens.api.deps import citation_link, get_sources, get_store, require_citation, require_document
from citelens.core.settings import get_settings
from citelens.schemas.document import (
    CitationList,
    CreateDocumentResponse,
    DocumentState,
    ErrorResponse,
    ExtractionMode,
    HighlightLinkOut,
    RelocationOut,
    ResampleRequest,
    citation_out,
    relocation_out,
)
from citelens.services.document_store import OpenDocument
from citelens.services.extraction import DocumentReadError, detect_format, extract_document
from citelens.services.overlay import HighlightSurface, rasterize_page
from citelens.services.snippets import select_citations

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


def _citation_list(document: OpenDocument) -> CitationList:
    return CitationList(
        document_id=document.document_id,
        mode=document.mode,
        citations=[citation_out(c, citation_link(document, c)) for c in document.citations],
    )


@router.post("", response_model=CreateDocumentResponse, responses={400: {"model": ErrorResponse}})
async def create_document(
    request: Request,
    file: UploadFile = File(...),
    mode: ExtractionMode | None = Form(default=None),
    count: int | None = Form(default=None, ge=0, le=100),
) -> CreateDocumentResponse:
    settings = get_settings()
    fmt = detect_format(file.filename)
    if fmt is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF and DOCX files are supported")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")

    size_mb = len(content) / (1024 * 1024)
    if size_mb > settings.max_upload_mb:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File exceeds max size of {settings.max_upload_mb}MB",
        )

    try:
        extracted = await extract_document(content, fmt, get_sources(request), settings)
    except DocumentReadError as exc:
        logger.warning("could not read %s: %s", file.filename, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    mode = mode or settings.default_extraction_mode
    citations = select_citations(
        extracted,
        mode,
        settings.citation_count if count is None else count,
        settings=settings,
    )
    document = get_store(request).open(
        filename=file.filename or "",
        content=content,
        extracted=extracted,
        mode=mode,
        citations=citations,
    )
    if not citations:
        logger.info("nothing extracted from %s", file.filename)

    return CreateDocumentResponse(
        document_id=document.document_id,
        filename=document.filename,
        format=document.format,
        page_count=document.page_count,
        status=document.status,
        mode=document.mode,
        line_count=len(extracted.lines),
        block_count=len(extracted.blocks),
        citations=[citation_out(c, citation_link(document, c)) for c in citations],
        warnings=extracted.warnings,
        expires_at=document.expires_at,
    )


@router.get("/{document_id}", response_model=DocumentState, responses={404: {"model": ErrorResponse}})
async def get_document_state(document_id: str, request: Request) -> DocumentState:
    document = require_document(request, document_id)
    return DocumentState(
        document_id=document.document_id,
        filename=document.filename,
        format=document.format,
        page_count=document.page_count,
        status=document.status,
        mode=document.mode,
        citation_count=len(document.citations),
        created_at=document.created_at,
        expires_at=document.expires_at,
    )


@router.get("/{document_id}/citations", response_model=CitationList, responses={404: {"model": ErrorResponse}})
async def list_citations(document_id: str, request: Request) -> CitationList:
    return _citation_list(require_document(request, document_id))


@router.post(
    "/{document_id}/citations/resample",
    response_model=CitationList,
    responses={404: {"model": ErrorResponse}},
)
async def resample_citations(document_id: str, body: ResampleRequest, request: Request) -> CitationList:
    settings = get_settings()
    document = require_document(request, document_id)
    mode = body.mode or document.mode
    count = settings.citation_count if body.count is None else body.count
    citations = select_citations(document.extracted, mode, count, settings=settings)
    get_store(request).replace_citations(document_id, mode, citations)
    return _citation_list(document)


@router.get(
    "/{document_id}/citations/{citation_id}/preview",
    response_model=RelocationOut,
    responses={204: {"description": "Superseded by a newer hover"}, 404: {"model": ErrorResponse}},
)
async def preview_citation(document_id: str, citation_id: str, request: Request):
    document = require_document(request, document_id)
    citation = require_citation(document, citation_id)
    relocator = document.relocator(get_sources(request), get_settings())
    relocation = await request.app.state.debouncer.run(document_id, lambda: relocator.relocate(citation))
    if relocation is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return relocation_out(relocation)


@router.get(
    "/{document_id}/citations/{citation_id}/link",
    response_model=HighlightLinkOut,
    responses={404: {"model": ErrorResponse}},
)
async def get_citation_link(document_id: str, citation_id: str, request: Request) -> HighlightLinkOut:
    document = require_document(request, document_id)
    citation = require_citation(document, citation_id)
    return HighlightLinkOut(citation_id=citation.id, url=citation_link(document, citation))


@router.get(
    "/{document_id}/pages/{page_no}/original.png",
    responses={200: {"content": {"image/png": {}}}, 400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_original_page(document_id: str, page_no: int, request: Request) -> Response:
    document = require_document(request, document_id)
    if document.format != "paged":
        raise HTTPException(status_code=400, detail="Only paged documents can be rendered")
    if page_no < 1 or page_no > document.page_count:
        raise HTTPException(status_code=404, detail="Page not found")
    image = await asyncio.to_thread(rasterize_page, document.content, page_no, get_settings().render_scale)
    return Response(content=HighlightSurface(image).to_png(), media_type="image/png")


@router.delete("/{document_id}", status_code=204, responses={404: {"model": ErrorResponse}})
async def delete_document(document_id: str, request: Request) -> Response:
    if not get_store(request).close(document_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return Response(status_code=204)
