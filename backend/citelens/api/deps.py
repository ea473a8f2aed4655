from __future__ import annotations

from fastapi import HTTPException, Request

from citelens.core.settings import get_settings
from citelens.services.document_store import DocumentStore, OpenDocument
from citelens.services.extraction import TextSources
from citelens.services.highlight_links import build_highlight_url
from citelens.services.text_model import Citation


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_sources(request: Request) -> TextSources:
    return request.app.state.sources


def require_document(request: Request, document_id: str) -> OpenDocument:
    document = get_store(request).get(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


def require_citation(document: OpenDocument, citation_id: str) -> Citation:
    citation = document.find_citation(citation_id)
    if citation is None:
        raise HTTPException(status_code=404, detail="Citation not found")
    return citation


def citation_link(document: OpenDocument, citation: Citation) -> str:
    settings = get_settings()
    return build_highlight_url(
        f"{settings.api_prefix}/viewer",
        document.document_id,
        citation,
        settings.flow_text_param_limit,
    )
