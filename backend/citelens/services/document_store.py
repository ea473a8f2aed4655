from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from citelens.core.settings import Settings, get_settings
from citelens.services.extraction import ExtractedDocument, TextSources
from citelens.services.relocate import CitationRelocator, LineIndexCache
from citelens.services.snippets import ExtractionMode
from citelens.services.text_model import Citation, DocumentFormat

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class OpenDocument:
    document_id: str
    filename: str
    format: DocumentFormat
    content: bytes
    extracted: ExtractedDocument
    mode: ExtractionMode
    citations: list[Citation]
    created_at: datetime
    expires_at: datetime
    line_index: LineIndexCache = field(default_factory=LineIndexCache)

    @property
    def page_count(self) -> int:
        return self.extracted.page_count

    @property
    def status(self) -> str:
        return "ready" if self.citations else "empty"

    def find_citation(self, citation_id: str) -> Citation | None:
        return next((c for c in self.citations if c.id == citation_id), None)

    def relocator(self, sources: TextSources, settings: Settings | None = None) -> CitationRelocator:
        return CitationRelocator(
            self.document_id,
            self.format,
            self.content,
            sources,
            self.line_index,
            settings,
        )


class DocumentStore:
    """Holds the one open document. Opening another replaces it and drops its caches."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._current: OpenDocument | None = None

    def new_document_id(self) -> str:
        return uuid.uuid4().hex

    @property
    def current(self) -> OpenDocument | None:
        return self._current

    def open(
        self,
        *,
        filename: str,
        content: bytes,
        extracted: ExtractedDocument,
        mode: ExtractionMode,
        citations: list[Citation],
    ) -> OpenDocument:
        created_at = _now()
        document = OpenDocument(
            document_id=self.new_document_id(),
            filename=filename,
            format=extracted.format,
            content=content,
            extracted=extracted,
            mode=mode,
            citations=citations,
            created_at=created_at,
            expires_at=created_at + timedelta(minutes=self.settings.document_ttl_minutes),
        )
        if self._current is not None:
            logger.info("replacing document %s with %s", self._current.document_id, document.document_id)
            self._discard(self._current)
        self._current = document
        return document

    def get(self, document_id: str) -> OpenDocument | None:
        if self._current is not None and self._current.document_id == document_id:
            return self._current
        return None

    def replace_citations(self, document_id: str, mode: ExtractionMode, citations: list[Citation]) -> OpenDocument:
        document = self.get(document_id)
        if document is None:
            raise KeyError(document_id)
        document.mode = mode
        document.citations = citations
        return document

    def close(self, document_id: str) -> bool:
        document = self.get(document_id)
        if document is None:
            return False
        self._discard(document)
        self._current = None
        return True

    def cleanup_expired(self, now: datetime | None = None) -> list[str]:
        now = now or _now()
        document = self._current
        if document is None or document.expires_at > now:
            return []
        self.close(document.document_id)
        logger.info("document %s expired", document.document_id)
        return [document.document_id]

    def _discard(self, document: OpenDocument) -> None:
        document.line_index.evict(document.document_id)
