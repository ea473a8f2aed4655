from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from citelens.core.settings import Settings, get_settings
from citelens.services.extraction import PageLines, TextSources, extract_flow_text, extract_page_lines
from citelens.services.lines import group_units_into_lines
from citelens.services.overlay import to_surface_box
from citelens.services.snippets import FlowSentence, flow_sentences, split_sentences
from citelens.services.text_model import (
    Box,
    Citation,
    ContextWindow,
    DocumentFormat,
    MultiLineSnippet,
    Relocation,
    TextLine,
)
from citelens.services.units import normalize_paragraphs

logger = logging.getLogger(__name__)

NOT_FOUND_TEXT = "Text not found"
PLACEHOLDER = ""
BOX_MATCH_TOLERANCE = 5.0

WRAPPING_QUOTES_RE = re.compile(r"^[\"']|[\"']$")

CacheKey = tuple[str, int | None]


def not_found() -> ContextWindow:
    return ContextWindow(lines=[NOT_FOUND_TEXT], highlighted_index=0, found=False)


def context_window(before: str | None, target: str, after: str | None) -> ContextWindow:
    if before is None:
        return ContextWindow(lines=[PLACEHOLDER, target, after or PLACEHOLDER], highlighted_index=0)
    return ContextWindow(lines=[before, target, after or PLACEHOLDER], highlighted_index=1)


class LineIndexCache:
    """Per-document memo of derived line indexes.

    Keys are ``(document_id, page)``; flow documents use ``page=None``. A key
    being computed is parked in ``_inflight`` so that overlapping requests
    await the same task instead of extracting twice.
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, Any] = {}
        self._inflight: dict[CacheKey, asyncio.Task] = {}

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def is_computing(self, key: CacheKey) -> bool:
        return key in self._inflight

    async def get_or_compute(self, key: CacheKey, compute: Callable[[], Awaitable[Any]]) -> Any:
        if key in self._entries:
            logger.debug("line index cache hit %s", key)
            return self._entries[key]
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._fill(key, compute))
            self._inflight[key] = task
        else:
            logger.debug("joining in-flight line index for %s", key)
        # A cancelled waiter must not cancel the shared computation.
        return await asyncio.shield(task)

    async def _fill(self, key: CacheKey, compute: Callable[[], Awaitable[Any]]) -> Any:
        me = asyncio.current_task()
        try:
            value = await compute()
            if self._inflight.get(key) is me:
                self._entries[key] = value
            return value
        finally:
            if self._inflight.get(key) is me:
                del self._inflight[key]

    def evict(self, document_id: str) -> int:
        doomed = [key for key in self._entries if key[0] == document_id]
        for key in doomed:
            del self._entries[key]
        for key in [key for key in self._inflight if key[0] == document_id]:
            del self._inflight[key]
        if doomed:
            logger.debug("evicted %s line indexes for %s", len(doomed), document_id)
        return len(doomed)


def find_target_line(lines: Sequence[TextLine], target: Box, tolerance: float = BOX_MATCH_TOLERANCE) -> int:
    """Index of the line matching ``target``: box match first, nearest baseline second."""
    if not lines:
        return -1
    for index, line in enumerate(lines):
        if abs(line.y - target.y) < tolerance and abs(line.box.y1 - target.y1) < tolerance:
            return index
    return min(range(len(lines)), key=lambda i: abs(lines[i].y - target.y))


def paged_context(lines: Sequence[TextLine], target: Box) -> ContextWindow:
    index = find_target_line(lines, target)
    if index < 0:
        return not_found()
    before = lines[index - 1].text if index > 0 else None
    after = lines[index + 1].text if index + 1 < len(lines) else None
    return context_window(before, lines[index].text, after)


def _fold(text: str) -> tuple[str, list[int]]:
    """Case-fold and collapse whitespace, remembering each output char's source offset."""
    chars: list[str] = []
    positions: list[int] = []
    gap: int | None = None
    for offset, ch in enumerate(text):
        if ch.isspace():
            if chars and gap is None:
                gap = offset
            continue
        if gap is not None:
            chars.append(" ")
            positions.append(gap)
            gap = None
        for folded in ch.casefold():
            chars.append(folded)
            positions.append(offset)
    return "".join(chars), positions


def normalize_search_text(text: str) -> str:
    return _fold(WRAPPING_QUOTES_RE.sub("", text))[0]


def find_text_context(lines: Sequence[str], target: str) -> ContextWindow:
    """Split the first line containing ``target`` into before / match / after rows."""
    needle = normalize_search_text(target)
    if not needle:
        return not_found()
    for line in lines:
        haystack, positions = _fold(line)
        start = haystack.find(needle)
        if start < 0:
            continue
        begin = positions[start]
        end = positions[start + len(needle) - 1] + 1
        return ContextWindow(
            lines=[
                line[:begin].strip() or PLACEHOLDER,
                line[begin:end],
                line[end:].strip() or PLACEHOLDER,
            ],
            highlighted_index=1,
        )
    return not_found()


def search_targets(text: str) -> list[str]:
    """Progressively shorter search targets for a flow excerpt.

    Candidate lines are single sentences, so an excerpt spanning several
    paragraphs or sentences is retried with its leading line and sentence.
    """
    targets = [text]
    first_line = next((part for part in text.split("\n") if part.strip()), "")
    if first_line and first_line != text:
        targets.append(first_line)
    sentences = split_sentences(first_line)
    if sentences and sentences[0] not in targets:
        targets.append(sentences[0])
    return targets


def paragraph_context(sentences: Sequence[FlowSentence], paragraph_index: int, sentence_index: int | None = None) -> ContextWindow:
    in_paragraph = [s for s in sentences if s.paragraph_index == paragraph_index]
    if not in_paragraph:
        return not_found()
    target = next((s for s in in_paragraph if s.sentence_index == sentence_index), in_paragraph[0])
    previous = [s for s in sentences if s.paragraph_index == paragraph_index - 1]
    following = [s for s in sentences if s.paragraph_index == paragraph_index + 1]
    return context_window(
        previous[-1].text if previous else None,
        target.text,
        following[0].text if following else None,
    )


class CitationRelocator:
    """Maps citations and highlight queries of one open document back to a region and context."""

    def __init__(
        self,
        document_id: str,
        fmt: DocumentFormat,
        content: bytes,
        sources: TextSources,
        cache: LineIndexCache,
        settings: Settings | None = None,
    ) -> None:
        self.document_id = document_id
        self.format = fmt
        self.content = content
        self.sources = sources
        self.cache = cache
        self.settings = settings or get_settings()

    async def relocate(self, citation: Citation) -> Relocation:
        snippet = citation.snippet
        if snippet.format == "paged":
            anchor = snippet.lines[0].box if isinstance(snippet, MultiLineSnippet) and snippet.lines else snippet.box
            return await self.relocate_paged(citation.id, snippet.page, snippet.box, anchor)
        if isinstance(snippet, MultiLineSnippet):
            paragraph_index = snippet.paragraph_indices[0] if snippet.paragraph_indices else None
            sentence_index = None
        else:
            paragraph_index = snippet.paragraph_index
            sentence_index = snippet.sentence_index
        return await self.relocate_flowing(
            citation.id,
            citation.text[: self.settings.flow_text_param_limit],
            paragraph_index=paragraph_index,
            sentence_index=sentence_index,
        )

    async def relocate_paged(self, citation_id: str, page: int, region: Box, anchor: Box | None = None) -> Relocation:
        index = await self.page_lines(page)
        context = paged_context(index.lines, anchor or region)
        surface_box = None
        if index.page_height > 0:
            scale = self.settings.render_scale
            surface_box = to_surface_box(
                region,
                scale=scale,
                surface_height=index.page_height * scale,
                offset=self.settings.highlight_y_offset,
            )
        if not context.found:
            logger.info("no context line on page %s for %s", page, citation_id)
        return Relocation(
            citation_id=citation_id,
            format="paged",
            context=context,
            page=page,
            region=region,
            surface_box=surface_box,
        )

    async def relocate_flowing(
        self,
        citation_id: str,
        text: str | None,
        *,
        paragraph_index: int | None = None,
        sentence_index: int | None = None,
    ) -> Relocation:
        sentences = await self.flow_index()
        if text and text.strip():
            candidates = [s.text for s in sentences]
            context = not_found()
            for target in search_targets(text):
                context = find_text_context(candidates, target)
                if context.found:
                    break
        elif paragraph_index is not None:
            context = paragraph_context(sentences, paragraph_index, sentence_index)
        else:
            context = not_found()
        if not context.found:
            logger.info("flow search miss for %s", citation_id)
        return Relocation(citation_id=citation_id, format="flowing", context=context)

    async def page_lines(self, page: int) -> PageLines:
        async def compute() -> PageLines:
            return await extract_page_lines(self.content, page, self.sources.paged, self.settings)

        return await self.cache.get_or_compute((self.document_id, page), compute)

    async def flow_index(self) -> list[FlowSentence]:
        async def compute() -> list[FlowSentence]:
            text = await extract_flow_text(self.content, self.sources.flowing)
            units = normalize_paragraphs(text, self.settings)
            lines = group_units_into_lines(units, "flowing", min_chars=self.settings.flowing_min_line_chars)
            return flow_sentences(lines, self.settings.context_min_line_chars)

        return await self.cache.get_or_compute((self.document_id, None), compute)
