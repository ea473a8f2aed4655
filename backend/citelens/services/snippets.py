from __future__ import annotations

import logging
import random
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from citelens.core.settings import Settings, get_settings
from citelens.services.extraction import ExtractedDocument
from citelens.services.sampling import create_citations, sample
from citelens.services.text_model import (
    Citation,
    MultiLineSnippet,
    SingleLineSnippet,
    Snippet,
    TextBlock,
    TextLine,
)

logger = logging.getLogger(__name__)

ExtractionMode = Literal["single-line", "multi-line"]

SENTENCE_BREAK_RE = re.compile(r"[.!?]+")

CITATION_PREFIXES: dict[ExtractionMode, str] = {
    "single-line": "citation",
    "multi-line": "multiline-citation",
}


@dataclass(frozen=True)
class FlowSentence:
    text: str
    paragraph_index: int
    sentence_index: int


def split_sentences(paragraph: str) -> list[str]:
    """Split on runs of terminal punctuation; pieces are trimmed, blanks dropped."""
    return [piece.strip() for piece in SENTENCE_BREAK_RE.split(paragraph) if piece.strip()]


def flow_sentences(lines: Sequence[TextLine], min_chars: int) -> list[FlowSentence]:
    sentences: list[FlowSentence] = []
    for line in lines:
        if line.paragraph_index is None:
            continue
        for index, sentence in enumerate(split_sentences(line.text)):
            if len(sentence) >= min_chars:
                sentences.append(FlowSentence(sentence, line.paragraph_index, index))
    return sentences


def line_snippets(doc: ExtractedDocument, settings: Settings | None = None) -> list[SingleLineSnippet]:
    settings = settings or get_settings()
    if doc.format == "paged":
        return [
            SingleLineSnippet(
                format="paged",
                text=line.text,
                page=line.page,
                x=line.x,
                y=line.y,
                width=line.width,
                height=line.height,
            )
            for line in doc.lines
            if len(line.text) >= settings.min_snippet_chars
        ]

    snippets: list[SingleLineSnippet] = []
    for line in doc.lines:
        sentences = split_sentences(line.text)
        if not sentences and len(line.text) >= settings.min_snippet_chars:
            sentences = [line.text]
        for index, sentence in enumerate(sentences):
            if len(sentence) < settings.min_snippet_chars:
                continue
            snippets.append(
                SingleLineSnippet(
                    format="flowing",
                    text=sentence,
                    page=1,
                    x=0.0,
                    y=line.y,
                    width=min(len(sentence) * settings.flow_char_width, settings.flow_max_width),
                    height=settings.flow_line_height,
                    paragraph_index=line.paragraph_index,
                    sentence_index=index,
                )
            )
    return snippets


def block_snippets(doc: ExtractedDocument, settings: Settings | None = None) -> list[MultiLineSnippet]:
    settings = settings or get_settings()
    return [_block_snippet(block, doc) for block in doc.blocks if len(block.text) >= settings.min_snippet_chars]


def _block_snippet(block: TextBlock, doc: ExtractedDocument) -> MultiLineSnippet:
    return MultiLineSnippet(
        format=doc.format,
        text=block.text,
        page=block.page,
        x=block.x,
        y=block.y,
        width=block.width,
        height=block.height,
        lines=block.lines,
        block_type=block.block_type,
        paragraph_indices=block.paragraph_indices,
    )


def eligible_snippets(doc: ExtractedDocument, mode: ExtractionMode, settings: Settings | None = None) -> list[Snippet]:
    if mode == "single-line":
        return list(line_snippets(doc, settings))
    return list(block_snippets(doc, settings))


def select_citations(
    doc: ExtractedDocument,
    mode: ExtractionMode,
    count: int,
    *,
    settings: Settings | None = None,
    rng: random.Random | None = None,
) -> list[Citation]:
    """One sampling run: eligible snippets for ``mode``, ``count`` of them at random."""
    pool = eligible_snippets(doc, mode, settings)
    chosen = sample(pool, count, rng)
    citations = create_citations(chosen, prefix=CITATION_PREFIXES[mode])
    logger.info(
        "sampled %s of %s %s snippets (%s)",
        len(citations),
        len(pool),
        mode,
        doc.format,
    )
    return citations
