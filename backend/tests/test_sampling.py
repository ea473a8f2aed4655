from __future__ import annotations

import random

from citelens.core.settings import Settings
from citelens.services.extraction import ExtractedDocument, segment_units
from citelens.services.sampling import create_citations, sample
from citelens.services.snippets import (
    block_snippets,
    flow_sentences,
    line_snippets,
    select_citations,
    split_sentences,
)
from citelens.services.text_model import SingleLineSnippet
from citelens.services.units import normalize_paragraphs


def flow_document(text: str) -> ExtractedDocument:
    settings = Settings()
    units = normalize_paragraphs(text, settings)
    lines, blocks = segment_units(units, "flowing", settings)
    return ExtractedDocument(format="flowing", page_count=1, units=units, lines=lines, blocks=blocks)


class TestSample:
    def test_returns_min_k_n_distinct_items(self):
        items = list(range(10))
        for k in (0, 1, 3, 10, 25):
            picked = sample(items, k)
            assert len(picked) == min(k, len(items))
            assert len(set(picked)) == len(picked)
            assert set(picked) <= set(items)

    def test_k_at_least_n_is_permutation(self):
        items = ["a", "b", "c", "d"]
        assert sorted(sample(items, 4)) == items
        assert sorted(sample(items, 99)) == items

    def test_input_is_not_mutated(self):
        items = list(range(20))
        snapshot = list(items)
        sample(items, 5, random.Random(7))
        assert items == snapshot

    def test_negative_k_is_empty(self):
        assert sample([1, 2, 3], -1) == []

    def test_seeded_rng_is_reproducible(self):
        items = list(range(50))
        assert sample(items, 5, random.Random(42)) == sample(items, 5, random.Random(42))


class TestCitations:
    def test_ids_are_unique_across_runs(self):
        snippet = SingleLineSnippet(format="paged", text="some line of text", page=1, x=0, y=0, width=1, height=1)
        first = create_citations([snippet, snippet])
        second = create_citations([snippet])
        ids = [c.id for c in first + second]
        assert len(set(ids)) == 3
        assert all(c.id.startswith("citation-") for c in first)
        assert first[0].text == "some line of text"

    def test_prefix_is_applied(self):
        snippet = SingleLineSnippet(format="paged", text="x" * 20, page=1, x=0, y=0, width=1, height=1)
        (citation,) = create_citations([snippet], prefix="multiline-citation")
        assert citation.id.startswith("multiline-citation-")


class TestFlowSnippets:
    def test_split_sentences(self):
        assert split_sentences("One. Two!! Three?  ") == ["One", "Two", "Three"]
        assert split_sentences("...") == []

    def test_single_line_snippets_are_long_sentences(self):
        doc = flow_document("Short. This sentence is long enough to cite. Also fine to be cited here!")
        snippets = line_snippets(doc)
        assert [s.text for s in snippets] == ["This sentence is long enough to cite", "Also fine to be cited here"]
        assert [s.sentence_index for s in snippets] == [1, 2]
        assert all(s.paragraph_index == 0 and s.format == "flowing" for s in snippets)
        assert snippets[0].width == len(snippets[0].text) * 7

    def test_block_snippets_carry_lines_and_type(self):
        doc = flow_document("Scope of the policy:\n- item one is listed here\n- item two is listed here")
        (snippet,) = block_snippets(doc)
        assert snippet.kind == "multi-line"
        assert snippet.block_type == "list"
        assert snippet.paragraph_indices == (0, 1, 2)
        assert len(snippet.lines) == 3

    def test_context_sentences_use_lower_threshold(self):
        doc = flow_document("Tiny. Longer sentence here.\nNext one")
        sentences = flow_sentences(doc.lines, min_chars=5)
        assert [(s.text, s.paragraph_index, s.sentence_index) for s in sentences] == [
            ("Longer sentence here", 0, 1),
            ("Next one", 1, 0),
        ]

    def test_select_citations_respects_count_and_mode(self):
        doc = flow_document("First sentence is long enough. Second sentence is long enough. Third one is also long.")
        citations = select_citations(doc, "single-line", 2, rng=random.Random(1))
        assert len(citations) == 2
        assert all(c.snippet.kind == "single-line" for c in citations)
        assert select_citations(doc, "multi-line", 5)[0].snippet.kind == "multi-line"

    def test_empty_document_yields_no_citations(self):
        doc = flow_document("   \n\n")
        assert select_citations(doc, "multi-line", 3) == []
