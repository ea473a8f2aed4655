from __future__ import annotations

import itertools
import random
import time
from collections.abc import Sequence
from typing import TypeVar

from citelens.services.text_model import Citation, Snippet

T = TypeVar("T")

_citation_counter = itertools.count()


def sample(items: Sequence[T], k: int, rng: random.Random | None = None) -> list[T]:
    """Return ``min(k, len(items))`` distinct items in random order.

    The population is small, so shuffling a copy and taking a prefix is
    simpler than reservoir sampling. ``items`` itself is left untouched.
    """
    if k <= 0:
        return []
    pool = list(items)
    (rng or random).shuffle(pool)
    return pool[:k]


def create_citations(snippets: Sequence[Snippet], prefix: str = "citation") -> list[Citation]:
    created_ms = int(time.time() * 1000)
    citations: list[Citation] = []
    for snippet in snippets:
        index = next(_citation_counter)
        citations.append(
            Citation(
                id=f"{prefix}-{index}-{created_ms}",
                text=snippet.text,
                snippet=snippet,
            )
        )
    return citations
