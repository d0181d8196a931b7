"""Concept sources — where new concepts come from.

``SimulatedConceptSource`` draws from a fixed vocabulary and needs no
network. ``WebConceptSource`` scrapes result titles from an HTML search
endpoint with httpx.
"""

from __future__ import annotations

import html
import logging
import re
import time
from abc import ABC, abstractmethod

import httpx
import numpy as np
from pydantic import BaseModel, Field

from ecokernel.exceptions import ConceptSourceError
from ecokernel.types import make_rng

_logger = logging.getLogger(__name__)

_STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been",
    "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "shall", "can",
    "this", "that", "these", "those", "it", "its", "with", "for",
    "from", "into", "onto", "about", "above", "below", "between",
})

_RESULT_TITLE = re.compile(r'<a[^>]*class="[^"]*result__a[^"]*"[^>]*>(.*?)</a>', re.S)
_HREF = re.compile(r'href="([^"]*)"')
_TAG = re.compile(r"<[^>]+>")


class Concept(BaseModel):
    """A unit of discovered knowledge."""

    term: str
    definition: str = ""
    source_url: str = ""
    importance: float = 1.0
    discovery_time: float = Field(default_factory=time.time)
    access_count: int = 0

    @property
    def score(self) -> float:
        return self.importance * (1.0 + self.access_count * 0.1)


def extract_terms(text: str) -> list[str]:
    """Lowercased alphanumeric words of 3-30 chars, minus stop words, sorted and unique."""
    terms = set()
    for word in text.split():
        clean = "".join(c for c in word if c.isalnum()).lower()
        if 3 <= len(clean) <= 30 and clean not in _STOP_WORDS:
            terms.add(clean)
    return sorted(terms)


class ConceptSource(ABC):
    """Abstract concept source."""

    @abstractmethod
    async def fetch(self, query: str) -> list[Concept]:
        """Return candidate concepts for ``query``."""
        ...


class SimulatedConceptSource(ConceptSource):
    """Offline source drawing 3-7 terms from a fixed vocabulary."""

    TERMS: tuple[str, ...] = (
        "neural architecture", "deep learning", "gradient descent",
        "backpropagation", "attention mechanism", "transformer model",
        "convolutional network", "recurrent network", "generative model",
        "reinforcement learning", "policy gradient", "value function",
        "embedding space", "latent representation", "feature extraction",
        "batch normalization", "dropout regularization", "weight decay",
    )

    def __init__(self, seed: int | np.random.Generator | None = None):
        self._rng = make_rng(seed)

    async def fetch(self, query: str) -> list[Concept]:
        rng = self._rng
        count = int(rng.integers(3, 8))
        concepts = []
        for _ in range(count):
            term = self.TERMS[int(rng.integers(0, len(self.TERMS)))]
            concepts.append(Concept(
                term=term,
                definition=f"Simulated concept: {term}",
                importance=float(rng.uniform(0.3, 1.0)),
            ))
        return concepts


class WebConceptSource(ConceptSource):
    """Scrapes the first result titles of an HTML search page."""

    def __init__(
        self,
        search_url: str = "https://html.duckduckgo.com/html/",
        timeout: float = 10.0,
        max_results: int = 5,
        terms_per_result: int = 3,
    ):
        self.search_url = search_url
        self._timeout = timeout
        self.max_results = max_results
        self.terms_per_result = terms_per_result

    async def fetch(self, query: str) -> list[Concept]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(
                    self.search_url,
                    params={"q": query},
                    headers={"User-Agent": "Mozilla/5.0"},
                )
                resp.raise_for_status()
                body = resp.text
        except httpx.HTTPError as e:
            raise ConceptSourceError(f"Concept search failed for '{query}': {e}") from e

        return self.parse(body)

    def parse(self, body: str) -> list[Concept]:
        concepts: list[Concept] = []
        for rank, match in enumerate(_RESULT_TITLE.finditer(body)):
            if rank >= self.max_results:
                break
            anchor = match.group(0)
            title = html.unescape(_TAG.sub("", match.group(1))).strip()
            href = _HREF.search(anchor)
            for term in extract_terms(title)[: self.terms_per_result]:
                concepts.append(Concept(
                    term=term,
                    definition=title,
                    source_url=html.unescape(href.group(1)) if href else "",
                    importance=1.0 - rank * 0.1,
                ))
        _logger.debug("Parsed %d concepts from search results", len(concepts))
        return concepts
