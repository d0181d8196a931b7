"""Concept Searcher — keeps the table of everything discovered so far."""

from __future__ import annotations

import logging

from ecokernel.concepts.sources import Concept, ConceptSource, SimulatedConceptSource

_logger = logging.getLogger(__name__)


class ConceptSearcher:
    """Deduplicating front for a concept source."""

    def __init__(
        self,
        source: ConceptSource | None = None,
        keywords: list[str] | None = None,
    ):
        self.source = source or SimulatedConceptSource()
        self.base_keywords = keywords or ["AI", "neural network", "machine learning"]
        self.total_searches = 0
        self._concepts: dict[str, Concept] = {}

    async def search(self, query: str | None = None) -> list[Concept]:
        """Fetch from the source and keep only terms not seen before."""
        self.total_searches += 1
        if query is None:
            query = self.base_keywords[(self.total_searches - 1) % len(self.base_keywords)]

        found: list[Concept] = []
        for concept in await self.source.fetch(query):
            if concept.term in self._concepts:
                continue
            self._concepts[concept.term] = concept
            found.append(concept)
        _logger.info("Search '%s' discovered %d new concepts", query, len(found))
        return found

    def get_concept(self, term: str) -> Concept | None:
        concept = self._concepts.get(term)
        if concept is not None:
            concept.access_count += 1
        return concept

    def top_concepts(self, n: int) -> list[Concept]:
        return sorted(self._concepts.values(), key=lambda c: c.score, reverse=True)[:n]

    @property
    def count(self) -> int:
        return len(self._concepts)
