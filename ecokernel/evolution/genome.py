"""Genome — an ordered, bounded list of concept tags."""

from __future__ import annotations

from dataclasses import dataclass, field

MAX_CONCEPTS = 10


@dataclass
class Genome:
    concepts: list[str] = field(default_factory=list)
    max_concepts: int = MAX_CONCEPTS

    def __post_init__(self) -> None:
        self.concepts = list(self.concepts)[: self.max_concepts]

    def add_concept(self, concept: str) -> bool:
        """Append a tag. False when the genome is already full."""
        if len(self.concepts) >= self.max_concepts:
            return False
        self.concepts.append(concept)
        return True

    def copy(self) -> Genome:
        return Genome(list(self.concepts), self.max_concepts)

    @property
    def is_full(self) -> bool:
        return len(self.concepts) >= self.max_concepts

    def __len__(self) -> int:
        return len(self.concepts)
