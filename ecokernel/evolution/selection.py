"""Selection Engine — fitness scoring, crossover and mutation of genomes.

The engine never touches anything but genomes: ranking a population is
pure, and ``evolve`` only rewrites the genomes of the weaker half.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from ecokernel.evolution.genome import MAX_CONCEPTS, Genome
from ecokernel.types import make_rng
from ecokernel.world.agent import Agent

_logger = logging.getLogger(__name__)


class SelectionEngine:
    """Genetic operators over agent genomes.

    Usage:
        engine = SelectionEngine(seed=42)
        engine.evolve(world.agents())
    """

    def __init__(
        self,
        mutation_rate: float = 0.1,
        crossover_rate: float = 0.7,
        fitness_threshold: float = 0.5,
        seed: int | np.random.Generator | None = None,
    ):
        self.mutation_rate = mutation_rate
        self.crossover_rate = crossover_rate
        self.fitness_threshold = fitness_threshold
        self.generations = 0
        self._rng = make_rng(seed)

    def fitness(self, agent: Agent) -> float:
        visual, auditory, tactile = agent.sensors.perception()
        emo = agent.emotion
        balance = 1.0 - (abs(emo.valence) + abs(emo.arousal) + abs(emo.dominance)) / 3.0
        return (
            0.3 * agent.energy
            + 0.1 * len(agent.genome)
            + 0.2 * agent.resonance
            + 0.1 * (visual + auditory + tactile)
            + 0.3 * balance
        )

    def combine(self, first: Genome, second: Genome) -> Genome:
        """Crossover: sample tags with replacement from both parents."""
        pool = first.concepts + second.concepts
        child = Genome(max_concepts=first.max_concepts or MAX_CONCEPTS)
        count = min(len(pool) // 2, child.max_concepts)
        if count:
            for i in self._rng.integers(0, len(pool), size=count):
                child.add_concept(pool[int(i)])
        return child

    def mutate(self, genome: Genome) -> None:
        """Three independent chances: add, drop, rename one tag."""
        rng = self._rng
        if rng.random() < self.mutation_rate and not genome.is_full:
            genome.add_concept(f"mutated_{int(rng.integers(0, 2**32))}")

        if rng.random() < self.mutation_rate and genome.concepts:
            genome.concepts.pop(int(rng.integers(0, len(genome.concepts))))

        if rng.random() < self.mutation_rate and genome.concepts:
            idx = int(rng.integers(0, len(genome.concepts)))
            genome.concepts[idx] = f"{genome.concepts[idx]}_mut"

    def rank(self, population: Sequence[Agent]) -> list[tuple[Agent, float]]:
        scored = [(agent, self.fitness(agent)) for agent in population]
        scored.sort(key=lambda s: s[1], reverse=True)
        return scored

    def evolve(self, population: Sequence[Agent]) -> None:
        """Keep the fitter half, breed replacement genomes for the rest."""
        if not population:
            return
        ranked = [agent for agent, _ in self.rank(population)]
        top_count = max(len(ranked) // 2, 1)
        parents = ranked[:top_count]
        rng = self._rng

        parent_genomes = [p.genome for p in parents]
        for agent in ranked[top_count:]:
            first = parent_genomes[int(rng.integers(0, top_count))]
            second = parent_genomes[int(rng.integers(0, top_count))]
            if rng.random() < self.crossover_rate:
                child = self.combine(first, second)
            else:
                child = first.copy()
            self.mutate(child)
            agent.genome = child

        self.generations += 1
        _logger.debug(
            "Generation %d: kept %d, bred %d", self.generations, top_count, len(ranked) - top_count,
        )

    def select_fit(self, population: Sequence[Agent]) -> list[Agent]:
        return [a for a in population if self.fitness(a) >= self.fitness_threshold]
