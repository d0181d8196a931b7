"""Agent arena — slot storage addressed by stable integer handles."""

from __future__ import annotations

import heapq
from typing import Iterator

from ecokernel.types import AgentHandle
from ecokernel.world.agent import Agent


class AgentArena:
    """Owns agents in a slot list; handles never get reused.

    Freed slots are recycled lowest-first, so iteration (slot order) is
    deterministic for a given sequence of inserts and removals.
    """

    def __init__(self) -> None:
        self._slots: list[Agent | None] = []
        self._free: list[int] = []
        self._index: dict[AgentHandle, int] = {}

    def insert(self, agent: Agent) -> AgentHandle:
        if self._free:
            slot = heapq.heappop(self._free)
            self._slots[slot] = agent
        else:
            slot = len(self._slots)
            self._slots.append(agent)
        self._index[agent.handle] = slot
        return agent.handle

    def remove(self, handle: AgentHandle) -> Agent | None:
        slot = self._index.pop(handle, None)
        if slot is None:
            return None
        agent = self._slots[slot]
        self._slots[slot] = None
        heapq.heappush(self._free, slot)
        return agent

    def get(self, handle: AgentHandle) -> Agent | None:
        slot = self._index.get(handle)
        return None if slot is None else self._slots[slot]

    def __contains__(self, handle: object) -> bool:
        return handle in self._index

    def __iter__(self) -> Iterator[Agent]:
        return (a for a in self._slots if a is not None)

    def __len__(self) -> int:
        return len(self._index)
