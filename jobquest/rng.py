"""Deterministic random utilities."""

from __future__ import annotations

import random
import threading

from .models import QuestDefinition


class DeterministicRNG:
    """Seeded :mod:`random` wrapper shared by command threads.

    Draws are serialized so a given seed always yields the same sequence of
    rolls regardless of which thread asks.
    """

    def __init__(self, seed: int) -> None:
        self._seed = seed & 0xFFFFFFFF
        # nosec B311 - deterministic pseudo-RNG acceptable for game rewards
        self._random = random.Random(self._seed)
        self._lock = threading.Lock()

    @property
    def seed(self) -> int:
        return self._seed

    def randint(self, a: int, b: int) -> int:
        with self._lock:
            return self._random.randint(a, b)

    def roll_gold(self, quest: QuestDefinition) -> int:
        """Draw a gold reward within the quest's inclusive range."""

        low, high = quest.gold_reward_range
        if low == high:
            return low
        return self.randint(low, high)


__all__ = ["DeterministicRNG"]
