"""Tests for deterministic random number generation."""
from __future__ import annotations

import threading

from jobquest.models import QuestDefinition
from jobquest.rng import DeterministicRNG

RANGED = QuestDefinition(key="r", name="Ranged", xp_reward=10, gold_reward_range=(2, 5))
FIXED = QuestDefinition(key="f", name="Fixed", xp_reward=10, gold_reward_range=(3, 3))


def test_deterministic_rng_reproducibility():
    """DeterministicRNG should produce the same sequence for the same seed."""
    rng1 = DeterministicRNG(42)
    rng2 = DeterministicRNG(42)

    sequence1 = [rng1.randint(0, 100) for _ in range(10)]
    sequence2 = [rng2.randint(0, 100) for _ in range(10)]

    assert sequence1 == sequence2


def test_deterministic_rng_different_seeds():
    rng1 = DeterministicRNG(42)
    rng2 = DeterministicRNG(43)

    assert [rng1.randint(0, 100) for _ in range(10)] != [rng2.randint(0, 100) for _ in range(10)]


def test_deterministic_rng_seed_property():
    """Seed property should return the masked seed value."""
    seed = 0x12345678ABCDEF
    assert DeterministicRNG(seed).seed == (seed & 0xFFFFFFFF)


def test_roll_gold_stays_within_inclusive_range():
    rng = DeterministicRNG(7)
    rolls = {rng.roll_gold(RANGED) for _ in range(200)}

    assert rolls <= {2, 3, 4, 5}
    assert {2, 5} <= rolls


def test_roll_gold_fixed_range_does_not_consume_randomness():
    rng = DeterministicRNG(7)
    reference = DeterministicRNG(7)

    assert rng.roll_gold(FIXED) == 3
    assert rng.randint(0, 1000) == reference.randint(0, 1000)


def test_concurrent_rolls_draw_the_same_multiset():
    """Threads sharing one RNG see exactly the seeded draws, in some order."""
    shared = DeterministicRNG(11)
    expected = sorted(DeterministicRNG(11).randint(0, 10**6) for _ in range(400))
    results = []
    lock = threading.Lock()

    def worker():
        local = [shared.randint(0, 10**6) for _ in range(100)]
        with lock:
            results.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == expected
