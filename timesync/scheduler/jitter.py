"""Deterministic per-device jitter.

Offsets are drawn from ``random.Random`` seeded with the device seed and a
caller supplied context, so a device reproduces the same offsets for the same
listener and slot across restarts while different devices spread out.
"""
import random
from typing import Any


def random_in_range(seed: int, lo: int, hi: int, context: Any = None) -> int:
    """Return a value uniformly distributed over ``[lo, hi]``.

    Args:
        seed: Device seed
        lo: Lower bound (inclusive, may be negative)
        hi: Upper bound (inclusive)
        context: Extra input mixed into the seed (listener name, slot time...)

    Returns:
        Deterministic offset for ``(seed, lo, hi, context)``
    """
    if lo > hi:
        raise ValueError(f"Empty range: lo={lo} > hi={hi}")
    if lo == hi:
        return lo

    if context is None:
        rng = random.Random(seed)
    else:
        rng = random.Random(f"{seed}:{context}")
    return rng.randint(lo, hi)


class JitterGenerator:
    """Binds a device seed for repeated draws."""

    def __init__(self, seed: int):
        self.seed = seed

    def offset(self, range_ms: int, context: Any = None) -> int:
        """Symmetric offset within ``range_ms / 2`` of zero."""
        half = range_ms // 2
        return random_in_range(self.seed, -half, half, context)

    def random_in_range(self, lo: int, hi: int, context: Any = None) -> int:
        return random_in_range(self.seed, lo, hi, context)
