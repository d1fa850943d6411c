"""Deterministic pseudo-random primitives.

A SeededRandom owns exactly one random stream. Everything drawn from it
(floats, indices, strings, Faker seeds) advances that same stream, so the
sequence of values depends only on the seed and the order of calls.

Example:
    >>> rng = SeededRandom(42)
    >>> a = [rng.next_float() for _ in range(3)]
    >>> rng = SeededRandom(42)
    >>> a == [rng.next_float() for _ in range(3)]
    True
"""

from __future__ import annotations

import math
import random
import string
from typing import Any, Sequence, TypeVar

from faker import Faker

T = TypeVar("T")

# Multiplier used for branch selection in oneOf/anyOf.
LARGE_PRIME = 9973


class SeededRandom:
    """Single-stream seeded random source.

    Args:
        seed: Any int or str. None draws a fresh, non-reproducible seed.
    """

    def __init__(self, seed: int | str | None = None) -> None:
        self.seed = seed
        self._random = random.Random(seed)
        self._faker: Faker | None = None

    def next_float(self) -> float:
        """Next float in [0, 1)."""
        return self._random.random()

    def index(self, count: int) -> int:
        """Uniform index in [0, count)."""
        if count <= 0:
            raise ValueError("count must be positive")
        return min(int(self.next_float() * count), count - 1)

    def branch_index(self, count: int) -> int:
        """Index used to pick a oneOf/anyOf branch."""
        if count <= 0:
            raise ValueError("count must be positive")
        return int(math.floor((self.next_float() * LARGE_PRIME) % count))

    def choice(self, items: Sequence[T]) -> T:
        return items[self.index(len(items))]

    def int_between(self, low: int, high: int) -> int:
        """Uniform integer in [low, high]."""
        if high < low:
            low, high = high, low
        return low + int(math.floor(self.next_float() * (high - low + 1)))

    def alpha(self, length: int) -> str:
        """Lower-case alphabetic string."""
        letters = string.ascii_lowercase
        return "".join(letters[self.index(len(letters))] for _ in range(length))

    def alphanumeric(self, length: int) -> str:
        chars = string.ascii_lowercase + string.digits
        return "".join(chars[self.index(len(chars))] for _ in range(length))

    def derive_seed(self) -> int:
        """Draw one value from the stream and turn it into a 32-bit seed."""
        return int(self.next_float() * 2**32)

    def faker(self) -> Faker:
        """A Faker instance re-seeded from this stream.

        Each call consumes one draw, so Faker output stays tied to the
        position in the stream.
        """
        if self._faker is None:
            self._faker = Faker()
        self._faker.seed_instance(self.derive_seed())
        return self._faker

    def __repr__(self) -> str:
        return f"SeededRandom(seed={self.seed!r})"


def stable_seed(*parts: Any) -> str:
    """Build a seed string from arbitrary parts (endpoint keys, names, ...)."""
    return ":".join(str(p) for p in parts)
