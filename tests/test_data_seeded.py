"""Tests for the seeded random source."""

from __future__ import annotations

import pytest

from mocksandbox.data import SeededRandom, stable_seed


class TestSeededRandom:
    def test_same_seed_same_stream(self) -> None:
        a = SeededRandom(42)
        b = SeededRandom(42)
        assert [a.next_float() for _ in range(10)] == [b.next_float() for _ in range(10)]

    def test_string_seed_is_reproducible(self) -> None:
        assert SeededRandom("GET:/api/todos").alpha(8) == SeededRandom("GET:/api/todos").alpha(8)

    def test_different_seeds_diverge(self) -> None:
        assert SeededRandom(1).alphanumeric(16) != SeededRandom(2).alphanumeric(16)

    def test_index_bounds(self) -> None:
        rng = SeededRandom(3)
        for _ in range(200):
            assert 0 <= rng.index(5) < 5

    def test_branch_index_bounds(self) -> None:
        rng = SeededRandom(3)
        seen = {rng.branch_index(3) for _ in range(200)}
        assert seen <= {0, 1, 2}
        assert len(seen) > 1

    def test_int_between_inclusive(self) -> None:
        rng = SeededRandom(9)
        values = {rng.int_between(1, 3) for _ in range(300)}
        assert values == {1, 2, 3}

    def test_int_between_swaps_reversed_bounds(self) -> None:
        rng = SeededRandom(9)
        assert 1 <= rng.int_between(3, 1) <= 3

    @pytest.mark.parametrize("count", [0, -1])
    def test_index_rejects_empty_range(self, count: int) -> None:
        with pytest.raises(ValueError):
            SeededRandom(1).index(count)

    def test_alpha_is_lowercase_letters(self) -> None:
        value = SeededRandom(5).alpha(20)
        assert len(value) == 20
        assert value.isalpha() and value.islower()

    def test_faker_follows_stream_position(self) -> None:
        a = SeededRandom(11)
        b = SeededRandom(11)
        assert a.faker().email() == b.faker().email()
        assert a.faker().email() == b.faker().email()


class TestStableSeed:
    def test_joins_parts(self) -> None:
        assert stable_seed("GET", "/api/todos") == "GET:/api/todos"

    def test_stringifies_non_strings(self) -> None:
        assert stable_seed("x", 1, None) == "x:1:None"
