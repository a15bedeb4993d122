"""Tests for the seeded random source and per-cell hashing."""

import pytest

from worldgen.rng import (
    SeededRNG,
    cell_random,
    cell_random_grid,
    hash_label,
    pick_weighted,
)


class TestSeededRNG:
    """Tests for the sequential generator."""

    def test_same_seed_same_sequence(self) -> None:
        """Identical seeds produce identical draws."""
        a = SeededRNG(12345)
        b = SeededRNG(12345)
        assert [a.next_u32() for _ in range(100)] == [b.next_u32() for _ in range(100)]

    def test_different_seed_different_sequence(self) -> None:
        """Different seeds diverge immediately."""
        a = SeededRNG(1)
        b = SeededRNG(2)
        assert [a.next_u32() for _ in range(10)] != [b.next_u32() for _ in range(10)]

    def test_seed_reduced_to_32_bits(self) -> None:
        """Seeds differing only above bit 32 are the same stream."""
        assert SeededRNG(7).state == SeededRNG(7 + 2**32).state
        assert SeededRNG(-1).seed == 0xFFFFFFFF

    def test_zero_seed_has_nonzero_state(self) -> None:
        """Seed 0 still yields a usable generator."""
        rng = SeededRNG(0)
        assert any(rng.state)
        assert len({rng.next_u32() for _ in range(20)}) > 1

    def test_next_float_range(self) -> None:
        """Floats lie in [0, 1)."""
        rng = SeededRNG(99)
        values = [rng.next_float() for _ in range(2000)]
        assert min(values) >= 0.0
        assert max(values) < 1.0

    def test_next_int_inclusive_bounds(self) -> None:
        """Both ends of the integer range are reachable."""
        rng = SeededRNG(3)
        values = {rng.next_int(2, 5) for _ in range(500)}
        assert values == {2, 3, 4, 5}

    def test_next_int_single_value(self) -> None:
        """A degenerate range always returns its only value."""
        rng = SeededRNG(3)
        assert all(rng.next_int(7, 7) == 7 for _ in range(20))

    def test_next_bool_extremes(self) -> None:
        """p=0 is never true and p=1 is always true."""
        rng = SeededRNG(5)
        assert not any(rng.next_bool(0.0) for _ in range(100))
        assert all(rng.next_bool(1.0) for _ in range(100))

    def test_next_range_bounds(self) -> None:
        """Ranged floats stay inside [lo, hi)."""
        rng = SeededRNG(11)
        values = [rng.next_range(-2.0, 3.0) for _ in range(500)]
        assert min(values) >= -2.0
        assert max(values) < 3.0

    def test_pick_empty_raises(self) -> None:
        """Picking from nothing is an error."""
        with pytest.raises(ValueError):
            SeededRNG(1).pick([])

    def test_shuffle_is_permutation(self) -> None:
        """Shuffling keeps every element exactly once."""
        items = list(range(50))
        shuffled = SeededRNG(8).shuffle(list(items))
        assert sorted(shuffled) == items
        assert shuffled != items

    def test_shuffle_deterministic(self) -> None:
        """Same seed, same order."""
        a = SeededRNG(8).shuffle(list(range(20)))
        b = SeededRNG(8).shuffle(list(range(20)))
        assert a == b

    def test_weighted_pick_respects_zero_weight(self) -> None:
        """Zero-weight items are never chosen."""
        rng = SeededRNG(21)
        picks = {rng.weighted_pick(["a", "b", "c"], [1.0, 0.0, 1.0]) for _ in range(200)}
        assert "b" not in picks


class TestFork:
    """Tests for deriving child streams."""

    def test_fork_consumes_no_draws(self) -> None:
        """Forking leaves the parent state untouched."""
        rng = SeededRNG(12345)
        before = rng.state
        rng.fork("heightmap")
        rng.fork("tectonics")
        assert rng.state == before

    def test_fork_deterministic(self) -> None:
        """The same label gives the same child stream."""
        a = SeededRNG(10).fork("rivers")
        b = SeededRNG(10).fork("rivers")
        assert a.next_u32() == b.next_u32()

    def test_fork_labels_independent(self) -> None:
        """Different labels give different streams."""
        rng = SeededRNG(10)
        a = rng.fork("flora")
        b = rng.fork("fauna")
        assert [a.next_u32() for _ in range(5)] != [b.next_u32() for _ in range(5)]

    def test_fork_independent_of_parent_position(self) -> None:
        """A child depends on the seed only, not on draws already made."""
        fresh = SeededRNG(10).fork("climate")
        used = SeededRNG(10)
        for _ in range(17):
            used.next_u32()
        assert used.fork("climate").state == fresh.state


class TestHashing:
    """Tests for label hashing and per-cell randomness."""

    def test_hash_label_known_values(self) -> None:
        """31-multiplier hash of short strings."""
        assert hash_label("") == 0
        assert hash_label("a") == 97
        assert hash_label("ab") == 97 * 31 + 98

    def test_hash_label_stays_32_bit(self) -> None:
        """Long labels wrap into 32 bits."""
        assert 0 <= hash_label("x" * 200) <= 0xFFFFFFFF

    def test_cell_random_range(self) -> None:
        """Per-cell values lie in [0, 1)."""
        values = [cell_random(1, "flora", x, y) for x in range(20) for y in range(20)]
        assert min(values) >= 0.0
        assert max(values) < 1.0

    def test_cell_random_keys(self) -> None:
        """Changing any key component changes the value."""
        base = cell_random(1, "flora", 3, 4)
        assert base == cell_random(1, "flora", 3, 4)
        assert base != cell_random(2, "flora", 3, 4)
        assert base != cell_random(1, "fauna", 3, 4)
        assert base != cell_random(1, "flora", 4, 3)
        assert base != cell_random(1, "flora", 3, 4, salt=1)

    def test_grid_matches_scalar(self) -> None:
        """The vectorized grid reproduces the scalar hash cell by cell."""
        grid = cell_random_grid(77, "fauna", 9, 6, salt=2)
        assert grid.shape == (6, 9)
        for y in range(6):
            for x in range(9):
                assert grid[y, x] == cell_random(77, "fauna", x, y, salt=2)


class TestPickWeighted:
    """Tests for cumulative-weight selection."""

    def test_roll_selects_by_cumulative_weight(self) -> None:
        """Low rolls land on the first item, high rolls on later ones."""
        assert pick_weighted(["a", "b"], [1.0, 3.0], 0.1) == "a"
        assert pick_weighted(["a", "b"], [1.0, 3.0], 0.5) == "b"
        assert pick_weighted(["a", "b"], [1.0, 3.0], 0.999) == "b"

    def test_empty_raises(self) -> None:
        """Empty input is an error."""
        with pytest.raises(ValueError):
            pick_weighted([], [], 0.5)

    def test_length_mismatch_raises(self) -> None:
        """Weights must match items."""
        with pytest.raises(ValueError):
            pick_weighted(["a", "b"], [1.0], 0.5)
