"""Seeded random source used by every generation stage.

The sequential generator is xoshiro128** (period 2^128 - 1) with its state
initialised by splitmix32. All arithmetic is done on Python ints masked to
32 bits, so the stream is identical on every platform.

Stages that need per-cell randomness independent of iteration order use
``cell_random`` / ``cell_random_grid`` instead, which hash
(seed, stage, x, y, salt) through splitmix64.
"""

from collections.abc import MutableSequence, Sequence
from typing import TypeVar

import numpy as np
from numpy.typing import NDArray

T = TypeVar("T")

MASK32 = 0xFFFFFFFF
MASK64 = 0xFFFFFFFFFFFFFFFF

_GOLDEN32 = 0x9E3779B9
_GOLDEN64 = 0x9E3779B97F4A7C15
_MIX64_A = 0xBF58476D1CE4E5B9
_MIX64_B = 0x94D049BB133111EB


def hash_label(label: str) -> int:
    """Hash a string into an unsigned 32-bit integer (31-multiplier hash)."""
    h = 0
    for ch in label:
        h = (h * 31 + ord(ch)) & MASK32
    return h


def _rotl32(x: int, k: int) -> int:
    return ((x << k) | (x >> (32 - k))) & MASK32


def _splitmix32(seed: int):
    state = seed & MASK32

    def step() -> int:
        nonlocal state
        state = (state + _GOLDEN32) & MASK32
        t = state ^ (state >> 16)
        t = (t * 0x21F0AAAD) & MASK32
        t ^= t >> 15
        t = (t * 0x735A2D97) & MASK32
        t ^= t >> 15
        return t

    return step


def pick_weighted(items: Sequence[T], weights: Sequence[float], roll: float) -> T:
    """Choose an element from a uniform roll in [0, 1) by cumulative weight.

    Raises:
        ValueError: If items is empty or lengths differ.
    """
    if not items:
        raise ValueError("cannot pick from an empty sequence")
    if len(items) != len(weights):
        raise ValueError("items and weights must have the same length")

    remaining = roll * sum(weights)
    for item, weight in zip(items, weights):
        remaining -= weight
        if remaining <= 0:
            return item
    # Floating point leftovers land on the last item
    return items[-1]


class SeededRNG:
    """Deterministic xoshiro128** random source.

    Same seed and same call sequence always give the same outputs. Seeds are
    reduced to 32 bits.
    """

    def __init__(self, seed: int):
        self._seed = seed & MASK32
        init = _splitmix32(self._seed)
        self._s0 = init()
        self._s1 = init()
        self._s2 = init()
        self._s3 = init()
        if (self._s0 | self._s1 | self._s2 | self._s3) == 0:
            self._s0 = 1

    @property
    def seed(self) -> int:
        """The 32-bit seed this source was built from."""
        return self._seed

    @property
    def state(self) -> tuple[int, int, int, int]:
        """Current generator state words."""
        return (self._s0, self._s1, self._s2, self._s3)

    def next_u32(self) -> int:
        """Advance the generator and return a raw 32-bit output."""
        s0, s1, s2, s3 = self._s0, self._s1, self._s2, self._s3
        result = (_rotl32((s1 * 5) & MASK32, 7) * 9) & MASK32
        t = (s1 << 9) & MASK32

        s2 ^= s0
        s3 ^= s1
        s1 ^= s2
        s0 ^= s3
        s2 ^= t
        s3 = _rotl32(s3, 11)

        self._s0, self._s1, self._s2, self._s3 = s0, s1, s2, s3
        return result

    def next_float(self) -> float:
        """Uniform float in [0, 1)."""
        return self.next_u32() / 4294967296.0

    def next_int(self, lo: int, hi: int) -> int:
        """Uniform integer in [lo, hi], both inclusive."""
        return lo + int(self.next_float() * (hi - lo + 1))

    def next_bool(self, p: float = 0.5) -> bool:
        """True with probability p."""
        return self.next_float() < p

    def next_range(self, lo: float, hi: float) -> float:
        """Uniform float in [lo, hi)."""
        return lo + self.next_float() * (hi - lo)

    def pick(self, items: Sequence[T]) -> T:
        """Pick one element uniformly.

        Raises:
            ValueError: If items is empty.
        """
        if not items:
            raise ValueError("cannot pick from an empty sequence")
        return items[self.next_int(0, len(items) - 1)]

    def shuffle(self, items: MutableSequence[T]) -> MutableSequence[T]:
        """Fisher-Yates shuffle in place. Returns the same sequence."""
        for i in range(len(items) - 1, 0, -1):
            j = self.next_int(0, i)
            items[i], items[j] = items[j], items[i]
        return items

    def weighted_pick(self, items: Sequence[T], weights: Sequence[float]) -> T:
        """Pick one element with probability proportional to its weight.

        Raises:
            ValueError: If items is empty or lengths differ.
        """
        return pick_weighted(items, weights, self.next_float())

    def fork(self, label: str) -> "SeededRNG":
        """Derive an independent child stream from a label.

        Forking reads only the base seed, so it never consumes draws.
        """
        return SeededRNG((self._seed ^ hash_label(label)) & MASK32)


def _mix64(z: int) -> int:
    z = (z + _GOLDEN64) & MASK64
    z = ((z ^ (z >> 30)) * _MIX64_A) & MASK64
    z = ((z ^ (z >> 27)) * _MIX64_B) & MASK64
    return z ^ (z >> 31)


def _cell_key(seed: int, stage: str) -> int:
    return _mix64(_mix64(seed & MASK64) ^ hash_label(stage))


def cell_random(seed: int, stage: str, x: int, y: int, salt: int = 0) -> float:
    """Order-independent uniform draw in [0, 1) for one cell."""
    h = _cell_key(seed, stage)
    h = _mix64(h ^ (x & MASK64))
    h = _mix64(h ^ (y & MASK64))
    h = _mix64(h ^ (salt & MASK64))
    return (h >> 11) / 9007199254740992.0


def _mix64_array(z: NDArray[np.uint64]) -> NDArray[np.uint64]:
    z = z + np.uint64(_GOLDEN64)
    z = (z ^ (z >> np.uint64(30))) * np.uint64(_MIX64_A)
    z = (z ^ (z >> np.uint64(27))) * np.uint64(_MIX64_B)
    return z ^ (z >> np.uint64(31))


def cell_random_grid(
    seed: int,
    stage: str,
    width: int,
    height: int,
    salt: int = 0,
) -> NDArray[np.float64]:
    """Vectorized ``cell_random`` over a whole grid.

    Returns:
        Array of shape (height, width) where ``out[y, x]`` equals
        ``cell_random(seed, stage, x, y, salt)``.
    """
    ys, xs = np.meshgrid(
        np.arange(height, dtype=np.uint64),
        np.arange(width, dtype=np.uint64),
        indexing="ij",
    )
    h = np.full((height, width), _cell_key(seed, stage), dtype=np.uint64)
    h = _mix64_array(h ^ xs)
    h = _mix64_array(h ^ ys)
    h = _mix64_array(h ^ np.uint64(salt & MASK64))
    return (h >> np.uint64(11)).astype(np.float64) / 9007199254740992.0
