"""Bloom filter for fast negative membership answers.

A path that was added always tests positive. A path that was never
added tests positive with a probability bounded by the configured
false-positive rate.

Hashing uses one keyed BLAKE2b digest per seed, so bit positions are
deterministic across processes and survive a save/load round trip.
"""

import base64
import hashlib
import math
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

_LN2 = math.log(2)


class BloomFilterState(BaseModel):
    """Serialized form of a bloom filter.

    Attributes:
        expected_elements: Element count the filter was sized for.
        false_positive_rate: Target false-positive rate.
        bit_count: Number of bits in the array.
        seeds: Hash seed values, one per hash function.
        bits: Base64-encoded bit array.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    expected_elements: int = Field(ge=1)
    false_positive_rate: float = Field(gt=0, lt=1)
    bit_count: int = Field(ge=1)
    seeds: list[int]
    bits: str


def optimal_bit_count(expected_elements: int, false_positive_rate: float) -> int:
    """Bits needed for ``n`` elements at false-positive rate ``p``.

    bits = round(-n * ln(p) / ln(2)^2)
    """
    return max(1, round(-expected_elements * math.log(false_positive_rate) / (_LN2**2)))


def optimal_hash_count(bit_count: int, expected_elements: int) -> int:
    """Hash functions for a filter of ``bit_count`` bits.

    hash_count = round(ln(2) * bits / n)
    """
    return max(1, round(_LN2 * bit_count / expected_elements))


class BloomFilter:
    """Probabilistic set over strings.

    Attributes:
        expected_elements: Element count the filter was sized for.
        false_positive_rate: Target false-positive rate.
        bit_count: Number of bits in the array.
        seeds: One seed per hash function.
    """

    def __init__(
        self,
        expected_elements: int = 100_000,
        false_positive_rate: float = 0.01,
        seeds: list[int] | None = None,
    ) -> None:
        """Initialize an empty filter.

        Args:
            expected_elements: Expected number of elements (n).
            false_positive_rate: Target false-positive rate (p).
            seeds: Explicit hash seeds; derived from the hash count if omitted.

        Raises:
            ValueError: If the sizing parameters are out of range.
        """
        if expected_elements < 1:
            msg = f"expected_elements must be >= 1, got {expected_elements}"
            raise ValueError(msg)
        if not 0 < false_positive_rate < 1:
            msg = f"false_positive_rate must be in (0, 1), got {false_positive_rate}"
            raise ValueError(msg)

        self.expected_elements = expected_elements
        self.false_positive_rate = false_positive_rate
        self.bit_count = optimal_bit_count(expected_elements, false_positive_rate)
        hash_count = optimal_hash_count(self.bit_count, expected_elements)
        self.seeds = list(seeds) if seeds is not None else list(range(hash_count))
        self._bits = bytearray((self.bit_count + 7) // 8)

    @property
    def hash_count(self) -> int:
        """Number of hash functions."""
        return len(self.seeds)

    def _positions(self, item: str) -> list[int]:
        data = item.encode("utf-8", "surrogateescape")
        positions = []
        for seed in self.seeds:
            digest = hashlib.blake2b(data, digest_size=8, salt=seed.to_bytes(16, "little")).digest()
            positions.append(int.from_bytes(digest, "little") % self.bit_count)
        return positions

    def add(self, item: str) -> None:
        """Insert an element."""
        for pos in self._positions(item):
            self._bits[pos >> 3] |= 1 << (pos & 7)

    def update(self, items: Iterable[str]) -> None:
        """Insert many elements."""
        for item in items:
            self.add(item)

    def __contains__(self, item: str) -> bool:
        return all(self._bits[pos >> 3] & (1 << (pos & 7)) for pos in self._positions(item))

    def discard(self, item: str) -> None:
        """Unset the element's bits.

        Other members sharing any of these bits may start testing
        negative. Callers must rebuild the filter from their surviving
        keys after a batch of discards.
        """
        for pos in self._positions(item):
            self._bits[pos >> 3] &= ~(1 << (pos & 7)) & 0xFF

    def clear(self) -> None:
        """Remove every element."""
        self._bits = bytearray(len(self._bits))

    def rebuild(self, items: Iterable[str]) -> None:
        """Reset the filter to contain exactly ``items`` (plus false positives)."""
        self.clear()
        self.update(items)

    @property
    def fill_ratio(self) -> float:
        """Fraction of bits currently set."""
        set_bits = sum(bin(byte).count("1") for byte in self._bits)
        return set_bits / self.bit_count

    def to_state(self) -> BloomFilterState:
        """Snapshot the filter for persistence."""
        return BloomFilterState(
            expected_elements=self.expected_elements,
            false_positive_rate=self.false_positive_rate,
            bit_count=self.bit_count,
            seeds=self.seeds,
            bits=base64.b64encode(bytes(self._bits)).decode("ascii"),
        )

    @classmethod
    def from_state(cls, state: BloomFilterState) -> "BloomFilter":
        """Restore a filter from a persisted snapshot.

        Raises:
            ValueError: If the bit array does not match the declared size.
        """
        bloom = cls(state.expected_elements, state.false_positive_rate, seeds=state.seeds)
        if bloom.bit_count != state.bit_count:
            msg = f"Bit count mismatch: expected {bloom.bit_count}, got {state.bit_count}"
            raise ValueError(msg)
        raw = base64.b64decode(state.bits, validate=True)
        if len(raw) != len(bloom._bits):
            msg = f"Bit array length mismatch: expected {len(bloom._bits)} bytes, got {len(raw)}"
            raise ValueError(msg)
        bloom._bits = bytearray(raw)
        return bloom
