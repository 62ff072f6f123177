"""Dense set of small non-negative integers backed by 64-bit words."""

from typing import Iterable, Iterator, List, Optional

_BITS_PER_WORD = 64


class BitSet:
    """
    Set of non-negative integers stored as bits in a list of 64-bit words.

    Used for visited/membership tracking over cell ids during graph walks,
    where the ids are small and dense. Inserting past the current end grows
    the word list; reads past the end see an empty word.
    """

    __slots__ = ("_words",)

    def __init__(self, values: Optional[Iterable[int]] = None) -> None:
        self._words: List[int] = []
        if values is not None:
            self.update(values)

    @classmethod
    def with_capacity(cls, capacity: int) -> "BitSet":
        """Create an empty set pre-sized to hold values below ``capacity``."""
        bitset = cls()
        bitset._words = [0] * ((capacity + _BITS_PER_WORD - 1) // _BITS_PER_WORD)
        return bitset

    @staticmethod
    def _locate(value: int):
        if value < 0:
            raise ValueError("BitSet values must be non-negative.")
        return value // _BITS_PER_WORD, 1 << (value % _BITS_PER_WORD)

    def _grow_to(self, index: int) -> None:
        if index >= len(self._words):
            self._words.extend([0] * (index + 1 - len(self._words)))

    def insert(self, value: int) -> bool:
        """Add ``value``; return True if it was not already present."""
        index, mask = self._locate(value)
        self._grow_to(index)
        word = self._words[index]
        self._words[index] = word | mask
        return word & mask == 0

    def remove(self, value: int) -> bool:
        """Remove ``value``; return True if it was present."""
        index, mask = self._locate(value)
        if index >= len(self._words):
            return False
        word = self._words[index]
        self._words[index] = word & ~mask
        return word & mask != 0

    def toggle(self, value: int) -> bool:
        """Flip membership of ``value``; return the new membership."""
        index, mask = self._locate(value)
        self._grow_to(index)
        self._words[index] ^= mask
        return self._words[index] & mask != 0

    def contains(self, value: int) -> bool:
        index, mask = self._locate(value)
        if index >= len(self._words):
            return False
        return self._words[index] & mask != 0

    def update(self, values: Iterable[int]) -> None:
        for value in values:
            self.insert(value)

    def is_empty(self) -> bool:
        return not any(self._words)

    def __contains__(self, value: object) -> bool:
        return isinstance(value, int) and value >= 0 and self.contains(value)

    def __iter__(self) -> Iterator[int]:
        # snapshot: removals during iteration do not affect what is yielded
        for index, word in enumerate(list(self._words)):
            base = index * _BITS_PER_WORD
            while word:
                lowest = word & -word
                yield base + lowest.bit_length() - 1
                word ^= lowest

    def __len__(self) -> int:
        return sum(bin(word).count("1") for word in self._words)

    def __bool__(self) -> bool:
        return not self.is_empty()

    def __repr__(self) -> str:
        return f"BitSet({list(self)!r})"
