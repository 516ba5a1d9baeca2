"""
distributor.bitmap — sparse per-epoch record of redeemed claim indices.

Each claim index maps to one bit:

    word_index = index // W
    bit_index  = index %  W

where W is the word width (256 by default). Only words that hold at least one
set bit are stored, so indices have no upper bound. Claims only ever set bits;
`set_word` exists so a rolled-back operation can put a word back.
"""

from __future__ import annotations

from typing import Dict, Iterator, Tuple

from .errors import ValidationError


class ClaimBitmap:
    __slots__ = ("_words", "_word_bits")

    def __init__(self, word_bits: int = 256) -> None:
        if word_bits <= 0:
            raise ValidationError("word_bits must be positive", word_bits=word_bits)
        self._word_bits = word_bits
        self._words: Dict[int, int] = {}

    @property
    def word_bits(self) -> int:
        return self._word_bits

    def locate(self, index: int) -> Tuple[int, int]:
        """Return (word_index, bit_index) for a claim index."""
        # No width cap: indices are arbitrary non-negative integers.
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise ValidationError("index must be a non-negative int", index=repr(index))
        return divmod(index, self._word_bits)

    def word(self, word_index: int) -> int:
        return self._words.get(word_index, 0)

    def is_set(self, index: int) -> bool:
        word_index, bit_index = self.locate(index)
        return (self._words.get(word_index, 0) >> bit_index) & 1 == 1

    def mark(self, index: int) -> bool:
        """Set the bit for `index`. Returns False if it was already set."""
        word_index, bit_index = self.locate(index)
        mask = 1 << bit_index
        current = self._words.get(word_index, 0)
        if current & mask:
            return False
        self._words[word_index] = current | mask
        return True

    def set_word(self, word_index: int, value: int) -> None:
        if value:
            self._words[word_index] = value
        else:
            self._words.pop(word_index, None)

    def words(self) -> Dict[int, int]:
        return dict(self._words)

    def count(self) -> int:
        return sum(bin(w).count("1") for w in self._words.values())

    def claimed_indices(self) -> Iterator[int]:
        """Yield set indices in ascending order."""
        for word_index in sorted(self._words):
            w = self._words[word_index]
            base = word_index * self._word_bits
            bit = 0
            while w:
                if w & 1:
                    yield base + bit
                w >>= 1
                bit += 1

    def copy(self) -> "ClaimBitmap":
        other = ClaimBitmap(self._word_bits)
        other._words = dict(self._words)
        return other

    def __contains__(self, index: int) -> bool:
        return self.is_set(index)

    def __len__(self) -> int:
        return self.count()

    def __repr__(self) -> str:
        return f"ClaimBitmap(word_bits={self._word_bits}, words={len(self._words)}, claimed={self.count()})"


__all__ = ["ClaimBitmap"]
