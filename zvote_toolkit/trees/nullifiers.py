"""
Nullifier ledger: the double-vote guard.

Behaves as a plain set (hash lookups, O(log n) sorted inserts). For bulk
export it compresses to the sorted *exclusion ranges*: the closed intervals
of field values that are not nullifiers. Those ranges are what the wallet
persists and what the election's nullifier root commits to, since a voter
proves an unspent note by showing its nullifier falls inside one of them.
"""

from bisect import bisect_left, insort
from typing import Iterable, Iterator, List, Optional, Set, Tuple

from zvote_toolkit.shared.exceptions import DuplicateNullifier
from zvote_toolkit.trees import hasher
from zvote_toolkit.trees.frontier import merkle_root

Range = Tuple[int, int]

# Widest run of consecutive nullifiers from_ranges will expand
MAX_RANGE_GAP = 1 << 16


class NullifierLedger:
    def __init__(self, nullifiers: Optional[Iterable[int]] = None):
        self._set: Set[int] = set()
        self._sorted: List[int] = []
        for nf in nullifiers or ():
            self.record(nf)

    def __contains__(self, nullifier: int) -> bool:
        return nullifier in self._set

    def __len__(self) -> int:
        return len(self._set)

    def __iter__(self) -> Iterator[int]:
        return iter(self._sorted)

    def contains(self, nullifier: int) -> bool:
        return nullifier in self._set

    def record(self, nullifier: int, height: Optional[int] = None) -> None:
        """
        Insert a nullifier.

        Raises:
            DuplicateNullifier: nullifier was already recorded
        """
        if nullifier in self._set:
            raise DuplicateNullifier(hasher.to_hex(nullifier), height)
        self._set.add(nullifier)
        insort(self._sorted, nullifier)

    def discard(self, nullifier: int) -> None:
        """Only for rolling back an uncommitted transaction."""
        if nullifier in self._set:
            self._set.remove(nullifier)
            del self._sorted[bisect_left(self._sorted, nullifier)]

    def to_ranges(self) -> List[Range]:
        """Sorted closed intervals of the field not covered by any nullifier."""
        ranges: List[Range] = []
        start = 0
        for nf in self._sorted:
            if nf > start:
                ranges.append((start, nf - 1))
            start = nf + 1
        if start <= hasher.P - 1:
            ranges.append((start, hasher.P - 1))
        return ranges

    @classmethod
    def from_ranges(cls, ranges: Iterable[Range]) -> "NullifierLedger":
        """
        Inverse of to_ranges: every value between two ranges is a nullifier.

        Raises:
            ValueError: no ranges, overlapping or inverted ranges, or a gap
                wider than MAX_RANGE_GAP (including before the first range
                and after the last one)
        """
        ranges = sorted(ranges)
        if not ranges:
            raise ValueError("At least one exclusion range is required")
        nullifiers: List[int] = []
        cursor = 0
        for start, end in ranges + [(hasher.P, hasher.P)]:
            if start < cursor or end < start:
                raise ValueError(f"Overlapping or inverted range ({start}, {end})")
            if start - cursor > MAX_RANGE_GAP:
                raise ValueError(
                    f"Gap of {start - cursor} values before ({start}, {end}) "
                    f"exceeds {MAX_RANGE_GAP}"
                )
            nullifiers.extend(range(cursor, start))
            cursor = end + 1
        ledger = cls()
        ledger._set = set(nullifiers)
        ledger._sorted = nullifiers
        return ledger

    def root(self) -> int:
        """Merkle root over the flattened exclusion ranges."""
        return ranges_root(self.to_ranges())

    def root_hex(self) -> str:
        return hasher.to_hex(self.root())

    def copy(self) -> "NullifierLedger":
        clone = NullifierLedger()
        clone._set = set(self._set)
        clone._sorted = list(self._sorted)
        return clone


def ranges_root(ranges: Iterable[Range]) -> int:
    return merkle_root(bound for r in ranges for bound in r)
