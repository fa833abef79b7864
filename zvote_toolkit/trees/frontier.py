"""
Commitment frontier: an append-only incremental Merkle accumulator.

Only the rightmost path of the tree is kept: the position and value of
the last leaf, plus one "ommer" per set bit of that position (the complete
left sibling subtree at that level, lowest level first). That is enough to
append in O(log n) and to recompute the root at any time.

The checkpoint format is the one published with an election:

    {"position": 41, "leaf": "<hex>", "ommers": ["<hex>", ...]}
"""

from typing import Any, Dict, Iterable, List, Optional

from zvote_toolkit.shared.exceptions import FrontierCorrupt
from zvote_toolkit.trees import hasher


class Frontier:
    """Rightmost path of a depth-32 binary Merkle tree over the field."""

    def __init__(self, depth: int = hasher.DEPTH):
        self.depth = depth
        self.position: Optional[int] = None
        self.leaf: Optional[int] = None
        self.ommers: List[int] = []

    @classmethod
    def from_leaves(cls, leaves: Iterable[int], depth: int = hasher.DEPTH) -> "Frontier":
        frontier = cls(depth)
        for leaf in leaves:
            frontier.append(leaf)
        return frontier

    @classmethod
    def from_checkpoint(
        cls, checkpoint: Optional[Dict[str, Any]], depth: int = hasher.DEPTH
    ) -> "Frontier":
        """
        Rebuild a frontier from its published checkpoint.

        None (or an empty dict) is the empty tree.

        Raises:
            FrontierCorrupt: checkpoint is malformed or inconsistent
        """
        frontier = cls(depth)
        if not checkpoint:
            return frontier

        try:
            position = checkpoint["position"]
            leaf = hasher.from_hex(checkpoint["leaf"])
            ommers = [hasher.from_hex(o) for o in checkpoint["ommers"]]
        except (KeyError, TypeError, ValueError) as e:
            raise FrontierCorrupt(f"Malformed frontier checkpoint: {e}")

        if not isinstance(position, int) or isinstance(position, bool):
            raise FrontierCorrupt(f"Frontier position must be an integer: {position!r}")
        if position < 0 or position >= 1 << depth:
            raise FrontierCorrupt(f"Frontier position {position} out of range")
        if len(ommers) != bin(position).count("1"):
            raise FrontierCorrupt(
                f"Frontier at position {position} needs "
                f"{bin(position).count('1')} ommers, got {len(ommers)}"
            )

        frontier.position = position
        frontier.leaf = leaf
        frontier.ommers = ommers
        return frontier

    def to_checkpoint(self) -> Optional[Dict[str, Any]]:
        if self.position is None:
            return None
        return {
            "position": self.position,
            "leaf": hasher.to_hex(self.leaf),
            "ommers": [hasher.to_hex(o) for o in self.ommers],
        }

    def is_empty(self) -> bool:
        return self.position is None

    def size(self) -> int:
        """Number of leaves appended so far."""
        return 0 if self.position is None else self.position + 1

    def append(self, leaf: int) -> int:
        """Append a commitment and return the new root."""
        if not hasher.is_canonical(leaf):
            raise ValueError("Commitment is not a canonical field element")

        if self.position is None:
            self.position = 0
            self.leaf = leaf
            return self.root()

        if self.position + 1 >= 1 << self.depth:
            raise OverflowError("Commitment tree is full")

        prior = self.position
        carry: Optional[int] = self.leaf
        ommers: List[int] = []
        used = 0
        level = 0
        # Fold the previous leaf up through every complete left subtree
        while carry is not None:
            if (prior >> level) & 1:
                carry = hasher.combine(level, self.ommers[used], carry)
                used += 1
                level += 1
            else:
                ommers.append(carry)
                carry = None
        ommers.extend(self.ommers[used:])

        self.position = prior + 1
        self.leaf = leaf
        self.ommers = ommers
        return self.root()

    def root(self) -> int:
        if self.position is None:
            return hasher.empty_root(self.depth)

        digest = self.leaf
        used = 0
        for level in range(self.depth):
            if (self.position >> level) & 1:
                digest = hasher.combine(level, self.ommers[used], digest)
                used += 1
            else:
                digest = hasher.combine(level, digest, hasher.empty_root(level))
        return digest

    def root_hex(self) -> str:
        return hasher.to_hex(self.root())

    def copy(self) -> "Frontier":
        clone = Frontier(self.depth)
        clone.position = self.position
        clone.leaf = self.leaf
        clone.ommers = list(self.ommers)
        return clone

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frontier):
            return NotImplemented
        return (
            self.depth == other.depth
            and self.position == other.position
            and self.leaf == other.leaf
            and self.ommers == other.ommers
        )

    def __repr__(self) -> str:
        return f"Frontier(size={self.size()}, root={self.root_hex()[:16]}...)"


def merkle_root(leaves: Iterable[int], depth: int = hasher.DEPTH) -> int:
    """Root of the tree holding exactly these leaves, built from scratch."""
    return Frontier.from_leaves(leaves, depth).root()
