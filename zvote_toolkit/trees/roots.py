"""Set of commitment roots a ballot may anchor against."""

from typing import Iterable, Iterator, Optional, Set

from zvote_toolkit.trees import hasher


class RootSet:
    """Grows monotonically; a root once seen stays valid for the session."""

    def __init__(self, roots: Optional[Iterable[int]] = None):
        self._roots: Set[int] = set(roots or ())

    def add(self, root: int) -> None:
        self._roots.add(root)

    def discard(self, root: int) -> None:
        """Only for rolling back an uncommitted transaction."""
        self._roots.discard(root)

    def __contains__(self, root: int) -> bool:
        return root in self._roots

    def __len__(self) -> int:
        return len(self._roots)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._roots))

    def to_hex_list(self):
        return [hasher.to_hex(r) for r in self]

    @classmethod
    def from_hex_list(cls, roots: Iterable[str]) -> "RootSet":
        return cls(hasher.from_hex(r) for r in roots)

    def copy(self) -> "RootSet":
        return RootSet(self._roots)
