"""
Wallet store: the transactional handle every wallet mutation goes through.

Holds the commitment list and frontier, the root set, the ballot nullifier
ledger, the reference nullifier exclusion ranges, owned notes, applied
ballots, vote records and string props. State lives in memory and, when a
path is given, is written to a JSON file on every committed transaction.

Mutations are only allowed inside `transaction()`. Each one journals its
own undo step; an exception inside the block replays the journal backwards
so nothing of the failed unit survives. The store lock is held for the
whole transaction and by every read, so readers never observe a half
applied ballot.
"""

import json
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.crypto.interfaces import Scope
from zvote_toolkit.shared.constants import ProtocolConstants
from zvote_toolkit.shared.exceptions import FrontierCorrupt, TransientIO
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.trees import hasher
from zvote_toolkit.trees.frontier import Frontier
from zvote_toolkit.trees.nullifiers import NullifierLedger
from zvote_toolkit.trees.roots import RootSet
from zvote_toolkit.wallet.models import OwnedNote, VoteRecord

_logger = get_logger(__name__)

Range = Tuple[int, int]


class WalletStore:
    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._depth = 0
        self._undo: List[Callable[[], None]] = []

        self.props: Dict[str, str] = {}
        self.commitments: List[int] = []
        self.frontier = Frontier()
        self.roots = RootSet()
        self.nullifiers = NullifierLedger()
        self.nullifier_ranges: List[Range] = []
        self.notes: List[OwnedNote] = []
        self.ballots: List[Dict[str, Any]] = []
        self.votes: List[VoteRecord] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def open(cls, path: str) -> "WalletStore":
        """Open a wallet file, or start an empty one at that path."""
        store = cls(path)
        if store.path.exists():
            store._load()
        return store

    def _load(self) -> None:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise TransientIO(f"Cannot read wallet file {self.path}: {e}")

        self.props = dict(data.get("props", {}))
        self.commitments = [hasher.from_hex(c) for c in data.get("commitments", [])]
        self.frontier = Frontier.from_checkpoint(data.get("frontier"))
        if self.frontier.size() != len(self.commitments):
            raise FrontierCorrupt(
                f"Wallet frontier holds {self.frontier.size()} leaves "
                f"but {len(self.commitments)} commitments are stored"
            )
        self.roots = RootSet.from_hex_list(data.get("roots", []))
        self.nullifiers = NullifierLedger(
            hasher.from_hex(nf) for nf in data.get("nullifiers", [])
        )
        self.nullifier_ranges = [
            (hasher.from_hex(s), hasher.from_hex(e))
            for s, e in data.get("nullifier_ranges", [])
        ]
        self.notes = [OwnedNote.from_dict(n) for n in data.get("notes", [])]
        self.ballots = list(data.get("ballots", []))
        self.votes = [VoteRecord.from_dict(v) for v in data.get("votes", [])]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "props": self.props,
            "commitments": [hasher.to_hex(c) for c in self.commitments],
            "frontier": self.frontier.to_checkpoint(),
            "roots": self.roots.to_hex_list(),
            "nullifiers": [hasher.to_hex(nf) for nf in self.nullifiers],
            "nullifier_ranges": [
                [hasher.to_hex(s), hasher.to_hex(e)] for s, e in self.nullifier_ranges
            ],
            "notes": [n.to_dict() for n in self.notes],
            "ballots": self.ballots,
            "votes": [v.to_dict() for v in self.votes],
        }

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f)
        os.replace(tmp, self.path)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["WalletStore"]:
        """
        Commit or roll back everything done inside the block as one unit.

        Nested blocks join the outermost transaction.
        """
        with self._lock:
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    self._rollback()
                raise
            self._depth -= 1
            if self._depth == 0:
                try:
                    self._flush()
                except OSError as e:
                    self._rollback()
                    raise TransientIO(f"Cannot write wallet file {self.path}: {e}")
                self._undo = []

    def _rollback(self) -> None:
        _logger.debug("Rolling back %d journaled changes", len(self._undo))
        while self._undo:
            self._undo.pop()()

    def _require_transaction(self) -> None:
        if self._depth == 0:
            raise RuntimeError("Wallet mutations must run inside store.transaction()")

    def _journal(self, undo: Callable[[], None]) -> None:
        self._require_transaction()
        self._undo.append(undo)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def append_commitment(self, cmx: int) -> int:
        """Append a commitment to the tree and return the new root."""
        self._require_transaction()
        previous = self.frontier.copy()
        root = self.frontier.append(cmx)
        self.commitments.append(cmx)
        self._journal(lambda: (self.commitments.pop(), setattr(self, "frontier", previous)))
        return root

    def add_root(self, root: int) -> None:
        if root in self.roots:
            return
        self._journal(lambda: self.roots.discard(root))
        self.roots.add(root)

    def record_nullifier(self, nullifier: int, height: Optional[int] = None) -> None:
        self._require_transaction()
        self.nullifiers.record(nullifier, height)
        self._journal(lambda: self.nullifiers.discard(nullifier))

    def mark_spent(self, height: int, dnf: int) -> int:
        """Mark every owned note with this domain nullifier spent at height."""
        key = hasher.to_hex(dnf)
        changed = [(n, n.spent) for n in self.notes if n.dnf == key]

        def undo():
            for note, spent in changed:
                note.spent = spent

        self._journal(undo)
        for note, _ in changed:
            note.spent = height
        return len(changed)

    def insert_note(self, note: OwnedNote) -> None:
        self._journal(self.notes.pop)
        self.notes.append(note)

    def insert_nullifier_range(self, start: int, end: int) -> None:
        self._journal(self.nullifier_ranges.pop)
        self.nullifier_ranges.append((start, end))

    def store_ballot(self, height: int, ballot: Ballot) -> None:
        self._journal(self.ballots.pop)
        self.ballots.append(
            {"height": height, "hash": ballot.sighash_hex(), "data": ballot.to_dict()}
        )

    def store_vote(self, hash: str, address: str, amount: int) -> VoteRecord:
        record = VoteRecord(
            id=(self.votes[-1].id + 1) if self.votes else 1,
            hash=hash,
            address=address,
            amount=amount,
        )
        self._journal(self.votes.pop)
        self.votes.append(record)
        return record

    def store_prop(self, name: str, value: str) -> None:
        missing = object()
        old = self.props.get(name, missing)

        def undo():
            if old is missing:
                self.props.pop(name, None)
            else:
                self.props[name] = old

        self._journal(undo)
        self.props[name] = value

    def store_height(self, height: int) -> None:
        self.store_prop(ProtocolConstants.PROP_HEIGHT, str(height))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def load_prop(self, name: str) -> Optional[str]:
        with self._lock:
            return self.props.get(name)

    def load_height(self) -> int:
        """Last applied ballot height, 0 before the first ballot."""
        value = self.load_prop(ProtocolConstants.PROP_HEIGHT)
        return int(value) if value is not None else 0

    def commitment_count(self) -> int:
        with self._lock:
            return len(self.commitments)

    def ballot_count(self) -> int:
        with self._lock:
            return len(self.ballots)

    def list_notes(
        self, scope: Optional[Scope] = None, unspent_only: bool = False
    ) -> List[OwnedNote]:
        with self._lock:
            return [
                n
                for n in self.notes
                if (scope is None or n.scope == scope)
                and not (unspent_only and n.is_spent)
            ]

    def balance(self, scope: Optional[Scope] = None) -> int:
        return sum(n.value for n in self.list_notes(scope, unspent_only=True))

    def list_votes(self) -> List[VoteRecord]:
        with self._lock:
            return list(self.votes)

    def list_commitments(self) -> List[int]:
        with self._lock:
            return list(self.commitments)

    def list_nullifier_ranges(self) -> List[Range]:
        with self._lock:
            return list(self.nullifier_ranges)

    def commitment_root(self) -> str:
        """Root of the wallet's commitment tree as it stands."""
        with self._lock:
            return self.frontier.root_hex()
