"""
Reference data synchronizer.

Replays the chain's shielded actions over an election's block window to
rebuild the reference state every ballot is anchored to:

- each chain nullifier goes into a ledger whose exclusion ranges form the
  nullifier tree (voters prove their notes fall in a gap)
- each commitment is appended to a fresh frontier (the commitment tree)
- with a wallet key, each note is trial-decrypted; hits become the
  wallet's voting notes, tagged with the nullifier they will reveal when
  spent in this election

With a store, the result is written in one transaction: commitments,
exclusion ranges, notes, the reference root and the reference_height,
nf_root and cmx_root props. When checking against a published election,
the rebuilt roots must match the election's, otherwise nothing is written.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from zvote_toolkit.crypto.interfaces import NoteDecryptor, Scope
from zvote_toolkit.election.models import Election
from zvote_toolkit.reference.source import BlockSource
from zvote_toolkit.shared.constants import ProtocolConstants
from zvote_toolkit.shared.exceptions import ReferenceDataMismatch
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.trees import hasher
from zvote_toolkit.trees.frontier import Frontier
from zvote_toolkit.trees.nullifiers import NullifierLedger, ranges_root
from zvote_toolkit.wallet.models import OwnedNote

_logger = get_logger(__name__)

REFERENCE_TXID_PREFIX = "ref-"


@dataclass
class ReferenceState:
    nf_root: str
    cmx_root: str
    frontier: Frontier
    height: int

    def matches(self, election: Election) -> bool:
        return (
            self.nf_root == election.nullifier_root
            and self.cmx_root == election.commitment_root
        )


class ReferenceSynchronizer:
    def __init__(
        self,
        election: Election,
        source: BlockSource,
        store=None,
        decryptor: Optional[NoteDecryptor] = None,
        viewing_key: Any = None,
        scope: Scope = Scope.EXTERNAL,
        progress: Optional[Callable[[int], None]] = None,
    ):
        self.election = election
        self.source = source
        self.store = store
        self.decryptor = decryptor
        self.viewing_key = viewing_key
        self.scope = scope
        self.progress = progress

    async def run(self, verify: bool = True) -> ReferenceState:
        """
        Download and fold the election's block window.

        Args:
            verify: Require the rebuilt roots to match the election's

        Raises:
            TransientIO: the block source failed
            ReferenceDataMismatch: rebuilt roots differ from the election's
            ValueError: the store already holds reference data
        """
        if self.store is not None and self.store.commitment_count() > 0:
            raise ValueError("Reference data was already downloaded into this wallet")

        start = self.election.start_height
        end = self.election.end_height
        domain = self.election.domain
        scan = self.decryptor is not None and self.viewing_key is not None

        ledger = NullifierLedger()
        frontier = Frontier()
        commitments: List[int] = []
        notes: List[OwnedNote] = []

        async for block in self.source.blocks(start, end):
            for action in block.actions:
                ledger.record(action.nf, block.height)
                if scan:
                    note = self.decryptor.try_decrypt(self.viewing_key, action)
                    if note is not None:
                        dnf = self.decryptor.nullifier(self.viewing_key, note, domain)
                        notes.append(
                            OwnedNote(
                                position=len(commitments),
                                height=block.height,
                                txid=f"{REFERENCE_TXID_PREFIX}{block.height}",
                                value=note.value,
                                dnf=hasher.to_hex(dnf),
                                scope=self.scope,
                                payload=note.payload,
                            )
                        )
                frontier.append(action.cmx)
                commitments.append(action.cmx)
            if self.progress is not None:
                self.progress(block.height)

        ranges = ledger.to_ranges()
        state = ReferenceState(
            nf_root=hasher.to_hex(ranges_root(ranges)),
            cmx_root=frontier.root_hex(),
            frontier=frontier,
            height=end,
        )
        _logger.info(
            "Reference data %d..%d: %d commitments, %d nullifiers, %d notes",
            start,
            end,
            len(commitments),
            len(ledger),
            len(notes),
        )

        if verify and not state.matches(self.election):
            raise ReferenceDataMismatch(
                f"Rebuilt roots nf={state.nf_root} cmx={state.cmx_root} do not match "
                f"election nf={self.election.nullifier_root} "
                f"cmx={self.election.commitment_root}"
            )

        if self.store is not None:
            with self.store.transaction() as tx:
                for cmx in commitments:
                    tx.append_commitment(cmx)
                tx.add_root(frontier.root())
                for range_start, range_end in ranges:
                    tx.insert_nullifier_range(range_start, range_end)
                for note in notes:
                    tx.insert_note(note)
                tx.store_prop(ProtocolConstants.PROP_REFERENCE_HEIGHT, str(end))
                tx.store_prop(ProtocolConstants.PROP_NF_ROOT, state.nf_root)
                tx.store_prop(ProtocolConstants.PROP_CMX_ROOT, state.cmx_root)

        return state
