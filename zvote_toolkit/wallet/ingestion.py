"""
Ballot ingestion: applies validated ballots to the wallet store.

For each action, in order: record the nullifier, mark the wallet's note
with that nullifier spent, trial-decrypt the new note with the wallet's
viewing key, then append the commitment and keep the new root as a valid
anchor. The whole ballot runs inside one store transaction, so a failure
anywhere leaves no trace of it.
"""

from dataclasses import dataclass
from typing import Any

from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.ballots.validator import BallotValidator
from zvote_toolkit.crypto.interfaces import NoteDecryptor, Scope
from zvote_toolkit.election.models import Election
from zvote_toolkit.shared.constants import ProtocolConstants
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.trees import hasher
from zvote_toolkit.wallet.models import OwnedNote
from zvote_toolkit.wallet.store import WalletStore

_logger = get_logger(__name__)


@dataclass
class IngestionResult:
    height: int
    txid: str
    notes_found: int
    notes_spent: int
    root: str


class IngestionPipeline:
    def __init__(
        self,
        election: Election,
        store: WalletStore,
        validator: BallotValidator,
        decryptor: NoteDecryptor,
        viewing_key: Any,
        scope: Scope = Scope.EXTERNAL,
    ):
        self.election = election
        self.store = store
        self.validator = validator
        self.decryptor = decryptor
        self.viewing_key = viewing_key
        self.scope = scope
        self._domain = election.domain

    def apply(self, height: int, ballot: Ballot) -> IngestionResult:
        """
        Validate and apply one ballot atomically.

        Heights must be applied in increasing order, each exactly once;
        re-applying a height is not detected here.

        Raises:
            ProtocolViolation: the ballot is invalid; nothing is applied
        """
        with self.store.transaction() as tx:
            self.validator.validate(height, ballot, tx.roots, tx.nullifiers)

            position = tx.commitment_count()
            txid = ballot.sighash_hex()
            found = 0
            spent = 0
            root = None

            for i, action in enumerate(ballot.actions):
                nf = action.nf
                tx.record_nullifier(nf, height)
                spent += tx.mark_spent(height, nf)

                note = self.decryptor.try_decrypt(self.viewing_key, action)
                if note is not None:
                    dnf = self.decryptor.nullifier(self.viewing_key, note, self._domain)
                    tx.insert_note(
                        OwnedNote(
                            position=position + i,
                            height=height,
                            txid=txid,
                            value=note.value,
                            dnf=hasher.to_hex(dnf),
                            scope=self.scope,
                            payload=note.payload,
                        )
                    )
                    found += 1

                root = tx.append_commitment(action.cmx)
                tx.add_root(root)

            tx.store_ballot(height, ballot)
            tx.store_height(height)
            root_hex = hasher.to_hex(root) if root is not None else tx.frontier.root_hex()
            tx.store_prop(ProtocolConstants.PROP_CMX_ROOT, root_hex)

        _logger.debug(
            "Applied ballot %s at height %d (%d actions, %d notes found, %d spent)",
            txid[:16],
            height,
            len(ballot.actions),
            found,
            spent,
        )
        return IngestionResult(
            height=height,
            txid=txid,
            notes_found=found,
            notes_spent=spent,
            root=root_hex,
        )
