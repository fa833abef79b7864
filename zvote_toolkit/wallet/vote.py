"""
Vote construction.

Gathers what the prover needs from the wallet (unspent notes of the
session scope, the nullifier exclusion ranges, every commitment and the
current anchors) and asks the proof system for a ballot. Broadcasting the
result is a separate step so a ballot can be inspected or saved first.
"""

from typing import Any

from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.crypto.interfaces import CryptoBackend, Scope, VoteRequest
from zvote_toolkit.election.models import Election
from zvote_toolkit.shared.exceptions import InsufficientFunds
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.wallet.store import WalletStore

_logger = get_logger(__name__)


class VoteBuilder:
    def __init__(
        self,
        election: Election,
        store: WalletStore,
        backend: CryptoBackend,
        key: str,
        scope: Scope = Scope.EXTERNAL,
    ):
        self.election = election
        self.store = store
        self.backend = backend
        self.key = key
        self.scope = scope

    def build(self, address: str, amount: int, delegate: bool = False) -> Ballot:
        """
        Prove a ballot sending `amount` to `address`.

        Args:
            address: Candidate address, or any vote address when delegating
            amount: Voting power to spend
            delegate: Allow a destination that is not a candidate

        Raises:
            ValueError: bad destination or amount
            InsufficientFunds: unspent notes do not cover the amount
        """
        if not address:
            raise ValueError("Destination address is required")
        if not delegate and self.election.candidate_index(address) is None:
            raise ValueError(f"{address} is not a candidate of this election")
        if amount <= 0:
            raise ValueError(f"Amount must be positive, got {amount}")

        notes = self.store.list_notes(self.scope, unspent_only=True)
        available = sum(n.value for n in notes)
        if available < amount:
            raise InsufficientFunds(amount, available)

        request = VoteRequest(
            domain=self.election.domain,
            signature_required=self.election.signature_required,
            spending_key=self.backend.keys.spending_key(self.key),
            viewing_key=self.backend.keys.viewing_key(self.key, self.scope),
            destination=address,
            amount=amount,
            notes=notes,
            nullifier_ranges=self.store.list_nullifier_ranges(),
            commitments=self.store.list_commitments(),
            anchors=(self.election.nullifier_root, self.store.commitment_root()),
        )
        _logger.debug(
            "Proving ballot: %d to %s from %d notes", amount, address, len(notes)
        )
        return _as_ballot(self.backend.proofs.prove(request))


def _as_ballot(proved: Any) -> Ballot:
    if isinstance(proved, Ballot):
        return proved
    if isinstance(proved, str):
        return Ballot.from_json(proved)
    return Ballot.from_dict(proved)
