"""
Per-ballot protocol checks.

Checks run in a fixed order and the first failure wins:

1. version is the one this engine supports
2. the commitment-root anchor is in the current root set
3. the nullifier-root anchor is the election's fixed nullifier root
4. no nullifier was seen before (in the ledger or earlier in this ballot)
5. the proof and, when the election requires them, the signatures verify

Validation never mutates state. Duplicate detection is only meaningful
against the ledger as it stands at this ballot's height, so callers must
validate and apply ballots one at a time in height order.
"""

from typing import Any, Optional

from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.crypto.interfaces import ProofSystem
from zvote_toolkit.election.models import Election
from zvote_toolkit.shared.constants import ProtocolConstants
from zvote_toolkit.shared.exceptions import (
    DuplicateNullifier,
    InvalidNullifierRoot,
    ProofOrSignatureInvalid,
    StaleOrInvalidAnchor,
    UnsupportedVersion,
)
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.trees import hasher
from zvote_toolkit.trees.nullifiers import NullifierLedger
from zvote_toolkit.trees.roots import RootSet

_logger = get_logger(__name__)


class BallotValidator:
    def __init__(
        self,
        election: Election,
        proof_system: ProofSystem,
        verification_key: Optional[Any] = None,
    ):
        self.election = election
        self.proof_system = proof_system
        self.verification_key = (
            verification_key
            if verification_key is not None
            else getattr(proof_system, "verification_key", None)
        )
        self._nf_root = hasher.from_hex(election.nullifier_root)
        self._domain = election.domain

    def validate(
        self,
        height: int,
        ballot: Ballot,
        roots: RootSet,
        nullifiers: NullifierLedger,
    ) -> None:
        """
        Run every check against the state as of this ballot's height.

        Raises:
            UnsupportedVersion, StaleOrInvalidAnchor, InvalidNullifierRoot,
            DuplicateNullifier, ProofOrSignatureInvalid
        """
        if ballot.version != ProtocolConstants.BALLOT_VERSION:
            raise UnsupportedVersion(ballot.version, height)

        anchor_cmx = hasher.from_hex(ballot.anchors.cmx)
        if anchor_cmx not in roots:
            raise StaleOrInvalidAnchor(ballot.anchors.cmx, height)

        if hasher.from_hex(ballot.anchors.nf) != self._nf_root:
            raise InvalidNullifierRoot(
                ballot.anchors.nf, self.election.nullifier_root, height
            )

        if hasher.from_hex(ballot.data.domain) != self._domain:
            _logger.warning(
                "Ballot at height %s carries domain %s, election domain is %s",
                height,
                ballot.data.domain,
                self.election.domain_hex,
            )

        seen = set()
        for action in ballot.actions:
            nf = action.nf
            if nf in nullifiers or nf in seen:
                raise DuplicateNullifier(action.nullifier, height)
            seen.add(nf)

        self.validate_proof(ballot, height)

    def validate_proof(self, ballot: Ballot, height: Optional[int] = None) -> None:
        """
        Verify the ballot's proof and signatures only.

        Raises:
            ProofOrSignatureInvalid: verification failed or the backend raised
        """
        try:
            valid = self.proof_system.verify(
                ballot, self.election.signature_required, self.verification_key
            )
        except Exception as e:
            raise ProofOrSignatureInvalid(str(e) or type(e).__name__, height)
        if not valid:
            reason = (
                "proof or signature rejected"
                if self.election.signature_required
                else "proof rejected"
            )
            raise ProofOrSignatureInvalid(reason, height)
