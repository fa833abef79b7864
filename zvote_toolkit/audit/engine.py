"""
Tally engine: independent re-verification and re-count of an election.

Starts from the election's published reference state and replays the
ballot stream in height order. Every ballot goes through the full
validator; every action's commitment extends the frontier (its root becomes
a valid anchor), its nullifier goes into a run-local ledger, and its note
is trial-decrypted under each candidate's viewing key. A note decrypting
for a candidate adds to that candidate's total, and the nullifier that note
would reveal is remembered: if any of those shows up in the stream, a
candidate note was spent and the audit fails.

Undecryptable notes are not errors. A ciphertext may legitimately belong to
nobody observing; it is simply not counted.

The engine only touches its own in-memory state and never persists.
"""

from typing import Any, List, Optional, Sequence

from zvote_toolkit.audit.models import AuditReport, CountResult
from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.ballots.validator import BallotValidator
from zvote_toolkit.crypto.interfaces import CandidateKey, NoteDecryptor, ProofSystem
from zvote_toolkit.election.models import Election
from zvote_toolkit.shared.exceptions import CandidateKeyMismatch, CandidateNoteSpent
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.trees import hasher
from zvote_toolkit.trees.nullifiers import NullifierLedger
from zvote_toolkit.trees.roots import RootSet

_logger = get_logger(__name__)


class TallyEngine:
    def __init__(
        self,
        election: Election,
        candidate_keys: Sequence[CandidateKey],
        decryptor: NoteDecryptor,
        proof_system: ProofSystem,
        verification_key: Optional[Any] = None,
    ):
        if len(candidate_keys) != len(election.candidates):
            raise ValueError(
                f"Expected {len(election.candidates)} candidate keys, "
                f"got {len(candidate_keys)}"
            )
        for i, (key, candidate) in enumerate(zip(candidate_keys, election.candidates)):
            if key.address != candidate.address:
                raise CandidateKeyMismatch(i, candidate.address)

        self.election = election
        self.candidate_keys = list(candidate_keys)
        self.decryptor = decryptor
        self.validator = BallotValidator(election, proof_system, verification_key)
        self._domain = election.domain

        self.frontier = election.frontier()
        self.roots = RootSet([hasher.from_hex(election.commitment_root)])
        self.nullifiers = NullifierLedger()
        self.totals = [0] * len(election.candidates)
        self.candidate_nullifiers: List[int] = []
        self.height = 0

        if self.frontier.root_hex() != election.commitment_root:
            _logger.warning(
                "Election %s frontier root %s differs from its published root %s",
                election.id[:16],
                self.frontier.root_hex(),
                election.commitment_root,
            )

    def process(self, height: int, ballot: Ballot) -> None:
        """
        Validate and count the ballot at `height`.

        Raises:
            ValueError: height is not the next one
            ProtocolViolation: the ballot breaks a protocol rule
        """
        if height != self.height + 1:
            raise ValueError(
                f"Ballots must be audited in order: expected height "
                f"{self.height + 1}, got {height}"
            )

        self.validator.validate(height, ballot, self.roots, self.nullifiers)

        for action in ballot.actions:
            self.roots.add(self.frontier.append(action.cmx))
            self.nullifiers.record(action.nf, height)

            for k, key in enumerate(self.candidate_keys):
                note = self.decryptor.try_decrypt(key.viewing_key, action)
                if note is None:
                    continue
                self.totals[k] += note.value
                self.candidate_nullifiers.append(
                    self.decryptor.nullifier(key.viewing_key, note, self._domain)
                )
                # Note encryption is destination specific
                break

        self.height = height

    def finish(self) -> List[CountResult]:
        """
        Check candidate notes are unspent and return the totals.

        Raises:
            CandidateNoteSpent: a candidate-origin nullifier was observed
        """
        for nf in self.candidate_nullifiers:
            if nf in self.nullifiers:
                raise CandidateNoteSpent(hasher.to_hex(nf))

        return [
            CountResult(choice=c.label, amount=total)
            for c, total in zip(self.election.candidates, self.totals)
        ]

    def report(self) -> AuditReport:
        return AuditReport(
            election_id=self.election.id,
            ballots=self.height,
            commitment_root=self.frontier.root_hex(),
            counts=self.finish(),
        )
