"""
Audit service: fetches an election's ballots from a mirror and re-tallies.

The candidate keys come either from the election seed (derived by the key
backend) or directly from the caller. Ballots are fetched one height at a
time and fed to the TallyEngine in order; the first protocol violation
aborts the audit.
"""

from typing import Callable, Optional, Sequence

import httpx

from zvote_toolkit.audit.engine import TallyEngine
from zvote_toolkit.audit.models import AuditReport
from zvote_toolkit.crypto.interfaces import CandidateKey, CryptoBackend
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.shared.services.bulletin_board import BulletinBoardClient

_logger = get_logger(__name__)


class AuditService:
    def __init__(
        self,
        backend: CryptoBackend,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.backend = backend
        self.client = client

    async def audit(
        self,
        url: str,
        seed: Optional[str] = None,
        candidate_keys: Optional[Sequence[CandidateKey]] = None,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> AuditReport:
        """
        Audit the election served at `url`.

        Args:
            url: Bulletin board mirror serving the election
            seed: Election seed to derive candidate keys from
            candidate_keys: Keys to use instead of deriving them
            progress: Called with (height, total) after each ballot

        Returns:
            AuditReport with per-candidate totals in candidate order

        Raises:
            ValueError: neither seed nor candidate keys given
            TransientIO: the mirror failed
            ProtocolViolation: the ballot stream is invalid
        """
        if seed is None and candidate_keys is None:
            raise ValueError("Either the election seed or candidate keys are required")

        async with BulletinBoardClient(url, self.client) as board:
            election = await board.fetch_election()
            if candidate_keys is None:
                candidate_keys = self.backend.keys.candidate_keys(
                    seed, len(election.candidates)
                )

            engine = TallyEngine(
                election,
                candidate_keys,
                self.backend.notes,
                self.backend.proofs,
            )

            total = await board.num_ballots()
            _logger.info("Auditing election %s: %d ballots", election.id[:16], total)
            for height in range(1, total + 1):
                ballot = await board.fetch_ballot(height)
                engine.process(height, ballot)
                if progress is not None:
                    progress(height, total)

        report = engine.report()
        _logger.info("Audit of %s passed: %d votes counted", election.id[:16], report.total)
        return report
