"""
Ballot sync: brings a wallet up to date with a bulletin-board mirror.

One mirror is picked at random per run. Every ballot past the wallet's last
applied height is fetched and then applied through the ingestion pipeline,
one height at a time; the fetch completes before the store transaction
opens. Nothing happens until reference data has been downloaded, since
ballots are anchored on it.
"""

import random
from typing import Optional, Sequence

import httpx

from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.shared.results import SyncSummary
from zvote_toolkit.shared.services.bulletin_board import BulletinBoardClient
from zvote_toolkit.wallet.ingestion import IngestionPipeline
from zvote_toolkit.wallet.store import WalletStore

_logger = get_logger(__name__)


class BallotSynchronizer:
    def __init__(
        self,
        store: WalletStore,
        pipeline: IngestionPipeline,
        client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.pipeline = pipeline
        self.client = client
        self.rng = rng or random.Random()

    async def sync(self, mirrors: Sequence[str]) -> SyncSummary:
        """
        Apply every ballot the chosen mirror has that the wallet lacks.

        Raises:
            ValueError: no mirror given
            TransientIO: the mirror failed; applied heights stay applied
            ProtocolViolation: a ballot is invalid; it and later ones are not applied
        """
        if not mirrors:
            raise ValueError("At least one mirror URL is required")

        mirror = self.rng.choice(list(mirrors))
        start = self.store.load_height()
        summary = SyncSummary(
            mirror=mirror, start_height=start, end_height=start, server_count=start
        )

        if self.store.commitment_count() == 0:
            _logger.info("Reference data not downloaded yet, skipping ballot sync")
            return summary

        async with BulletinBoardClient(mirror, self.client) as board:
            summary.server_count = await board.num_ballots()
            for height in range(start + 1, summary.server_count + 1):
                ballot = await board.fetch_ballot(height)
                result = self.pipeline.apply(height, ballot)
                summary.applied += 1
                summary.notes_found += result.notes_found
                summary.end_height = height

        if summary.applied:
            _logger.info(
                "Synced %d ballots from %s (height %d -> %d)",
                summary.applied,
                mirror,
                start,
                summary.end_height,
            )
        return summary
