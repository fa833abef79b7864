"""
Ballot broadcast: submit one ballot to every bulletin-board mirror at once.

Mirrors replicate the same ballot stream, so one acceptance is enough. The
first acceptance whose vote record is written wins; later acceptances are
only logged. If the write fails the next acceptance tries again, and if
no write succeeds the last store error is raised. Rejections (an error
body or a transport failure) are kept as warnings on the Result. When
every mirror rejects, BroadcastFailed carries the reason given by the last
mirror in list order and the wallet is left untouched. No mirror is asked
twice.
"""

import asyncio
from typing import List, Optional, Sequence, Tuple

import httpx

from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.shared.exceptions import BroadcastFailed, TransientIO
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.shared.results import Result
from zvote_toolkit.shared.services.bulletin_board import BulletinBoardClient

_logger = get_logger(__name__)


class BallotBroadcaster:
    def __init__(self, store=None, client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            store: WalletStore receiving the vote record, or None to skip it
            client: Shared httpx client; each mirror call creates its own if None
        """
        self.store = store
        self.client = client

    async def _submit(self, url: str, ballot: Ballot) -> Tuple[bool, str]:
        board = BulletinBoardClient(url, self.client)
        try:
            return await board.post_ballot(ballot)
        except TransientIO as e:
            return False, e.message
        finally:
            await board.close()

    async def broadcast_with_report(
        self,
        ballot: Ballot,
        mirrors: Sequence[str],
        address: str = "",
        amount: int = 0,
    ) -> Result[str]:
        """
        Post the ballot to all mirrors concurrently.

        Returns:
            Result with the ballot hash; one warning per rejecting mirror

        Raises:
            ValueError: no mirror given
            BroadcastFailed: every mirror rejected the ballot
            TransientIO: mirrors accepted but the vote record could not be written
        """
        if not mirrors:
            raise ValueError("At least one mirror URL is required")

        ballot_hash = ballot.sighash_hex()
        recorded = False
        store_errors: List[TransientIO] = []

        async def submit(url: str) -> Tuple[bool, str]:
            nonlocal recorded
            accepted, body = await self._submit(url, ballot)
            if accepted and not recorded:
                if self.store is not None:
                    try:
                        with self.store.transaction() as tx:
                            tx.store_vote(ballot_hash, address, amount)
                    except TransientIO as e:
                        _logger.error(
                            "Ballot %s accepted by %s but not recorded: %s",
                            ballot_hash[:16],
                            url,
                            e,
                        )
                        store_errors.append(e)
                        return accepted, body
                recorded = True
                _logger.info("Ballot %s accepted by %s", ballot_hash[:16], url)
            return accepted, body

        outcomes = await asyncio.gather(*(submit(url) for url in mirrors))

        result: Result[str] = Result.ok(ballot_hash)
        rejections: List[str] = []
        for url, (accepted, body) in zip(mirrors, outcomes):
            if accepted:
                continue
            _logger.warning("Mirror %s rejected ballot %s: %s", url, ballot_hash[:16], body)
            rejections.append(body)
            result.add_warning("broadcast", body, {"mirror": url})

        if not recorded:
            if store_errors:
                raise store_errors[-1]
            raise BroadcastFailed(rejections[-1], rejections)
        return result

    async def broadcast(
        self,
        ballot: Ballot,
        mirrors: Sequence[str],
        address: str = "",
        amount: int = 0,
    ) -> str:
        """Broadcast and return the ballot hash (see broadcast_with_report)."""
        result = await self.broadcast_with_report(ballot, mirrors, address, amount)
        return result.unwrap()
