"""
Bulletin board service module.

Async client for one bulletin-board mirror. The election lives at the
mirror's base URL; ballots are addressed by height starting at 1:

    GET  {url}                     -> election JSON
    GET  {url}/num_ballots         -> ballot count as plain text
    GET  {url}/ballot/height/{n}   -> ballot JSON
    POST {url}/ballot              -> body is the mirror's verdict

Transport failures and non-2xx answers on reads surface as TransientIO so
callers can retry the same height. Posting never raises on a rejection;
it returns the verdict for the broadcaster to collect.
"""

from typing import Optional, Tuple

import httpx

from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.election.models import Election
from zvote_toolkit.shared.exceptions import TransientIO
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.shared.services.http_client import create_async_client

_logger = get_logger(__name__)


class BulletinBoardClient:
    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = create_async_client()
        return self._client

    async def __aenter__(self) -> "BulletinBoardClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise TransientIO(f"GET {url} failed: {e}")
        if response.status_code != 200:
            raise TransientIO(
                f"GET {url} returned HTTP {response.status_code}: {response.text[:200]}"
            )
        return response

    async def fetch_election(self) -> Election:
        """
        Fetch the election this mirror serves.

        Raises:
            TransientIO: the mirror could not be reached
            ValueError: the election JSON is incomplete
        """
        response = await self._get(self.base_url)
        try:
            data = response.json()
        except ValueError as e:
            raise TransientIO(f"Election at {self.base_url} is not JSON: {e}")
        return Election.from_dict(data)

    async def num_ballots(self) -> int:
        response = await self._get(f"{self.base_url}/num_ballots")
        text = response.text.strip()
        try:
            return int(text)
        except ValueError:
            raise TransientIO(f"Invalid ballot count from {self.base_url}: {text!r}")

    async def fetch_ballot(self, height: int) -> Ballot:
        """
        Fetch the ballot at `height` (1-based).

        Raises:
            TransientIO: the mirror could not be reached
            MalformedBallot: the body is not a well formed ballot
        """
        response = await self._get(f"{self.base_url}/ballot/height/{height}")
        return Ballot.from_json(response.text)

    async def post_ballot(self, ballot: Ballot) -> Tuple[bool, str]:
        """
        Submit a ballot.

        Returns:
            (accepted, body) where body is the mirror's response text

        Raises:
            TransientIO: the request did not complete
        """
        url = f"{self.base_url}/ballot"
        try:
            response = await self.client.post(url, json=ballot.to_dict())
        except httpx.HTTPError as e:
            raise TransientIO(f"POST {url} failed: {e}")
        _logger.debug("POST %s -> %d", url, response.status_code)
        return response.is_success, response.text
