"""
Compact block sources for reference data.

A block source streams, in height order, the shielded actions mined in a
height range. Only what the synchronizer needs is kept: each action's
nullifier and commitment plus the note ciphertext for trial decryption.

HttpBlockSource reads a light-wallet JSON gateway:

    GET {url}/block_range/{start}/{end}
    -> [{"height": n, "actions": [{"nf", "cmx", "epk", "enc"}, ...]}, ...]

The range is requested in chunks of ZV_BLOCK_CHUNK blocks.
"""

from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Protocol, Tuple

import httpx

from zvote_toolkit.shared.constants import GlobalConstants
from zvote_toolkit.shared.exceptions import TransientIO
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.shared.services.http_client import create_async_client
from zvote_toolkit.trees import hasher

_logger = get_logger(__name__)


@dataclass(frozen=True)
class CompactAction:
    nullifier: str
    commitment: str
    epk: str = ""
    encrypted_note: str = ""

    @property
    def nf(self) -> int:
        return hasher.from_hex(self.nullifier)

    @property
    def cmx(self) -> int:
        return hasher.from_hex(self.commitment)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompactAction":
        # from_hex rejects non-canonical values
        nullifier = hasher.to_hex(hasher.from_hex(data["nf"]))
        commitment = hasher.to_hex(hasher.from_hex(data["cmx"]))
        return cls(
            nullifier=nullifier,
            commitment=commitment,
            epk=data.get("epk", ""),
            encrypted_note=data.get("enc", ""),
        )


@dataclass(frozen=True)
class CompactBlock:
    height: int
    actions: Tuple[CompactAction, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompactBlock":
        return cls(
            height=int(data["height"]),
            actions=tuple(CompactAction.from_dict(a) for a in data.get("actions", [])),
        )


class BlockSource(Protocol):
    def blocks(self, start: int, end: int) -> AsyncIterator[CompactBlock]:
        """Blocks start..=end in increasing height order."""
        ...


class HttpBlockSource:
    def __init__(
        self,
        url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        chunk_size: Optional[int] = None,
    ):
        self.url = (url or GlobalConstants.LWD_URL).rstrip("/")
        self._client = client
        self._owns_client = client is None
        self.chunk_size = chunk_size or GlobalConstants.BLOCK_CHUNK

    async def __aenter__(self) -> "HttpBlockSource":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _fetch_range(self, start: int, end: int) -> list:
        if self._client is None:
            self._client = create_async_client()
        url = f"{self.url}/block_range/{start}/{end}"
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise TransientIO(f"Cannot fetch blocks {start}..{end} from {self.url}: {e}")
        except ValueError as e:
            raise TransientIO(f"Invalid block data from {url}: {e}")

    async def blocks(self, start: int, end: int) -> AsyncIterator[CompactBlock]:
        for chunk_start in range(start, end + 1, self.chunk_size):
            chunk_end = min(chunk_start + self.chunk_size - 1, end)
            _logger.debug("Fetching blocks %d..%d", chunk_start, chunk_end)
            for data in await self._fetch_range(chunk_start, chunk_end):
                try:
                    yield CompactBlock.from_dict(data)
                except (KeyError, TypeError, ValueError) as e:
                    raise TransientIO(f"Invalid compact block from {self.url}: {e}")
