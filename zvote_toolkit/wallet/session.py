"""
Vote session: one voter's wallet, bound to a single election.

A session ties together the wallet store, the mirror URLs, the election,
the wallet key and its scope, the crypto backend and an HTTP client. It is
created once (saving the election and key into the wallet file) and then
re-opened from that file. Operations that write the store (reference
download, ballot sync, voting) hold the session's writer lock, so only one
of them runs at a time.

Example:
    async with VoteSession.open("wallet.json") as session:
        await session.sync()
        print(session.balance())
"""

import asyncio
import json
import random
from typing import Callable, List, Optional, Sequence, Tuple

import httpx

from zvote_toolkit.ballots.broadcast import BallotBroadcaster
from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.ballots.validator import BallotValidator
from zvote_toolkit.crypto.backend import load_crypto_backend
from zvote_toolkit.crypto.interfaces import CryptoBackend, Scope
from zvote_toolkit.election.models import Election
from zvote_toolkit.reference.source import BlockSource, HttpBlockSource
from zvote_toolkit.reference.synchronizer import ReferenceState, ReferenceSynchronizer
from zvote_toolkit.shared.constants import ProtocolConstants
from zvote_toolkit.shared.exceptions import ConfigurationException
from zvote_toolkit.shared.logging import get_logger
from zvote_toolkit.shared.results import SyncSummary
from zvote_toolkit.shared.services.http_client import create_async_client
from zvote_toolkit.trees import hasher
from zvote_toolkit.trees.frontier import merkle_root
from zvote_toolkit.trees.nullifiers import NullifierLedger
from zvote_toolkit.wallet.ingestion import IngestionPipeline
from zvote_toolkit.wallet.models import VoteRecord
from zvote_toolkit.wallet.store import WalletStore
from zvote_toolkit.wallet.sync import BallotSynchronizer
from zvote_toolkit.wallet.vote import VoteBuilder

_logger = get_logger(__name__)


def parse_urls(urls: str) -> List[str]:
    """Split a comma separated mirror list."""
    return [u.strip() for u in urls.split(",") if u.strip()]


class VoteSession:
    def __init__(
        self,
        store: WalletStore,
        urls: Sequence[str],
        election: Election,
        key: str,
        scope: Scope,
        backend: CryptoBackend,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.store = store
        self.urls = list(urls)
        self.election = election
        self.key = key
        self.scope = scope
        self.backend = backend
        self._client = client
        self._owns_client = client is None
        self._writer = asyncio.Lock()
        self._validator = BallotValidator(election, backend.proofs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        path: Optional[str],
        urls: Sequence[str],
        election: Election,
        key: str,
        internal: bool = False,
        backend: Optional[CryptoBackend] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "VoteSession":
        """
        Start a new wallet for `election`, replacing any file at `path`.

        Raises:
            ValueError: no mirror URL or the key is not valid
            ConfigurationException: the crypto backend cannot be loaded
        """
        backend = backend or load_crypto_backend()
        if not urls:
            raise ValueError("At least one mirror URL is required")
        if not backend.keys.is_valid_key(key):
            raise ValueError("Invalid wallet key")

        scope = Scope.from_internal_flag(internal)
        store = WalletStore(path)
        with store.transaction() as tx:
            tx.store_prop(ProtocolConstants.PROP_URLS, ",".join(urls))
            tx.store_prop(ProtocolConstants.PROP_ELECTION, json.dumps(election.to_dict()))
            tx.store_prop(ProtocolConstants.PROP_KEY, key)
            tx.store_prop(ProtocolConstants.PROP_INTERNAL, "true" if internal else "false")

        _logger.info("Created wallet for election %s", election.id[:16])
        return cls(store, urls, election, key, scope, backend, client)

    @classmethod
    def open(
        cls,
        path: str,
        backend: Optional[CryptoBackend] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "VoteSession":
        """
        Re-open a wallet file written by create().

        Raises:
            ConfigurationException: the file lacks the session props
        """
        store = WalletStore.open(path)
        props = {}
        for name in (
            ProtocolConstants.PROP_URLS,
            ProtocolConstants.PROP_ELECTION,
            ProtocolConstants.PROP_KEY,
        ):
            value = store.load_prop(name)
            if value is None:
                raise ConfigurationException(f"Wallet {path} has no '{name}' prop")
            props[name] = value

        internal = store.load_prop(ProtocolConstants.PROP_INTERNAL) == "true"
        return cls(
            store,
            parse_urls(props[ProtocolConstants.PROP_URLS]),
            Election.from_dict(json.loads(props[ProtocolConstants.PROP_ELECTION])),
            props[ProtocolConstants.PROP_KEY],
            Scope.from_internal_flag(internal),
            backend or load_crypto_backend(),
            client,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = create_async_client()
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "VoteSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def viewing_key(self):
        return self.backend.keys.viewing_key(self.key, self.scope)

    def address(self) -> str:
        """The wallet's external vote address."""
        return self.backend.keys.address(self.key, Scope.EXTERNAL)

    def balance(self) -> int:
        return self.store.balance()

    def sync_height(self) -> int:
        return self.store.load_height()

    def votes(self) -> List[VoteRecord]:
        return self.store.list_votes()

    def has_reference_data(self) -> bool:
        return self.store.load_prop(ProtocolConstants.PROP_REFERENCE_HEIGHT) is not None

    def compute_roots(self) -> Optional[Tuple[str, str]]:
        """
        Recompute the nullifier and commitment roots from the stored data.

        Returns:
            (nf_root, cmx_root), or None before reference data exists

        Raises:
            ValueError: the stored nullifier ranges are malformed
        """
        if not self.has_reference_data():
            return None
        ledger = NullifierLedger.from_ranges(self.store.list_nullifier_ranges())
        nf_root = ledger.root_hex()
        cmx_root = hasher.to_hex(merkle_root(self.store.list_commitments()))
        with self.store.transaction() as tx:
            tx.store_prop(ProtocolConstants.PROP_NF_ROOT, nf_root)
            tx.store_prop(ProtocolConstants.PROP_CMX_ROOT, cmx_root)
        return nf_root, cmx_root

    def validate_ballot(self, ballot: Ballot) -> None:
        """Check a ballot's proof and signatures (ProofOrSignatureInvalid)."""
        self._validator.validate_proof(ballot)

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    async def download_reference_data(
        self,
        source: Optional[BlockSource] = None,
        progress: Optional[Callable[[int], None]] = None,
    ) -> ReferenceState:
        async with self._writer:
            source = source or HttpBlockSource(client=self.client)
            synchronizer = ReferenceSynchronizer(
                self.election,
                source,
                store=self.store,
                decryptor=self.backend.notes,
                viewing_key=self.viewing_key,
                scope=self.scope,
                progress=progress,
            )
            return await synchronizer.run()

    async def sync(self, rng: Optional[random.Random] = None) -> SyncSummary:
        async with self._writer:
            pipeline = IngestionPipeline(
                self.election,
                self.store,
                self._validator,
                self.backend.notes,
                self.viewing_key,
                self.scope,
            )
            synchronizer = BallotSynchronizer(self.store, pipeline, self.client, rng)
            return await synchronizer.sync(self.urls)

    async def vote(self, address: str, amount: int, delegate: bool = False) -> str:
        """
        Build a ballot and broadcast it to every mirror.

        Returns:
            The ballot hash

        Raises:
            InsufficientFunds: balance does not cover the amount
            BroadcastFailed: every mirror rejected the ballot
        """
        async with self._writer:
            builder = VoteBuilder(self.election, self.store, self.backend, self.key, self.scope)
            ballot = builder.build(address, amount, delegate)
            broadcaster = BallotBroadcaster(self.store, self.client)
            return await broadcaster.broadcast(ballot, self.urls, address, amount)
