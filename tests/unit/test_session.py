"""
Unit tests for the vote session: wallet lifecycle, voting and syncing.
"""

import asyncio
import random

import pytest

from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.crypto.interfaces import Scope
from zvote_toolkit.shared.exceptions import (
    ConfigurationException,
    InsufficientFunds,
    ProofOrSignatureInvalid,
)
from zvote_toolkit.trees import hasher
from zvote_toolkit.wallet.session import VoteSession, parse_urls
from zvote_toolkit.wallet.store import WalletStore

MIRRORS = ["https://a.example/e1", "https://b.example/e1"]


@pytest.fixture
def wallet_path(tmp_path):
    return str(tmp_path / "vote.json")


@pytest.fixture
def board(chain_election, mock_client, board_handler):
    """Mirror state shared by every mirror host: served stream and posted bodies."""
    stream, posted = [], []
    client = mock_client(board_handler(chain_election, stream, posted))
    return client, stream, posted


@pytest.fixture
def session(wallet_path, chain_election, wallet_key, backend, board):
    client, _, _ = board
    return VoteSession.create(
        wallet_path, MIRRORS, chain_election, wallet_key, backend=backend, client=client
    )


class TestLifecycle:
    def test_parse_urls(self):
        assert parse_urls(" https://a/e1, ,https://b/e1 ") == ["https://a/e1", "https://b/e1"]

    def test_create_and_open(self, session, wallet_path, chain_election, backend):
        reopened = VoteSession.open(wallet_path, backend=backend)

        assert reopened.urls == MIRRORS
        assert reopened.election == chain_election
        assert reopened.election.id == chain_election.id
        assert reopened.key == session.key
        assert reopened.scope == Scope.EXTERNAL
        assert reopened.address() == session.address()

    def test_create_rejects_bad_input(self, wallet_path, chain_election, backend):
        with pytest.raises(ValueError, match="mirror"):
            VoteSession.create(wallet_path, [], chain_election, "key-x", backend=backend)
        with pytest.raises(ValueError, match="key"):
            VoteSession.create(wallet_path, MIRRORS, chain_election, "bad", backend=backend)

    def test_open_incomplete_wallet(self, wallet_path, backend):
        store = WalletStore(wallet_path)
        with store.transaction() as tx:
            tx.store_prop("url", MIRRORS[0])

        with pytest.raises(ConfigurationException, match="election"):
            VoteSession.open(wallet_path, backend=backend)

    def test_internal_scope(self, wallet_path, chain_election, wallet_key, backend):
        session = VoteSession.create(
            wallet_path, MIRRORS, chain_election, wallet_key, internal=True, backend=backend
        )
        assert session.scope == Scope.INTERNAL
        assert session.address() == backend.keys.address(wallet_key, Scope.EXTERNAL)
        assert VoteSession.open(wallet_path, backend=backend).scope == Scope.INTERNAL

    @pytest.mark.asyncio
    async def test_shared_client_left_open(self, session, board):
        client, _, _ = board
        async with session:
            pass
        assert not client.is_closed
        await client.aclose()


class TestReferenceData:
    @pytest.mark.asyncio
    async def test_download(self, session, block_source, chain_election):
        assert not session.has_reference_data()
        assert session.compute_roots() is None

        heights = []
        state = await session.download_reference_data(block_source, heights.append)

        assert state.matches(chain_election)
        assert heights == [100, 101, 105, 110]
        assert session.has_reference_data()
        assert session.balance() == 50
        assert session.sync_height() == 0
        assert session.compute_roots() == (
            chain_election.nullifier_root,
            chain_election.commitment_root,
        )

    @pytest.mark.asyncio
    async def test_compute_roots_rejects_corrupt_ranges(self, session, block_source):
        await session.download_reference_data(block_source)
        session.store.nullifier_ranges = [(0, 10)]
        with pytest.raises(ValueError, match="exceeds"):
            session.compute_roots()

    @pytest.mark.asyncio
    async def test_internal_scope_sees_no_external_notes(
        self, wallet_path, chain_election, wallet_key, backend, block_source
    ):
        session = VoteSession.create(
            wallet_path, MIRRORS, chain_election, wallet_key, internal=True, backend=backend
        )
        await session.download_reference_data(block_source)
        assert session.balance() == 0


class TestVote:
    @pytest.mark.asyncio
    async def test_vote_then_sync(
        self,
        session,
        board,
        block_source,
        chain_election,
        chain_ballots,
        candidate_keys,
        backend,
        domain_nullifier,
    ):
        client, stream, posted = board
        await session.download_reference_data(block_source)
        candidate = candidate_keys[0].address
        spent_nf = domain_nullifier(session.viewing_key, 1, chain_election.domain)
        backend.proofs.prove_result = chain_ballots.build(
            [
                chain_ballots.action(nf=spent_nf),
                chain_ballots.action(to=candidate, value=30),
            ]
        )

        ballot_hash = await session.vote(candidate, 30)

        (request,) = backend.proofs.requests
        assert request.destination == candidate
        assert request.amount == 30
        assert request.domain == chain_election.domain
        assert request.spending_key == "sk-key-voter"
        assert len(request.notes) == 2
        assert request.anchors == (
            chain_election.nullifier_root,
            chain_election.commitment_root,
        )

        # Both mirrors accepted, one local record
        assert len(posted) == 2
        (vote,) = session.votes()
        assert (vote.hash, vote.address, vote.amount) == (ballot_hash, candidate, 30)

        # The mirror publishes the ballot; syncing spends the 30 note
        stream.append(Ballot.from_dict(posted[0]))
        summary = await session.sync(random.Random(3))
        assert summary.applied == 1
        assert session.sync_height() == 1
        assert session.balance() == 20
        spent = [n for n in session.store.list_notes() if n.is_spent]
        assert [n.dnf for n in spent] == [hasher.to_hex(spent_nf)]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, session, block_source, candidate_keys, backend):
        await session.download_reference_data(block_source)
        with pytest.raises(InsufficientFunds) as exc_info:
            await session.vote(candidate_keys[0].address, 51)
        assert (exc_info.value.requested, exc_info.value.available) == (51, 50)
        assert backend.proofs.requests == []
        assert session.votes() == []

    @pytest.mark.asyncio
    async def test_destination_must_be_candidate(self, session, block_source, backend):
        await session.download_reference_data(block_source)
        with pytest.raises(ValueError, match="not a candidate"):
            await session.vote("zaddr-friend-external", 10)
        assert backend.proofs.requests == []

    @pytest.mark.asyncio
    async def test_delegation(self, session, block_source, chain_ballots, backend):
        await session.download_reference_data(block_source)
        backend.proofs.prove_result = chain_ballots.build().to_json()

        await session.vote("zaddr-friend-external", 10, delegate=True)

        assert backend.proofs.requests[0].destination == "zaddr-friend-external"
        assert session.votes()[0].address == "zaddr-friend-external"

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(self, session, candidate_keys):
        with pytest.raises(ValueError, match="positive"):
            await session.vote(candidate_keys[0].address, 0)


class TestSync:
    @pytest.mark.asyncio
    async def test_concurrent_syncs_are_serialized(
        self, session, board, block_source, chain_ballots
    ):
        client, stream, _ = board
        await session.download_reference_data(block_source)
        stream.append(chain_ballots.build())

        first, second = await asyncio.gather(session.sync(), session.sync())

        assert first.applied + second.applied == 1
        assert session.sync_height() == 1
        await client.aclose()

    def test_validate_ballot(self, session, chain_ballots):
        session.validate_ballot(chain_ballots.build())
        with pytest.raises(ProofOrSignatureInvalid):
            session.validate_ballot(chain_ballots.build(binding="bad"))
