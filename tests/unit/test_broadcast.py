"""
Unit tests for broadcasting ballots to bulletin-board mirrors.
"""

import json
from unittest.mock import patch

import httpx
import pytest

from zvote_toolkit.ballots.broadcast import BallotBroadcaster
from zvote_toolkit.shared.exceptions import BroadcastFailed, TransientIO
from zvote_toolkit.shared.results import ErrorSeverity

MIRRORS = ["https://a.example/e1", "https://b.example/e1", "https://c.example/e1"]


def mirror_handler(verdicts, posted=None):
    """Answer POST /ballot per mirror host: (status, body) or an exception."""

    def handler(request: httpx.Request) -> httpx.Response:
        verdict = verdicts[request.url.host]
        if isinstance(verdict, Exception):
            raise verdict
        if posted is not None:
            posted.append((request.url.host, json.loads(request.content)))
        status, body = verdict
        return httpx.Response(status, text=body)

    return handler


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_one_acceptance_is_enough(self, store, ballots, mock_client):
        ballot = ballots.build()
        posted = []
        client = mock_client(
            mirror_handler(
                {
                    "a.example": (400, "Duplicate nullifier"),
                    "b.example": (200, "OK"),
                    "c.example": httpx.ConnectError("connection refused"),
                },
                posted,
            )
        )

        result = await BallotBroadcaster(store, client).broadcast_with_report(
            ballot, MIRRORS, "zaddr-candidate", 10
        )

        assert result.success
        assert result.data == ballot.sighash_hex()
        assert [e.context["mirror"] for e in result.errors] == [MIRRORS[0], MIRRORS[2]]
        assert all(e.severity == ErrorSeverity.WARNING for e in result.errors)
        assert result.errors[0].message == "Duplicate nullifier"
        assert "connection refused" in result.errors[1].message

        (vote,) = store.list_votes()
        assert (vote.hash, vote.address, vote.amount) == (ballot.sighash_hex(), "zaddr-candidate", 10)
        assert sorted(host for host, _ in posted) == ["a.example", "b.example"]
        assert posted[0][1] == ballot.to_dict()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_several_acceptances_record_once(self, store, ballots, mock_client):
        client = mock_client(
            mirror_handler({host: (200, "OK") for host in ("a.example", "b.example", "c.example")})
        )

        ballot_hash = await BallotBroadcaster(store, client).broadcast(
            ballots.build(), MIRRORS, "zaddr-candidate", 3
        )

        assert len(store.list_votes()) == 1
        assert store.list_votes()[0].hash == ballot_hash
        await client.aclose()

    @pytest.mark.asyncio
    async def test_failed_record_retried_on_next_acceptance(
        self, store, ballots, mock_client
    ):
        client = mock_client(
            mirror_handler({host: (200, "OK") for host in ("a.example", "b.example")})
        )
        ballot = ballots.build()

        with patch.object(store, "_flush", side_effect=[OSError("disk full"), None]):
            ballot_hash = await BallotBroadcaster(store, client).broadcast(
                ballot, MIRRORS[:2], "zaddr-candidate", 4
            )

        assert ballot_hash == ballot.sighash_hex()
        (vote,) = store.list_votes()
        assert (vote.hash, vote.amount) == (ballot_hash, 4)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_accepted_but_never_recorded(self, store, ballots, mock_client):
        client = mock_client(
            mirror_handler(
                {
                    "a.example": (200, "OK"),
                    "b.example": (200, "OK"),
                    "c.example": (400, "Duplicate nullifier"),
                }
            )
        )

        with patch.object(store, "_flush", side_effect=OSError("disk full")):
            with pytest.raises(TransientIO, match="disk full"):
                await BallotBroadcaster(store, client).broadcast(ballots.build(), MIRRORS)

        assert store.list_votes() == []
        await client.aclose()

    @pytest.mark.asyncio
    async def test_all_rejected(self, store, ballots, mock_client):
        client = mock_client(
            mirror_handler(
                {
                    "a.example": (400, "first reason"),
                    "b.example": (500, "second reason"),
                    "c.example": (400, "last reason"),
                }
            )
        )

        with pytest.raises(BroadcastFailed) as exc_info:
            await BallotBroadcaster(store, client).broadcast(ballots.build(), MIRRORS)

        assert exc_info.value.last_error == "last reason"
        assert exc_info.value.rejections == ["first reason", "second reason", "last reason"]
        assert store.list_votes() == []
        await client.aclose()

    @pytest.mark.asyncio
    async def test_without_store(self, ballots, mock_client):
        client = mock_client(mirror_handler({"a.example": (200, "OK")}))
        ballot = ballots.build()

        ballot_hash = await BallotBroadcaster(client=client).broadcast(ballot, MIRRORS[:1])

        assert ballot_hash == ballot.sighash_hex()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_no_mirrors(self, ballots):
        with pytest.raises(ValueError):
            await BallotBroadcaster().broadcast(ballots.build(), [])
