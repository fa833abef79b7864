"""
Unit tests for the tally engine and the audit service.
"""

import logging
from dataclasses import replace

import httpx
import pytest

from zvote_toolkit.audit.engine import TallyEngine
from zvote_toolkit.audit.service import AuditService
from zvote_toolkit.shared.exceptions import (
    CandidateKeyMismatch,
    CandidateNoteSpent,
    ProofOrSignatureInvalid,
    StaleOrInvalidAnchor,
    TransientIO,
)


def three_ballots(ballots, candidate_keys, tamper=False):
    """Ballot 1 is noise, ballot 2 sends 10 to A, ballot 3 sends 5 to B."""
    a, b = candidate_keys
    enc = "ff" * 40 if tamper else None
    return [
        ballots.build(),
        ballots.build([ballots.action(to=a.address, value=10, enc=enc)]),
        ballots.build([ballots.action(to=b.address, value=5)]),
    ]


@pytest.fixture
def engine(election, candidate_keys, backend):
    return TallyEngine(election, candidate_keys, backend.notes, backend.proofs)


def counts_of(results):
    return [(c.choice, c.amount) for c in results]


class TestTallyEngine:
    def test_counts_votes_per_candidate(self, engine, ballots, candidate_keys):
        for height, ballot in enumerate(three_ballots(ballots, candidate_keys), 1):
            engine.process(height, ballot)
        assert counts_of(engine.finish()) == [("A", 10), ("B", 5)]

    def test_tampered_ciphertext_is_not_counted(self, engine, ballots, candidate_keys):
        stream = three_ballots(ballots, candidate_keys, tamper=True)
        for height, ballot in enumerate(stream, 1):
            engine.process(height, ballot)
        assert counts_of(engine.finish()) == [("A", 0), ("B", 5)]

    def test_report(self, engine, ballots, candidate_keys, election):
        for height, ballot in enumerate(three_ballots(ballots, candidate_keys), 1):
            engine.process(height, ballot)
        report = engine.report()
        assert report.election_id == election.id
        assert report.ballots == 3
        assert report.total == 15
        assert report.commitment_root == ballots.frontier.root_hex()
        assert report.to_dict()["counts"] == [
            {"choice": "A", "amount": 10},
            {"choice": "B", "amount": 5},
        ]

    def test_no_ballots(self, engine):
        assert counts_of(engine.finish()) == [("A", 0), ("B", 0)]

    def test_multi_action_ballot(self, engine, ballots, candidate_keys):
        a, b = candidate_keys
        ballot = ballots.build(
            [
                ballots.action(to=a.address, value=3),
                ballots.action(to=b.address, value=4),
                ballots.action(to=a.address, value=1),
            ]
        )
        engine.process(1, ballot)
        assert counts_of(engine.finish()) == [("A", 4), ("B", 4)]

    def test_candidate_note_spent(
        self, engine, ballots, candidate_keys, election, domain_nullifier
    ):
        a = candidate_keys[0]
        engine.process(1, ballots.build([ballots.action(to=a.address, value=10, rho=7)]))
        spend = ballots.build(
            [ballots.action(nf=domain_nullifier(a.viewing_key, 7, election.domain))]
        )
        engine.process(2, spend)

        with pytest.raises(CandidateNoteSpent):
            engine.finish()

    def test_heights_must_be_consecutive(self, engine, ballots):
        with pytest.raises(ValueError, match="expected height 1"):
            engine.process(2, ballots.build(advance=False))
        engine.process(1, ballots.build())
        with pytest.raises(ValueError):
            engine.process(1, ballots.build(advance=False))

    def test_invalid_ballot_aborts(self, engine, ballots):
        engine.process(1, ballots.build())
        with pytest.raises(ProofOrSignatureInvalid) as exc_info:
            engine.process(2, ballots.build(binding="bad"))
        assert exc_info.value.height == 2

    def test_stale_anchor(self, engine, ballots):
        with pytest.raises(StaleOrInvalidAnchor):
            engine.process(1, ballots.build(anchor="01" + "00" * 31))


class TestCandidateKeys:
    def test_key_count_mismatch(self, election, candidate_keys, backend):
        with pytest.raises(ValueError, match="candidate keys"):
            TallyEngine(election, candidate_keys[:1], backend.notes, backend.proofs)

    def test_key_order_mismatch(self, election, candidate_keys, backend):
        swapped = list(reversed(candidate_keys))
        with pytest.raises(CandidateKeyMismatch) as exc_info:
            TallyEngine(election, swapped, backend.notes, backend.proofs)
        assert exc_info.value.index == 0
        assert exc_info.value.address == election.candidates[0].address

    def test_frontier_root_mismatch_warns(self, election, candidate_keys, backend, caplog):
        bogus = replace(election, commitment_root="02" + "00" * 31)
        with caplog.at_level(logging.WARNING):
            TallyEngine(bogus, candidate_keys, backend.notes, backend.proofs)
        assert "differs from its published root" in caplog.text


class TestAuditService:
    @pytest.mark.asyncio
    async def test_audit_from_seed(
        self, election, ballots, candidate_keys, backend, mock_client, board_handler
    ):
        stream = three_ballots(ballots, candidate_keys)
        client = mock_client(board_handler(election, stream))
        seen = []

        service = AuditService(backend, client)
        report = await service.audit(
            "https://board.example/e1",
            seed=backend.keys.generate_seed(),
            progress=lambda height, total: seen.append((height, total)),
        )

        assert counts_of(report.counts) == [("A", 10), ("B", 5)]
        assert report.ballots == 3
        assert seen == [(1, 3), (2, 3), (3, 3)]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_audit_with_explicit_keys(
        self, election, ballots, candidate_keys, backend, mock_client, board_handler
    ):
        stream = three_ballots(ballots, candidate_keys, tamper=True)
        client = mock_client(board_handler(election, stream))

        report = await AuditService(backend, client).audit(
            "https://board.example/e1", candidate_keys=candidate_keys
        )

        assert counts_of(report.counts) == [("A", 0), ("B", 5)]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_wrong_seed(
        self, election, ballots, backend, mock_client, board_handler
    ):
        client = mock_client(board_handler(election, []))
        with pytest.raises(CandidateKeyMismatch):
            await AuditService(backend, client).audit(
                "https://board.example/e1", seed="another-seed"
            )
        await client.aclose()

    @pytest.mark.asyncio
    async def test_requires_seed_or_keys(self, backend):
        with pytest.raises(ValueError):
            await AuditService(backend).audit("https://board.example/e1")

    @pytest.mark.asyncio
    async def test_mirror_failure(self, backend, mock_client):
        client = mock_client(lambda request: httpx.Response(503, text="down"))
        with pytest.raises(TransientIO, match="503"):
            await AuditService(backend, client).audit(
                "https://board.example/e1", seed=backend.keys.generate_seed()
            )
        await client.aclose()
