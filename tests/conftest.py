"""
Pytest configuration and shared fixtures.

This module provides a deterministic in-process crypto backend plus
election and ballot factories for all tests.

Fake crypto:
- an address is "zaddr-<key>-<scope>", its viewing key "vk-<address>"
- a note ciphertext is the hex of {"to": address, "value": n, "rho": r}
  and decrypts only under the viewing key of "to"
- a note's domain nullifier is keccak(vk:rho:domain) reduced into the field
- verify() rejects ballots whose binding signature is "bad"
"""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest
from eth_utils import keccak

from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.crypto.interfaces import (
    CandidateKey,
    CryptoBackend,
    Note,
    Scope,
    VoteRequest,
)
from zvote_toolkit.election.models import Candidate, Election
from zvote_toolkit.reference.source import CompactAction, CompactBlock
from zvote_toolkit.trees import hasher
from zvote_toolkit.trees.frontier import Frontier
from zvote_toolkit.trees.nullifiers import NullifierLedger
from zvote_toolkit.wallet.store import WalletStore

SEED = "seed-words"


def encrypt_note(to: str, value: int, rho: int) -> str:
    return json.dumps({"to": to, "value": value, "rho": rho}).encode().hex()


class FakeKeys:
    def is_valid_key(self, key: str) -> bool:
        return key.startswith("key-")

    def address(self, key: str, scope: Scope) -> str:
        return f"zaddr-{key}-{scope.value}"

    def viewing_key(self, key: str, scope: Scope) -> str:
        return f"vk-{self.address(key, scope)}"

    def spending_key(self, key: str) -> str:
        return f"sk-{key}"

    def generate_seed(self) -> str:
        return SEED

    def candidate_keys(self, seed: str, count: int) -> List[CandidateKey]:
        keys = []
        for i in range(count):
            key = f"{seed}/{i}"
            keys.append(
                CandidateKey(
                    address=self.address(key, Scope.EXTERNAL),
                    viewing_key=self.viewing_key(key, Scope.EXTERNAL),
                )
            )
        return keys


class FakeDecryptor:
    def try_decrypt(self, viewing_key: str, action: Any) -> Optional[Note]:
        try:
            note = json.loads(bytes.fromhex(action.encrypted_note))
        except ValueError:
            return None
        if not isinstance(note, dict) or f"vk-{note.get('to')}" != viewing_key:
            return None
        return Note(value=note["value"], payload={"rho": note["rho"]})

    def nullifier(self, viewing_key: str, note: Note, domain: int) -> int:
        return dnf_of(viewing_key, note.payload["rho"], domain)


def dnf_of(viewing_key: str, rho: int, domain: int) -> int:
    return hasher.reduce_digest(keccak(f"{viewing_key}:{rho}:{domain}".encode()))


class FakeProofSystem:
    verification_key = "fake-vk"

    def __init__(self):
        self.requests: List[VoteRequest] = []
        self.prove_result: Any = None

    def verify(self, ballot: Ballot, signature_required: bool, verification_key: Any) -> bool:
        if signature_required and ballot.witnesses.sp_signatures is None:
            return False
        return ballot.witnesses.binding_signature != "bad"

    def prove(self, request: VoteRequest) -> Any:
        self.requests.append(request)
        return self.prove_result


class BallotFactory:
    """
    Builds well formed ballots for an election.

    Tracks the commitment tree the way a bulletin board would, so each new
    ballot is anchored on the latest root unless told otherwise.
    """

    def __init__(self, election: Election):
        self.election = election
        self.frontier = election.frontier()
        self._counter = 0

    def next_value(self) -> int:
        self._counter += 1
        return hasher.reduce_digest(keccak(f"value-{self._counter}".encode()))

    def action(
        self,
        to: str = "zaddr-nobody-external",
        value: int = 0,
        nf: Optional[int] = None,
        rho: Optional[int] = None,
        enc: Optional[str] = None,
    ) -> Dict[str, Any]:
        rho = rho if rho is not None else self._counter + 1
        return {
            "cv_net": "00",
            "rk": "00",
            "nf": hasher.to_hex(nf if nf is not None else self.next_value()),
            "cmx": hasher.to_hex(self.next_value()),
            "epk": "00",
            "enc": enc if enc is not None else encrypt_note(to, value, rho),
        }

    def build(
        self,
        actions: Optional[List[Dict[str, Any]]] = None,
        anchor: Optional[str] = None,
        nf_root: Optional[str] = None,
        version: int = 1,
        binding: str = "00",
        advance: bool = True,
    ) -> Ballot:
        actions = actions if actions is not None else [self.action()]
        ballot = Ballot.from_dict(
            {
                "data": {
                    "version": version,
                    "domain": self.election.domain_hex,
                    "actions": actions,
                    "anchors": {
                        "nf": nf_root or self.election.nullifier_root,
                        "cmx": anchor or self.frontier.root_hex(),
                    },
                },
                "witnesses": {
                    "proofs": ["00"],
                    "sp_signatures": None,
                    "binding_signature": binding,
                },
            }
        )
        if advance:
            for action in ballot.actions:
                self.frontier.append(action.cmx)
        return ballot


@pytest.fixture
def backend() -> CryptoBackend:
    """Fake crypto backend."""
    return CryptoBackend(
        proofs=FakeProofSystem(),
        notes=FakeDecryptor(),
        keys=FakeKeys(),
        name="fake",
    )


@pytest.fixture
def candidate_keys(backend) -> List[CandidateKey]:
    return backend.keys.candidate_keys(SEED, 2)


@pytest.fixture
def election(candidate_keys) -> Election:
    """Two-candidate election over an empty reference tree."""
    return Election(
        name="Test election",
        start_height=100,
        end_height=110,
        question="A or B?",
        candidates=(
            Candidate(address=candidate_keys[0].address, label="A"),
            Candidate(address=candidate_keys[1].address, label="B"),
        ),
        signature_required=False,
    )


@pytest.fixture
def ballots(election) -> BallotFactory:
    return BallotFactory(election)


@pytest.fixture
def wallet_key() -> str:
    return "key-voter"


@pytest.fixture
def wallet_address(backend, wallet_key) -> str:
    return backend.keys.address(wallet_key, Scope.EXTERNAL)


@pytest.fixture
def store(tmp_path) -> WalletStore:
    return WalletStore(str(tmp_path / "wallet.json"))


@pytest.fixture
def mock_client():
    """
    Factory for an httpx.AsyncClient backed by a request handler.

    Usage:
        client = mock_client(lambda request: httpx.Response(200, text="3"))
    """
    clients = []

    def factory(handler) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    return factory


@pytest.fixture
def board_handler():
    """
    Builds a bulletin-board request handler serving an election and ballots.

    Posted ballots are appended to `posted`.
    """

    def factory(election: Election, ballots: List[Ballot], posted: Optional[list] = None):
        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path.rstrip("/")
            if request.method == "POST" and path.endswith("/ballot"):
                if posted is not None:
                    posted.append(json.loads(request.content))
                return httpx.Response(200, text="OK")
            if path.endswith("/num_ballots"):
                return httpx.Response(200, text=str(len(ballots)))
            if "/ballot/height/" in path:
                height = int(path.rsplit("/", 1)[1])
                if 1 <= height <= len(ballots):
                    return httpx.Response(200, text=ballots[height - 1].to_json())
                return httpx.Response(404, text="No ballot")
            return httpx.Response(200, json=election.to_dict())

        return handler

    return factory


@pytest.fixture
def domain_nullifier():
    """Domain nullifier a fake note reveals when spent."""
    return dnf_of


class MemoryBlockSource:
    """Block source over an in-memory chain; records requested ranges."""

    def __init__(self, chain: List[CompactBlock]):
        self.chain = list(chain)
        self.requests: List[tuple] = []

    async def blocks(self, start: int, end: int):
        self.requests.append((start, end))
        for block in self.chain:
            if start <= block.height <= end:
                yield block


def compact_action(tag: str, to: str = "zaddr-chain-external", value: int = 0, rho: int = 0):
    def field(prefix):
        return hasher.to_hex(hasher.reduce_digest(keccak(f"{prefix}-{tag}".encode())))

    return CompactAction(
        nullifier=field("nf"),
        commitment=field("cmx"),
        epk="00",
        encrypted_note=encrypt_note(to, value, rho),
    )


def fold_chain(chain: List[CompactBlock]):
    """Reference roots of a chain: (nullifier ledger, commitment frontier)."""
    ledger = NullifierLedger()
    frontier = Frontier()
    for block in chain:
        for action in block.actions:
            ledger.record(action.nf)
            frontier.append(action.cmx)
    return ledger, frontier


@pytest.fixture
def chain(wallet_address) -> List[CompactBlock]:
    """
    Blocks 100..110 with two notes for the wallet (30 at height 100 with
    rho 1, 20 at height 105 with rho 2) among unrelated actions.
    """
    return [
        CompactBlock(100, (compact_action("a", wallet_address, 30, 1), compact_action("b"))),
        CompactBlock(101, (compact_action("c"),)),
        CompactBlock(105, (compact_action("d"), compact_action("e", wallet_address, 20, 2))),
        CompactBlock(110, (compact_action("f"),)),
    ]


@pytest.fixture
def block_source(chain) -> MemoryBlockSource:
    return MemoryBlockSource(chain)


@pytest.fixture
def chain_election(election, chain) -> Election:
    """The test election with reference roots taken from `chain`."""
    ledger, frontier = fold_chain(chain)
    return election.with_reference(ledger.root_hex(), frontier.root_hex(), frontier)


@pytest.fixture
def make_action():
    """Compact chain action builder (see compact_action)."""
    return compact_action


@pytest.fixture
def memory_source():
    """Factory for a MemoryBlockSource over a list of blocks."""
    return MemoryBlockSource


@pytest.fixture
def chain_ballots(chain_election) -> BallotFactory:
    """Ballots anchored on the reference data of `chain_election`."""
    return BallotFactory(chain_election)
