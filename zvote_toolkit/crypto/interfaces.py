"""
Collaborator interfaces for the cryptography the engine does not implement.

Proof generation/verification, note decryption and key derivation live in
a pluggable backend. The engine only calls these narrow methods and
assumes they are correct.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Protocol, Sequence, Tuple


class Scope(Enum):
    """Derivation path of a wallet key."""

    EXTERNAL = "external"
    INTERNAL = "internal"

    @classmethod
    def from_internal_flag(cls, internal: bool) -> "Scope":
        return cls.INTERNAL if internal else cls.EXTERNAL


@dataclass(frozen=True)
class Note:
    """A decrypted note. `payload` is opaque backend data needed to spend it."""

    value: int
    payload: Any = None


@dataclass(frozen=True)
class CandidateKey:
    """Viewing key of one candidate plus the address it must reproduce."""

    address: str
    viewing_key: Any


@dataclass(frozen=True)
class VoteRequest:
    """Everything the prover needs to build one ballot."""

    domain: int
    signature_required: bool
    spending_key: Any
    viewing_key: Any
    destination: str
    amount: int
    notes: Sequence[Any]
    nullifier_ranges: Sequence[Tuple[int, int]]
    commitments: Sequence[int]
    anchors: Tuple[str, str] = ("", "")


class ProofSystem(Protocol):
    verification_key: Any

    def verify(self, ballot: Any, signature_required: bool, verification_key: Any) -> bool:
        ...

    def prove(self, request: VoteRequest) -> Any:
        ...


class NoteDecryptor(Protocol):
    def try_decrypt(self, viewing_key: Any, action: Any) -> Optional[Note]:
        ...

    def nullifier(self, viewing_key: Any, note: Note, domain: int) -> int:
        """Domain nullifier the note will reveal when spent in this election."""
        ...


class KeyDeriver(Protocol):
    def is_valid_key(self, key: str) -> bool:
        ...

    def viewing_key(self, key: str, scope: Scope) -> Any:
        ...

    def spending_key(self, key: str) -> Any:
        ...

    def address(self, key: str, scope: Scope) -> str:
        ...

    def generate_seed(self) -> str:
        ...

    def candidate_keys(self, seed: str, count: int) -> List[CandidateKey]:
        ...


@dataclass
class CryptoBackend:
    proofs: ProofSystem
    notes: NoteDecryptor
    keys: KeyDeriver
    name: str = field(default="custom")
