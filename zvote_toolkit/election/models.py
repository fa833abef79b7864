"""
Election data types.

An election is immutable once published. Its JSON form (as served by the
bulletin board and saved by the creation tool):

    {
      "id": "<hex>", "name": ..., "start_height": ..., "end_height": ...,
      "question": ..., "candidates": [{"address": ..., "choice": ...}],
      "signature_required": bool,
      "cmx": "<hex>", "nf": "<hex>",
      "cmx_frontier": {"position": ..., "leaf": ..., "ommers": [...]} | null
    }

The "id" key is derived and ignored on input.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import keccak

from zvote_toolkit.trees import hasher
from zvote_toolkit.trees.frontier import Frontier
from zvote_toolkit.utils.file_utils import canonical_json


@dataclass(frozen=True)
class Candidate:
    address: str
    label: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candidate":
        return cls(address=data["address"], label=data["choice"])

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "choice": self.label}


@dataclass(frozen=True)
class Election:
    name: str
    start_height: int
    end_height: int
    question: str
    candidates: Tuple[Candidate, ...]
    signature_required: bool
    commitment_root: str = hasher.to_hex(hasher.empty_root(hasher.DEPTH))
    nullifier_root: str = hasher.to_hex(hasher.empty_root(hasher.DEPTH))
    commitment_frontier: Optional[Dict[str, Any]] = field(default=None, compare=False)

    def __post_init__(self):
        addresses = [c.address for c in self.candidates]
        if len(set(addresses)) != len(addresses):
            raise ValueError("Candidate addresses must be unique")
        if self.end_height < self.start_height:
            raise ValueError(
                f"Voting window is empty: {self.start_height}..{self.end_height}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Election":
        try:
            return cls(
                name=data["name"],
                start_height=int(data["start_height"]),
                end_height=int(data["end_height"]),
                question=data["question"],
                candidates=tuple(Candidate.from_dict(c) for c in data["candidates"]),
                signature_required=bool(data["signature_required"]),
                commitment_root=hasher.to_hex(hasher.from_hex(data["cmx"])),
                nullifier_root=hasher.to_hex(hasher.from_hex(data["nf"])),
                commitment_frontier=data.get("cmx_frontier"),
            )
        except KeyError as e:
            raise ValueError(f"Election is missing field {e}")
        except (TypeError, AttributeError) as e:
            raise ValueError(f"Invalid election: {e}")

    def _body(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "start_height": self.start_height,
            "end_height": self.end_height,
            "question": self.question,
            "candidates": [c.to_dict() for c in self.candidates],
            "signature_required": self.signature_required,
            "cmx": self.commitment_root,
            "nf": self.nullifier_root,
            "cmx_frontier": self.commitment_frontier,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self._body()}

    @property
    def id(self) -> str:
        return keccak(canonical_json(self._body())).hex()

    @property
    def domain(self) -> int:
        """Field element separating this election's nullifiers from any other."""
        return hasher.reduce_digest(keccak(b"zvote-domain" + bytes.fromhex(self.id)))

    @property
    def domain_hex(self) -> str:
        return hasher.to_hex(self.domain)

    def frontier(self) -> Frontier:
        """Frontier rebuilt from the reference checkpoint (FrontierCorrupt if bad)."""
        return Frontier.from_checkpoint(self.commitment_frontier)

    def candidate_index(self, address: str) -> Optional[int]:
        for i, c in enumerate(self.candidates):
            if c.address == address:
                return i
        return None

    def with_reference(
        self, nullifier_root: str, commitment_root: str, frontier: Frontier
    ) -> "Election":
        return Election(
            name=self.name,
            start_height=self.start_height,
            end_height=self.end_height,
            question=self.question,
            candidates=self.candidates,
            signature_required=self.signature_required,
            commitment_root=commitment_root,
            nullifier_root=nullifier_root,
            commitment_frontier=frontier.to_checkpoint(),
        )


@dataclass(frozen=True)
class ElectionData:
    """Output of election creation: the candidates' seed plus the election."""

    seed: str
    election: Election

    def to_dict(self) -> Dict[str, Any]:
        return {"seed": self.seed, "election": self.election.to_dict()}


def parse_candidate_labels(choices: str) -> List[str]:
    """One label per non-empty line, as typed into the creation form."""
    return [line.strip() for line in choices.strip().split("\n") if line.strip()]
