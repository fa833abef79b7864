from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class CountResult:
    choice: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {"choice": self.choice, "amount": self.amount}


@dataclass
class AuditReport:
    """Outcome of a successful audit run."""

    election_id: str
    ballots: int
    commitment_root: str
    counts: List[CountResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(c.amount for c in self.counts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "election_id": self.election_id,
            "ballots": self.ballots,
            "commitment_root": self.commitment_root,
            "total": self.total,
            "counts": [c.to_dict() for c in self.counts],
        }
