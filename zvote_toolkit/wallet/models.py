from dataclasses import dataclass
from typing import Any, Dict, Optional

from zvote_toolkit.crypto.interfaces import Scope


@dataclass
class OwnedNote:
    """
    A note the wallet can decrypt.

    `dnf` is the domain nullifier revealed when the note is spent in this
    election; `spent` is the ballot height that spent it. `payload` is the
    backend's opaque note data and must be JSON serializable.
    """

    position: int
    height: int
    txid: str
    value: int
    dnf: str
    scope: Scope
    spent: Optional[int] = None
    payload: Any = None

    @property
    def is_spent(self) -> bool:
        return self.spent is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OwnedNote":
        return cls(
            position=data["position"],
            height=data["height"],
            txid=data["txid"],
            value=data["value"],
            dnf=data["dnf"],
            scope=Scope(data["scope"]),
            spent=data.get("spent"),
            payload=data.get("payload"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "height": self.height,
            "txid": self.txid,
            "value": self.value,
            "dnf": self.dnf,
            "scope": self.scope.value,
            "spent": self.spent,
            "payload": self.payload,
        }


@dataclass(frozen=True)
class VoteRecord:
    id: int
    hash: str
    address: str
    amount: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoteRecord":
        return cls(
            id=data["id"],
            hash=data["hash"],
            address=data["address"],
            amount=data["amount"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hash": self.hash,
            "address": self.address,
            "amount": self.amount,
        }
