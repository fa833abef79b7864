"""
Ballot data types.

A ballot travels as JSON:

    {
      "data": {
        "version": 1,
        "domain": "<hex>",
        "actions": [{"cv_net", "rk", "nf", "cmx", "epk", "enc"}, ...],
        "anchors": {"nf": "<hex>", "cmx": "<hex>"}
      },
      "witnesses": {
        "proofs": ["<hex>", ...],
        "sp_signatures": ["<hex>", ...] | null,
        "binding_signature": "<hex>"
      }
    }

Parsing checks shape and that every field element is canonical; anything
else is a MalformedBallot. All types are frozen once built.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import keccak

from zvote_toolkit.shared.exceptions import MalformedBallot
from zvote_toolkit.trees import hasher
from zvote_toolkit.utils.file_utils import canonical_json


def _field(data: Dict[str, Any], key: str, where: str) -> str:
    try:
        value = data[key]
        element = hasher.from_hex(value)
    except KeyError:
        raise MalformedBallot(f"{where}: missing '{key}'")
    except ValueError as e:
        raise MalformedBallot(f"{where}: invalid '{key}': {e}")
    return hasher.to_hex(element)


def _hex_blob(data: Dict[str, Any], key: str, where: str) -> str:
    try:
        value = data[key]
        bytes.fromhex(value)
    except KeyError:
        raise MalformedBallot(f"{where}: missing '{key}'")
    except (TypeError, ValueError) as e:
        raise MalformedBallot(f"{where}: invalid '{key}': {e}")
    return value.lower()


@dataclass(frozen=True)
class BallotAction:
    """One spend-and-create unit: a nullifier, a commitment and the note."""

    nullifier: str
    commitment: str
    encrypted_note: str
    cv_net: str
    rk: str
    epk: str

    @property
    def nf(self) -> int:
        return hasher.from_hex(self.nullifier)

    @property
    def cmx(self) -> int:
        return hasher.from_hex(self.commitment)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BallotAction":
        if not isinstance(data, dict):
            raise MalformedBallot("action: expected an object")
        return cls(
            nullifier=_field(data, "nf", "action"),
            commitment=_field(data, "cmx", "action"),
            encrypted_note=_hex_blob(data, "enc", "action"),
            cv_net=_hex_blob(data, "cv_net", "action"),
            rk=_hex_blob(data, "rk", "action"),
            epk=_hex_blob(data, "epk", "action"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cv_net": self.cv_net,
            "rk": self.rk,
            "nf": self.nullifier,
            "cmx": self.commitment,
            "epk": self.epk,
            "enc": self.encrypted_note,
        }


@dataclass(frozen=True)
class BallotAnchors:
    """Nullifier root and commitment root the ballot was built against."""

    nf: str
    cmx: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BallotAnchors":
        if not isinstance(data, dict):
            raise MalformedBallot("anchors: expected an object")
        return cls(nf=_field(data, "nf", "anchors"), cmx=_field(data, "cmx", "anchors"))

    def to_dict(self) -> Dict[str, Any]:
        return {"nf": self.nf, "cmx": self.cmx}


@dataclass(frozen=True)
class BallotData:
    version: int
    domain: str
    actions: Tuple[BallotAction, ...]
    anchors: BallotAnchors

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BallotData":
        if not isinstance(data, dict):
            raise MalformedBallot("data: expected an object")
        version = data.get("version")
        if not isinstance(version, int) or isinstance(version, bool):
            raise MalformedBallot(f"data: invalid version {version!r}")
        actions = data.get("actions")
        if not isinstance(actions, list):
            raise MalformedBallot("data: 'actions' must be a list")
        return cls(
            version=version,
            domain=_field(data, "domain", "data"),
            actions=tuple(BallotAction.from_dict(a) for a in actions),
            anchors=BallotAnchors.from_dict(data.get("anchors")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "domain": self.domain,
            "actions": [a.to_dict() for a in self.actions],
            "anchors": self.anchors.to_dict(),
        }

    def sighash(self) -> bytes:
        """Content hash identifying the ballot."""
        return keccak(canonical_json(self.to_dict()))


@dataclass(frozen=True)
class BallotWitnesses:
    proofs: Tuple[str, ...]
    sp_signatures: Optional[Tuple[str, ...]]
    binding_signature: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BallotWitnesses":
        if not isinstance(data, dict):
            raise MalformedBallot("witnesses: expected an object")
        proofs = data.get("proofs")
        if not isinstance(proofs, list):
            raise MalformedBallot("witnesses: 'proofs' must be a list")
        signatures = data.get("sp_signatures")
        if signatures is not None and not isinstance(signatures, list):
            raise MalformedBallot("witnesses: 'sp_signatures' must be a list or null")
        binding = data.get("binding_signature")
        if not isinstance(binding, str):
            raise MalformedBallot("witnesses: missing 'binding_signature'")
        return cls(
            proofs=tuple(proofs),
            sp_signatures=tuple(signatures) if signatures is not None else None,
            binding_signature=binding,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proofs": list(self.proofs),
            "sp_signatures": (
                list(self.sp_signatures) if self.sp_signatures is not None else None
            ),
            "binding_signature": self.binding_signature,
        }


@dataclass(frozen=True)
class Ballot:
    data: BallotData
    witnesses: BallotWitnesses

    @property
    def actions(self) -> Tuple[BallotAction, ...]:
        return self.data.actions

    @property
    def anchors(self) -> BallotAnchors:
        return self.data.anchors

    @property
    def version(self) -> int:
        return self.data.version

    def sighash(self) -> bytes:
        return self.data.sighash()

    def sighash_hex(self) -> str:
        return self.sighash().hex()

    def nullifiers(self) -> List[int]:
        return [a.nf for a in self.data.actions]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ballot":
        if not isinstance(data, dict):
            raise MalformedBallot("ballot: expected an object")
        return cls(
            data=BallotData.from_dict(data.get("data")),
            witnesses=BallotWitnesses.from_dict(data.get("witnesses")),
        )

    @classmethod
    def from_json(cls, text: str) -> "Ballot":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedBallot(f"ballot: invalid JSON: {e}")
        return cls.from_dict(payload)

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data.to_dict(), "witnesses": self.witnesses.to_dict()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
