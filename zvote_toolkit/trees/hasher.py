"""
Field arithmetic and node hashing for the commitment and nullifier trees.

Every node is an element of the Pallas base field. Values travel as 32-byte
little-endian hex strings; inside the trees they are plain ints.
"""

from functools import lru_cache
from typing import Union

from eth_utils import keccak

from zvote_toolkit.shared.constants import ProtocolConstants

P = ProtocolConstants.FIELD_MODULUS
FIELD_BYTES = ProtocolConstants.FIELD_BYTES
DEPTH = ProtocolConstants.MERKLE_DEPTH


def is_canonical(value: int) -> bool:
    return 0 <= value < P


def to_repr(value: int) -> bytes:
    """Canonical 32-byte little-endian encoding of a field element."""
    return value.to_bytes(FIELD_BYTES, "little")


def to_hex(value: int) -> str:
    return to_repr(value).hex()


def from_repr(data: Union[bytes, bytearray]) -> int:
    """
    Decode a 32-byte little-endian field element.

    Raises:
        ValueError: wrong length or value outside the field
    """
    if len(data) != FIELD_BYTES:
        raise ValueError(f"Field element must be {FIELD_BYTES} bytes, got {len(data)}")
    value = int.from_bytes(data, "little")
    if not is_canonical(value):
        raise ValueError("Field element is not canonical")
    return value


def from_hex(value: str) -> int:
    """Decode a hex field element; accepts an optional 0x prefix."""
    if not isinstance(value, str):
        raise ValueError(f"Expected hex string, got {type(value).__name__}")
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return from_repr(bytes.fromhex(value))


def reduce_digest(digest: bytes) -> int:
    """Map an arbitrary digest into the field."""
    return int.from_bytes(digest, "little") % P


def combine(level: int, left: int, right: int) -> int:
    """Hash two children at the given level into their parent node."""
    return reduce_digest(keccak(bytes([level]) + to_repr(left) + to_repr(right)))


@lru_cache(maxsize=None)
def empty_root(level: int) -> int:
    """Root of an all-empty subtree of the given height."""
    if level == 0:
        return ProtocolConstants.EMPTY_LEAF
    child = empty_root(level - 1)
    return combine(level - 1, child, child)
