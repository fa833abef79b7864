from zvote_toolkit.reference.source import (
    BlockSource,
    CompactAction,
    CompactBlock,
    HttpBlockSource,
)
from zvote_toolkit.reference.synchronizer import ReferenceState, ReferenceSynchronizer

__all__ = [
    "BlockSource",
    "CompactAction",
    "CompactBlock",
    "HttpBlockSource",
    "ReferenceState",
    "ReferenceSynchronizer",
]
