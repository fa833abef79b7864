from zvote_toolkit.trees.frontier import Frontier, merkle_root
from zvote_toolkit.trees.nullifiers import NullifierLedger, ranges_root
from zvote_toolkit.trees.roots import RootSet

__all__ = ["Frontier", "merkle_root", "NullifierLedger", "ranges_root", "RootSet"]
