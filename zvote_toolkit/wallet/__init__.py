from zvote_toolkit.wallet.models import OwnedNote, VoteRecord
from zvote_toolkit.wallet.store import WalletStore

__all__ = ["OwnedNote", "VoteRecord", "WalletStore"]
