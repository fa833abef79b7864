"""zvote toolkit - anonymous, auditable voting: wallet, ballot ingestion and audit."""

__version__ = "0.3.0"

from .audit import AuditService, TallyEngine
from .ballots import Ballot
from .election import Election
from .wallet.session import VoteSession

__all__ = ["AuditService", "Ballot", "Election", "TallyEngine", "VoteSession"]
