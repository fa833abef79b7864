from zvote_toolkit.ballots.models import (
    Ballot,
    BallotAction,
    BallotAnchors,
    BallotData,
    BallotWitnesses,
)

__all__ = [
    "Ballot",
    "BallotAction",
    "BallotAnchors",
    "BallotData",
    "BallotWitnesses",
]
