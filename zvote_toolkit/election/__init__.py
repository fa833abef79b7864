from zvote_toolkit.election.models import Candidate, Election, ElectionData

__all__ = ["Candidate", "Election", "ElectionData"]
