from zvote_toolkit.crypto.backend import load_crypto_backend
from zvote_toolkit.crypto.interfaces import (
    CandidateKey,
    CryptoBackend,
    KeyDeriver,
    Note,
    NoteDecryptor,
    ProofSystem,
    Scope,
    VoteRequest,
)

__all__ = [
    "load_crypto_backend",
    "CandidateKey",
    "CryptoBackend",
    "KeyDeriver",
    "Note",
    "NoteDecryptor",
    "ProofSystem",
    "Scope",
    "VoteRequest",
]
