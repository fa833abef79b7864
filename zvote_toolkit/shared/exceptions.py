"""
Exception hierarchy for the zvote toolkit.

Exception Categories:
- RetryableException: Transient failures that may succeed on retry (network, storage)
- NonRetryableException: Permanent failures that won't benefit from retry (bad data)
- ConfigurationException: Startup/config errors that prevent operation

Protocol violations (ProtocolViolation and its subclasses) are fatal to the
current ingestion or audit run. They mean the ballot stream is malicious or
the engine has a bug, so the run aborts without committing partial state.

TransientIO and BroadcastFailed are retryable: the caller may repeat the
same height or resubmit the same ballot. The core never retries on its own.
"""

from typing import List, Optional


class RetryableException(Exception):
    """
    Base class for exceptions that may succeed on retry.

    Use for transient failures like:
    - HTTP timeouts
    - Mirrors temporarily refusing connections
    - Storage hiccups
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NonRetryableException(Exception):
    """
    Base class for exceptions that won't benefit from retry.

    Use for permanent failures like:
    - Invalid input data
    - Missing required data
    - Protocol violations
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationException(NonRetryableException):
    """
    Exception for configuration/startup errors.

    Use when:
    - Required environment variables are missing
    - The crypto backend cannot be loaded
    - A wallet database is missing required props
    """

    pass


class TransientIO(RetryableException):
    """Network or storage fault while fetching, posting or persisting."""

    pass


class BroadcastFailed(RetryableException):
    """
    Every mirror rejected the ballot.

    Carries the last mirror's rejection reason for operator diagnosis. The
    wallet state is untouched, so the ballot may be resubmitted.
    """

    def __init__(self, last_error: str, rejections: Optional[List[str]] = None):
        super().__init__(f"Ballot rejected by every mirror: {last_error}")
        self.last_error = last_error
        self.rejections = rejections or []


class InsufficientFunds(NonRetryableException):
    """The wallet does not hold enough unspent value for the vote."""

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Insufficient balance: requested {requested}, available {available}"
        )
        self.requested = requested
        self.available = available


class ProtocolViolation(NonRetryableException):
    """
    Base class for ballot-stream protocol violations.

    Attributes:
        height: Ballot height at which the violation was found, if known
    """

    def __init__(self, message: str, height: Optional[int] = None):
        if height is not None:
            message = f"{message} (height {height})"
        super().__init__(message)
        self.height = height


class UnsupportedVersion(ProtocolViolation):
    def __init__(self, version: int, height: Optional[int] = None):
        super().__init__(f"Unsupported ballot version {version}", height)
        self.version = version


class StaleOrInvalidAnchor(ProtocolViolation):
    def __init__(self, root: str, height: Optional[int] = None):
        super().__init__(f"Unknown commitment root anchor {root}", height)
        self.root = root


class InvalidNullifierRoot(ProtocolViolation):
    def __init__(self, root: str, expected: str, height: Optional[int] = None):
        super().__init__(
            f"Nullifier root {root} does not match election root {expected}",
            height,
        )
        self.root = root
        self.expected = expected


class DuplicateNullifier(ProtocolViolation):
    def __init__(self, nullifier: str, height: Optional[int] = None):
        super().__init__(f"Duplicate nullifier {nullifier}", height)
        self.nullifier = nullifier


class ProofOrSignatureInvalid(ProtocolViolation):
    def __init__(self, reason: str, height: Optional[int] = None):
        super().__init__(f"Ballot proof or signature invalid: {reason}", height)
        self.reason = reason


class CandidateNoteSpent(ProtocolViolation):
    def __init__(self, nullifier: str):
        super().__init__(f"Candidate note spent (nullifier {nullifier})")
        self.nullifier = nullifier


class FrontierCorrupt(ProtocolViolation):
    pass


class MalformedBallot(ProtocolViolation):
    """Ballot JSON is missing fields or carries non-canonical field elements."""

    pass


class CandidateKeyMismatch(ProtocolViolation):
    def __init__(self, index: int, address: str):
        super().__init__(f"Invalid address for choice #{index}: {address}")
        self.index = index
        self.address = address


class ReferenceDataMismatch(ProtocolViolation):
    """Downloaded reference data does not reproduce the election roots."""

    pass
