"""
Result types for explicit success/failure tracking.

Broadcasts report per-mirror rejections as warnings on an otherwise
successful Result, and sync runs report what they applied through
SyncSummary, so nothing fails silently.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorSeverity(Enum):
    """Severity levels for processing errors."""

    WARNING = "warning"  # Continue processing, log issue
    ERROR = "error"  # Operation failed
    CRITICAL = "critical"  # Stop processing entirely


@dataclass
class ProcessingError:
    """
    Represents a single processing error with context.

    Attributes:
        source: Component that generated the error (e.g., "broadcast", "sync")
        message: Human-readable error description
        severity: How severe the error is (affects control flow)
        context: Additional context like mirror url or height
        exception: Original exception if available
    """

    source: str
    message: str
    severity: ErrorSeverity
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None


@dataclass
class Result(Generic[T]):
    """
    Result type that carries success/failure information.

    Attributes:
        success: Whether the operation succeeded
        data: The result data if successful
        errors: Errors encountered (can hold warnings even on success)
    """

    success: bool
    data: Optional[T] = None
    errors: List[ProcessingError] = field(default_factory=list)

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        """Create a successful result with data."""
        return cls(success=True, data=data)

    def add_warning(
        self,
        source: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> "Result[T]":
        """Add a warning to the result (convenience method)."""
        self.errors.append(
            ProcessingError(
                source=source,
                message=message,
                severity=ErrorSeverity.WARNING,
                context=context or {},
            )
        )
        return self

    def get_error_messages(self) -> List[str]:
        """Get all error messages as strings."""
        return [e.message for e in self.errors]

    def unwrap(self) -> T:
        """Return the data, raising RuntimeError if the result failed."""
        if not self.success:
            raise RuntimeError("; ".join(self.get_error_messages()))
        return self.data  # type: ignore[return-value]


@dataclass
class SyncSummary:
    """
    Summary of a ballot sync run.

    start_height is the last height applied before the run, end_height the
    last height applied when it finished.
    """

    mirror: str
    start_height: int
    end_height: int
    server_count: int
    applied: int = 0
    notes_found: int = 0

    def is_complete(self) -> bool:
        return self.end_height >= self.server_count

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary for JSON serialization."""
        return {
            "mirror": self.mirror,
            "start_height": self.start_height,
            "end_height": self.end_height,
            "server_count": self.server_count,
            "applied": self.applied,
            "notes_found": self.notes_found,
            "complete": self.is_complete(),
        }
