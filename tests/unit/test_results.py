"""
Unit tests for the Result types module.
"""

import pytest

from zvote_toolkit.shared.results import (
    ErrorSeverity,
    ProcessingError,
    Result,
    SyncSummary,
)


class TestProcessingError:
    """Tests for ProcessingError dataclass."""

    def test_create_error_with_context(self):
        """Test creating an error with mirror context."""
        error = ProcessingError(
            source="broadcast",
            message="duplicate ballot",
            severity=ErrorSeverity.WARNING,
            context={"mirror": "https://vote.example/e1"},
        )
        assert error.context["mirror"] == "https://vote.example/e1"
        assert error.exception is None


class TestResult:
    """Tests for Result[T] generic class."""

    def test_ok_result(self):
        result = Result.ok("ab" * 32)
        assert result.success is True
        assert result.data == "ab" * 32
        assert result.errors == []

    def test_warnings_keep_success(self):
        """Test that rejections recorded as warnings do not fail the result."""
        result = Result.ok("hash")
        result.add_warning("broadcast", "rejected", {"mirror": "m1"})
        result.add_warning("broadcast", "rejected again", {"mirror": "m2"})

        assert result.success is True
        assert all(e.severity == ErrorSeverity.WARNING for e in result.errors)
        assert result.errors[1].context == {"mirror": "m2"}
        assert result.get_error_messages() == ["rejected", "rejected again"]
        assert result.unwrap() == "hash"

    def test_unwrap_success(self):
        assert Result.ok(42).unwrap() == 42

    def test_unwrap_failure_raises(self):
        result = Result(
            success=False,
            errors=[
                ProcessingError(source="sync", message="boom", severity=ErrorSeverity.ERROR)
            ],
        )
        with pytest.raises(RuntimeError, match="boom"):
            result.unwrap()


class TestSyncSummary:
    """Tests for SyncSummary dataclass."""

    def test_defaults(self):
        summary = SyncSummary(
            mirror="https://m1", start_height=3, end_height=3, server_count=5
        )
        assert summary.applied == 0
        assert summary.notes_found == 0
        assert summary.is_complete() is False

    def test_complete_when_caught_up(self):
        summary = SyncSummary(
            mirror="https://m1", start_height=3, end_height=5, server_count=5, applied=2
        )
        assert summary.is_complete() is True

    def test_to_dict(self):
        summary = SyncSummary(
            mirror="https://m1",
            start_height=0,
            end_height=2,
            server_count=2,
            applied=2,
            notes_found=1,
        )
        assert summary.to_dict() == {
            "mirror": "https://m1",
            "start_height": 0,
            "end_height": 2,
            "server_count": 2,
            "applied": 2,
            "notes_found": 1,
            "complete": True,
        }
