"""LexCRM Error Hierarchy.

All custom errors inherit from LexCRMError for consistent handling.
Nothing raised here is fatal to the engine: every failure leaves the
caller's snapshot unchanged and reports.
"""

from __future__ import annotations

from typing import Any


class LexCRMError(Exception):
    """Base exception for all LexCRM errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Validation Errors
class ValidationError(LexCRMError):
    """Request rejected before any state was touched."""

    pass


class InvalidStageError(ValidationError):
    """Requested pipeline stage is not part of the stage catalog."""

    def __init__(self, stage: str, catalog: list[str]) -> None:
        super().__init__(
            f"Invalid pipeline stage '{stage}'. Expected one of: {', '.join(catalog)}",
            code="INVALID_STAGE",
            details={"stage": stage, "catalog": catalog},
        )
        self.stage = stage


class InvalidTransitionError(ValidationError):
    """Lead cannot move out of its current (terminal) state."""

    def __init__(self, record_id: str, current: str, target: str) -> None:
        super().__init__(
            f"Lead '{record_id}' cannot move from '{current}' to '{target}'",
            code="INVALID_TRANSITION",
            details={"record_id": record_id, "current": current, "target": target},
        )


class RecordNotFoundError(LexCRMError):
    """Referenced record is absent from the snapshot."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(
            f"{kind.capitalize()} '{record_id}' not found",
            code="RECORD_NOT_FOUND",
            details={"kind": kind, "record_id": record_id},
        )


# Integration Errors
class IntegrationError(LexCRMError):
    """External collaborator failed."""

    pass


class PersistenceError(IntegrationError):
    """Record store rejected a write.

    Raised after the local snapshot has been fully reverted, so the caller
    may simply retry.
    """

    def __init__(
        self,
        operation: str,
        record_id: str,
        *,
        retryable: bool = True,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            f"Persistence failed for {operation} on '{record_id}'"
            + (f": {cause}" if cause else ""),
            code="PERSISTENCE_FAILED",
            details={
                "operation": operation,
                "record_id": record_id,
                "retryable": retryable,
            },
            cause=cause,
        )
        self.retryable = retryable
