"""Exception types shared by the stores, the reconciler and the HTTP layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pydantic import ValidationError


class FocusFlowError(Exception):
    """Base class for all FocusFlow errors."""


class TaskValidationError(FocusFlowError, ValueError):
    """Input rejected before any write happened. Never retried automatically."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> TaskValidationError:
        """Build a readable error from the first failing field."""
        errors = exc.errors()
        if not errors:
            return cls("Invalid input")
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "input"
        return cls(f"{field}: {first.get('msg', 'invalid value')}")


class NotFoundError(FocusFlowError, LookupError):
    """Record does not exist or is not owned by the caller."""

    def __init__(self, kind: str = "Task") -> None:
        super().__init__(f"{kind} not found or not authorized")
        self.kind = kind


class UnauthorizedError(FocusFlowError):
    """Bearer credential missing or rejected."""
