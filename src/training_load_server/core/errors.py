"""Error types and validation results.

Three kinds of failure are distinguished:

- validation: malformed input, surfaced to the caller immediately
- not_found: a referenced record does not exist or is not owned by the caller
- bad_request: a computation cannot proceed (e.g. non-positive duration)

Missing data is not an error; callers degrade with lower confidence instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorType(str, Enum):
    """Error categories exposed to API clients."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"


class TrainingLoadError(Exception):
    """Base class for domain errors."""

    error_type: ErrorType = ErrorType.BAD_REQUEST

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Render the error for an API response body."""
        return {
            "error": self.error_type.value,
            "message": self.message,
            "details": self.details,
        }

    def to_log_dict(self) -> dict[str, Any]:
        """Render the error as structured log fields."""
        return {
            "error_type": self.error_type.value,
            "error_message": self.message,
            **self.details,
        }


class InvalidInputError(TrainingLoadError):
    """Input failed schema or range validation."""

    error_type = ErrorType.VALIDATION

    def __init__(self, message: str, issues: list[ValidationIssue] | None = None) -> None:
        self.issues = issues or []
        super().__init__(
            message,
            {"issues": [issue.to_dict() for issue in self.issues]} if self.issues else None,
        )


class NotFoundError(TrainingLoadError):
    """Referenced record does not exist or belongs to another athlete."""

    error_type = ErrorType.NOT_FOUND


class BadRequestError(TrainingLoadError):
    """Computation-fatal input such as a non-positive duration."""

    error_type = ErrorType.BAD_REQUEST


@dataclass
class ValidationIssue:
    """A single validation problem at a location in the input."""

    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message}


@dataclass
class ValidationResult(Generic[T]):
    """Explicit success/failure outcome of validating structured input."""

    value: T | None = None
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.issues and self.value is not None

    @classmethod
    def ok(cls, value: T) -> ValidationResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, issues: list[ValidationIssue]) -> ValidationResult[T]:
        return cls(issues=issues)

    def unwrap(self) -> T:
        """Return the validated value or raise InvalidInputError."""
        if not self.success:
            raise InvalidInputError("Validation failed", self.issues)
        return self.value  # type: ignore[return-value]
