"""
Custom exception hierarchy for the valuation engine.

All exceptions inherit from VEError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class VEError(Exception):
    """Base exception for all valuation engine errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(VEError):
    """Raised when configuration is invalid or missing."""

    pass


@dataclass(frozen=True)
class FieldViolation:
    """A single violated input constraint."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"

    def to_dict(self) -> dict[str, str]:
        """Convert to dict."""
        return {"field": self.field, "message": self.message}


class ValidationError(VEError):
    """Raised when valuation input violates a range or shape constraint.

    Carries every violation found, not just the first one.

    Attributes:
        violations: All violated constraints, in field order.
    """

    def __init__(
        self,
        message: str,
        violations: list[FieldViolation] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.violations = list(violations or [])

    def __str__(self) -> str:
        base = super().__str__()
        if not self.violations:
            return base
        return base + ": " + "; ".join(str(v) for v in self.violations)

    @property
    def fields(self) -> list[str]:
        """Names of the fields that failed validation."""
        return [v.field for v in self.violations]


class DomainError(VEError):
    """Raised when valid inputs jointly produce an undefined valuation.

    Context should include:
        - wacc: The discount rate used
        - terminal_growth_rate: The perpetual growth rate used
        - row, column: Sensitivity cell, when the failure is in the grid
    """

    pass


class ValuationNotFoundError(VEError):
    """Raised when a stored valuation does not exist.

    Context should include:
        - valuation_id: The requested valuation ID
    """

    pass


class ValuationAccessError(VEError):
    """Raised when a user acts on a valuation they do not own.

    Context should include:
        - valuation_id: The valuation ID
        - user_id: The requesting user
    """

    pass


class ExportError(VEError):
    """Raised when a result cannot be exported.

    Context should include:
        - path: The output path
        - result_type: The type of object passed in
    """

    pass


class MethodMismatchError(ValidationError):
    """Raised when a calculation is requested with the wrong method.

    Context should include:
        - expected: The stored valuation's method
        - requested: The method that was asked for
    """

    pass
