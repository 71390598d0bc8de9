"""Error kinds raised by the payroll engine.

Every error carries a machine-readable ``kind`` and a human message so callers
can surface a structured failure without inspecting exception types.
"""

from __future__ import annotations

from typing import Any


class PayrollError(Exception):
    """Base class for all payroll engine errors."""

    kind = "payroll_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(PayrollError):
    """Raised when a period, employee, component or slip does not exist."""

    kind = "not_found"

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class DuplicatePeriodError(PayrollError):
    """Raised when a period already exists for the month/year."""

    kind = "duplicate_period"

    def __init__(self, month: int, year: int):
        self.month = month
        self.year = year
        super().__init__(f"Payroll period {month:02d}/{year} already exists")


class InvalidTransitionError(PayrollError):
    """Raised when an invalid state transition is attempted."""

    kind = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ConfigurationError(PayrollError):
    """Raised when a bracket table is malformed (gaps, overlaps, bad bounds)."""

    kind = "configuration"


class ValidationError(PayrollError):
    """Raised when input data fails validation."""

    kind = "validation"

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, exc: Any) -> ValidationError:
        """Translate a pydantic ValidationError into a payroll error."""
        details = exc.errors()
        parts = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in details
        ]
        return cls("; ".join(parts) or "Invalid input", errors=details)
