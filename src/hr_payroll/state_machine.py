"""Payroll period state machine."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from hr_payroll.errors import InvalidTransitionError

if TYPE_CHECKING:
    from hr_payroll.models import PayrollPeriod


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    OPEN = "open"
    CLOSED = "closed"


class PeriodStateMachine:
    """Manages payroll period state transitions.

    Valid transitions:
    - open -> closed (close)

    Closed is terminal. There is no reopen.
    """

    VALID_TRANSITIONS: dict[PeriodStatus, set[PeriodStatus]] = {
        PeriodStatus.OPEN: {PeriodStatus.CLOSED},
        PeriodStatus.CLOSED: set(),
    }

    # Statuses that allow entries and slips to be (re)generated
    MUTABLE_STATUSES = {PeriodStatus.OPEN}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        try:
            from_s = PeriodStatus(from_status)
            to_s = PeriodStatus(to_status)
        except ValueError:
            return False
        return to_s in cls.VALID_TRANSITIONS.get(from_s, set())

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising if invalid."""
        if not cls.can_transition(from_status, to_status):
            reason = None
            if from_status == to_status:
                reason = f"period is already {from_status}"
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def is_mutable(cls, status: str) -> bool:
        """Check if entries can be generated in this status."""
        try:
            return PeriodStatus(status) in cls.MUTABLE_STATUSES
        except ValueError:
            return False

    @classmethod
    def ensure_mutable(cls, period: PayrollPeriod) -> None:
        """Raise if the period no longer accepts calculation or manual entries."""
        if not cls.is_mutable(period.status):
            raise InvalidTransitionError(
                period.status,
                period.status,
                f"payroll period {period.label} is {period.status} and no longer accepts changes",
            )
