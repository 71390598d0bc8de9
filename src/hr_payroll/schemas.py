"""Pydantic schemas for validated service input and serialized output."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Period schemas
# ============================================================================


class PeriodCreate(BaseModel):
    """Input for opening a payroll period."""

    reference_month: int = Field(ge=1, le=12)
    reference_year: int = Field(gt=0)


class PeriodFilters(BaseModel):
    """Filters and pagination for listing periods."""

    year: int | None = Field(default=None, gt=0)
    status: Literal["open", "closed"] | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PeriodResponse(BaseModel):
    """Serialized payroll period."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    reference_month: int
    reference_year: int
    status: str
    closed_by: int | None = None
    closed_at: datetime | None = None


# ============================================================================
# Component schemas
# ============================================================================

ComponentTypeName = Literal["base_salary", "fixed_bonus", "hazard_pay", "unhealthy_pay", "other"]


class ComponentCreate(BaseModel):
    """Input for assigning a recurring component to an employee."""

    employee_id: int
    type: ComponentTypeName
    description: str = Field(min_length=1, max_length=200)
    amount: Decimal = Field(gt=0, decimal_places=2)
    effective_from: date
    effective_until: date | None = None

    @model_validator(mode="after")
    def check_dates(self) -> "ComponentCreate":
        if self.effective_until is not None and self.effective_until < self.effective_from:
            raise ValueError("effective_until must not be before effective_from")
        return self


class ComponentPatch(BaseModel):
    """Partial update of a component.

    Only fields explicitly set by the caller are applied, so an explicit
    ``effective_until=None`` clears the end date while omitting it leaves the
    stored value untouched.
    """

    description: str | None = Field(default=None, min_length=1, max_length=200)
    amount: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    is_active: bool | None = None
    effective_from: date | None = None
    effective_until: date | None = None

    def changes(self) -> dict[str, Any]:
        """Return the explicitly set fields."""
        return self.model_dump(exclude_unset=True)


class ComponentResponse(BaseModel):
    """Serialized component."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    type: str
    description: str
    amount: Decimal
    is_active: bool
    effective_from: date
    effective_until: date | None = None


# ============================================================================
# Entry schemas
# ============================================================================

ManualEntryCode = Literal[
    "overtime_50",
    "overtime_100",
    "night_shift",
    "bonus",
    "commission",
    "benefit_discount",
    "absence",
    "advance",
]


class EntryCreate(BaseModel):
    """Input for posting a one-off entry to an open period.

    Codes are limited to the ones calculation never writes, so a posted entry
    cannot overwrite a computed charge.
    """

    payroll_period_id: int
    employee_id: int
    component_type: Literal["earning", "deduction"]
    code: ManualEntryCode
    description: str = Field(min_length=1, max_length=200)
    amount: Decimal = Field(gt=0, decimal_places=2)
    reference_value: Decimal | None = Field(default=None, ge=0)
    quantity: Decimal | None = Field(default=None, ge=0, decimal_places=4)


class EntryResponse(BaseModel):
    """Serialized payroll entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    payroll_period_id: int
    employee_id: int
    component_type: str
    code: str
    description: str
    reference_value: Decimal | None = None
    quantity: Decimal | None = None
    amount: Decimal


# ============================================================================
# Pay slip schemas
# ============================================================================


class PaySlipResponse(BaseModel):
    """Serialized pay slip."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    payroll_period_id: int
    employee_id: int
    gross_salary: Decimal
    total_earnings: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    inss_amount: Decimal
    irrf_amount: Decimal
    fgts_amount: Decimal
    status: str
    details: dict[str, Any] | None = None


class PayrollBatchResponse(BaseModel):
    """Serialized result of a batch calculation."""

    period_id: int
    slips: list[PaySlipResponse]
    failures: dict[int, str]
