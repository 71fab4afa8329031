"""Type definitions for the resolution and calculation pipeline."""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class ComponentType(str, Enum):
    """Pay component types."""

    BASIC = "BASIC"
    ALLOWANCE = "ALLOWANCE"
    DEDUCTION = "DEDUCTION"
    EMPLOYER_CONTRIBUTION = "EMPLOYER_CONTRIBUTION"


class ComputeMethod(str, Enum):
    """How a component's amount is determined."""

    FIXED = "FIXED"
    FORMULA = "FORMULA"
    TABLE = "TABLE"


class StaffRole(str, Enum):
    """Roles that are paid through payroll."""

    TEACHER = "TEACHER"
    FINANCE = "FINANCE"
    ADMIN = "ADMIN"
    LIBRARIAN = "LIBRARIAN"


PAYROLL_ROLES = frozenset(role.value for role in StaffRole)

# Earnings add to gross; deductions subtract from it; employer
# contributions are tracked on their own and never touch gross or net.
EARNING_TYPES = frozenset({ComponentType.BASIC.value, ComponentType.ALLOWANCE.value})


@dataclass(frozen=True)
class StaffProfile:
    """Read-only view of a staff member as supplied by the staff directory."""

    staff_id: UUID
    tenant_id: UUID
    role: str
    is_active: bool
    display_name: str
    email: str | None = None
    profile_department: str | None = None


@dataclass(frozen=True)
class PeriodWindow:
    """Inclusive date range a run covers."""

    start: date
    end: date

    @classmethod
    def for_period(cls, period: str) -> PeriodWindow:
        """Build the window for a YYYY-MM period."""
        year, month = (int(part) for part in period.split("-"))
        return cls(start=date(year, month, 1), end=date(year, month, monthrange(year, month)[1]))

    @classmethod
    def on(cls, day: date) -> PeriodWindow:
        return cls(start=day, end=day)


@dataclass(frozen=True)
class ResolvedComponent:
    """A component that applies to a staff member, with its amount."""

    component_id: UUID
    code: str
    name: str
    type: str
    taxable: bool
    amount: Decimal
    is_auto_assigned: bool = False
    department: str | None = None
    assignment_id: UUID | None = None

    @property
    def signature(self) -> tuple[str, str]:
        return (self.type, self.name)

    @property
    def display_name(self) -> str:
        if self.is_auto_assigned:
            return f"{self.name} (Auto)"
        return self.name


@dataclass
class SalaryBreakdown:
    """Monetary breakdown for one staff member.

    The sum fields hold unrounded values; use ``rounded()`` for the
    persisted, cent-precision view.
    """

    gross_pay: Decimal = Decimal("0")
    taxable_pay: Decimal = Decimal("0")
    deductions: Decimal = Decimal("0")
    employer_contrib: Decimal = Decimal("0")
    entries: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def net_pay(self) -> Decimal:
        return self.gross_pay - self.deductions

    @property
    def is_empty(self) -> bool:
        """True when the item carries no pay and must not be persisted."""
        return self.gross_pay <= 0 and self.net_pay <= 0


@dataclass(frozen=True)
class RoundedBreakdown:
    """Cent-precision amounts ready for persistence."""

    gross_pay: Decimal
    taxable_pay: Decimal
    deductions: Decimal
    net_pay: Decimal
    employer_contrib: Decimal
    entries: dict[str, dict[str, Any]]

    @property
    def is_empty(self) -> bool:
        return self.gross_pay <= 0 and self.net_pay <= 0


@dataclass
class StaffComputation:
    """Resolution plus breakdown for one staff member."""

    staff: StaffProfile
    department: str
    components: list[ResolvedComponent]
    breakdown: SalaryBreakdown

    @property
    def has_components(self) -> bool:
        return len(self.components) > 0
