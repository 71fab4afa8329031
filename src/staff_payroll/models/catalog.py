"""Pay component catalog and per-staff assignment models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staff_payroll.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from staff_payroll.models.staff import StaffMember


class PayComponent(Base, TimestampMixin, UpdatedAtMixin):
    """Reusable pay component definition (basic pay, allowance, deduction, ...)."""

    __tablename__ = "pay_component"

    pay_component_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    compute_method: Mapped[str] = mapped_column(String, nullable=False, default="FIXED")
    default_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    formula: Mapped[str | None] = mapped_column(Text, nullable=True)

    # If set, auto-assign only to staff in this department
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    auto_assign: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="pay_component_tenant_code_unique"),
        CheckConstraint(
            "type IN ('BASIC', 'ALLOWANCE', 'DEDUCTION', 'EMPLOYER_CONTRIBUTION')",
            name="pay_component_type_check",
        ),
        CheckConstraint(
            "compute_method IN ('FIXED', 'FORMULA', 'TABLE')",
            name="pay_component_compute_method_check",
        ),
        Index("ix_pay_component_tenant_auto", "tenant_id", "auto_assign"),
    )


class StaffPayAssignment(Base, TimestampMixin, UpdatedAtMixin):
    """Explicit, manually granted pay component for one staff member."""

    __tablename__ = "staff_pay_assignment"

    staff_pay_assignment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    staff_id: Mapped[UUID] = mapped_column(
        ForeignKey("staff_member.staff_id", ondelete="CASCADE"),
        nullable=False,
    )
    pay_component_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_component.pay_component_id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "effective_to IS NULL OR effective_from IS NULL OR effective_to >= effective_from",
            name="staff_pay_assignment_dates_check",
        ),
        Index("ix_staff_pay_assignment_tenant_staff", "tenant_id", "staff_id", "is_active"),
    )

    # Relationships
    component: Mapped[PayComponent] = relationship()
    staff: Mapped[StaffMember] = relationship()

    def overlaps(self, start: date, end: date) -> bool:
        """Check if the effective range overlaps [start, end] (null bounds are open)."""
        if self.effective_from is not None and self.effective_from > end:
            return False
        if self.effective_to is not None and self.effective_to < start:
            return False
        return True
