"""Salary run, salary item, and approval history models."""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staff_payroll.models.base import Base, JSONType, TimestampMixin, UpdatedAtMixin


class SalaryRun(Base, TimestampMixin, UpdatedAtMixin):
    """One payroll cycle for a YYYY-MM period."""

    __tablename__ = "salary_run"

    salary_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    term_id: Mapped[UUID | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")

    # Per-transition actors
    prepared_by: Mapped[UUID | None] = mapped_column(nullable=True)
    submitted_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    finalized_by: Mapped[UUID | None] = mapped_column(nullable=True)

    # Aggregates
    total_gross: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_net: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    employer_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    staff_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Ledger link, set exactly once by finalize
    posted_expense_id: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "period", name="salary_run_tenant_period_unique"),
        CheckConstraint(
            "status IN ('DRAFT', 'PREPARED', 'SUBMITTED', 'APPROVED', 'REJECTED', 'FINALIZED')",
            name="salary_run_status_check",
        ),
    )

    # Relationships
    items: Mapped[list[SalaryItem]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SalaryItem.staff_name",
    )


class SalaryItem(Base, TimestampMixin, UpdatedAtMixin):
    """Computed pay breakdown for one staff member within one run."""

    __tablename__ = "salary_item"

    salary_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    salary_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("salary_run.salary_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    staff_id: Mapped[UUID] = mapped_column(nullable=False)

    # Snapshot at computation time
    staff_name: Mapped[str] = mapped_column(String, nullable=False)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    breakdown: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    taxable_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    # Statutory placeholders, always zero in this engine
    paye: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    nhif: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    nssf: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    other_deductions: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    employer_contrib: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    __table_args__ = (
        UniqueConstraint("salary_run_id", "staff_id", name="salary_item_run_staff_unique"),
        Index("ix_salary_item_tenant_run", "tenant_id", "salary_run_id"),
    )

    # Relationships
    run: Mapped[SalaryRun] = relationship(back_populates="items")

    @property
    def total_deductions(self) -> Decimal:
        return self.paye + self.nhif + self.nssf + self.other_deductions


class PayrollApprovalHistory(Base, TimestampMixin):
    """Append-only audit entry for a salary run transition.

    salary_run_id carries no foreign key; rows outlive a deleted draft run.
    """

    __tablename__ = "payroll_approval_history"

    approval_history_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    salary_run_id: Mapped[UUID] = mapped_column(nullable=False)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    actor_id: Mapped[UUID | None] = mapped_column(nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "action IN ('CREATED', 'PREPARED', 'SUBMITTED', 'APPROVED', "
            "'REJECTED', 'FINALIZED', 'DELETED')",
            name="payroll_approval_history_action_check",
        ),
        Index("ix_payroll_approval_history_run_created", "salary_run_id", "created_at"),
    )
