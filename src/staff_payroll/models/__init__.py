"""SQLAlchemy ORM models for the staff payroll engine."""

from staff_payroll.models.base import Base, TimestampMixin, UpdatedAtMixin
from staff_payroll.models.catalog import PayComponent, StaffPayAssignment
from staff_payroll.models.ledger import AuditEvent, Expense
from staff_payroll.models.runs import PayrollApprovalHistory, SalaryItem, SalaryRun
from staff_payroll.models.staff import StaffMember

__all__ = [
    "AuditEvent",
    "Base",
    "Expense",
    "PayComponent",
    "PayrollApprovalHistory",
    "SalaryItem",
    "SalaryRun",
    "StaffMember",
    "StaffPayAssignment",
    "TimestampMixin",
    "UpdatedAtMixin",
]
