"""Write-only contract for posting payroll to the expense ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from staff_payroll.config import get_settings
from staff_payroll.models import Expense

PERSONNEL_CATEGORY = "PERSONNEL"
APPROVED_STATUS = "APPROVED"
PAYROLL_SYSTEM = "Payroll System"


@dataclass(frozen=True)
class PayrollExpense:
    """What finalize asks the ledger to record."""

    tenant_id: UUID
    salary_run_id: UUID
    period: str
    amount: Decimal


class ExpenseLedger(Protocol):
    """Narrow write contract over the expense ledger."""

    async def create_approved_expense(self, expense: PayrollExpense) -> UUID:
        """Create an approved PERSONNEL expense and return its id."""
        ...


class SqlExpenseLedger:
    """Expense ledger backed by the expense table.

    Writes into the caller's session so the expense commits or rolls back
    together with the run's status change.
    """

    def __init__(self, session: AsyncSession, department: str | None = None):
        self.session = session
        self.department = department or get_settings().expense_department

    async def create_approved_expense(self, expense: PayrollExpense) -> UUID:
        now = datetime.now(timezone.utc)
        record = Expense(
            tenant_id=expense.tenant_id,
            expense_number=f"PAY-{expense.period}-{str(expense.salary_run_id)[:8].upper()}",
            title=f"Payroll {expense.period}",
            description=f"Payroll for period {expense.period}",
            amount=expense.amount,
            category=PERSONNEL_CATEGORY,
            department=self.department,
            status=APPROVED_STATUS,
            priority="MEDIUM",
            approval_level=1,
            requested_by=PAYROLL_SYSTEM,
            approved_amount=expense.amount,
            approved_by=PAYROLL_SYSTEM,
            approved_at=now,
            source_type="salary_run",
            source_id=expense.salary_run_id,
        )
        self.session.add(record)
        await self.session.flush()
        return record.expense_id
