"""Append-only approval history for salary runs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staff_payroll.models import AuditEvent, PayrollApprovalHistory

RUN_ENTITY_TYPE = "SalaryRun"


class ApprovalAction(str, Enum):
    """Actions recorded in a run's approval history."""

    CREATED = "CREATED"
    PREPARED = "PREPARED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FINALIZED = "FINALIZED"
    DELETED = "DELETED"

    @property
    def audit_action(self) -> str:
        """Action name used for the same transition in the generic audit log."""
        return f"PAYROLL_RUN_{self.value}"


# Generic audit log action name -> history action
LEGACY_ACTIONS: dict[str, str] = {a.audit_action: a.value for a in ApprovalAction}


@dataclass(frozen=True)
class HistoryEntry:
    """Read-side projection of one history entry."""

    entry_id: UUID
    salary_run_id: UUID
    action: str
    actor_id: UUID | None
    comments: str | None
    created_at: datetime
    source: str = "history"

    @property
    def performed_by(self) -> str:
        return str(self.actor_id) if self.actor_id else "System"


class ApprovalHistoryRecorder:
    """Records and reads the approval trail of salary runs.

    Rows are insert-only. There is no update or delete path.

    Reading falls back to projecting the generic audit log when a run has
    no native history rows. That projection only serves runs created before
    the history table existed; drop it once those runs are migrated.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        salary_run_id: UUID,
        tenant_id: UUID,
        action: ApprovalAction | str,
        actor_id: UUID | None = None,
        comments: str | None = None,
    ) -> PayrollApprovalHistory:
        """Insert one history row in its own SAVEPOINT."""
        entry = PayrollApprovalHistory(
            salary_run_id=salary_run_id,
            tenant_id=tenant_id,
            action=ApprovalAction(action).value,
            actor_id=actor_id,
            comments=comments,
        )
        async with self.session.begin_nested():
            self.session.add(entry)
        return entry

    async def read(self, salary_run_id: UUID, tenant_id: UUID) -> list[HistoryEntry]:
        """Chronological history for a run.

        Entries sharing a timestamp come back in primary key order.
        """
        result = await self.session.execute(
            select(PayrollApprovalHistory)
            .where(
                PayrollApprovalHistory.salary_run_id == salary_run_id,
                PayrollApprovalHistory.tenant_id == tenant_id,
            )
            .order_by(
                PayrollApprovalHistory.created_at,
                PayrollApprovalHistory.approval_history_id,
            )
        )
        rows = result.scalars().all()
        if rows:
            return [
                HistoryEntry(
                    entry_id=row.approval_history_id,
                    salary_run_id=row.salary_run_id,
                    action=row.action,
                    actor_id=row.actor_id,
                    comments=row.comments,
                    created_at=row.created_at,
                )
                for row in rows
            ]

        return await self._read_legacy(salary_run_id, tenant_id)

    async def _read_legacy(self, salary_run_id: UUID, tenant_id: UUID) -> list[HistoryEntry]:
        """Partial trail reconstructed from generic audit events."""
        result = await self.session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.tenant_id == tenant_id,
                AuditEvent.entity_type == RUN_ENTITY_TYPE,
                AuditEvent.entity_id == salary_run_id,
                AuditEvent.action.in_(list(LEGACY_ACTIONS)),
            )
            .order_by(AuditEvent.created_at, AuditEvent.audit_event_id)
        )
        entries = []
        for event in result.scalars().all():
            details = event.after_json or {}
            entries.append(
                HistoryEntry(
                    entry_id=event.audit_event_id,
                    salary_run_id=salary_run_id,
                    action=LEGACY_ACTIONS[event.action],
                    actor_id=event.actor_user_id,
                    comments=details.get("reason"),
                    created_at=event.created_at,
                    source="audit_log",
                )
            )
        return entries
