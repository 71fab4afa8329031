"""Tests for approval history recording and the audit log projection."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from staff_payroll.models import AuditEvent, PayrollApprovalHistory
from staff_payroll.services.audit_sink import SqlAuditSink, to_json_safe
from staff_payroll.services.history_service import (
    LEGACY_ACTIONS,
    ApprovalAction,
    ApprovalHistoryRecorder,
)


class TestApprovalHistoryRecorder:
    """Test the native history table."""

    async def test_append_and_read_in_order(self, session, tenant_id):
        recorder = ApprovalHistoryRecorder(session)
        run_id, actor = uuid4(), uuid4()

        await recorder.append(run_id, tenant_id, ApprovalAction.CREATED, actor_id=actor)
        await recorder.append(run_id, tenant_id, "SUBMITTED")
        await recorder.append(run_id, tenant_id, ApprovalAction.REJECTED, comments="Totals off")

        entries = await recorder.read(run_id, tenant_id)

        assert [e.action for e in entries] == ["CREATED", "SUBMITTED", "REJECTED"]
        assert entries[0].performed_by == str(actor)
        assert entries[1].performed_by == "System"
        assert entries[2].comments == "Totals off"
        assert {e.source for e in entries} == {"history"}

    async def test_same_timestamp_entries_have_stable_order(self, session, tenant_id):
        run_id = uuid4()
        at = datetime(2025, 3, 31, 12, 0, tzinfo=timezone.utc)
        session.add_all(
            [
                PayrollApprovalHistory(
                    approval_history_id=UUID(int=2),
                    salary_run_id=run_id,
                    tenant_id=tenant_id,
                    action="SUBMITTED",
                    created_at=at,
                ),
                PayrollApprovalHistory(
                    approval_history_id=UUID(int=1),
                    salary_run_id=run_id,
                    tenant_id=tenant_id,
                    action="PREPARED",
                    created_at=at,
                ),
            ]
        )
        await session.flush()
        recorder = ApprovalHistoryRecorder(session)

        first = await recorder.read(run_id, tenant_id)
        second = await recorder.read(run_id, tenant_id)

        assert [e.entry_id for e in first] == [UUID(int=1), UUID(int=2)]
        assert first == second

    async def test_unknown_action_rejected(self, session, tenant_id):
        with pytest.raises(ValueError):
            await ApprovalHistoryRecorder(session).append(uuid4(), tenant_id, "PAID")

    async def test_read_is_tenant_scoped(self, session, tenant_id, other_tenant_id):
        recorder = ApprovalHistoryRecorder(session)
        run_id = uuid4()
        await recorder.append(run_id, tenant_id, ApprovalAction.CREATED)

        assert await recorder.read(run_id, other_tenant_id) == []

    async def test_unknown_run_has_empty_history(self, session, tenant_id):
        assert await ApprovalHistoryRecorder(session).read(uuid4(), tenant_id) == []


class TestLegacyProjection:
    """Runs without native rows are projected from the generic audit log."""

    async def test_falls_back_to_audit_events(self, session, tenant_id):
        run_id, actor = uuid4(), uuid4()
        sink = SqlAuditSink(session)
        await sink.record(
            tenant_id=tenant_id,
            action="PAYROLL_RUN_SUBMITTED",
            entity_type="SalaryRun",
            entity_id=run_id,
            actor_id=actor,
        )
        await sink.record(
            tenant_id=tenant_id,
            action="PAYROLL_RUN_REJECTED",
            entity_type="SalaryRun",
            entity_id=run_id,
            after={"reason": "Missing overtime"},
        )
        # Not a run transition
        await sink.record(
            tenant_id=tenant_id,
            action="PAYROLL_COMPONENT_CREATED",
            entity_type="SalaryRun",
            entity_id=run_id,
        )

        entries = await ApprovalHistoryRecorder(session).read(run_id, tenant_id)

        assert [(e.action, e.source) for e in entries] == [
            ("SUBMITTED", "audit_log"),
            ("REJECTED", "audit_log"),
        ]
        assert entries[0].actor_id == actor
        assert entries[1].comments == "Missing overtime"

    async def test_native_rows_take_precedence(self, session, tenant_id):
        run_id = uuid4()
        await SqlAuditSink(session).record(
            tenant_id=tenant_id,
            action="PAYROLL_RUN_CREATED",
            entity_type="SalaryRun",
            entity_id=run_id,
        )
        await ApprovalHistoryRecorder(session).append(run_id, tenant_id, ApprovalAction.PREPARED)

        entries = await ApprovalHistoryRecorder(session).read(run_id, tenant_id)

        assert [(e.action, e.source) for e in entries] == [("PREPARED", "history")]

    def test_legacy_action_names(self):
        assert LEGACY_ACTIONS["PAYROLL_RUN_FINALIZED"] == "FINALIZED"
        assert ApprovalAction.DELETED.audit_action == "PAYROLL_RUN_DELETED"


class TestAuditSink:
    async def test_payload_is_made_json_safe(self, session, tenant_id):
        entity_id = uuid4()
        await SqlAuditSink(session).record(
            tenant_id=tenant_id,
            action="PAYROLL_RUN_FINALIZED",
            entity_type="SalaryRun",
            entity_id=entity_id,
            after={"posted_expense_id": entity_id},
        )

        event = (await session.execute(AuditEvent.__table__.select())).one()
        assert event.after_json == {"posted_expense_id": str(entity_id)}
        assert event.module == "PAYROLL"

    async def test_write_failure_is_swallowed(self, session, tenant_id, caplog):
        """An audit failure is logged and never propagates."""
        await SqlAuditSink(session).record(
            tenant_id=tenant_id,
            action="PAYROLL_RUN_CREATED",
            entity_type="SalaryRun",
            entity_id=uuid4(),
            after={"value": object()},
        )

        assert "Failed to write audit event" in caplog.text

    def test_to_json_safe(self):
        assert to_json_safe({"d": date(2025, 3, 1), "amount": Decimal("10.50")}) == {
            "d": "2025-03-01",
            "amount": "10.50",
        }
        assert to_json_safe(None) is None
