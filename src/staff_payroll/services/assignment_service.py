"""Staff pay assignment service (manual, per-staff components)."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from staff_payroll.calculators.types import PAYROLL_ROLES
from staff_payroll.errors import NotFoundError, PayrollValidationError
from staff_payroll.models import PayComponent, StaffMember, StaffPayAssignment
from staff_payroll.services.audit_sink import AuditSink, SqlAuditSink
from staff_payroll.services.catalog_service import parse_amount, parse_flag

logger = logging.getLogger(__name__)

ASSIGNMENT_ENTITY_TYPE = "StaffPayAssignment"

UPDATABLE_FIELDS = frozenset({"amount", "effective_to", "is_active"})


class StaffAssignmentService:
    """CRUD over manual staff pay assignments.

    Delete is a soft delete: the row is kept with is_active = False.
    """

    def __init__(self, session: AsyncSession, audit: AuditSink | None = None):
        self.session = session
        self.audit = audit or SqlAuditSink(session)

    async def create(
        self,
        tenant_id: UUID,
        *,
        staff_id: UUID,
        pay_component_id: UUID,
        amount: Decimal | float | int,
        effective_from: date | None = None,
        effective_to: date | None = None,
        actor_id: UUID | None = None,
    ) -> StaffPayAssignment:
        """Grant a component to a staff member of the same tenant."""
        await self._get_payroll_staff(tenant_id, staff_id)
        await self._get_component(tenant_id, pay_component_id)

        checked_amount = parse_amount(amount, "amount")
        if checked_amount is None:
            raise PayrollValidationError("amount is required")
        _check_dates(effective_from, effective_to)

        assignment = StaffPayAssignment(
            tenant_id=tenant_id,
            staff_id=staff_id,
            pay_component_id=pay_component_id,
            amount=checked_amount,
            effective_from=effective_from,
            effective_to=effective_to,
            is_active=True,
        )
        self.session.add(assignment)
        await self.session.flush()

        logger.info(
            "Assigned component %s to staff %s (amount=%s) for tenant %s",
            pay_component_id,
            staff_id,
            checked_amount,
            tenant_id,
        )
        await self.audit.record(
            tenant_id=tenant_id,
            action="PAYROLL_ASSIGNMENT_CREATED",
            entity_type=ASSIGNMENT_ENTITY_TYPE,
            entity_id=assignment.staff_pay_assignment_id,
            actor_id=actor_id,
            after=_snapshot(assignment),
        )
        return await self.get(assignment.staff_pay_assignment_id, tenant_id)

    async def get(self, assignment_id: UUID, tenant_id: UUID) -> StaffPayAssignment:
        result = await self.session.execute(
            select(StaffPayAssignment)
            .where(
                StaffPayAssignment.staff_pay_assignment_id == assignment_id,
                StaffPayAssignment.tenant_id == tenant_id,
            )
            .options(
                selectinload(StaffPayAssignment.component),
                selectinload(StaffPayAssignment.staff),
            )
            .execution_options(populate_existing=True)
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            raise NotFoundError("Staff assignment", assignment_id)
        return assignment

    async def update(
        self,
        assignment_id: UUID,
        tenant_id: UUID,
        patch: dict[str, Any],
        actor_id: UUID | None = None,
    ) -> StaffPayAssignment:
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise PayrollValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        assignment = await self.get(assignment_id, tenant_id)
        before = _snapshot(assignment)

        values = dict(patch)
        if "amount" in values:
            values["amount"] = parse_amount(values["amount"], "amount")
            if values["amount"] is None:
                raise PayrollValidationError("amount is required")
        if "effective_to" in values:
            _check_dates(assignment.effective_from, values["effective_to"])
        if "is_active" in values:
            values["is_active"] = parse_flag(values["is_active"], "is_active")

        for key, value in values.items():
            setattr(assignment, key, value)
        await self.session.flush()

        logger.info("Updated staff assignment %s: %s", assignment_id, ", ".join(sorted(patch)))

        await self.audit.record(
            tenant_id=tenant_id,
            action="PAYROLL_ASSIGNMENT_UPDATED",
            entity_type=ASSIGNMENT_ENTITY_TYPE,
            entity_id=assignment_id,
            actor_id=actor_id,
            before=before,
            after=_snapshot(assignment),
        )
        return assignment

    async def delete(
        self, assignment_id: UUID, tenant_id: UUID, actor_id: UUID | None = None
    ) -> None:
        assignment = await self.get(assignment_id, tenant_id)
        assignment.is_active = False
        await self.session.flush()

        logger.info("Deactivated staff assignment %s for tenant %s", assignment_id, tenant_id)
        await self.audit.record(
            tenant_id=tenant_id,
            action="PAYROLL_ASSIGNMENT_DELETED",
            entity_type=ASSIGNMENT_ENTITY_TYPE,
            entity_id=assignment_id,
            actor_id=actor_id,
        )

    async def list(
        self, tenant_id: UUID, staff_id: UUID | None = None
    ) -> list[StaffPayAssignment]:
        """Active assignments of the tenant, newest first."""
        query = (
            select(StaffPayAssignment)
            .where(
                StaffPayAssignment.tenant_id == tenant_id,
                StaffPayAssignment.is_active.is_(True),
            )
            .options(
                selectinload(StaffPayAssignment.component),
                selectinload(StaffPayAssignment.staff),
            )
            .order_by(StaffPayAssignment.created_at.desc())
        )
        if staff_id is not None:
            query = query.where(StaffPayAssignment.staff_id == staff_id)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _get_payroll_staff(self, tenant_id: UUID, staff_id: UUID) -> StaffMember:
        result = await self.session.execute(
            select(StaffMember).where(
                StaffMember.staff_id == staff_id,
                StaffMember.tenant_id == tenant_id,
                StaffMember.role.in_(sorted(PAYROLL_ROLES)),
            )
        )
        staff = result.scalar_one_or_none()
        if staff is None:
            raise NotFoundError("Staff member", staff_id)
        return staff

    async def _get_component(self, tenant_id: UUID, component_id: UUID) -> PayComponent:
        result = await self.session.execute(
            select(PayComponent).where(
                PayComponent.pay_component_id == component_id,
                PayComponent.tenant_id == tenant_id,
            )
        )
        component = result.scalar_one_or_none()
        if component is None:
            raise NotFoundError("Pay component", component_id)
        return component


def _check_dates(effective_from: date | None, effective_to: date | None) -> None:
    if effective_from and effective_to and effective_to < effective_from:
        raise PayrollValidationError("effective_to must not be before effective_from")


def _snapshot(assignment: StaffPayAssignment) -> dict[str, Any]:
    return {
        "staff_id": assignment.staff_id,
        "pay_component_id": assignment.pay_component_id,
        "amount": assignment.amount,
        "effective_from": assignment.effective_from,
        "effective_to": assignment.effective_to,
        "is_active": assignment.is_active,
    }
