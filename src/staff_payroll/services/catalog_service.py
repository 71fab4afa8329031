"""Pay component catalog service."""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staff_payroll.calculators.types import ComponentType, ComputeMethod
from staff_payroll.errors import DuplicateError, NotFoundError, PayrollValidationError
from staff_payroll.models import PayComponent
from staff_payroll.services.audit_sink import AuditSink, SqlAuditSink

logger = logging.getLogger(__name__)

COMPONENT_ENTITY_TYPE = "PayComponent"

FLAG_FIELDS = frozenset({"taxable", "recurring", "auto_assign"})

UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "type",
        "taxable",
        "recurring",
        "compute_method",
        "default_amount",
        "formula",
        "department",
        "auto_assign",
    }
)


def derive_code(name: str, department: str | None = None) -> str:
    """Derive a component code from its name and optional department.

    "House Allowance" + "Teaching" -> "HOUSE_ALLOWANCE_TEACHING"
    """
    parts = [name] if not department else [name, department]
    return "_".join(re.sub(r"\s+", "_", p.strip()).upper() for p in parts)


def parse_amount(value: Any, field_name: str) -> Decimal | None:
    if value is None:
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise PayrollValidationError(f"{field_name} must be a number")
    if not amount.is_finite() or amount < 0:
        raise PayrollValidationError(f"{field_name} must be a non-negative amount")
    return amount


def parse_flag(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise PayrollValidationError(f"{field_name} must be true or false")
    return value


def _check_enum(enum_cls: type, value: str, field_name: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise PayrollValidationError(f"{field_name} must be one of: {allowed}")


class PayComponentCatalog:
    """CRUD over reusable pay component definitions.

    Deleting a component does not touch historical salary items; their
    breakdown keeps a denormalized copy.
    """

    def __init__(self, session: AsyncSession, audit: AuditSink | None = None):
        self.session = session
        self.audit = audit or SqlAuditSink(session)

    async def create(
        self,
        tenant_id: UUID,
        *,
        name: str,
        type: str,
        default_amount: Decimal | float | int | None = None,
        code: str | None = None,
        taxable: bool | None = None,
        recurring: bool = False,
        compute_method: str | None = None,
        formula: str | None = None,
        department: str | None = None,
        auto_assign: bool = False,
        actor_id: UUID | None = None,
    ) -> PayComponent:
        """Create a component, deriving code/taxable/compute method when not given."""
        if not name or not name.strip():
            raise PayrollValidationError("name is required")
        component_type = _check_enum(ComponentType, type, "type")
        if compute_method is None:
            compute_method = ComputeMethod.FORMULA.value if formula else ComputeMethod.FIXED.value
        compute_method = _check_enum(ComputeMethod, compute_method, "compute_method")
        department = department or None

        code = (code or derive_code(name, department)).strip().upper()
        await self._ensure_code_free(tenant_id, code)

        component = PayComponent(
            tenant_id=tenant_id,
            code=code,
            name=name.strip(),
            type=component_type,
            taxable=(
                taxable if taxable is not None else component_type != ComponentType.DEDUCTION
            ),
            recurring=recurring,
            compute_method=compute_method,
            default_amount=parse_amount(default_amount, "default_amount"),
            formula=formula,
            department=department,
            auto_assign=auto_assign,
        )
        self.session.add(component)
        await self.session.flush()

        logger.info("Created pay component %s (%s) for tenant %s", component.code, component.type, tenant_id)
        await self.audit.record(
            tenant_id=tenant_id,
            action="PAYROLL_COMPONENT_CREATED",
            entity_type=COMPONENT_ENTITY_TYPE,
            entity_id=component.pay_component_id,
            actor_id=actor_id,
            after=_snapshot(component),
        )
        return component

    async def get(self, component_id: UUID, tenant_id: UUID) -> PayComponent:
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

    async def update(
        self,
        component_id: UUID,
        tenant_id: UUID,
        patch: dict[str, Any],
        actor_id: UUID | None = None,
    ) -> PayComponent:
        """Apply a partial update. Unknown fields are rejected."""
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise PayrollValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        component = await self.get(component_id, tenant_id)
        before = _snapshot(component)

        values = dict(patch)
        if "type" in values:
            values["type"] = _check_enum(ComponentType, values["type"], "type")
        if "compute_method" in values:
            values["compute_method"] = _check_enum(
                ComputeMethod, values["compute_method"], "compute_method"
            )
        if "default_amount" in values:
            values["default_amount"] = parse_amount(values["default_amount"], "default_amount")
        if "name" in values and not (values["name"] or "").strip():
            raise PayrollValidationError("name is required")
        for flag in FLAG_FIELDS.intersection(values):
            values[flag] = parse_flag(values[flag], flag)
        if "department" in values:
            values["department"] = values["department"] or None

        for key, value in values.items():
            setattr(component, key, value)
        await self.session.flush()
        await self.session.refresh(component)

        logger.info("Updated pay component %s for tenant %s", component.code, tenant_id)
        await self.audit.record(
            tenant_id=tenant_id,
            action="PAYROLL_COMPONENT_UPDATED",
            entity_type=COMPONENT_ENTITY_TYPE,
            entity_id=component.pay_component_id,
            actor_id=actor_id,
            before=before,
            after=_snapshot(component),
        )
        return component

    async def delete(
        self, component_id: UUID, tenant_id: UUID, actor_id: UUID | None = None
    ) -> None:
        component = await self.get(component_id, tenant_id)
        await self.session.delete(component)
        await self.session.flush()

        logger.info("Deleted pay component %s for tenant %s", component.code, tenant_id)
        await self.audit.record(
            tenant_id=tenant_id,
            action="PAYROLL_COMPONENT_DELETED",
            entity_type=COMPONENT_ENTITY_TYPE,
            entity_id=component_id,
            actor_id=actor_id,
        )

    async def list(
        self,
        tenant_id: UUID,
        type: str | None = None,
        auto_assign: bool | None = None,
        department: str | None = None,
    ) -> list[PayComponent]:
        """List a tenant's components, newest first, with optional filters."""
        query = select(PayComponent).where(PayComponent.tenant_id == tenant_id)
        if type is not None:
            query = query.where(PayComponent.type == _check_enum(ComponentType, type, "type"))
        if auto_assign is not None:
            query = query.where(PayComponent.auto_assign.is_(auto_assign))
        if department is not None:
            query = query.where(PayComponent.department == department)

        result = await self.session.execute(query.order_by(PayComponent.created_at.desc()))
        return list(result.scalars().all())

    async def _ensure_code_free(self, tenant_id: UUID, code: str) -> None:
        result = await self.session.execute(
            select(PayComponent.pay_component_id).where(
                PayComponent.tenant_id == tenant_id,
                PayComponent.code == code,
            )
        )
        if result.first() is not None:
            raise DuplicateError(f"Pay component with code '{code}' already exists")


def _snapshot(component: PayComponent) -> dict[str, Any]:
    return {
        "code": component.code,
        "name": component.name,
        "type": component.type,
        "taxable": component.taxable,
        "compute_method": component.compute_method,
        "default_amount": component.default_amount,
        "department": component.department,
        "auto_assign": component.auto_assign,
    }
