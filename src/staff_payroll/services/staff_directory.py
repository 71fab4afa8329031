"""Read-only access to the staff directory."""

from __future__ import annotations

from typing import Protocol, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staff_payroll.calculators.types import PAYROLL_ROLES, StaffProfile
from staff_payroll.models import StaffMember


class StaffDirectory(Protocol):
    """Narrow read contract over the staff/user directory."""

    async def get_staff(
        self, tenant_id: UUID, staff_ids: Sequence[UUID]
    ) -> list[StaffProfile]:
        """Return profiles for the given ids within the tenant (any state)."""
        ...

    async def list_active_staff(self, tenant_id: UUID) -> list[StaffProfile]:
        """Return all active payroll staff of the tenant."""
        ...


def staff_display_name(member: StaffMember) -> str:
    """Name snapshot: profile name, then username, then email."""
    if member.first_name or member.last_name:
        return " ".join(p for p in (member.first_name, member.last_name) if p)
    return member.username or member.email or "Unknown User"


def to_profile(member: StaffMember) -> StaffProfile:
    return StaffProfile(
        staff_id=member.staff_id,
        tenant_id=member.tenant_id,
        role=member.role,
        is_active=member.is_active,
        display_name=staff_display_name(member),
        email=member.email,
        profile_department=member.profile_department,
    )


class SqlStaffDirectory:
    """Staff directory backed by the staff_member table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_staff(
        self, tenant_id: UUID, staff_ids: Sequence[UUID]
    ) -> list[StaffProfile]:
        if not staff_ids:
            return []
        result = await self.session.execute(
            select(StaffMember).where(
                StaffMember.tenant_id == tenant_id,
                StaffMember.staff_id.in_(list(staff_ids)),
            )
        )
        return [to_profile(m) for m in result.scalars().all()]

    async def list_active_staff(self, tenant_id: UUID) -> list[StaffProfile]:
        result = await self.session.execute(
            select(StaffMember)
            .where(
                StaffMember.tenant_id == tenant_id,
                StaffMember.is_active.is_(True),
                StaffMember.role.in_(sorted(PAYROLL_ROLES)),
            )
            .order_by(StaffMember.created_at)
        )
        return [to_profile(m) for m in result.scalars().all()]
