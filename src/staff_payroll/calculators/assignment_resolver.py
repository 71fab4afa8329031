"""Pay component resolution with explicit precedence strategies.

Precedence, highest first:
1. Manual assignments (StaffPayAssignment rows) - always included
2. Department-scoped auto-assign components matching the staff department
3. System-wide auto-assign components

A component is suppressed when an earlier strategy already covered its id
or its (type, name) signature. This is how a department-specific
"House Allowance" wins over a system-wide one for staff in that
department, and how a manual BASIC is never double counted against an
auto-assigned BASIC of the same name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from staff_payroll.calculators.types import (
    PeriodWindow,
    ResolvedComponent,
    StaffProfile,
    StaffRole,
)
from staff_payroll.errors import NotFoundError
from staff_payroll.models import PayComponent, StaffPayAssignment

if TYPE_CHECKING:
    from staff_payroll.services.staff_directory import StaffDirectory


def derive_department(role: str, profile_department: str | None = None) -> str:
    """Derive the payroll department from a staff member's role and profile."""
    if role == StaffRole.TEACHER:
        return "Teaching"
    if role == StaffRole.FINANCE:
        return profile_department or "Finance"
    if role == StaffRole.ADMIN:
        return "Administration"
    if role == StaffRole.LIBRARIAN:
        return "Library"
    return "General"


class DecisionOutcome(str, Enum):
    """What a strategy decided for one candidate component."""

    INCLUDED = "included"
    COVERED = "covered"
    OTHER_DEPARTMENT = "other_department"


@dataclass(frozen=True)
class ResolutionDecision:
    """Typed decision a strategy made about one candidate component."""

    strategy: str
    component_id: UUID
    signature: tuple[str, str]
    outcome: DecisionOutcome
    resolved: ResolvedComponent | None = None

    @property
    def included(self) -> bool:
        return self.outcome == DecisionOutcome.INCLUDED


@dataclass
class ResolutionContext:
    """Coverage state shared by strategies during one resolution."""

    staff: StaffProfile
    department: str
    covered_ids: set[UUID] = field(default_factory=set)
    covered_signatures: set[tuple[str, str]] = field(default_factory=set)

    def is_covered(self, component_id: UUID, signature: tuple[str, str]) -> bool:
        return component_id in self.covered_ids or signature in self.covered_signatures

    def cover(self, component: ResolvedComponent) -> None:
        self.covered_ids.add(component.component_id)
        self.covered_signatures.add(component.signature)


@dataclass
class Resolution:
    """Outcome of resolving one staff member's components."""

    staff: StaffProfile
    department: str
    decisions: list[ResolutionDecision]

    @property
    def components(self) -> list[ResolvedComponent]:
        """Included components in precedence order."""
        return [d.resolved for d in self.decisions if d.resolved is not None]

    def decisions_for(self, component_id: UUID) -> list[ResolutionDecision]:
        return [d for d in self.decisions if d.component_id == component_id]


def component_from_assignment(assignment: StaffPayAssignment) -> ResolvedComponent:
    """Build a resolved component from a manual assignment."""
    component = assignment.component
    return ResolvedComponent(
        component_id=component.pay_component_id,
        code=component.code,
        name=component.name,
        type=component.type,
        taxable=component.taxable,
        amount=Decimal(assignment.amount),
        is_auto_assigned=False,
        department=component.department,
        assignment_id=assignment.staff_pay_assignment_id,
    )


def component_from_auto_assign(component: PayComponent) -> ResolvedComponent:
    """Build a resolved component from an auto-assign catalog entry."""
    return ResolvedComponent(
        component_id=component.pay_component_id,
        code=component.code,
        name=component.name,
        type=component.type,
        taxable=component.taxable,
        amount=Decimal(component.default_amount or 0),
        is_auto_assigned=True,
        department=component.department,
    )


class ResolutionStrategy:
    """Base class for a named precedence tier."""

    name: str = "base"

    def evaluate(
        self,
        ctx: ResolutionContext,
        manual: Sequence[StaffPayAssignment],
        auto_components: Sequence[PayComponent],
    ) -> list[ResolutionDecision]:
        raise NotImplementedError


class ManualAssignmentStrategy(ResolutionStrategy):
    """Manual assignments are authoritative and always included."""

    name = "manual"

    def evaluate(self, ctx, manual, auto_components):
        decisions: list[ResolutionDecision] = []
        for assignment in manual:
            resolved = component_from_assignment(assignment)
            ctx.cover(resolved)
            decisions.append(
                ResolutionDecision(
                    strategy=self.name,
                    component_id=resolved.component_id,
                    signature=resolved.signature,
                    outcome=DecisionOutcome.INCLUDED,
                    resolved=resolved,
                )
            )
        return decisions


class _AutoAssignStrategy(ResolutionStrategy):
    """Shared coverage handling for auto-assign tiers."""

    def candidates(self, auto_components: Sequence[PayComponent]) -> Iterable[PayComponent]:
        raise NotImplementedError

    def applies_to(self, ctx: ResolutionContext, component: PayComponent) -> bool:
        raise NotImplementedError

    def evaluate(self, ctx, manual, auto_components):
        decisions: list[ResolutionDecision] = []
        for component in self.candidates(auto_components):
            resolved = component_from_auto_assign(component)

            if not self.applies_to(ctx, component):
                outcome = DecisionOutcome.OTHER_DEPARTMENT
                resolved_or_none = None
            elif ctx.is_covered(resolved.component_id, resolved.signature):
                outcome = DecisionOutcome.COVERED
                resolved_or_none = None
            else:
                outcome = DecisionOutcome.INCLUDED
                resolved_or_none = resolved
                ctx.cover(resolved)

            decisions.append(
                ResolutionDecision(
                    strategy=self.name,
                    component_id=resolved.component_id,
                    signature=resolved.signature,
                    outcome=outcome,
                    resolved=resolved_or_none,
                )
            )
        return decisions


class DepartmentAutoAssignStrategy(_AutoAssignStrategy):
    """Department-scoped auto-assign components for staff in that department."""

    name = "department_auto"

    def candidates(self, auto_components):
        return [c for c in auto_components if c.department]

    def applies_to(self, ctx, component):
        return component.department == ctx.department


class SystemAutoAssignStrategy(_AutoAssignStrategy):
    """System-wide auto-assign components apply to everyone not yet covered."""

    name = "system_auto"

    def candidates(self, auto_components):
        return [c for c in auto_components if not c.department]

    def applies_to(self, ctx, component):
        return True


DEFAULT_STRATEGIES: tuple[ResolutionStrategy, ...] = (
    ManualAssignmentStrategy(),
    DepartmentAutoAssignStrategy(),
    SystemAutoAssignStrategy(),
)


def resolve_components(
    staff: StaffProfile,
    manual: Sequence[StaffPayAssignment],
    auto_components: Sequence[PayComponent],
    strategies: Sequence[ResolutionStrategy] = DEFAULT_STRATEGIES,
) -> Resolution:
    """Run the strategies in order and collect their decisions.

    ``auto_components`` must be in creation order; each strategy keeps that
    order within its tier.
    """
    department = derive_department(staff.role, staff.profile_department)
    ctx = ResolutionContext(staff=staff, department=department)

    decisions: list[ResolutionDecision] = []
    for strategy in strategies:
        decisions.extend(strategy.evaluate(ctx, manual, auto_components))

    return Resolution(staff=staff, department=department, decisions=decisions)


class AssignmentResolver:
    """Loads assignments and auto-assign components, then resolves them.

    Every query filters by tenant.
    """

    def __init__(
        self,
        session: AsyncSession,
        directory: StaffDirectory | None = None,
        strategies: Sequence[ResolutionStrategy] = DEFAULT_STRATEGIES,
    ):
        # Import here to avoid circular imports
        from staff_payroll.services.staff_directory import SqlStaffDirectory

        self.session = session
        self.directory = directory or SqlStaffDirectory(session)
        self.strategies = strategies

    async def resolve(
        self,
        staff_id: UUID,
        tenant_id: UUID,
        window: PeriodWindow | None = None,
    ) -> Resolution:
        """Resolve the ordered component set for one staff member."""
        profiles = await self.directory.get_staff(tenant_id, [staff_id])
        if not profiles:
            raise NotFoundError("Staff member", staff_id)
        resolutions = await self.resolve_many(profiles, tenant_id, window)
        return resolutions[staff_id]

    async def resolve_many(
        self,
        staff: Sequence[StaffProfile],
        tenant_id: UUID,
        window: PeriodWindow | None = None,
    ) -> dict[UUID, Resolution]:
        """Resolve components for several staff members with two queries."""
        staff_ids = [s.staff_id for s in staff]
        manual_by_staff = await self._get_manual_assignments(tenant_id, staff_ids, window)
        auto_components = await self._get_auto_assign_components(tenant_id)

        return {
            profile.staff_id: resolve_components(
                profile,
                manual_by_staff.get(profile.staff_id, []),
                auto_components,
                self.strategies,
            )
            for profile in staff
        }

    async def _get_manual_assignments(
        self,
        tenant_id: UUID,
        staff_ids: Sequence[UUID],
        window: PeriodWindow | None,
    ) -> dict[UUID, list[StaffPayAssignment]]:
        """Active manual assignments grouped by staff member."""
        if not staff_ids:
            return {}

        result = await self.session.execute(
            select(StaffPayAssignment)
            .join(StaffPayAssignment.component)
            .where(
                StaffPayAssignment.tenant_id == tenant_id,
                StaffPayAssignment.staff_id.in_(staff_ids),
                StaffPayAssignment.is_active.is_(True),
                PayComponent.tenant_id == tenant_id,
            )
            .options(selectinload(StaffPayAssignment.component))
            .order_by(StaffPayAssignment.created_at)
        )

        grouped: dict[UUID, list[StaffPayAssignment]] = {}
        for assignment in result.scalars().all():
            if window is not None and not assignment.overlaps(window.start, window.end):
                continue
            grouped.setdefault(assignment.staff_id, []).append(assignment)
        return grouped

    async def _get_auto_assign_components(self, tenant_id: UUID) -> list[PayComponent]:
        """Auto-assign components, department-scoped first, then by creation order."""
        result = await self.session.execute(
            select(PayComponent)
            .where(
                PayComponent.tenant_id == tenant_id,
                PayComponent.auto_assign.is_(True),
            )
            .order_by(
                PayComponent.department.is_(None),
                PayComponent.created_at,
            )
        )
        return list(result.scalars().all())
