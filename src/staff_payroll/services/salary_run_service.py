"""Salary run service - orchestrates the run lifecycle."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from staff_payroll.calculators import (
    PAYROLL_ROLES,
    AssignmentResolver,
    PeriodWindow,
    SalaryCalculator,
    StaffComputation,
    StaffProfile,
)
from staff_payroll.errors import (
    DuplicateError,
    NotFoundError,
    PayrollValidationError,
    ZeroTotalError,
)
from staff_payroll.models import SalaryItem, SalaryRun
from staff_payroll.models.base import utcnow
from staff_payroll.services.audit_sink import AuditSink, SqlAuditSink
from staff_payroll.services.expense_ledger import ExpenseLedger, PayrollExpense, SqlExpenseLedger
from staff_payroll.services.history_service import (
    RUN_ENTITY_TYPE,
    ApprovalAction,
    ApprovalHistoryRecorder,
    HistoryEntry,
)
from staff_payroll.services.staff_directory import SqlStaffDirectory, StaffDirectory
from staff_payroll.services.state_machine import (
    ConcurrentTransitionError,
    InvalidTransitionError,
    SalaryRunStateMachine,
    SalaryRunStatus,
)

logger = logging.getLogger(__name__)

PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

ZERO = Decimal("0")


@dataclass(frozen=True)
class StaffScope:
    """Which staff a computation covers.

    ``staff_ids`` set: exactly those staff, each validated.
    ``staff_ids`` None: every active payroll staff member of the tenant.
    """

    staff_ids: tuple[UUID, ...] | None = None

    @classmethod
    def selected(cls, staff_ids: Sequence[UUID]) -> StaffScope:
        return cls(staff_ids=tuple(dict.fromkeys(staff_ids)))

    @classmethod
    def all_active(cls) -> StaffScope:
        return cls(staff_ids=None)

    @property
    def is_explicit(self) -> bool:
        return self.staff_ids is not None


@dataclass
class RunTotals:
    """Aggregate totals of a run, summed from rounded item fields."""

    total_gross: Decimal = ZERO
    total_net: Decimal = ZERO
    employer_cost: Decimal = ZERO
    staff_count: int = 0

    @classmethod
    def from_items(cls, items: Sequence[SalaryItem]) -> RunTotals:
        totals = cls()
        for item in items:
            if item.gross_pay == 0 and item.net_pay == 0:
                continue
            totals.total_gross += item.gross_pay
            totals.total_net += item.net_pay
            totals.employer_cost += item.employer_contrib
            totals.staff_count += 1
        return totals

    @property
    def is_zero(self) -> bool:
        return self.total_gross == 0 and self.total_net == 0

    def as_values(self) -> dict[str, Any]:
        return {
            "total_gross": self.total_gross,
            "total_net": self.total_net,
            "employer_cost": self.employer_cost,
            "staff_count": self.staff_count,
        }


@dataclass
class RunPage:
    """One page of salary runs."""

    items: list[SalaryRun]
    total: int
    page: int
    limit: int


@dataclass
class StaffSalaryPreview:
    """Unpersisted salary computation for one staff member."""

    staff_id: UUID
    name: str
    email: str | None
    role: str
    department: str
    gross_pay: Decimal
    taxable_pay: Decimal
    deductions: Decimal
    net_pay: Decimal
    employer_contrib: Decimal
    breakdown: dict[str, dict[str, Any]] = field(default_factory=dict)
    has_assignments: bool = False


class SalaryRunService:
    """Service for managing the salary run lifecycle.

    Operations:
    - create_run: Compute items for selected staff and persist a DRAFT run
    - prepare_run: Recompute totals and move DRAFT/REJECTED → PREPARED
    - submit_run / approve_run / reject_run: Review transitions
    - finalize_run: Post the run to the expense ledger, exactly once
    - delete_run: Remove a DRAFT run and its items

    Every status change is a conditional UPDATE on the expected source
    statuses; losing that race raises ConcurrentTransitionError.
    """

    def __init__(
        self,
        session: AsyncSession,
        directory: StaffDirectory | None = None,
        ledger: ExpenseLedger | None = None,
        audit: AuditSink | None = None,
        history: ApprovalHistoryRecorder | None = None,
        resolver: AssignmentResolver | None = None,
        calculator: SalaryCalculator | None = None,
    ):
        self.session = session
        self.directory = directory or SqlStaffDirectory(session)
        self.ledger = ledger or SqlExpenseLedger(session)
        self.audit = audit or SqlAuditSink(session)
        self.history = history or ApprovalHistoryRecorder(session)
        self.resolver = resolver or AssignmentResolver(session, self.directory)
        self.calculator = calculator or SalaryCalculator()

    # Reads

    async def get_run(
        self,
        salary_run_id: UUID,
        tenant_id: UUID,
        load_items: bool = False,
    ) -> SalaryRun:
        """Load a run of the tenant, raising NotFoundError when absent."""
        query = (
            select(SalaryRun)
            .where(
                SalaryRun.salary_run_id == salary_run_id,
                SalaryRun.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
        if load_items:
            query = query.options(selectinload(SalaryRun.items))

        result = await self.session.execute(query)
        run = result.scalar_one_or_none()
        if run is None:
            raise NotFoundError("Salary run", salary_run_id)
        return run

    async def list_runs(
        self,
        tenant_id: UUID,
        page: int = 1,
        limit: int = 20,
        status: str | None = None,
    ) -> RunPage:
        """Runs of the tenant, newest period first."""
        if page < 1 or limit < 1:
            raise PayrollValidationError("page and limit must be positive")

        conditions = [SalaryRun.tenant_id == tenant_id]
        if status is not None:
            conditions.append(SalaryRun.status == _check_status(status))

        total = await self.session.scalar(
            select(func.count()).select_from(SalaryRun).where(*conditions)
        )
        result = await self.session.execute(
            select(SalaryRun)
            .where(*conditions)
            .order_by(SalaryRun.period.desc(), SalaryRun.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return RunPage(items=list(result.scalars().all()), total=total or 0, page=page, limit=limit)

    async def get_run_items(self, salary_run_id: UUID, tenant_id: UUID) -> list[SalaryItem]:
        """Items of a run ordered by staff name."""
        await self.get_run(salary_run_id, tenant_id)
        return await self._load_items(salary_run_id, tenant_id)

    async def get_approval_history(
        self, salary_run_id: UUID, tenant_id: UUID
    ) -> list[HistoryEntry]:
        """Chronological approval trail. Readable after a draft is deleted."""
        return await self.history.read(salary_run_id, tenant_id)

    async def preview_staff_salaries(
        self, tenant_id: UUID, as_of: date | None = None
    ) -> list[StaffSalaryPreview]:
        """Resolve and compute every active staff member without persisting."""
        window = PeriodWindow.on(as_of) if as_of else None
        computations = await self.compute_scope(tenant_id, StaffScope.all_active(), window)

        previews = []
        for computation in computations:
            rounded = self.calculator.rounded(computation.breakdown)
            previews.append(
                StaffSalaryPreview(
                    staff_id=computation.staff.staff_id,
                    name=computation.staff.display_name,
                    email=computation.staff.email,
                    role=computation.staff.role,
                    department=computation.department,
                    gross_pay=rounded.gross_pay,
                    taxable_pay=rounded.taxable_pay,
                    deductions=rounded.deductions,
                    net_pay=rounded.net_pay,
                    employer_contrib=rounded.employer_contrib,
                    breakdown=rounded.entries,
                    has_assignments=computation.has_components,
                )
            )
        return previews

    # Computation

    async def compute_scope(
        self,
        tenant_id: UUID,
        scope: StaffScope,
        window: PeriodWindow | None = None,
    ) -> list[StaffComputation]:
        """Single resolution entry point for every caller.

        Resolves components for the staff in ``scope`` and computes their
        unrounded breakdowns. Explicit scopes are validated first.
        """
        if scope.is_explicit:
            staff = await self._validated_staff(tenant_id, scope.staff_ids)
        else:
            staff = await self.directory.list_active_staff(tenant_id)

        resolutions = await self.resolver.resolve_many(staff, tenant_id, window)

        computations = []
        for profile in staff:
            resolution = resolutions[profile.staff_id]
            components = resolution.components
            computations.append(
                StaffComputation(
                    staff=profile,
                    department=resolution.department,
                    components=components,
                    breakdown=self.calculator.compute(components),
                )
            )
        return computations

    async def _validated_staff(
        self, tenant_id: UUID, staff_ids: Sequence[UUID]
    ) -> list[StaffProfile]:
        if not staff_ids:
            raise PayrollValidationError("At least one staff member must be selected")

        profiles = await self.directory.get_staff(tenant_id, staff_ids)
        by_id = {p.staff_id: p for p in profiles}
        invalid = [
            staff_id
            for staff_id in staff_ids
            if staff_id not in by_id
            or not by_id[staff_id].is_active
            or by_id[staff_id].role not in PAYROLL_ROLES
        ]
        if invalid:
            raise PayrollValidationError(
                "Some selected staff members are invalid or inactive: "
                + ", ".join(str(i) for i in invalid)
            )
        return [by_id[staff_id] for staff_id in staff_ids]

    def _build_items(
        self, tenant_id: UUID, computations: Sequence[StaffComputation]
    ) -> list[SalaryItem]:
        """Rounded items for computations that carry pay; empty ones are dropped."""
        items = []
        for computation in computations:
            rounded = self.calculator.rounded(computation.breakdown)
            if rounded.is_empty:
                continue
            items.append(
                SalaryItem(
                    tenant_id=tenant_id,
                    staff_id=computation.staff.staff_id,
                    staff_name=computation.staff.display_name,
                    department=computation.department,
                    breakdown=rounded.entries,
                    gross_pay=rounded.gross_pay,
                    taxable_pay=rounded.taxable_pay,
                    paye=ZERO,
                    nhif=ZERO,
                    nssf=ZERO,
                    other_deductions=rounded.deductions,
                    net_pay=rounded.net_pay,
                    employer_contrib=rounded.employer_contrib,
                )
            )
        return items

    # Lifecycle

    async def create_run(
        self,
        tenant_id: UUID,
        period: str,
        staff_ids: Sequence[UUID],
        term_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> SalaryRun:
        """Create a DRAFT run with items for exactly the given staff.

        Nothing is persisted when validation fails or the totals are zero.
        """
        _check_period(period)
        if not staff_ids:
            raise PayrollValidationError("At least one staff member must be selected")
        await self._ensure_period_free(tenant_id, period)

        computations = await self.compute_scope(
            tenant_id, StaffScope.selected(staff_ids), PeriodWindow.for_period(period)
        )
        items = self._build_items(tenant_id, computations)
        totals = RunTotals.from_items(items)
        if totals.is_zero:
            raise ZeroTotalError()

        run = SalaryRun(
            tenant_id=tenant_id,
            period=period,
            term_id=term_id,
            status=SalaryRunStatus.DRAFT.value,
            items=items,
            **totals.as_values(),
        )
        try:
            async with self.session.begin_nested():
                self.session.add(run)
        except IntegrityError:
            raise DuplicateError(f"A salary run for period {period} already exists")

        logger.info(
            "Created salary run %s for period %s: %d staff, gross=%s net=%s",
            run.salary_run_id,
            period,
            totals.staff_count,
            totals.total_gross,
            totals.total_net,
        )
        await self._record(
            run,
            ApprovalAction.CREATED,
            actor_id,
            after={"period": period, **totals.as_values()},
        )
        return run

    async def prepare_run(
        self, salary_run_id: UUID, tenant_id: UUID, actor_id: UUID | None = None
    ) -> SalaryRun:
        """Recompute totals and move the run to PREPARED.

        Existing items are re-totalled. A run without items is computed
        from every active staff member of the tenant.
        """
        run = await self.get_run(salary_run_id, tenant_id)
        SalaryRunStateMachine.validate_transition(run.status, SalaryRunStatus.PREPARED)

        items = await self._load_items(salary_run_id, tenant_id)
        new_items: list[SalaryItem] = []
        if not items:
            computations = await self.compute_scope(
                tenant_id, StaffScope.all_active(), PeriodWindow.for_period(run.period)
            )
            new_items = self._build_items(tenant_id, computations)
            if not new_items:
                raise ZeroTotalError(
                    "No active staff assignments found. Assign pay components to staff "
                    "before preparing the salary run."
                )
            items = new_items

        totals = RunTotals.from_items(items)
        if totals.is_zero:
            raise ZeroTotalError()

        async with self.session.begin_nested():
            for item in new_items:
                item.salary_run_id = run.salary_run_id
                self.session.add(item)
            await self._advance(
                run, SalaryRunStatus.PREPARED, prepared_by=actor_id, **totals.as_values()
            )

        logger.info(
            "Prepared salary run %s: %d staff, gross=%s net=%s",
            run.salary_run_id,
            totals.staff_count,
            totals.total_gross,
            totals.total_net,
        )
        await self._record(run, ApprovalAction.PREPARED, actor_id, after=totals.as_values())
        return run

    async def submit_run(
        self, salary_run_id: UUID, tenant_id: UUID, actor_id: UUID | None = None
    ) -> SalaryRun:
        run = await self.get_run(salary_run_id, tenant_id)
        await self._advance(run, SalaryRunStatus.SUBMITTED, submitted_by=actor_id)
        await self._record(run, ApprovalAction.SUBMITTED, actor_id)
        return run

    async def approve_run(
        self, salary_run_id: UUID, tenant_id: UUID, actor_id: UUID | None = None
    ) -> SalaryRun:
        run = await self.get_run(salary_run_id, tenant_id)
        await self._advance(run, SalaryRunStatus.APPROVED, approved_by=actor_id)
        await self._record(run, ApprovalAction.APPROVED, actor_id)
        return run

    async def reject_run(
        self,
        salary_run_id: UUID,
        tenant_id: UUID,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> SalaryRun:
        """Send a submitted run back. The reason lives in history only."""
        run = await self.get_run(salary_run_id, tenant_id)
        await self._advance(run, SalaryRunStatus.REJECTED)
        await self._record(
            run,
            ApprovalAction.REJECTED,
            actor_id,
            comments=reason,
            after={"reason": reason} if reason else None,
        )
        return run

    async def finalize_run(
        self, salary_run_id: UUID, tenant_id: UUID, actor_id: UUID | None = None
    ) -> SalaryRun:
        """Post an approved run to the expense ledger and mark it FINALIZED.

        Idempotent: a run that already carries a posted expense is returned
        unchanged. The expense and the status change commit together.
        """
        run = await self.get_run(salary_run_id, tenant_id)
        if run.posted_expense_id is not None:
            logger.info(
                "Salary run %s already posted as expense %s",
                run.salary_run_id,
                run.posted_expense_id,
            )
            return run

        SalaryRunStateMachine.validate_transition(run.status, SalaryRunStatus.FINALIZED)

        amount = run.total_net + run.employer_cost
        try:
            async with self.session.begin_nested():
                expense_id = await self.ledger.create_approved_expense(
                    PayrollExpense(
                        tenant_id=tenant_id,
                        salary_run_id=run.salary_run_id,
                        period=run.period,
                        amount=amount,
                    )
                )
                await self._advance(
                    run,
                    SalaryRunStatus.FINALIZED,
                    finalized_by=actor_id,
                    posted_expense_id=expense_id,
                )
        except ConcurrentTransitionError:
            # Another finalize won; its posting stands
            run = await self.get_run(salary_run_id, tenant_id)
            if run.posted_expense_id is not None:
                return run
            raise

        logger.info(
            "Finalized salary run %s: posted expense %s for %s",
            run.salary_run_id,
            expense_id,
            amount,
        )
        await self._record(
            run,
            ApprovalAction.FINALIZED,
            actor_id,
            after={"posted_expense_id": expense_id, "amount": amount},
        )
        return run

    async def delete_run(
        self, salary_run_id: UUID, tenant_id: UUID, actor_id: UUID | None = None
    ) -> None:
        """Delete a DRAFT run and its items. History rows are kept."""
        run = await self.get_run(salary_run_id, tenant_id)
        if not SalaryRunStateMachine.can_delete(run.status):
            raise InvalidTransitionError(
                run.status, "DELETED", "Only DRAFT salary runs can be deleted"
            )

        async with self.session.begin_nested():
            await self.session.execute(
                delete(SalaryItem).where(
                    SalaryItem.salary_run_id == salary_run_id,
                    SalaryItem.tenant_id == tenant_id,
                )
            )
            result = await self.session.execute(
                delete(SalaryRun)
                .where(
                    SalaryRun.salary_run_id == salary_run_id,
                    SalaryRun.tenant_id == tenant_id,
                    SalaryRun.status == SalaryRunStatus.DRAFT.value,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConcurrentTransitionError(run.status, "DELETED")
        self.session.expunge(run)

        logger.info("Deleted salary run %s (period %s)", salary_run_id, run.period)
        await self._record(run, ApprovalAction.DELETED, actor_id, after={"period": run.period})

    # Internals

    async def _advance(self, run: SalaryRun, to_status: SalaryRunStatus, **values: Any) -> None:
        """Compare-and-set the run's status, then mirror the change onto ``run``."""
        from_status = run.status
        SalaryRunStateMachine.validate_transition(from_status, to_status)

        changes = {"status": to_status.value, "updated_at": utcnow(), **values}
        result = await self.session.execute(
            update(SalaryRun)
            .where(
                SalaryRun.salary_run_id == run.salary_run_id,
                SalaryRun.tenant_id == run.tenant_id,
                SalaryRun.status == from_status,
                SalaryRun.posted_expense_id.is_(None),
            )
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConcurrentTransitionError(from_status, to_status.value)

        for key, value in changes.items():
            set_committed_value(run, key, value)
        logger.info("Salary run %s: %s -> %s", run.salary_run_id, from_status, to_status.value)

    async def _record(
        self,
        run: SalaryRun,
        action: ApprovalAction,
        actor_id: UUID | None,
        comments: str | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        """Append history and notify the audit sink. Failures never propagate."""
        try:
            await self.history.append(
                run.salary_run_id, run.tenant_id, action, actor_id=actor_id, comments=comments
            )
        except Exception:
            logger.exception(
                "Failed to record %s history for salary run %s", action.value, run.salary_run_id
            )

        await self.audit.record(
            tenant_id=run.tenant_id,
            action=action.audit_action,
            entity_type=RUN_ENTITY_TYPE,
            entity_id=run.salary_run_id,
            actor_id=actor_id,
            after=after,
        )

    async def _load_items(self, salary_run_id: UUID, tenant_id: UUID) -> list[SalaryItem]:
        result = await self.session.execute(
            select(SalaryItem)
            .where(
                SalaryItem.salary_run_id == salary_run_id,
                SalaryItem.tenant_id == tenant_id,
            )
            .order_by(SalaryItem.staff_name)
        )
        return list(result.scalars().all())

    async def _ensure_period_free(self, tenant_id: UUID, period: str) -> None:
        result = await self.session.execute(
            select(SalaryRun.salary_run_id).where(
                SalaryRun.tenant_id == tenant_id,
                SalaryRun.period == period,
            )
        )
        if result.first() is not None:
            raise DuplicateError(f"A salary run for period {period} already exists")


def _check_period(period: str) -> None:
    if not isinstance(period, str) or not PERIOD_PATTERN.match(period):
        raise PayrollValidationError("period must be in YYYY-MM format")


def _check_status(status: str) -> str:
    try:
        return SalaryRunStatus(status).value
    except ValueError:
        raise PayrollValidationError(f"Unknown salary run status: {status}")
