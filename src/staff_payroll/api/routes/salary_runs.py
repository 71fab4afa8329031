"""Salary run API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from staff_payroll.api.dependencies import ActorId, DbSession, TenantId
from staff_payroll.api.schemas import (
    ErrorResponse,
    HistoryEntryResponse,
    RejectRequest,
    SalaryItemResponse,
    SalaryRunCreate,
    SalaryRunDetailResponse,
    SalaryRunListResponse,
    SalaryRunResponse,
    StaffSalaryResponse,
)
from staff_payroll.services.salary_run_service import SalaryRunService

router = APIRouter(tags=["salary-runs"])

RunId = Annotated[UUID, Path()]

TRANSITION_ERRORS = {404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


# ============================================================================
# Salary Run CRUD
# ============================================================================


@router.post(
    "/runs",
    response_model=SalaryRunDetailResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_salary_run(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    payload: SalaryRunCreate,
) -> SalaryRunDetailResponse:
    """Create a DRAFT salary run for the selected staff."""
    run = await SalaryRunService(db).create_run(
        tenant_id,
        payload.period,
        payload.staff_ids,
        term_id=payload.term_id,
        actor_id=actor_id,
    )
    return SalaryRunDetailResponse.model_validate(run)


@router.get(
    "/runs",
    response_model=SalaryRunListResponse,
    responses={400: {"model": ErrorResponse}},
)
async def list_salary_runs(
    db: DbSession,
    tenant_id: TenantId,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> SalaryRunListResponse:
    """List salary runs, newest period first."""
    result = await SalaryRunService(db).list_runs(
        tenant_id, page=page, limit=limit, status=status_filter
    )
    return SalaryRunListResponse(
        items=[SalaryRunResponse.model_validate(r) for r in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.get(
    "/runs/{run_id}",
    response_model=SalaryRunDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_salary_run(
    db: DbSession,
    tenant_id: TenantId,
    run_id: RunId,
) -> SalaryRunDetailResponse:
    """Get a salary run with its items."""
    run = await SalaryRunService(db).get_run(run_id, tenant_id, load_items=True)
    return SalaryRunDetailResponse.model_validate(run)


@router.delete(
    "/runs/{run_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=TRANSITION_ERRORS,
)
async def delete_salary_run(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    run_id: RunId,
) -> Response:
    """Delete a DRAFT salary run."""
    await SalaryRunService(db).delete_run(run_id, tenant_id, actor_id=actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/runs/{run_id}/items",
    response_model=list[SalaryItemResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_salary_items(
    db: DbSession,
    tenant_id: TenantId,
    run_id: RunId,
) -> list[SalaryItemResponse]:
    """List the items of a salary run, ordered by staff name."""
    items = await SalaryRunService(db).get_run_items(run_id, tenant_id)
    return [SalaryItemResponse.model_validate(i) for i in items]


@router.get(
    "/runs/{run_id}/history",
    response_model=list[HistoryEntryResponse],
)
async def get_salary_run_history(
    db: DbSession,
    tenant_id: TenantId,
    run_id: RunId,
) -> list[HistoryEntryResponse]:
    """Chronological approval history of a salary run."""
    entries = await SalaryRunService(db).get_approval_history(run_id, tenant_id)
    return [HistoryEntryResponse.model_validate(e) for e in entries]


# ============================================================================
# Salary Run State Transitions
# ============================================================================


@router.put(
    "/runs/{run_id}/prepare",
    response_model=SalaryRunResponse,
    responses={400: {"model": ErrorResponse}, **TRANSITION_ERRORS},
)
async def prepare_salary_run(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    run_id: RunId,
) -> SalaryRunResponse:
    """Recompute totals and move the run to PREPARED."""
    run = await SalaryRunService(db).prepare_run(run_id, tenant_id, actor_id=actor_id)
    return SalaryRunResponse.model_validate(run)


@router.put(
    "/runs/{run_id}/submit",
    response_model=SalaryRunResponse,
    responses=TRANSITION_ERRORS,
)
async def submit_salary_run(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    run_id: RunId,
) -> SalaryRunResponse:
    """Submit a prepared run for approval."""
    run = await SalaryRunService(db).submit_run(run_id, tenant_id, actor_id=actor_id)
    return SalaryRunResponse.model_validate(run)


@router.put(
    "/runs/{run_id}/approve",
    response_model=SalaryRunResponse,
    responses=TRANSITION_ERRORS,
)
async def approve_salary_run(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    run_id: RunId,
) -> SalaryRunResponse:
    """Approve a submitted run."""
    run = await SalaryRunService(db).approve_run(run_id, tenant_id, actor_id=actor_id)
    return SalaryRunResponse.model_validate(run)


@router.put(
    "/runs/{run_id}/reject",
    response_model=SalaryRunResponse,
    responses=TRANSITION_ERRORS,
)
async def reject_salary_run(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    run_id: RunId,
    payload: RejectRequest | None = None,
) -> SalaryRunResponse:
    """Reject a submitted run, optionally with a reason."""
    run = await SalaryRunService(db).reject_run(
        run_id,
        tenant_id,
        actor_id=actor_id,
        reason=payload.reason if payload else None,
    )
    return SalaryRunResponse.model_validate(run)


@router.put(
    "/runs/{run_id}/finalize",
    response_model=SalaryRunResponse,
    responses=TRANSITION_ERRORS,
)
async def finalize_salary_run(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    run_id: RunId,
) -> SalaryRunResponse:
    """Post an approved run to the expense ledger. Safe to repeat."""
    run = await SalaryRunService(db).finalize_run(run_id, tenant_id, actor_id=actor_id)
    return SalaryRunResponse.model_validate(run)


# ============================================================================
# Staff salary preview
# ============================================================================


@router.get(
    "/staff-with-salaries",
    response_model=list[StaffSalaryResponse],
)
async def list_staff_with_salaries(
    db: DbSession,
    tenant_id: TenantId,
    as_of: date | None = None,
) -> list[StaffSalaryResponse]:
    """Current computed salary of every active payroll staff member."""
    previews = await SalaryRunService(db).preview_staff_salaries(tenant_id, as_of=as_of)
    return [StaffSalaryResponse.model_validate(p) for p in previews]
