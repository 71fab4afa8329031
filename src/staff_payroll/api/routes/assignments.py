"""Staff pay assignment endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Response, status

from staff_payroll.api.dependencies import ActorId, DbSession, TenantId
from staff_payroll.api.schemas import (
    ErrorResponse,
    StaffAssignmentCreate,
    StaffAssignmentResponse,
    StaffAssignmentUpdate,
)
from staff_payroll.services.assignment_service import StaffAssignmentService

router = APIRouter(prefix="/assignments", tags=["staff-assignments"])

AssignmentId = Annotated[UUID, Path()]


@router.post(
    "",
    response_model=StaffAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_assignment(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    payload: StaffAssignmentCreate,
) -> StaffAssignmentResponse:
    """Assign a pay component to a staff member."""
    assignment = await StaffAssignmentService(db).create(
        tenant_id, actor_id=actor_id, **payload.model_dump()
    )
    return StaffAssignmentResponse.model_validate(assignment)


@router.get("", response_model=list[StaffAssignmentResponse])
async def list_assignments(
    db: DbSession,
    tenant_id: TenantId,
    staff_id: UUID | None = None,
) -> list[StaffAssignmentResponse]:
    """List active assignments, optionally for one staff member."""
    assignments = await StaffAssignmentService(db).list(tenant_id, staff_id=staff_id)
    return [StaffAssignmentResponse.model_validate(a) for a in assignments]


@router.get(
    "/{assignment_id}",
    response_model=StaffAssignmentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_assignment(
    db: DbSession,
    tenant_id: TenantId,
    assignment_id: AssignmentId,
) -> StaffAssignmentResponse:
    assignment = await StaffAssignmentService(db).get(assignment_id, tenant_id)
    return StaffAssignmentResponse.model_validate(assignment)


@router.put(
    "/{assignment_id}",
    response_model=StaffAssignmentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_assignment(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    assignment_id: AssignmentId,
    payload: StaffAssignmentUpdate,
) -> StaffAssignmentResponse:
    assignment = await StaffAssignmentService(db).update(
        assignment_id, tenant_id, payload.model_dump(exclude_unset=True), actor_id=actor_id
    )
    return StaffAssignmentResponse.model_validate(assignment)


@router.delete(
    "/{assignment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_assignment(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    assignment_id: AssignmentId,
) -> Response:
    """Deactivate an assignment. The row is kept."""
    await StaffAssignmentService(db).delete(assignment_id, tenant_id, actor_id=actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
