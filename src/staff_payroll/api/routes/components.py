"""Pay component catalog endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Response, status

from staff_payroll.api.dependencies import ActorId, DbSession, TenantId
from staff_payroll.api.schemas import (
    ErrorResponse,
    PayComponentCreate,
    PayComponentResponse,
    PayComponentUpdate,
)
from staff_payroll.services.catalog_service import PayComponentCatalog

router = APIRouter(prefix="/components", tags=["pay-components"])

ComponentId = Annotated[UUID, Path()]


@router.post(
    "",
    response_model=PayComponentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_component(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    payload: PayComponentCreate,
) -> PayComponentResponse:
    component = await PayComponentCatalog(db).create(
        tenant_id, actor_id=actor_id, **payload.model_dump()
    )
    return PayComponentResponse.model_validate(component)


@router.get("", response_model=list[PayComponentResponse])
async def list_components(
    db: DbSession,
    tenant_id: TenantId,
    type: str | None = None,
    auto_assign: bool | None = None,
    department: str | None = None,
) -> list[PayComponentResponse]:
    """List pay components, newest first."""
    components = await PayComponentCatalog(db).list(
        tenant_id, type=type, auto_assign=auto_assign, department=department
    )
    return [PayComponentResponse.model_validate(c) for c in components]


@router.get(
    "/{component_id}",
    response_model=PayComponentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_component(
    db: DbSession,
    tenant_id: TenantId,
    component_id: ComponentId,
) -> PayComponentResponse:
    component = await PayComponentCatalog(db).get(component_id, tenant_id)
    return PayComponentResponse.model_validate(component)


@router.put(
    "/{component_id}",
    response_model=PayComponentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_component(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    component_id: ComponentId,
    payload: PayComponentUpdate,
) -> PayComponentResponse:
    """Partially update a component; only fields present in the body change."""
    component = await PayComponentCatalog(db).update(
        component_id, tenant_id, payload.model_dump(exclude_unset=True), actor_id=actor_id
    )
    return PayComponentResponse.model_validate(component)


@router.delete(
    "/{component_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_component(
    db: DbSession,
    tenant_id: TenantId,
    actor_id: ActorId,
    component_id: ComponentId,
) -> Response:
    await PayComponentCatalog(db).delete(component_id, tenant_id, actor_id=actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
