"""Request-scoped dependencies: the unit-of-work session and caller identity."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from staff_payroll.database import init_db


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """One session per request, committed when the handler succeeds."""
    _, session_factory = init_db()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _uuid_header(name: str, value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name} format",
        )


async def get_tenant_id(
    x_tenant_id: Annotated[str | None, Header()] = None
) -> UUID:
    """Every payroll request is scoped to the tenant named in X-Tenant-ID."""
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required",
        )
    return _uuid_header("X-Tenant-ID", x_tenant_id)


async def get_actor_id(
    x_user_id: Annotated[str | None, Header()] = None
) -> UUID | None:
    """Acting user from X-User-ID; None means the system."""
    return _uuid_header("X-User-ID", x_user_id) if x_user_id else None


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
TenantId = Annotated[UUID, Depends(get_tenant_id)]
ActorId = Annotated[UUID | None, Depends(get_actor_id)]
