"""Pytest fixtures for staff payroll tests."""

from __future__ import annotations

from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from staff_payroll.models import Base, PayComponent, StaffMember, StaffPayAssignment

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's implicit transaction handling breaks SAVEPOINT; let
    # SQLAlchemy emit BEGIN itself.
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_staff(session: AsyncSession, tenant_id: UUID):
    """Factory for staff members."""

    async def _make_staff(
        first_name: str | None = "Staff",
        last_name: str | None = None,
        role: str = "TEACHER",
        is_active: bool = True,
        tenant: UUID | None = None,
        username: str | None = None,
        email: str | None = None,
        profile_department: str | None = None,
    ) -> StaffMember:
        staff = StaffMember(
            tenant_id=tenant or tenant_id,
            role=role,
            is_active=is_active,
            first_name=first_name,
            last_name=last_name,
            username=username,
            email=email,
            profile_department=profile_department,
        )
        session.add(staff)
        await session.flush()
        return staff

    return _make_staff


@pytest.fixture
def make_component(session: AsyncSession, tenant_id: UUID):
    """Factory for pay components."""

    async def _make_component(
        name: str,
        type: str = "BASIC",
        default_amount: Decimal | str | None = None,
        auto_assign: bool = False,
        department: str | None = None,
        taxable: bool | None = None,
        code: str | None = None,
        tenant: UUID | None = None,
    ) -> PayComponent:
        component = PayComponent(
            tenant_id=tenant or tenant_id,
            code=code or f"{name.upper().replace(' ', '_')}_{uuid4().hex[:6]}",
            name=name,
            type=type,
            taxable=taxable if taxable is not None else type != "DEDUCTION",
            compute_method="FIXED",
            default_amount=Decimal(default_amount) if default_amount is not None else None,
            auto_assign=auto_assign,
            department=department,
        )
        session.add(component)
        await session.flush()
        return component

    return _make_component


@pytest.fixture
def assign(session: AsyncSession, tenant_id: UUID):
    """Factory for manual staff assignments."""

    async def _assign(
        staff: StaffMember,
        component: PayComponent,
        amount: Decimal | str,
        effective_from=None,
        effective_to=None,
        is_active: bool = True,
    ) -> StaffPayAssignment:
        assignment = StaffPayAssignment(
            tenant_id=staff.tenant_id,
            staff_id=staff.staff_id,
            pay_component_id=component.pay_component_id,
            amount=Decimal(amount),
            effective_from=effective_from,
            effective_to=effective_to,
            is_active=is_active,
        )
        session.add(assignment)
        await session.flush()
        return assignment

    return _assign
