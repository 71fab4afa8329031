"""Staff directory model.

The staff directory belongs to the user/identity subsystem; payroll only
reads it. The table is mapped here so the default SQL directory adapter and
the test suite have something concrete to query.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from staff_payroll.models.base import Base, TimestampMixin


class StaffMember(Base, TimestampMixin):
    """A user of the tenant who may be paid through payroll."""

    __tablename__ = "staff_member"

    staff_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    username: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)

    # Role-specific profile (teacher / finance officer)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    profile_department: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (Index("ix_staff_member_tenant_active", "tenant_id", "is_active"),)
