"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Pay component schemas
# ============================================================================


class PayComponentCreate(BaseModel):
    """Schema for creating a pay component."""

    name: str
    type: str
    code: str | None = None
    default_amount: Decimal | None = None
    taxable: bool | None = None
    recurring: bool = False
    compute_method: str | None = None
    formula: str | None = None
    department: str | None = None
    auto_assign: bool = False


class PayComponentUpdate(BaseModel):
    """Schema for a partial pay component update."""

    name: str | None = None
    type: str | None = None
    default_amount: Decimal | None = None
    taxable: bool | None = None
    recurring: bool | None = None
    compute_method: str | None = None
    formula: str | None = None
    department: str | None = None
    auto_assign: bool | None = None


class PayComponentResponse(BaseModel):
    """Schema for pay component response."""

    model_config = ConfigDict(from_attributes=True)

    pay_component_id: UUID
    tenant_id: UUID
    code: str
    name: str
    type: str
    taxable: bool
    recurring: bool
    compute_method: str
    default_amount: Decimal | None = None
    formula: str | None = None
    department: str | None = None
    auto_assign: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Staff assignment schemas
# ============================================================================


class StaffAssignmentCreate(BaseModel):
    """Schema for assigning a pay component to a staff member."""

    staff_id: UUID
    pay_component_id: UUID
    amount: Decimal
    effective_from: date | None = None
    effective_to: date | None = None


class StaffAssignmentUpdate(BaseModel):
    """Schema for a partial assignment update."""

    amount: Decimal | None = None
    effective_to: date | None = None
    is_active: bool | None = None


class StaffAssignmentResponse(BaseModel):
    """Schema for staff assignment response."""

    model_config = ConfigDict(from_attributes=True)

    staff_pay_assignment_id: UUID
    tenant_id: UUID
    staff_id: UUID
    pay_component_id: UUID
    amount: Decimal
    effective_from: date | None = None
    effective_to: date | None = None
    is_active: bool
    component: PayComponentResponse | None = None
    created_at: datetime


# ============================================================================
# Salary run schemas
# ============================================================================


class SalaryRunCreate(BaseModel):
    """Schema for creating a salary run."""

    period: str
    staff_ids: list[UUID]
    term_id: UUID | None = None


class RejectRequest(BaseModel):
    """Schema for rejecting a submitted salary run."""

    reason: str | None = None


class BreakdownEntry(BaseModel):
    """One component line in a salary item breakdown."""

    model_config = ConfigDict(populate_by_name=True)

    amount: float
    type: str
    auto_assigned: bool = Field(alias="autoAssigned")


class SalaryItemResponse(BaseModel):
    """Schema for salary item response."""

    model_config = ConfigDict(from_attributes=True)

    salary_item_id: UUID
    salary_run_id: UUID
    staff_id: UUID
    staff_name: str
    department: str | None = None
    breakdown: dict[str, BreakdownEntry]
    gross_pay: Decimal
    taxable_pay: Decimal
    paye: Decimal
    nhif: Decimal
    nssf: Decimal
    other_deductions: Decimal
    net_pay: Decimal
    employer_contrib: Decimal


class SalaryRunResponse(BaseModel):
    """Schema for salary run response."""

    model_config = ConfigDict(from_attributes=True)

    salary_run_id: UUID
    tenant_id: UUID
    period: str
    term_id: UUID | None = None
    status: str
    total_gross: Decimal
    total_net: Decimal
    employer_cost: Decimal
    staff_count: int
    prepared_by: UUID | None = None
    submitted_by: UUID | None = None
    approved_by: UUID | None = None
    finalized_by: UUID | None = None
    posted_expense_id: UUID | None = None
    created_at: datetime
    updated_at: datetime


class SalaryRunDetailResponse(SalaryRunResponse):
    """Salary run with its items."""

    items: list[SalaryItemResponse] = []


class SalaryRunListResponse(BaseModel):
    """Schema for listing salary runs."""

    items: list[SalaryRunResponse]
    total: int
    page: int
    limit: int


class HistoryEntryResponse(BaseModel):
    """Schema for one approval history entry."""

    model_config = ConfigDict(from_attributes=True)

    entry_id: UUID
    salary_run_id: UUID
    action: str
    actor_id: UUID | None = None
    performed_by: str
    comments: str | None = None
    created_at: datetime
    source: str


class StaffSalaryResponse(BaseModel):
    """Schema for a staff member's unpersisted salary preview."""

    model_config = ConfigDict(from_attributes=True)

    staff_id: UUID
    name: str
    email: str | None = None
    role: str
    department: str
    gross_pay: Decimal
    taxable_pay: Decimal
    deductions: Decimal
    net_pay: Decimal
    employer_contrib: Decimal
    breakdown: dict[str, BreakdownEntry]
    has_assignments: bool


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
