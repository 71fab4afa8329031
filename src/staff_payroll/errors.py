"""Exception hierarchy for payroll operations."""

from __future__ import annotations

from uuid import UUID


class PayrollError(Exception):
    """Base class for all payroll errors."""


class PayrollValidationError(PayrollError):
    """Raised for client-caused input errors, before anything is persisted."""


class ZeroTotalError(PayrollValidationError):
    """Raised when a run would carry zero gross and zero net pay."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "Cannot create salary run with zero gross and net amounts. "
            "Assign pay components or select staff with amounts."
        )


class NotFoundError(PayrollError):
    """Raised when an entity does not exist within the caller's tenant."""

    def __init__(self, entity: str, entity_id: UUID | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class DuplicateError(PayrollError):
    """Raised when a tenant-scoped uniqueness rule would be violated."""
