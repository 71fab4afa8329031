"""Salary run state machine with transition validation."""

from __future__ import annotations

from enum import Enum


class SalaryRunStatus(str, Enum):
    """Salary run status values."""

    DRAFT = "DRAFT"
    PREPARED = "PREPARED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FINALIZED = "FINALIZED"


class InvalidTransitionError(Exception):
    """Raised when a salary run cannot move between two statuses."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(
            f"Salary run cannot move from {from_status} to {to_status}"
            + (f": {reason}" if reason else "")
        )


class ConcurrentTransitionError(InvalidTransitionError):
    """Raised when the run's status changed between load and update."""

    def __init__(self, from_status: str, to_status: str):
        super().__init__(from_status, to_status, "Status changed concurrently")


class SalaryRunStateMachine:
    """State machine for salary run status transitions.

    Allowed transitions:
    - DRAFT → PREPARED
    - REJECTED → PREPARED (re-prepare after rejection)
    - PREPARED → SUBMITTED
    - SUBMITTED → APPROVED
    - SUBMITTED → REJECTED
    - APPROVED → FINALIZED
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        SalaryRunStatus.DRAFT: [SalaryRunStatus.PREPARED],
        SalaryRunStatus.PREPARED: [SalaryRunStatus.SUBMITTED],
        SalaryRunStatus.SUBMITTED: [SalaryRunStatus.APPROVED, SalaryRunStatus.REJECTED],
        SalaryRunStatus.APPROVED: [SalaryRunStatus.FINALIZED],
        SalaryRunStatus.REJECTED: [SalaryRunStatus.PREPARED],
        SalaryRunStatus.FINALIZED: [],  # Terminal state
    }

    # Statuses where the run can be deleted
    DELETABLE = {SalaryRunStatus.DRAFT}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(
                SalaryRunStatus(from_status).value, SalaryRunStatus(to_status).value
            )

    @classmethod
    def can_delete(cls, status: str) -> bool:
        return status in cls.DELETABLE
