"""Staff payroll services."""

from staff_payroll.services.assignment_service import StaffAssignmentService
from staff_payroll.services.catalog_service import PayComponentCatalog
from staff_payroll.services.history_service import ApprovalAction, ApprovalHistoryRecorder
from staff_payroll.services.salary_run_service import SalaryRunService, StaffScope
from staff_payroll.services.state_machine import (
    ConcurrentTransitionError,
    InvalidTransitionError,
    SalaryRunStateMachine,
    SalaryRunStatus,
)

__all__ = [
    "ApprovalAction",
    "ApprovalHistoryRecorder",
    "ConcurrentTransitionError",
    "InvalidTransitionError",
    "PayComponentCatalog",
    "SalaryRunService",
    "SalaryRunStateMachine",
    "SalaryRunStatus",
    "StaffAssignmentService",
    "StaffScope",
]
