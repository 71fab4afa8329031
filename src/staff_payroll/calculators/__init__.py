"""Resolution and salary calculation."""

from staff_payroll.calculators.assignment_resolver import (
    DEFAULT_STRATEGIES,
    AssignmentResolver,
    DecisionOutcome,
    DepartmentAutoAssignStrategy,
    ManualAssignmentStrategy,
    Resolution,
    ResolutionDecision,
    ResolutionStrategy,
    SystemAutoAssignStrategy,
    derive_department,
    resolve_components,
)
from staff_payroll.calculators.salary_calculator import SalaryCalculator
from staff_payroll.calculators.types import (
    PAYROLL_ROLES,
    ComponentType,
    ComputeMethod,
    PeriodWindow,
    ResolvedComponent,
    RoundedBreakdown,
    SalaryBreakdown,
    StaffComputation,
    StaffProfile,
    StaffRole,
)

__all__ = [
    "DEFAULT_STRATEGIES",
    "PAYROLL_ROLES",
    "AssignmentResolver",
    "ComponentType",
    "ComputeMethod",
    "DecisionOutcome",
    "DepartmentAutoAssignStrategy",
    "ManualAssignmentStrategy",
    "PeriodWindow",
    "Resolution",
    "ResolutionDecision",
    "ResolutionStrategy",
    "ResolvedComponent",
    "RoundedBreakdown",
    "SalaryBreakdown",
    "SalaryCalculator",
    "StaffComputation",
    "StaffProfile",
    "StaffRole",
    "SystemAutoAssignStrategy",
    "derive_department",
    "resolve_components",
]
