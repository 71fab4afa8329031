"""API routes."""

from staff_payroll.api.routes.assignments import router as assignments_router
from staff_payroll.api.routes.components import router as components_router
from staff_payroll.api.routes.health import router as health_router
from staff_payroll.api.routes.salary_runs import router as salary_runs_router

__all__ = ["assignments_router", "components_router", "health_router", "salary_runs_router"]
