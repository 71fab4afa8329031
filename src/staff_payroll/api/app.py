"""HTTP adapter: app factory and domain error mapping."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from staff_payroll import __version__
from staff_payroll.api.routes import (
    assignments_router,
    components_router,
    health_router,
    salary_runs_router,
)
from staff_payroll.database import dispose_db, init_db
from staff_payroll.errors import (
    DuplicateError,
    NotFoundError,
    PayrollError,
    PayrollValidationError,
    ZeroTotalError,
)
from staff_payroll.services.state_machine import (
    ConcurrentTransitionError,
    InvalidTransitionError,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/payroll"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    init_db()
    yield
    await dispose_db()


def _error_response(status_code: int, exc: Exception, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": code})


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain exceptions to HTTP status codes."""

    @app.exception_handler(PayrollError)
    async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
        if isinstance(exc, ZeroTotalError):
            return _error_response(status.HTTP_400_BAD_REQUEST, exc, "ZERO_TOTAL")
        if isinstance(exc, PayrollValidationError):
            return _error_response(status.HTTP_400_BAD_REQUEST, exc, "VALIDATION_ERROR")
        if isinstance(exc, NotFoundError):
            return _error_response(status.HTTP_404_NOT_FOUND, exc, "NOT_FOUND")
        if isinstance(exc, DuplicateError):
            return _error_response(status.HTTP_409_CONFLICT, exc, "DUPLICATE")
        return _error_response(status.HTTP_400_BAD_REQUEST, exc, "PAYROLL_ERROR")

    @app.exception_handler(InvalidTransitionError)
    async def transition_error_handler(
        request: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        code = (
            "CONCURRENT_TRANSITION"
            if isinstance(exc, ConcurrentTransitionError)
            else "INVALID_TRANSITION"
        )
        return _error_response(status.HTTP_409_CONFLICT, exc, code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal payroll error", "code": "INTERNAL_ERROR"},
        )


def create_app() -> FastAPI:
    """Build the payroll API. Routers other than health live under API_PREFIX."""
    app = FastAPI(
        title="Staff Payroll API",
        description="Salary runs, pay components and staff assignments",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(salary_runs_router, prefix=API_PREFIX)
    app.include_router(components_router, prefix=API_PREFIX)
    app.include_router(assignments_router, prefix=API_PREFIX)

    return app
