"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hr_backoffice import __version__
from hr_backoffice.api.routes import (
    health_router,
    imports_router,
    leave_router,
    payroll_router,
    periods_router,
)
from hr_backoffice.database import dispose_db, init_db
from hr_backoffice.errors import (
    HRBackofficeError,
    InsufficientBalanceError,
    InvalidRangeError,
    InvalidStateError,
    NotFoundError,
    ParseFailureError,
    UpsertConflictError,
)

logger = logging.getLogger(__name__)

# Domain failure -> HTTP status
ERROR_STATUS: dict[type[HRBackofficeError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidRangeError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ParseFailureError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InsufficientBalanceError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
    UpsertConflictError: status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="HR Back-office API",
        description="Roster, attendance, KPI, leave and payroll reconciliation",
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

    # Exception handlers
    @app.exception_handler(HRBackofficeError)
    async def domain_exception_handler(request: Request, exc: HRBackofficeError) -> JSONResponse:
        """Map typed failures to status codes with a machine-readable code."""
        status_code = next(
            (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
            status.HTTP_400_BAD_REQUEST,
        )
        logger.info("%s %s -> %d %s", request.method, request.url.path, status_code, exc.code)
        return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": exc.code})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(periods_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")
    app.include_router(leave_router, prefix="/api/v1")
    app.include_router(imports_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
