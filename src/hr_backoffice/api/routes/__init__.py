"""API routes."""

from hr_backoffice.api.routes.health import router as health_router
from hr_backoffice.api.routes.imports import router as imports_router
from hr_backoffice.api.routes.leave import router as leave_router
from hr_backoffice.api.routes.payroll import router as payroll_router
from hr_backoffice.api.routes.periods import router as periods_router

__all__ = ["health_router", "imports_router", "leave_router", "payroll_router", "periods_router"]
