"""API routes."""

from payroll_tax.api.routes.health import router as health_router
from payroll_tax.api.routes.tax import router as tax_router

__all__ = ["health_router", "tax_router"]
