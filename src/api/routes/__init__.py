"""API route modules."""

from src.api.routes.health import router as health_router
from src.api.routes.invoices import router as invoices_router

__all__ = ["health_router", "invoices_router"]
