"""API route modules."""

from billing_engine.api.routes.billcom_config import router as billcom_router
from billing_engine.api.routes.financial_reports import router as financial_reports_router
from billing_engine.api.routes.fractional_incentives import router as fractional_incentives_router
from billing_engine.api.routes.health import router as health_router
from billing_engine.api.routes.invoices import router as invoices_router
from billing_engine.api.routes.time_entries import router as time_entries_router

__all__ = [
    "billcom_router",
    "financial_reports_router",
    "fractional_incentives_router",
    "health_router",
    "invoices_router",
    "time_entries_router",
]
