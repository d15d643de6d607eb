"""ORM models."""

from billing_engine.models.base import Base, TimestampMixin, utcnow
from billing_engine.models.directory import Client, Project, User
from billing_engine.models.incentive import FractionalIncentive, IncentiveEarning
from billing_engine.models.invoice import (
    BillComConfig,
    BillComCustomerMapping,
    Invoice,
    InvoiceBatch,
    InvoiceLineItem,
)
from billing_engine.models.time_entry import TimeEntry

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "User",
    "Client",
    "Project",
    "TimeEntry",
    "FractionalIncentive",
    "IncentiveEarning",
    "InvoiceBatch",
    "Invoice",
    "InvoiceLineItem",
    "BillComCustomerMapping",
    "BillComConfig",
]
