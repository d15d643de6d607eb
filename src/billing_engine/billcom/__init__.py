"""Bill.com integration: client, dialects, session cache and credential cipher."""

from billing_engine.billcom.base import (
    BillComCredentials,
    BillComEnvironment,
    BillComSession,
    BillingCustomer,
    BillingProvider,
    ConnectionTestResult,
    CreatedInvoice,
    InvoiceLine,
    InvoiceRequest,
)
from billing_engine.billcom.client import BillComClient
from billing_engine.billcom.crypto import CredentialCipher
from billing_engine.billcom.dialects import FormDialect, JsonDialect, dialect_for
from billing_engine.billcom.session_cache import SessionCache, SessionCacheRegistry

__all__ = [
    "BillComClient",
    "BillComCredentials",
    "BillComEnvironment",
    "BillComSession",
    "BillingCustomer",
    "BillingProvider",
    "ConnectionTestResult",
    "CreatedInvoice",
    "CredentialCipher",
    "FormDialect",
    "InvoiceLine",
    "InvoiceRequest",
    "JsonDialect",
    "SessionCache",
    "SessionCacheRegistry",
    "dialect_for",
]
