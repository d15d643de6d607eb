"""Base protocol and types for the external billing system adapter.

Both Bill.com API dialects normalise their responses into these types, so
the submission service never sees a raw envelope.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol


class BillComEnvironment(str, Enum):
    """Configured environment. Selects the API dialect."""

    SANDBOX = "SANDBOX"
    PRODUCTION = "PRODUCTION"


@dataclass(frozen=True)
class BillComCredentials:
    """Decrypted credentials. Exists only for the lifetime of a client."""

    environment: BillComEnvironment
    dev_key: str = field(repr=False)
    username: str = field(repr=False)
    password: str = field(repr=False)
    organization_id: str = field(repr=False)


@dataclass(frozen=True)
class BillComSession:
    """An authenticated session."""

    session_id: str = field(repr=False)
    user_id: str = ""
    organization_id: str = field(default="", repr=False)

    @property
    def short_id(self) -> str:
        """Truncated session id safe for logs."""
        return f"{self.session_id[:10]}..."


@dataclass(frozen=True)
class BillingCustomer:
    """A customer record in the external system."""

    id: str
    name: str
    email: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class InvoiceLine:
    """One line of an invoice sent to the external system."""

    description: str
    quantity: Decimal
    price: Decimal
    amount: Decimal


@dataclass(frozen=True)
class InvoiceRequest:
    """Invoice creation payload."""

    customer_id: str
    due_date: datetime.date
    line_items: list[InvoiceLine]
    description: str | None = None
    invoice_date: datetime.date | None = None
    invoice_number: str | None = None
    send_email: bool = False


@dataclass(frozen=True)
class CreatedInvoice:
    """Normalised result of creating or reading an invoice."""

    id: str
    invoice_number: str | None = None
    amount: Decimal | None = None
    due_date: datetime.date | None = None
    payment_status: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of a connectivity check."""

    success: bool
    message: str
    environment: BillComEnvironment | None = None


class BillingProvider(Protocol):
    """Protocol for the external billing system used by submission.

    BillComClient implements it; tests substitute in-memory fakes.
    """

    async def create_invoice(self, request: InvoiceRequest) -> CreatedInvoice:
        """Create an invoice and return its external references.

        Raises:
            ExternalSystemError: On any API, auth or transport failure
        """
        ...

    async def get_invoice(self, invoice_id: str) -> CreatedInvoice:
        """Read an invoice back, including its payment status."""
        ...

    async def list_customers(self) -> list[BillingCustomer]:
        """List customers available for client mapping."""
        ...
