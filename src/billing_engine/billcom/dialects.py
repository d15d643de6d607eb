"""Request building and response normalisation for both Bill.com API dialects.

SANDBOX talks to the v3 gateway (JSON bodies, credentials in headers,
top-level response fields). PRODUCTION talks to the v2 API (form bodies with
a JSON-stringified ``data`` field and a ``response_data`` envelope).
"""

from __future__ import annotations

import datetime
import json
import secrets
import string
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from billing_engine.billcom.base import (
    BillComCredentials,
    BillComEnvironment,
    BillComSession,
    BillingCustomer,
    CreatedInvoice,
    InvoiceRequest,
)
from billing_engine.exceptions import ExternalSystemError

SANDBOX_URL = "https://gateway.stage.bill.com/connect/v3"
PRODUCTION_URL = "https://api.bill.com/api/v2"

_INVOICE_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class ApiRequest:
    """A dialect-specific HTTP request, ready for httpx."""

    method: str
    path: str
    json: dict[str, Any] | None = None
    data: dict[str, str] | None = field(default=None, repr=False)
    headers: dict[str, str] = field(default_factory=dict, repr=False)


def _decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _date(value: Any) -> datetime.date | None:
    if not value:
        return None
    try:
        return datetime.date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _flag(value: Any) -> bool:
    if value is None:
        return True
    return value in (True, 1, "1", "true", "True")


def _number(value: Decimal) -> float:
    return float(value)


class JsonDialect:
    """v3 gateway dialect."""

    environment = BillComEnvironment.SANDBOX
    base_url = SANDBOX_URL

    def __init__(self, today: Callable[[], datetime.date] = datetime.date.today):
        self.today = today

    @staticmethod
    def _auth_headers(credentials: BillComCredentials, session: BillComSession) -> dict[str, str]:
        return {"devKey": credentials.dev_key, "sessionId": session.session_id}

    def login_request(self, credentials: BillComCredentials) -> ApiRequest:
        return ApiRequest(
            method="POST",
            path="/login",
            json={
                "username": credentials.username,
                "password": credentials.password,
                "organizationId": credentials.organization_id,
                "devKey": credentials.dev_key,
            },
        )

    def parse_login(self, payload: dict[str, Any], credentials: BillComCredentials) -> BillComSession:
        body = self.unwrap(payload)
        session_id = body.get("sessionId")
        if not session_id:
            raise ExternalSystemError(
                "Failed to authenticate with Bill.com: No session ID returned"
            )
        return BillComSession(
            session_id=session_id,
            user_id=body.get("userId") or "",
            organization_id=body.get("organizationId") or credentials.organization_id,
        )

    def list_customers_request(
        self, credentials: BillComCredentials, session: BillComSession
    ) -> ApiRequest:
        return ApiRequest(
            method="GET",
            path="/customers",
            headers=self._auth_headers(credentials, session),
        )

    def parse_customers(self, payload: dict[str, Any]) -> list[BillingCustomer]:
        body = self.unwrap(payload)
        records = body.get("results", body.get("customers", []))
        return [self._customer(record) for record in records if isinstance(record, dict)]

    def create_invoice_request(
        self,
        credentials: BillComCredentials,
        session: BillComSession,
        request: InvoiceRequest,
    ) -> ApiRequest:
        body: dict[str, Any] = {
            "customerId": request.customer_id,
            "invoiceDate": (request.invoice_date or self.today()).isoformat(),
            "dueDate": request.due_date.isoformat(),
            "invoiceLineItems": [
                {
                    "description": line.description,
                    "quantity": _number(line.quantity),
                    "price": _number(line.price),
                    "amount": _number(line.amount),
                }
                for line in request.line_items
            ],
            "sendEmail": request.send_email,
        }
        if request.invoice_number:
            body["invoiceNumber"] = request.invoice_number
        if request.description:
            body["description"] = request.description
        return ApiRequest(
            method="POST",
            path="/invoices",
            json=body,
            headers=self._auth_headers(credentials, session),
        )

    def get_invoice_request(
        self,
        credentials: BillComCredentials,
        session: BillComSession,
        invoice_id: str,
    ) -> ApiRequest:
        return ApiRequest(
            method="GET",
            path=f"/invoices/{invoice_id}",
            headers=self._auth_headers(credentials, session),
        )

    def parse_invoice(self, payload: dict[str, Any]) -> CreatedInvoice:
        body = self.unwrap(payload)
        invoice_id = body.get("id")
        if not invoice_id:
            raise ExternalSystemError("Bill.com API error: invoice id missing from response")
        return CreatedInvoice(
            id=str(invoice_id),
            invoice_number=body.get("invoiceNumber"),
            amount=_decimal(body.get("amount")),
            due_date=_date(body.get("dueDate")),
            payment_status=body.get("paymentStatus"),
            raw=body,
        )

    def unwrap(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Return the response body; v3 uses top-level fields."""
        if not isinstance(payload, dict):
            raise ExternalSystemError("Bill.com API error: unexpected response shape")
        return payload

    @staticmethod
    def _customer(record: dict[str, Any]) -> BillingCustomer:
        return BillingCustomer(
            id=str(record.get("id")),
            name=record.get("name") or "",
            email=record.get("email"),
            is_active=_flag(record.get("isActive")),
        )


class FormDialect(JsonDialect):
    """v2 dialect: form-encoded bodies and a ``response_data`` envelope."""

    environment = BillComEnvironment.PRODUCTION
    base_url = PRODUCTION_URL

    @staticmethod
    def _form(
        credentials: BillComCredentials,
        session: BillComSession,
        data: dict[str, Any],
    ) -> dict[str, str]:
        return {
            "devKey": credentials.dev_key,
            "sessionId": session.session_id,
            "data": json.dumps(data),
        }

    def login_request(self, credentials: BillComCredentials) -> ApiRequest:
        return ApiRequest(
            method="POST",
            path="/Login.json",
            data={
                "userName": credentials.username,
                "password": credentials.password,
                "orgId": credentials.organization_id,
                "devKey": credentials.dev_key,
            },
        )

    def parse_login(self, payload: dict[str, Any], credentials: BillComCredentials) -> BillComSession:
        body = self.unwrap(payload)
        session_id = body.get("sessionId")
        if not session_id:
            raise ExternalSystemError(
                "Failed to authenticate with Bill.com: No session ID returned"
            )
        return BillComSession(
            session_id=session_id,
            user_id=body.get("usersId") or "",
            organization_id=body.get("orgId") or credentials.organization_id,
        )

    def list_customers_request(
        self, credentials: BillComCredentials, session: BillComSession
    ) -> ApiRequest:
        return ApiRequest(
            method="POST",
            path="/List/Customer.json",
            data=self._form(credentials, session, {"start": 0, "max": 999}),
        )

    def parse_customers(self, payload: dict[str, Any]) -> list[BillingCustomer]:
        records = payload.get("response_data") if isinstance(payload, dict) else None
        if isinstance(payload, dict) and payload.get("response_status") == 1:
            self.unwrap(payload)
        if not isinstance(records, list):
            return []
        return [self._customer(record) for record in records if isinstance(record, dict)]

    def create_invoice_request(
        self,
        credentials: BillComCredentials,
        session: BillComSession,
        request: InvoiceRequest,
    ) -> ApiRequest:
        obj: dict[str, Any] = {
            "entity": "Invoice",
            "customerId": request.customer_id,
            "invoiceNumber": request.invoice_number or self.generate_invoice_number(),
            "invoiceDate": (request.invoice_date or self.today()).isoformat(),
            "dueDate": request.due_date.isoformat(),
            "invoiceLineItems": [
                {
                    "entity": "InvoiceLineItem",
                    "quantity": _number(line.quantity),
                    "amount": _number(line.amount),
                    "price": _number(line.price),
                    "description": line.description,
                }
                for line in request.line_items
            ],
        }
        if request.description:
            obj["description"] = request.description
        return ApiRequest(
            method="POST",
            path="/Crud/Create/Invoice.json",
            data=self._form(credentials, session, {"obj": obj}),
        )

    def get_invoice_request(
        self,
        credentials: BillComCredentials,
        session: BillComSession,
        invoice_id: str,
    ) -> ApiRequest:
        return ApiRequest(
            method="POST",
            path="/Crud/Read/Invoice.json",
            data=self._form(credentials, session, {"id": invoice_id}),
        )

    def generate_invoice_number(self) -> str:
        """INV-YYYYMMDD-XXXXX with a random alphanumeric suffix."""
        suffix = "".join(secrets.choice(_INVOICE_SUFFIX_ALPHABET) for _ in range(5))
        return f"INV-{self.today():%Y%m%d}-{suffix}"

    def unwrap(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Return ``response_data``; ``response_status == 1`` is an API error."""
        if not isinstance(payload, dict):
            raise ExternalSystemError("Bill.com API error: unexpected response shape")
        data = payload.get("response_data")
        if payload.get("response_status") == 1:
            message = None
            if isinstance(data, dict):
                message = data.get("error_message")
            message = message or payload.get("response_message") or "Unknown error"
            raise ExternalSystemError(f"Bill.com API error: {message}")
        if not isinstance(data, dict):
            raise ExternalSystemError("Bill.com API error: response_data missing")
        return data


def dialect_for(environment: BillComEnvironment | str) -> JsonDialect:
    """SANDBOX uses the v3 JSON dialect; PRODUCTION uses the v2 form dialect."""
    if BillComEnvironment(environment) == BillComEnvironment.PRODUCTION:
        return FormDialect()
    return JsonDialect()
