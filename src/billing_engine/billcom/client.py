"""Async Bill.com API client."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httpx

from billing_engine.billcom.base import (
    BillComCredentials,
    BillComSession,
    BillingCustomer,
    ConnectionTestResult,
    CreatedInvoice,
    InvoiceRequest,
)
from billing_engine.billcom.dialects import ApiRequest, JsonDialect, dialect_for
from billing_engine.billcom.session_cache import SessionCache
from billing_engine.exceptions import BillComAuthError, ExternalSystemError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0


class BillComClient:
    """Bill.com client implementing the BillingProvider protocol.

    - One dialect per environment normalises requests and responses
    - Sessions come from a shared SessionCache
    - Any 401 invalidates the cached session and retries the call once
    - Timeouts and transport errors surface as ExternalSystemError

    Use as an async context manager, or call ``aclose()`` when done.
    """

    def __init__(
        self,
        credentials: BillComCredentials,
        session_cache: SessionCache,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        dialect: JsonDialect | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.credentials = credentials
        self.session_cache = session_cache
        self.dialect = dialect or dialect_for(credentials.environment)
        self._http = httpx.AsyncClient(
            base_url=self.dialect.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> BillComClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(self, request: ApiRequest) -> dict[str, Any]:
        try:
            response = await self._http.request(
                request.method,
                request.path,
                json=request.json,
                data=request.data,
                headers=request.headers,
            )
        except httpx.TimeoutException as e:
            raise ExternalSystemError(
                f"Bill.com request timed out: {request.method} {request.path}"
            ) from e
        except httpx.HTTPError as e:
            raise ExternalSystemError(f"Bill.com request failed: {e}") from e

        if response.status_code == 401:
            raise BillComAuthError("Bill.com session expired or unauthorized", status_code=401)
        if response.status_code >= 400:
            raise ExternalSystemError(
                f"Bill.com API error: {self._error_message(response)}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ExternalSystemError(
                "Bill.com API error: response is not valid JSON",
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        if isinstance(body, dict):
            data = body.get("response_data")
            if isinstance(data, dict) and data.get("error_message"):
                return data["error_message"]
            if body.get("message"):
                return body["message"]
        return f"HTTP {response.status_code}"

    async def _call(
        self,
        operation: str,
        build: Callable[[BillComSession], ApiRequest],
        parse: Callable[[dict[str, Any]], T],
    ) -> T:
        """Run an authenticated call, retrying exactly once after a 401."""
        for attempt in (1, 2):
            session = await self.session_cache.get_or_refresh(self.login)
            try:
                payload = await self._send(build(session))
            except BillComAuthError:
                self.session_cache.invalidate()
                if attempt == 2:
                    raise
                logger.warning(
                    "Bill.com %s returned 401 for session %s; re-authenticating",
                    operation,
                    session.short_id,
                )
                continue
            return parse(payload)
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def login(self) -> BillComSession:
        """Authenticate and return a fresh session (not cached here)."""
        logger.info(
            "Logging in to Bill.com (%s, %s)",
            self.credentials.environment.value,
            self.dialect.base_url,
        )
        try:
            payload = await self._send(self.dialect.login_request(self.credentials))
        except BillComAuthError as e:
            raise BillComAuthError(
                "Bill.com authentication failed: invalid credentials", status_code=401
            ) from e
        return self.dialect.parse_login(payload, self.credentials)

    async def list_customers(self) -> list[BillingCustomer]:
        customers = await self._call(
            "list_customers",
            lambda session: self.dialect.list_customers_request(self.credentials, session),
            self.dialect.parse_customers,
        )
        logger.info("Fetched %d customer(s) from Bill.com", len(customers))
        return customers

    async def create_invoice(self, request: InvoiceRequest) -> CreatedInvoice:
        invoice = await self._call(
            "create_invoice",
            lambda session: self.dialect.create_invoice_request(self.credentials, session, request),
            self.dialect.parse_invoice,
        )
        logger.info(
            "Created Bill.com invoice %s (%s) for customer %s",
            invoice.id,
            invoice.invoice_number,
            request.customer_id,
        )
        return invoice

    async def get_invoice(self, invoice_id: str) -> CreatedInvoice:
        return await self._call(
            "get_invoice",
            lambda session: self.dialect.get_invoice_request(self.credentials, session, invoice_id),
            self.dialect.parse_invoice,
        )

    async def test_connection(self) -> ConnectionTestResult:
        """Force a login. Failures are reported, not raised."""
        try:
            await self.session_cache.refresh(self.login)
        except ExternalSystemError as e:
            logger.warning("Bill.com connection test failed: %s", e.message)
            return ConnectionTestResult(
                success=False,
                message=e.message,
                environment=self.credentials.environment,
            )
        return ConnectionTestResult(
            success=True,
            message="Successfully connected to Bill.com",
            environment=self.credentials.environment,
        )
