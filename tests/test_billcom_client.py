"""Tests for the Bill.com client against a mocked HTTP transport."""

import json
import re
from datetime import date
from decimal import Decimal

import httpx
import pytest

from billing_engine.billcom import (
    BillComClient,
    BillComCredentials,
    BillComEnvironment,
    FormDialect,
    InvoiceLine,
    InvoiceRequest,
    JsonDialect,
    SessionCache,
)
from billing_engine.billcom.dialects import PRODUCTION_URL, SANDBOX_URL, dialect_for
from billing_engine.exceptions import BillComAuthError, ExternalSystemError

TODAY = date(2024, 7, 10)


def credentials(environment=BillComEnvironment.SANDBOX) -> BillComCredentials:
    return BillComCredentials(
        environment=environment,
        dev_key="dev-key",
        username="ops@example.com",
        password="s3cret",
        organization_id="org-1",
    )


def invoice_request() -> InvoiceRequest:
    return InvoiceRequest(
        customer_id="cust-1",
        due_date=date(2024, 8, 9),
        line_items=[
            InvoiceLine(
                description="Carl - Web - 10 hours @ $150.00/hr",
                quantity=Decimal("10"),
                price=Decimal("150"),
                amount=Decimal("1500"),
            )
        ],
        description="Services for 06/01/2024 - 06/30/2024",
        send_email=True,
    )


def form_fields(request: httpx.Request) -> dict[str, str]:
    return dict(httpx.QueryParams(request.content.decode()))


class FakeBillCom:
    """Records requests and answers like the sandbox gateway."""

    def __init__(self, expire_sessions: int = 0):
        self.requests: list[httpx.Request] = []
        self.logins = 0
        self.expire_sessions = expire_sessions

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/login"):
            self.logins += 1
            return httpx.Response(200, json={"sessionId": f"session-{self.logins:04d}-abcdef"})
        if self.expire_sessions > 0:
            self.expire_sessions -= 1
            return httpx.Response(401, json={"message": "session expired"})
        if path.endswith("/customers"):
            return httpx.Response(
                200,
                json={"results": [{"id": "cust-1", "name": "Acme", "email": "ap@acme.test"}]},
            )
        if request.method == "POST" and path.endswith("/invoices"):
            return httpx.Response(
                200,
                json={"id": "00e01", "invoiceNumber": "1001", "amount": 1500.0, "dueDate": "2024-08-09"},
            )
        match = re.search(r"/invoices/(\w+)$", path)
        if match:
            return httpx.Response(
                200, json={"id": match.group(1), "amount": "1500.00", "paymentStatus": "PAID"}
            )
        return httpx.Response(404, json={"message": "not found"})


def make_client(handler, environment=BillComEnvironment.SANDBOX, cache=None) -> BillComClient:
    if environment == BillComEnvironment.PRODUCTION:
        dialect = FormDialect(today=lambda: TODAY)
    else:
        dialect = JsonDialect(today=lambda: TODAY)
    return BillComClient(
        credentials(environment),
        cache or SessionCache(),
        dialect=dialect,
        transport=httpx.MockTransport(handler),
    )


class TestDialectSelection:
    def test_dialect_for_environment(self):
        assert isinstance(dialect_for("SANDBOX"), JsonDialect)
        assert not isinstance(dialect_for("SANDBOX"), FormDialect)
        assert isinstance(dialect_for(BillComEnvironment.PRODUCTION), FormDialect)
        assert JsonDialect.base_url == SANDBOX_URL
        assert FormDialect.base_url == PRODUCTION_URL

    def test_generated_invoice_number_format(self):
        number = FormDialect(today=lambda: TODAY).generate_invoice_number()

        assert re.fullmatch(r"INV-20240710-[A-Z0-9]{5}", number)

    def test_credentials_repr_hides_secrets(self):
        text = repr(credentials())

        assert "s3cret" not in text
        assert "dev-key" not in text


class TestJsonDialect:
    """Sandbox (v3 gateway) behaviour."""

    async def test_login_then_reuse_session(self):
        fake = FakeBillCom()
        async with make_client(fake) as client:
            await client.list_customers()
            await client.list_customers()

        assert fake.logins == 1
        login = fake.requests[0]
        assert json.loads(login.content) == {
            "username": "ops@example.com",
            "password": "s3cret",
            "organizationId": "org-1",
            "devKey": "dev-key",
        }
        assert fake.requests[1].headers["devKey"] == "dev-key"
        assert fake.requests[1].headers["sessionId"] == "session-0001-abcdef"

    async def test_list_customers(self):
        async with make_client(FakeBillCom()) as client:
            [customer] = await client.list_customers()

        assert customer.id == "cust-1"
        assert customer.name == "Acme"
        assert customer.is_active is True

    async def test_create_invoice_body(self):
        fake = FakeBillCom()
        async with make_client(fake) as client:
            created = await client.create_invoice(invoice_request())

        assert created.id == "00e01"
        assert created.invoice_number == "1001"
        assert created.amount == Decimal("1500.0")
        assert created.due_date == date(2024, 8, 9)

        body = json.loads(fake.requests[-1].content)
        assert body["customerId"] == "cust-1"
        assert body["invoiceDate"] == "2024-07-10"
        assert body["dueDate"] == "2024-08-09"
        assert body["sendEmail"] is True
        assert body["description"] == "Services for 06/01/2024 - 06/30/2024"
        assert body["invoiceLineItems"] == [
            {
                "description": "Carl - Web - 10 hours @ $150.00/hr",
                "quantity": 10.0,
                "price": 150.0,
                "amount": 1500.0,
            }
        ]

    async def test_get_invoice(self):
        async with make_client(FakeBillCom()) as client:
            invoice = await client.get_invoice("00e01")

        assert invoice.id == "00e01"
        assert invoice.payment_status == "PAID"
        assert invoice.amount == Decimal("1500.00")

    async def test_401_reauthenticates_once(self):
        fake = FakeBillCom(expire_sessions=1)
        async with make_client(fake) as client:
            customers = await client.list_customers()

        assert len(customers) == 1
        assert fake.logins == 2

    async def test_second_401_is_raised(self):
        fake = FakeBillCom(expire_sessions=2)
        async with make_client(fake) as client:
            with pytest.raises(BillComAuthError):
                await client.list_customers()

        assert fake.logins == 2

    async def test_api_error_message(self):
        def handler(request):
            if request.url.path.endswith("/login"):
                return httpx.Response(200, json={"sessionId": "session-xyz-123456"})
            return httpx.Response(400, json={"message": "Customer not found"})

        async with make_client(handler) as client:
            with pytest.raises(ExternalSystemError, match="Bill.com API error: Customer not found") as exc_info:
                await client.create_invoice(invoice_request())

        assert exc_info.value.status_code == 400

    async def test_timeout_becomes_external_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler) as client:
            with pytest.raises(ExternalSystemError, match="timed out"):
                await client.list_customers()

    async def test_missing_session_id(self):
        def handler(request):
            return httpx.Response(200, json={})

        async with make_client(handler) as client:
            with pytest.raises(ExternalSystemError, match="No session ID"):
                await client.login()

    async def test_connection_test_reports_failure(self):
        def handler(request):
            return httpx.Response(401, json={"message": "bad credentials"})

        async with make_client(handler) as client:
            result = await client.test_connection()

        assert result.success is False
        assert result.message == "Bill.com authentication failed: invalid credentials"

    async def test_connection_test_success_caches_session(self):
        cache = SessionCache()
        async with make_client(FakeBillCom(), cache=cache) as client:
            result = await client.test_connection()

        assert result.success is True
        assert result.message == "Successfully connected to Bill.com"
        assert cache.get() is not None


class TestFormDialect:
    """Production (v2 API) behaviour."""

    @staticmethod
    def handler(calls):
        def _handle(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            path = request.url.path
            if path.endswith("/Login.json"):
                return httpx.Response(
                    200,
                    json={"response_status": 0, "response_data": {"sessionId": "v2-session-0001", "usersId": "u1"}},
                )
            if path.endswith("/List/Customer.json"):
                return httpx.Response(
                    200,
                    json={
                        "response_status": 0,
                        "response_data": [{"id": "0cu01", "name": "Acme", "isActive": "1"}],
                    },
                )
            if path.endswith("/Crud/Create/Invoice.json"):
                return httpx.Response(
                    200,
                    json={"response_status": 0, "response_data": {"id": "00e99", "invoiceNumber": "INV-1"}},
                )
            return httpx.Response(
                200,
                json={"response_status": 1, "response_data": {"error_message": "Object not found"}},
            )

        return _handle

    async def test_login_is_form_encoded(self):
        calls = []
        async with make_client(self.handler(calls), BillComEnvironment.PRODUCTION) as client:
            session = await client.login()

        assert session.session_id == "v2-session-0001"
        assert session.user_id == "u1"
        assert form_fields(calls[0]) == {
            "userName": "ops@example.com",
            "password": "s3cret",
            "orgId": "org-1",
            "devKey": "dev-key",
        }

    async def test_list_customers(self):
        calls = []
        async with make_client(self.handler(calls), BillComEnvironment.PRODUCTION) as client:
            [customer] = await client.list_customers()

        assert customer.id == "0cu01"
        fields = form_fields(calls[-1])
        assert fields["sessionId"] == "v2-session-0001"
        assert json.loads(fields["data"]) == {"start": 0, "max": 999}

    async def test_create_invoice_envelope(self):
        calls = []
        async with make_client(self.handler(calls), BillComEnvironment.PRODUCTION) as client:
            created = await client.create_invoice(invoice_request())

        assert created.id == "00e99"
        obj = json.loads(form_fields(calls[-1])["data"])["obj"]
        assert obj["entity"] == "Invoice"
        assert obj["customerId"] == "cust-1"
        assert re.fullmatch(r"INV-20240710-[A-Z0-9]{5}", obj["invoiceNumber"])
        assert obj["invoiceLineItems"][0]["entity"] == "InvoiceLineItem"
        assert obj["invoiceLineItems"][0]["price"] == 150.0

    async def test_response_status_error(self):
        calls = []
        async with make_client(self.handler(calls), BillComEnvironment.PRODUCTION) as client:
            with pytest.raises(ExternalSystemError, match="Bill.com API error: Object not found"):
                await client.get_invoice("missing")
