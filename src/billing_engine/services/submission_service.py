"""Batch submission of approved invoices to the external billing system."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billing_engine.billcom import BillingProvider, InvoiceLine, InvoiceRequest
from billing_engine.exceptions import BillingEngineError, NotFoundError, ValidationError
from billing_engine.models import BillComCustomerMapping, Invoice, InvoiceBatch, utcnow
from billing_engine.services.notification_service import NotificationService
from billing_engine.services.state_machine import InvoiceStateMachine, InvoiceStatus

logger = logging.getLogger(__name__)

DEFAULT_DUE_DAYS = 30

ProviderFactory = Callable[[], AbstractAsyncContextManager[BillingProvider]]


@dataclass(frozen=True)
class InvoiceSubmissionResult:
    """Outcome for one invoice in a submission run."""

    invoice_id: UUID
    client_name: str
    success: bool
    billcom_invoice_id: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class SubmissionSummary:
    """Aggregate outcome of a batch submission."""

    success_count: int
    failure_count: int
    message: str
    results: list[InvoiceSubmissionResult] = field(default_factory=list)


def summary_message(success_count: int, failure_count: int) -> str:
    message = f"Submitted {success_count} invoice(s) successfully"
    if failure_count > 0:
        message += f", {failure_count} failed"
    return message


class SubmissionService:
    """Submits a batch's APPROVED invoices one by one.

    Key invariants:
    1. Each invoice is isolated: a failure marks only that invoice FAILED
    2. A missing customer mapping is a per-invoice failure, not batch-fatal
    3. Batch status is FAILED if any invoice failed, else COMPLETED
    4. submitted_at is always set; completed_at only when nothing failed

    The provider is opened only after the batch passes its preconditions.
    """

    def __init__(
        self,
        session: AsyncSession,
        provider_factory: ProviderFactory,
        notifications: NotificationService | None = None,
        due_days: int = DEFAULT_DUE_DAYS,
        today: Callable[[], datetime.date] = datetime.date.today,
    ):
        self.session = session
        self.provider_factory = provider_factory
        self.notifications = notifications or NotificationService()
        self.due_days = due_days
        self.today = today

    async def _load_batch(self, batch_id: UUID) -> InvoiceBatch:
        result = await self.session.execute(
            select(InvoiceBatch)
            .where(InvoiceBatch.id == batch_id)
            .execution_options(populate_existing=True)
        )
        batch = result.scalar_one_or_none()
        if batch is None:
            raise NotFoundError("Invoice batch", batch_id, "Invoice batch not found")
        return batch

    async def _customer_ids(self, client_ids: set[UUID]) -> dict[UUID, str]:
        result = await self.session.execute(
            select(BillComCustomerMapping.client_id, BillComCustomerMapping.billcom_customer_id)
            .where(BillComCustomerMapping.client_id.in_(client_ids))
        )
        return {client_id: customer_id for client_id, customer_id in result.all()}

    def _build_request(
        self,
        batch: InvoiceBatch,
        invoice: Invoice,
        customer_id: str,
    ) -> InvoiceRequest:
        return InvoiceRequest(
            customer_id=customer_id,
            due_date=self.today() + datetime.timedelta(days=self.due_days),
            line_items=[
                InvoiceLine(
                    description=item.description,
                    quantity=item.hours,
                    price=item.rate,
                    amount=item.amount,
                )
                for item in invoice.line_items
            ],
            description=(
                f"Services for {batch.start_date:%m/%d/%Y} - {batch.end_date:%m/%d/%Y}"
            ),
            send_email=True,
        )

    async def submit_batch(self, batch_id: UUID, actor_id: UUID) -> SubmissionSummary:
        """Submit every APPROVED invoice in the batch.

        Raises:
            NotFoundError: Batch does not exist
            ValidationError: Batch has no APPROVED invoices
        """
        batch = await self._load_batch(batch_id)
        approved = [i for i in batch.invoices if InvoiceStateMachine.can_submit(i.status)]
        if not approved:
            raise ValidationError("No approved invoices to submit", batch_id=batch_id)

        customer_ids = await self._customer_ids({i.client_id for i in approved})
        results: list[InvoiceSubmissionResult] = []

        async with self.provider_factory() as provider:
            for invoice in approved:
                result = await self._submit_invoice(provider, batch, invoice, customer_ids)
                results.append(result)
                if not result.success:
                    await self.notifications.invoice_failed(
                        actor_id, result.client_name, result.failure_reason or ""
                    )

        success_count = sum(1 for r in results if r.success)
        failure_count = len(results) - success_count

        now = utcnow()
        batch.status = InvoiceStateMachine.batch_status_after_submission(failure_count).value
        batch.submitted_at = now
        if failure_count == 0:
            batch.completed_at = now
        await self.session.flush()

        logger.info(
            "Batch %s submitted: %d succeeded, %d failed",
            batch_id,
            success_count,
            failure_count,
        )

        if success_count > 0:
            await self.notifications.invoice_success(actor_id, success_count)

        return SubmissionSummary(
            success_count=success_count,
            failure_count=failure_count,
            message=summary_message(success_count, failure_count),
            results=results,
        )

    async def _submit_invoice(
        self,
        provider: BillingProvider,
        batch: InvoiceBatch,
        invoice: Invoice,
        customer_ids: dict[UUID, str],
    ) -> InvoiceSubmissionResult:
        client_name = invoice.client.name
        try:
            customer_id = customer_ids.get(invoice.client_id)
            if customer_id is None:
                raise ValidationError(f"Client {client_name} is not mapped to a Bill.com customer")

            request = self._build_request(batch, invoice, customer_id)
            created = await provider.create_invoice(request)
        except BillingEngineError as e:
            logger.error("Failed to submit invoice %s for %s: %s", invoice.id, client_name, e.message)
            InvoiceStateMachine.validate_transition(invoice.status, InvoiceStatus.FAILED)
            invoice.status = InvoiceStatus.FAILED.value
            invoice.failure_reason = e.message
            await self.session.flush()
            return InvoiceSubmissionResult(
                invoice_id=invoice.id,
                client_name=client_name,
                success=False,
                failure_reason=e.message,
            )

        InvoiceStateMachine.validate_transition(invoice.status, InvoiceStatus.SUBMITTED)
        invoice.status = InvoiceStatus.SUBMITTED.value
        invoice.billcom_invoice_id = created.id
        invoice.invoice_number = created.invoice_number
        invoice.due_date = created.due_date or request.due_date
        invoice.submitted_at = utcnow()
        invoice.failure_reason = None
        if created.amount is not None:
            invoice.total_amount = created.amount
        await self.session.flush()
        return InvoiceSubmissionResult(
            invoice_id=invoice.id,
            client_name=client_name,
            success=True,
            billcom_invoice_id=created.id,
        )

    async def sync_invoice(self, invoice_id: UUID) -> Invoice:
        """Pull payment status and amount for a submitted invoice.

        The local workflow status is left alone; the external payment state
        is stored separately.
        """
        invoice = await self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id, "Invoice not found")
        if not invoice.billcom_invoice_id:
            raise ValidationError("Invoice not yet submitted to Bill.com", invoice_id=invoice_id)

        async with self.provider_factory() as provider:
            remote = await provider.get_invoice(invoice.billcom_invoice_id)

        if remote.payment_status is not None:
            invoice.external_payment_status = str(remote.payment_status)
        if remote.amount is not None:
            invoice.total_amount = remote.amount
        await self.session.flush()
        logger.info(
            "Synced invoice %s from Bill.com: payment status %s",
            invoice_id,
            invoice.external_payment_status,
        )
        return invoice
