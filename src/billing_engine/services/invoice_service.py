"""Invoice batch generation and invoice review."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from billing_engine.calculators import InvoiceLineBuilder
from billing_engine.exceptions import NoBillableEntriesError, NotFoundError, ValidationError
from billing_engine.models import Invoice, InvoiceBatch, InvoiceLineItem, TimeEntry
from billing_engine.services.notification_service import NotificationService
from billing_engine.services.state_machine import (
    BatchStatus,
    InvoiceStateMachine,
    InvoiceStatus,
    TimeEntryStatus,
)

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class InvoiceService:
    """Service for invoice batches and the invoice review workflow.

    Operations:
    - generate_batch: Group approved entries in a window into draft invoices
    - notify_batch_ready: Announce a batch once the caller has committed it
    - update_invoice: Approve/reopen an invoice or edit its notes
    - delete_line_item: Remove a line and recompute invoice totals
    - list/get batches and invoices
    """

    def __init__(
        self,
        session: AsyncSession,
        notifications: NotificationService | None = None,
    ):
        self.session = session
        self.notifications = notifications or NotificationService()
        self.line_builder = InvoiceLineBuilder()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_batch(
        self,
        start_date: date | None,
        end_date: date | None,
        generated_by: UUID,
        notes: str | None = None,
    ) -> InvoiceBatch:
        """Generate a DRAFT batch with one DRAFT invoice per client.

        The window is inclusive on both ends. All rows are flushed together
        so a failure leaves nothing behind once the caller rolls back.

        Raises:
            ValidationError: A date is missing or start is after end
            NoBillableEntriesError: No APPROVED entries fall in the window
        """
        if start_date is None or end_date is None:
            raise ValidationError("Start date and end date are required")
        if start_date > end_date:
            raise ValidationError(
                "Start date must be on or before end date",
                start_date=start_date,
                end_date=end_date,
            )

        result = await self.session.execute(
            select(TimeEntry).where(
                TimeEntry.status == TimeEntryStatus.APPROVED,
                TimeEntry.work_date >= start_date,
                TimeEntry.work_date <= end_date,
            )
        )
        entries = list(result.scalars().all())
        if not entries:
            raise NoBillableEntriesError(start_date, end_date)

        await self._warn_on_overlap(start_date, end_date)

        candidates = self.line_builder.build(entries)

        batch = InvoiceBatch(
            start_date=start_date,
            end_date=end_date,
            status=BatchStatus.DRAFT.value,
            generated_by=generated_by,
            notes=notes,
        )
        self.session.add(batch)
        await self.session.flush()

        for candidate in candidates:
            invoice = Invoice(
                batch_id=batch.id,
                client_id=candidate.client_id,
                status=InvoiceStatus.DRAFT.value,
                total_hours=candidate.total_hours,
                total_amount=candidate.total_amount,
            )
            self.session.add(invoice)
            await self.session.flush()

            self.session.add_all(
                InvoiceLineItem(
                    invoice_id=invoice.id,
                    time_entry_id=line.representative_entry_id,
                    employee_name=line.employee_name,
                    project_name=line.project_name,
                    description=line.description,
                    hours=line.hours,
                    amount=line.amount,
                    rate=line.rate,
                    line_date=line.first_date,
                )
                for line in candidate.line_items
            )
        await self.session.flush()

        logger.info(
            "Generated invoice batch %s for %s..%s: %d invoice(s) from %d entries",
            batch.id,
            start_date,
            end_date,
            len(candidates),
            len(entries),
        )

        return await self.get_batch(batch.id)

    async def notify_batch_ready(self, batch: InvoiceBatch) -> bool:
        """Tell the generating admin a committed batch is ready for review."""
        return await self.notifications.invoice_ready(
            batch.generated_by, len(batch.invoices), batch.id
        )

    async def _warn_on_overlap(self, start_date: date, end_date: date) -> None:
        """Log batches whose window overlaps this one. Regeneration is allowed."""
        result = await self.session.execute(
            select(InvoiceBatch.id).where(
                and_(
                    InvoiceBatch.start_date <= end_date,
                    InvoiceBatch.end_date >= start_date,
                    InvoiceBatch.status != BatchStatus.FAILED,
                )
            )
        )
        overlapping = [str(batch_id) for batch_id in result.scalars().all()]
        if overlapping:
            logger.warning(
                "Invoice window %s..%s overlaps existing batch(es) %s; entries may be billed twice",
                start_date,
                end_date,
                ", ".join(overlapping),
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_batch(self, batch_id: UUID) -> InvoiceBatch:
        result = await self.session.execute(
            select(InvoiceBatch)
            .where(InvoiceBatch.id == batch_id)
            .execution_options(populate_existing=True)
        )
        batch = result.scalar_one_or_none()
        if batch is None:
            raise NotFoundError("Invoice batch", batch_id, "Invoice batch not found")
        return batch

    async def list_batches(self, status: str | None = None) -> list[InvoiceBatch]:
        stmt = select(InvoiceBatch).order_by(InvoiceBatch.created_at.desc())
        if status:
            stmt = stmt.where(InvoiceBatch.status == status)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_invoice(self, invoice_id: UUID) -> Invoice:
        result = await self.session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id, "Invoice not found")
        return invoice

    async def list_invoices(
        self,
        status: str | None = None,
        client_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Invoice]:
        """Invoices newest first; the date window filters on creation date."""
        stmt = select(Invoice).order_by(Invoice.created_at.desc())
        if status:
            stmt = stmt.where(Invoice.status == status)
        if client_id:
            stmt = stmt.where(Invoice.client_id == client_id)
        if start_date and end_date:
            stmt = stmt.where(
                Invoice.created_at >= datetime.combine(start_date, time.min, timezone.utc),
                Invoice.created_at
                < datetime.combine(end_date + timedelta(days=1), time.min, timezone.utc),
            )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    async def update_invoice(
        self,
        invoice_id: UUID,
        status: str | None = None,
        notes: str | None = _UNSET,
    ) -> Invoice:
        """Move an invoice between DRAFT and APPROVED and/or edit its notes.

        Notes may only change while the invoice is DRAFT (or in the same
        request that approves it). SUBMITTED and FAILED are set only by batch
        submission.
        """
        invoice = await self.get_invoice(invoice_id)
        from_status = invoice.status

        if status is not None and status != from_status:
            InvoiceStateMachine.validate_manual_transition(from_status, status)

        if notes is not _UNSET and not InvoiceStateMachine.can_edit(from_status):
            raise ValidationError(
                "Can only edit draft invoices",
                invoice_id=invoice_id,
                status=from_status,
            )

        if notes is not _UNSET:
            invoice.notes = notes
        if status is not None and status != from_status:
            invoice.status = InvoiceStatus(status).value
            logger.info("Invoice %s moved %s -> %s", invoice_id, from_status, invoice.status)

        await self.session.flush()
        return invoice

    async def delete_line_item(self, invoice_id: UUID, line_item_id: UUID) -> Invoice:
        """Delete a line from a DRAFT invoice and recompute hours and amount."""
        invoice = await self.get_invoice(invoice_id)
        if not InvoiceStateMachine.can_edit(invoice.status):
            raise ValidationError(
                "Can only edit draft invoices",
                invoice_id=invoice_id,
                status=invoice.status,
            )

        line_item = next((li for li in invoice.line_items if li.id == line_item_id), None)
        if line_item is None:
            raise NotFoundError("Invoice line item", line_item_id, "Line item not found")

        invoice.line_items.remove(line_item)
        invoice.total_hours = sum((li.hours for li in invoice.line_items), Decimal("0"))
        invoice.total_amount = sum((li.amount for li in invoice.line_items), Decimal("0"))
        await self.session.flush()
        return invoice
