"""Groups approved time entries into invoice and line item candidates."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from billing_engine.calculators.types import InvoiceCandidate, LineItemCandidate

if TYPE_CHECKING:
    from billing_engine.models import TimeEntry


class InvoiceLineBuilder:
    """Builds per-client invoice candidates from approved time entries.

    Entries are partitioned by client, then by (user, project). Each
    (user, project) sub-group becomes exactly one line item; the line's
    representative entry is the earliest one in the group. A NULL
    client_amount contributes zero.
    """

    @staticmethod
    def _sort_key(entry: TimeEntry) -> tuple:
        return (
            entry.client.name,
            entry.project.name,
            entry.user.name,
            entry.work_date,
            str(entry.id),
        )

    def build(self, entries: Iterable[TimeEntry]) -> list[InvoiceCandidate]:
        """Group entries into invoice candidates, one per client."""
        invoices: dict[UUID, InvoiceCandidate] = {}
        lines: dict[tuple[UUID, UUID, UUID], LineItemCandidate] = {}

        for entry in sorted(entries, key=self._sort_key):
            amount = entry.client_amount or Decimal("0")

            invoice = invoices.get(entry.client_id)
            if invoice is None:
                invoice = InvoiceCandidate(
                    client_id=entry.client_id,
                    client_name=entry.client.name,
                )
                invoices[entry.client_id] = invoice

            invoice.total_hours += entry.hours_worked
            invoice.total_amount += amount

            key = (entry.client_id, entry.user_id, entry.project_id)
            line = lines.get(key)
            if line is None:
                line = LineItemCandidate(
                    user_id=entry.user_id,
                    project_id=entry.project_id,
                    employee_name=entry.user.name,
                    project_name=entry.project.name,
                    representative_entry_id=entry.id,
                    first_date=entry.work_date,
                )
                lines[key] = line
                invoice.line_items.append(line)

            line.hours += entry.hours_worked
            line.amount += amount

        return list(invoices.values())

    @staticmethod
    def verify_totals(invoice: InvoiceCandidate) -> list[str]:
        """Check that line items add up to the invoice totals.

        Returns list of error messages (empty if consistent).
        """
        errors: list[str] = []
        line_hours = sum((li.hours for li in invoice.line_items), Decimal("0"))
        line_amount = sum((li.amount for li in invoice.line_items), Decimal("0"))
        if line_hours != invoice.total_hours:
            errors.append(
                f"Hours mismatch: invoice shows {invoice.total_hours}, lines sum to {line_hours}"
            )
        if line_amount != invoice.total_amount:
            errors.append(
                f"Amount mismatch: invoice shows {invoice.total_amount}, lines sum to {line_amount}"
            )
        return errors
