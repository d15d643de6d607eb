"""Type definitions for the billing calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class IncentivePrecedence(str, Enum):
    """How overlapping FIP assignments for one time entry are resolved.

    ALL_MATCHES: every matching assignment produces an earning.
    MOST_SPECIFIC: per leader, a project-scoped assignment suppresses that
        leader's global assignment.
    """

    ALL_MATCHES = "all_matches"
    MOST_SPECIFIC = "most_specific"


@dataclass(frozen=True)
class RateSnapshot:
    """Monetary values frozen onto a time entry at approval."""

    consultant_rate: Decimal | None
    client_rate: Decimal | None
    consultant_amount: Decimal | None
    client_amount: Decimal | None
    margin: Decimal | None

    def as_entry_values(self) -> dict[str, Decimal | None]:
        """Column values for a TimeEntry update."""
        return {
            "consultant_rate": self.consultant_rate,
            "client_rate": self.client_rate,
            "consultant_amount": self.consultant_amount,
            "client_amount": self.client_amount,
            "margin": self.margin,
        }


@dataclass
class LineItemCandidate:
    """An aggregated invoice line before persistence."""

    user_id: UUID
    project_id: UUID
    employee_name: str
    project_name: str
    representative_entry_id: UUID
    first_date: date
    hours: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")

    @property
    def rate(self) -> Decimal:
        if self.hours > 0:
            return (self.amount / self.hours).quantize(Decimal("0.0001"))
        return Decimal("0")

    @property
    def description(self) -> str:
        return (
            f"{self.employee_name} - {self.project_name} - "
            f"{format_hours(self.hours)} hours @ ${self.rate:.2f}/hr"
        )


@dataclass
class InvoiceCandidate:
    """One client's invoice before persistence."""

    client_id: UUID
    client_name: str
    total_hours: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    line_items: list[LineItemCandidate] = field(default_factory=list)


def format_hours(hours: Decimal) -> str:
    """Render hours without trailing zeros: 10.00 -> '10', 7.50 -> '7.5'."""
    normalized = hours.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal("1")))
    return format(normalized, "f")
