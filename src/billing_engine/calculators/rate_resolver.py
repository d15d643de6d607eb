"""Consultant pay / client bill rate resolution."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from billing_engine.calculators.types import RateSnapshot

if TYPE_CHECKING:
    from billing_engine.models import Project, User


class RateResolver:
    """Resolves the rates in effect for a time entry and computes its amounts.

    - consultant_rate is the user's current billable rate
    - client_rate is the project's current billing rate
    - a NULL rate leaves the corresponding amount NULL (unbilled)
    - amounts are the exact product hours * rate, never rounded
    - margin = client_amount - consultant_amount, only when both exist

    Resolution happens once, when an entry is approved. Callers must never
    re-run it for an entry that already carries a snapshot.
    """

    @staticmethod
    def _amount(hours: Decimal, rate: Decimal | None) -> Decimal | None:
        if rate is None:
            return None
        return hours * rate

    def resolve(
        self,
        hours: Decimal,
        consultant_rate: Decimal | None,
        client_rate: Decimal | None,
    ) -> RateSnapshot:
        """Compute the snapshot for ``hours`` at the given rates."""
        consultant_amount = self._amount(hours, consultant_rate)
        client_amount = self._amount(hours, client_rate)

        margin: Decimal | None = None
        if consultant_amount is not None and client_amount is not None:
            margin = client_amount - consultant_amount

        return RateSnapshot(
            consultant_rate=consultant_rate,
            client_rate=client_rate,
            consultant_amount=consultant_amount,
            client_amount=client_amount,
            margin=margin,
        )

    def resolve_for(self, hours: Decimal, user: User, project: Project) -> RateSnapshot:
        """Resolve using the user's billable rate and the project's billing rate."""
        return self.resolve(hours, user.billable_rate, project.billing_rate)
