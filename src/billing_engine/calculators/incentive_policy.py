"""FIP assignment matching and precedence."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from billing_engine.calculators.types import IncentivePrecedence

if TYPE_CHECKING:
    from billing_engine.models import FractionalIncentive


class IncentivePolicy:
    """Decides which FIP assignments earn on a given time entry.

    An assignment matches when it is active on the entry date and is either
    global (no project) or scoped to the entry's project. The precedence
    policy then decides which of the matches fire.
    """

    def __init__(self, precedence: IncentivePrecedence = IncentivePrecedence.ALL_MATCHES):
        self.precedence = precedence

    @staticmethod
    def matches(
        assignment: FractionalIncentive,
        consultant_id: UUID,
        project_id: UUID,
        work_date: date,
    ) -> bool:
        """Check if a single assignment applies to an entry."""
        return (
            assignment.consultant_id == consultant_id
            and assignment.is_active_on(work_date)
            and assignment.applies_to_project(project_id)
        )

    def select(
        self,
        candidates: Iterable[FractionalIncentive],
        consultant_id: UUID,
        project_id: UUID,
        work_date: date,
    ) -> list[FractionalIncentive]:
        """Return the assignments that should produce an earning."""
        matched = [
            a for a in candidates if self.matches(a, consultant_id, project_id, work_date)
        ]

        if self.precedence == IncentivePrecedence.ALL_MATCHES:
            return matched

        # MOST_SPECIFIC: a leader's project-scoped match hides their global one
        scoped_leaders = {a.leader_id for a in matched if not a.is_global}
        return [
            a for a in matched if not (a.is_global and a.leader_id in scoped_leaders)
        ]

    @staticmethod
    def earning_amount(hours: Decimal, rate: Decimal) -> Decimal:
        """Incentive amount for ``hours`` at ``rate`` dollars per hour."""
        return hours * rate
