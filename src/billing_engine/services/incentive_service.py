"""Fractional incentive (FIP) assignments and earnings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from billing_engine.calculators import IncentivePolicy, IncentivePrecedence
from billing_engine.exceptions import ConflictError, NotFoundError, ValidationError
from billing_engine.models import (
    FractionalIncentive,
    IncentiveEarning,
    Project,
    TimeEntry,
    User,
    utcnow,
)
from billing_engine.services.state_machine import TimeEntryStatus

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def year_bounds(year: int) -> tuple[datetime, datetime]:
    """[start, end) of a calendar year in UTC."""
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


@dataclass
class MyIncentives:
    """Self-service view of a user's FIP standing."""

    as_leader: list[FractionalIncentive]
    as_consultant: list[FractionalIncentive]
    earnings: list[IncentiveEarning]
    total_earnings: Decimal


@dataclass
class YearEarnings:
    """A leader's incentive earnings for one calendar year."""

    user_id: UUID
    year: int
    earnings: list[IncentiveEarning] = field(default_factory=list)
    total_earnings: Decimal = Decimal("0")
    total_hours: Decimal = Decimal("0")
    entries_count: int = 0


class IncentiveService:
    """Service for FIP assignment management and earning creation.

    Earnings are written once, when a time entry becomes APPROVED, inside
    the same unit of work as the approval itself. The rate on the earning is
    copied from the assignment, so later rate edits never touch history.
    """

    def __init__(
        self,
        session: AsyncSession,
        precedence: IncentivePrecedence = IncentivePrecedence.ALL_MATCHES,
    ):
        self.session = session
        self.policy = IncentivePolicy(precedence)

    # ------------------------------------------------------------------
    # Earnings
    # ------------------------------------------------------------------

    async def find_matching_assignments(self, entry: TimeEntry) -> list[FractionalIncentive]:
        """Load assignments that could earn on ``entry`` and apply precedence."""
        result = await self.session.execute(
            select(FractionalIncentive)
            .where(
                FractionalIncentive.consultant_id == entry.user_id,
                FractionalIncentive.is_active.is_(True),
                FractionalIncentive.start_date <= entry.work_date,
                or_(
                    FractionalIncentive.end_date.is_(None),
                    FractionalIncentive.end_date >= entry.work_date,
                ),
                or_(
                    FractionalIncentive.project_id.is_(None),
                    FractionalIncentive.project_id == entry.project_id,
                ),
            )
            .order_by(FractionalIncentive.created_at, FractionalIncentive.id)
        )
        candidates = result.scalars().all()
        return self.policy.select(candidates, entry.user_id, entry.project_id, entry.work_date)

    async def create_earnings_for_entry(self, entry: TimeEntry) -> list[IncentiveEarning]:
        """Create one earning per matching assignment for an approved entry.

        Raises:
            ValidationError: If the entry is not APPROVED
        """
        if entry.status != TimeEntryStatus.APPROVED:
            raise ValidationError(
                "Incentive earnings can only be created for approved time entries",
                time_entry_id=entry.id,
                status=entry.status,
            )

        assignments = await self.find_matching_assignments(entry)
        earnings = [
            IncentiveEarning(
                time_entry_id=entry.id,
                leader_id=assignment.leader_id,
                fractional_incentive_id=assignment.id,
                incentive_rate=assignment.incentive_rate,
                incentive_amount=self.policy.earning_amount(
                    entry.hours_worked, assignment.incentive_rate
                ),
            )
            for assignment in assignments
        ]
        if earnings:
            self.session.add_all(earnings)
            await self.session.flush()
            logger.info(
                "Created %d incentive earning(s) for time entry %s",
                len(earnings),
                entry.id,
            )
        return earnings

    # ------------------------------------------------------------------
    # Assignment management
    # ------------------------------------------------------------------

    async def get_assignment(self, assignment_id: UUID) -> FractionalIncentive:
        assignment = await self.session.get(FractionalIncentive, assignment_id)
        if assignment is None:
            raise NotFoundError("FIP assignment", assignment_id)
        return assignment

    async def list_assignments(self, is_active: bool | None = None) -> list[FractionalIncentive]:
        stmt = select(FractionalIncentive).order_by(FractionalIncentive.created_at.desc())
        if is_active is not None:
            stmt = stmt.where(FractionalIncentive.is_active.is_(is_active))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_assignment(
        self,
        leader_id: UUID | None,
        consultant_id: UUID | None,
        incentive_rate: Decimal | None,
        start_date: date | None,
        project_id: UUID | None = None,
        end_date: date | None = None,
    ) -> FractionalIncentive:
        """Create a FIP assignment.

        Raises:
            ValidationError: Missing fields, leader == consultant, negative
                rate or end date before start date
            NotFoundError: Leader, consultant or project does not exist
            ConflictError: The (leader, consultant, project) triple exists
        """
        if leader_id is None or consultant_id is None or incentive_rate is None or start_date is None:
            raise ValidationError("Leader, consultant, incentive rate, and start date are required")
        if leader_id == consultant_id:
            raise ValidationError("Leader and consultant cannot be the same person")
        self._validate_rate(incentive_rate)
        self._validate_dates(start_date, end_date)

        if await self.session.get(User, leader_id) is None:
            raise NotFoundError("User", leader_id, "Leader user not found")
        if await self.session.get(User, consultant_id) is None:
            raise NotFoundError("User", consultant_id, "Consultant user not found")
        if project_id is not None and await self.session.get(Project, project_id) is None:
            raise NotFoundError("Project", project_id, "Project not found")

        # NULL is its own key value for the global assignment
        project_clause = (
            FractionalIncentive.project_id.is_(None)
            if project_id is None
            else FractionalIncentive.project_id == project_id
        )
        existing = await self.session.execute(
            select(FractionalIncentive.id).where(
                and_(
                    FractionalIncentive.leader_id == leader_id,
                    FractionalIncentive.consultant_id == consultant_id,
                    project_clause,
                )
            )
        )
        if existing.first() is not None:
            raise ConflictError(
                "This FIP assignment already exists",
                leader_id=leader_id,
                consultant_id=consultant_id,
                project_id=project_id,
            )

        assignment = FractionalIncentive(
            leader_id=leader_id,
            consultant_id=consultant_id,
            project_id=project_id,
            incentive_rate=incentive_rate,
            start_date=start_date,
            end_date=end_date,
            is_active=True,
        )
        self.session.add(assignment)
        await self.session.flush()
        await self.session.refresh(assignment, ["leader", "consultant", "project"])
        logger.info(
            "Created FIP assignment %s: leader=%s consultant=%s project=%s rate=%s",
            assignment.id,
            leader_id,
            consultant_id,
            project_id,
            incentive_rate,
        )
        return assignment

    async def update_assignment(
        self,
        assignment_id: UUID,
        incentive_rate: Decimal | None = None,
        end_date: date | None = _UNSET,
        is_active: bool | None = None,
    ) -> FractionalIncentive:
        """Update rate, end date or active flag.

        Pass ``end_date=None`` to make the assignment open-ended; omit it to
        leave the current end date alone. Existing earnings are unaffected.
        """
        assignment = await self.get_assignment(assignment_id)

        if incentive_rate is not None:
            self._validate_rate(incentive_rate)
            assignment.incentive_rate = incentive_rate
        if end_date is not _UNSET:
            self._validate_dates(assignment.start_date, end_date)
            assignment.end_date = end_date
        if is_active is not None:
            assignment.is_active = is_active

        await self.session.flush()
        return assignment

    async def delete_assignment(self, assignment_id: UUID) -> None:
        """Hard-delete an assignment. Its earnings survive with a NULL reference."""
        assignment = await self.get_assignment(assignment_id)
        await self.session.execute(
            update(IncentiveEarning)
            .where(IncentiveEarning.fractional_incentive_id == assignment_id)
            .values(fractional_incentive_id=None)
        )
        await self.session.delete(assignment)
        await self.session.flush()
        logger.info("Deleted FIP assignment %s", assignment_id)

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    async def _earnings_for_leader(
        self,
        leader_id: UUID,
        start: datetime,
        end: datetime,
        newest_first: bool = False,
    ) -> list[IncentiveEarning]:
        order = IncentiveEarning.created_at.desc() if newest_first else IncentiveEarning.created_at
        result = await self.session.execute(
            select(IncentiveEarning)
            .where(
                IncentiveEarning.leader_id == leader_id,
                IncentiveEarning.created_at >= start,
                IncentiveEarning.created_at < end,
            )
            .order_by(order)
        )
        return list(result.scalars().all())

    async def my_incentives(self, user_id: UUID, as_of: datetime | None = None) -> MyIncentives:
        """Active assignments for the user on either side plus current-year earnings."""
        as_leader = await self.session.execute(
            select(FractionalIncentive).where(
                FractionalIncentive.leader_id == user_id,
                FractionalIncentive.is_active.is_(True),
            )
        )
        as_consultant = await self.session.execute(
            select(FractionalIncentive).where(
                FractionalIncentive.consultant_id == user_id,
                FractionalIncentive.is_active.is_(True),
            )
        )
        start, end = year_bounds((as_of or utcnow()).year)
        earnings = await self._earnings_for_leader(user_id, start, end, newest_first=True)

        return MyIncentives(
            as_leader=list(as_leader.scalars().all()),
            as_consultant=list(as_consultant.scalars().all()),
            earnings=earnings,
            total_earnings=sum((e.incentive_amount for e in earnings), Decimal("0")),
        )

    async def earnings_for_year(self, user_id: UUID, year: int) -> YearEarnings:
        """Earnings where the user is leader, bucketed by earning creation date."""
        start, end = year_bounds(year)
        earnings = await self._earnings_for_leader(user_id, start, end)
        return YearEarnings(
            user_id=user_id,
            year=year,
            earnings=earnings,
            total_earnings=sum((e.incentive_amount for e in earnings), Decimal("0")),
            total_hours=sum((e.time_entry.hours_worked for e in earnings), Decimal("0")),
            entries_count=len(earnings),
        )

    @staticmethod
    def _validate_rate(rate: Decimal) -> None:
        if rate < 0:
            raise ValidationError("Incentive rate must be zero or greater", incentive_rate=rate)

    @staticmethod
    def _validate_dates(start_date: date, end_date: date | None) -> None:
        if end_date is not None and end_date < start_date:
            raise ValidationError(
                "End date must be on or after start date",
                start_date=start_date,
                end_date=end_date,
            )
