"""Time entry lifecycle and the approval unit of work."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from billing_engine.calculators import IncentivePrecedence, RateResolver
from billing_engine.exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from billing_engine.models import Client, Project, TimeEntry, User, utcnow
from billing_engine.services.incentive_service import IncentiveService
from billing_engine.services.state_machine import TimeEntryStateMachine, TimeEntryStatus

logger = logging.getLogger(__name__)

MAX_HOURS_PER_ENTRY = Decimal("24")


@dataclass(frozen=True)
class EntryDraft:
    """One day's worth of hours in a pre-approved batch."""

    work_date: date
    hours: Decimal
    description: str | None = None


class TimeEntryService:
    """Service for the time entry lifecycle.

    Lifecycle:
    - create: owner creates a DRAFT entry
    - update/delete: owner only, DRAFT only
    - submit: owner moves DRAFT -> SUBMITTED
    - review: admin (or the owner) moves SUBMITTED -> APPROVED/REJECTED

    Approval freezes the rate snapshot and creates FIP earnings in the same
    transaction as the status change. Nothing here commits; the caller owns
    the unit of work.
    """

    def __init__(
        self,
        session: AsyncSession,
        precedence: IncentivePrecedence = IncentivePrecedence.ALL_MATCHES,
    ):
        self.session = session
        self.rate_resolver = RateResolver()
        self.incentive_service = IncentiveService(session, precedence)

    async def get_entry(self, entry_id: UUID) -> TimeEntry:
        entry = await self.session.get(TimeEntry, entry_id)
        if entry is None:
            raise NotFoundError("Time entry", entry_id, "Time entry not found")
        return entry

    async def list_pending(self) -> list[TimeEntry]:
        """Entries awaiting review, oldest work date first."""
        result = await self.session.execute(
            select(TimeEntry)
            .where(TimeEntry.status == TimeEntryStatus.SUBMITTED)
            .order_by(TimeEntry.work_date, TimeEntry.created_at)
        )
        return list(result.scalars().all())

    async def create_entry(
        self,
        user_id: UUID,
        client_id: UUID,
        project_id: UUID,
        work_date: date,
        hours_worked: Decimal,
        description: str | None = None,
    ) -> TimeEntry:
        """Create a DRAFT entry. No rates are resolved until approval."""
        self._validate_hours(hours_worked)
        await self._load_project_for_client(client_id, project_id)

        entry = TimeEntry(
            user_id=user_id,
            client_id=client_id,
            project_id=project_id,
            work_date=work_date,
            hours_worked=hours_worked,
            description=description or None,
            status=TimeEntryStatus.DRAFT.value,
        )
        self.session.add(entry)
        await self.session.flush()
        return await self._reload(entry.id)

    async def update_entry(
        self,
        entry_id: UUID,
        actor_id: UUID,
        **changes: Any,
    ) -> TimeEntry:
        """Edit a DRAFT entry owned by ``actor_id``.

        Accepted keys: work_date, hours_worked, description, client_id,
        project_id. A status change is not an edit; use submit/review.
        """
        entry = await self.get_entry(entry_id)
        self._check_owner_can_modify(entry, actor_id, "edit")

        allowed = {"work_date", "hours_worked", "description", "client_id", "project_id"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unsupported fields: {', '.join(sorted(unknown))}")

        cleared = sorted(
            key
            for key in ("work_date", "hours_worked", "client_id", "project_id")
            if key in changes and changes[key] is None
        )
        if cleared:
            raise ValidationError(f"Fields cannot be null: {', '.join(cleared)}")

        if "hours_worked" in changes:
            self._validate_hours(changes["hours_worked"])
        if "client_id" in changes or "project_id" in changes:
            await self._load_project_for_client(
                changes.get("client_id", entry.client_id),
                changes.get("project_id", entry.project_id),
            )

        for key, value in changes.items():
            if key == "description":
                value = value or None
            setattr(entry, key, value)

        await self.session.flush()
        return await self._reload(entry.id)

    async def delete_entry(self, entry_id: UUID, actor_id: UUID) -> None:
        entry = await self.get_entry(entry_id)
        self._check_owner_can_modify(entry, actor_id, "delete")
        await self.session.delete(entry)
        await self.session.flush()

    async def submit_entry(self, entry_id: UUID, actor_id: UUID) -> TimeEntry:
        entry = await self.get_entry(entry_id)
        if entry.user_id != actor_id:
            raise AuthorizationError("Only the owner can submit a time entry")
        TimeEntryStateMachine.validate_transition(entry.status, TimeEntryStatus.SUBMITTED)
        entry.status = TimeEntryStatus.SUBMITTED.value
        await self.session.flush()
        return entry

    async def review_entry(
        self,
        entry_id: UUID,
        reviewer_id: UUID,
        to_status: str,
        reviewer_is_admin: bool = False,
    ) -> TimeEntry:
        """Approve or reject a SUBMITTED entry.

        The status change is a conditional UPDATE on status = SUBMITTED, so a
        concurrent second review loses with InvalidTransitionError instead
        of producing a second set of earnings.

        Raises:
            ValidationError: ``to_status`` is not APPROVED or REJECTED
            AuthorizationError: reviewer is neither admin nor owner
            InvalidTransitionError: entry is not SUBMITTED
        """
        if to_status not in (TimeEntryStatus.APPROVED, TimeEntryStatus.REJECTED):
            raise ValidationError("Invalid status", status=to_status)
        to_status = TimeEntryStatus(to_status).value

        entry = await self.get_entry(entry_id)
        if not (reviewer_is_admin or reviewer_id == entry.user_id):
            raise AuthorizationError("Only an admin or the owner can review a time entry")
        TimeEntryStateMachine.validate_transition(entry.status, to_status)

        values: dict[str, Any] = {
            "status": to_status,
            "reviewed_by": reviewer_id,
            "reviewed_at": utcnow(),
        }
        if to_status == TimeEntryStatus.APPROVED:
            snapshot = self.rate_resolver.resolve_for(entry.hours_worked, entry.user, entry.project)
            values.update(snapshot.as_entry_values())

        result = await self.session.execute(
            update(TimeEntry)
            .where(
                TimeEntry.id == entry_id,
                TimeEntry.status == TimeEntryStatus.SUBMITTED,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(
                "time entry",
                TimeEntryStatus.SUBMITTED,
                to_status,
                "entry was reviewed concurrently",
            )

        entry = await self._reload(entry_id)
        if to_status == TimeEntryStatus.APPROVED:
            await self.incentive_service.create_earnings_for_entry(entry)
            entry = await self._reload(entry_id)

        logger.info("Time entry %s %s by %s", entry_id, to_status.lower(), reviewer_id)
        return entry

    async def create_approved_entries(
        self,
        user_id: UUID,
        client_id: UUID,
        project_id: UUID,
        drafts: list[EntryDraft],
        reviewer_id: UUID,
    ) -> list[TimeEntry]:
        """Create entries that are approved on creation (pre-approved hours).

        Rates are frozen and earnings created exactly as on review approval.
        Drafts with zero or negative hours are skipped.
        """
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id, "User not found")
        project = await self._load_project_for_client(client_id, project_id)

        created: list[TimeEntry] = []
        reviewed_at = utcnow()
        for draft in drafts:
            if draft.hours <= 0:
                continue
            self._validate_hours(draft.hours)
            snapshot = self.rate_resolver.resolve_for(draft.hours, user, project)
            entry = TimeEntry(
                user_id=user_id,
                client_id=client_id,
                project_id=project_id,
                work_date=draft.work_date,
                hours_worked=draft.hours,
                description=draft.description or None,
                status=TimeEntryStatus.APPROVED.value,
                reviewed_by=reviewer_id,
                reviewed_at=reviewed_at,
                **snapshot.as_entry_values(),
            )
            self.session.add(entry)
            created.append(entry)

        await self.session.flush()
        for entry in created:
            await self.incentive_service.create_earnings_for_entry(entry)

        logger.info("Created %d pre-approved time entries for user %s", len(created), user_id)
        return [await self._reload(entry.id) for entry in created]

    async def _reload(self, entry_id: UUID) -> TimeEntry:
        result = await self.session.execute(
            select(TimeEntry)
            .where(TimeEntry.id == entry_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _load_project_for_client(self, client_id: UUID, project_id: UUID) -> Project:
        if await self.session.get(Client, client_id) is None:
            raise NotFoundError("Client", client_id, "Client not found")
        project = await self.session.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project", project_id, "Project not found")
        if project.client_id != client_id:
            raise ValidationError(
                "Project does not belong to the selected client",
                client_id=client_id,
                project_id=project_id,
            )
        return project

    @staticmethod
    def _validate_hours(hours: Decimal) -> None:
        if hours is None or hours <= 0 or hours > MAX_HOURS_PER_ENTRY:
            raise ValidationError("Hours worked must be greater than 0 and at most 24", hours=hours)

    @staticmethod
    def _check_owner_can_modify(entry: TimeEntry, actor_id: UUID, action: str) -> None:
        if entry.user_id != actor_id:
            raise AuthorizationError("Access denied")
        if not TimeEntryStateMachine.can_modify(entry.status):
            raise ValidationError(
                f"Can only {action} draft entries",
                time_entry_id=entry.id,
                status=entry.status,
            )
