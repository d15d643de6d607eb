"""Read-only financial reports over frozen time entry amounts and earnings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from billing_engine.exceptions import NotFoundError
from billing_engine.models import IncentiveEarning, Project, TimeEntry, User
from billing_engine.services.incentive_service import year_bounds
from billing_engine.services.state_machine import TimeEntryStatus

ZERO = Decimal("0")


def margin_percentage(margin: Decimal, client_amount: Decimal) -> Decimal:
    """margin / client_amount x 100, two places; 0 when nothing was billed."""
    if client_amount == 0:
        return Decimal("0.00")
    return (margin / client_amount * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass
class Totals:
    """Additive money and hour totals over a set of approved entries."""

    hours: Decimal = ZERO
    client_amount: Decimal = ZERO
    consultant_amount: Decimal = ZERO
    fip_amount: Decimal = ZERO
    margin: Decimal = ZERO

    def add(self, entry: TimeEntry) -> None:
        self.hours += entry.hours_worked
        self.client_amount += entry.client_amount or ZERO
        self.consultant_amount += entry.consultant_amount or ZERO
        self.margin += entry.margin or ZERO
        self.fip_amount += sum((e.incentive_amount for e in entry.incentive_earnings), ZERO)

    @property
    def margin_percentage(self) -> Decimal:
        return margin_percentage(self.margin, self.client_amount)


@dataclass
class ConsultantBreakdown(Totals):
    user_id: UUID | None = None
    name: str = ""


@dataclass
class ProjectBreakdown(Totals):
    project_id: UUID | None = None
    project_name: str = ""
    client_id: UUID | None = None
    client_name: str = ""


@dataclass
class ClientBreakdown(Totals):
    client_id: UUID | None = None
    client_name: str = ""


@dataclass
class Form1099Report:
    """Direct billable earnings plus FIP income for one user and year."""

    year: int
    user: User
    direct_entries: list[TimeEntry] = field(default_factory=list)
    direct_hours: Decimal = ZERO
    direct_earnings: Decimal = ZERO
    fip_earnings: list[IncentiveEarning] = field(default_factory=list)
    fip_hours: Decimal = ZERO
    fip_total: Decimal = ZERO

    @property
    def total_income(self) -> Decimal:
        return self.direct_earnings + self.fip_total


@dataclass
class ProjectProfitabilityReport:
    project: Project
    start_date: date | None
    end_date: date | None
    summary: Totals
    by_consultant: list[ConsultantBreakdown]
    entries: list[TimeEntry]


@dataclass
class CompanySummaryReport:
    start_date: date | None
    end_date: date | None
    summary: Totals
    by_project: list[ProjectBreakdown]
    by_client: list[ClientBreakdown]


class ReportingService:
    """Aggregates frozen per-entry amounts and earning rows.

    Reports never resolve rates; every figure comes from values captured at
    approval. Groupings are keyed by entity id and carry display names.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _approved_entries(
        self,
        project_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[TimeEntry]:
        stmt = select(TimeEntry).where(TimeEntry.status == TimeEntryStatus.APPROVED)
        if project_id is not None:
            stmt = stmt.where(TimeEntry.project_id == project_id)
        if start_date is not None:
            stmt = stmt.where(TimeEntry.work_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(TimeEntry.work_date <= end_date)
        result = await self.session.execute(stmt.order_by(TimeEntry.work_date.desc()))
        return list(result.scalars().all())

    async def form_1099(self, user_id: UUID, year: int) -> Form1099Report:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id, "User not found")

        entries_result = await self.session.execute(
            select(TimeEntry)
            .where(
                TimeEntry.user_id == user_id,
                TimeEntry.status == TimeEntryStatus.APPROVED,
                TimeEntry.work_date >= date(year, 1, 1),
                TimeEntry.work_date <= date(year, 12, 31),
            )
            .order_by(TimeEntry.work_date)
        )
        entries = list(entries_result.scalars().all())

        start, end = year_bounds(year)
        earnings_result = await self.session.execute(
            select(IncentiveEarning)
            .join(TimeEntry, IncentiveEarning.time_entry_id == TimeEntry.id)
            .where(
                IncentiveEarning.leader_id == user_id,
                IncentiveEarning.created_at >= start,
                IncentiveEarning.created_at < end,
                TimeEntry.status == TimeEntryStatus.APPROVED,
            )
            .order_by(IncentiveEarning.created_at)
        )
        earnings = list(earnings_result.scalars().all())

        return Form1099Report(
            year=year,
            user=user,
            direct_entries=entries,
            direct_hours=sum((e.hours_worked for e in entries), ZERO),
            direct_earnings=sum((e.consultant_amount or ZERO for e in entries), ZERO),
            fip_earnings=earnings,
            fip_hours=sum((e.time_entry.hours_worked for e in earnings), ZERO),
            fip_total=sum((e.incentive_amount for e in earnings), ZERO),
        )

    async def project_profitability(
        self,
        project_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> ProjectProfitabilityReport:
        result = await self.session.execute(
            select(Project).where(Project.id == project_id).options(selectinload(Project.client))
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project", project_id, "Project not found")

        entries = await self._approved_entries(project_id, start_date, end_date)

        summary = Totals()
        by_consultant: dict[UUID, ConsultantBreakdown] = {}
        for entry in entries:
            summary.add(entry)
            bucket = by_consultant.get(entry.user_id)
            if bucket is None:
                bucket = ConsultantBreakdown(user_id=entry.user_id, name=entry.user.name)
                by_consultant[entry.user_id] = bucket
            bucket.add(entry)

        return ProjectProfitabilityReport(
            project=project,
            start_date=start_date,
            end_date=end_date,
            summary=summary,
            by_consultant=sorted(by_consultant.values(), key=lambda b: b.name),
            entries=entries,
        )

    async def company_summary(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> CompanySummaryReport:
        entries = await self._approved_entries(start_date=start_date, end_date=end_date)

        summary = Totals()
        by_project: dict[UUID, ProjectBreakdown] = {}
        by_client: dict[UUID, ClientBreakdown] = {}
        for entry in entries:
            summary.add(entry)

            project_bucket = by_project.get(entry.project_id)
            if project_bucket is None:
                project_bucket = ProjectBreakdown(
                    project_id=entry.project_id,
                    project_name=entry.project.name,
                    client_id=entry.client_id,
                    client_name=entry.client.name,
                )
                by_project[entry.project_id] = project_bucket
            project_bucket.add(entry)

            client_bucket = by_client.get(entry.client_id)
            if client_bucket is None:
                client_bucket = ClientBreakdown(
                    client_id=entry.client_id,
                    client_name=entry.client.name,
                )
                by_client[entry.client_id] = client_bucket
            client_bucket.add(entry)

        return CompanySummaryReport(
            start_date=start_date,
            end_date=end_date,
            summary=summary,
            by_project=sorted(
                by_project.values(), key=lambda b: (b.client_name, b.project_name)
            ),
            by_client=sorted(by_client.values(), key=lambda b: b.client_name),
        )
