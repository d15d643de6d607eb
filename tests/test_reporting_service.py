"""Tests for financial reports."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engine.exceptions import NotFoundError
from billing_engine.models import Project, utcnow
from billing_engine.services import IncentiveService, ReportingService, TimeEntryService
from billing_engine.services.reporting_service import margin_percentage

YEAR = utcnow().year


@pytest.fixture
async def ledger(session, leader, consultant, acme_project, globex_project, approve_hours):
    """Approved work with a global $5/hr FIP from leader on consultant."""
    await IncentiveService(session).create_assignment(
        leader.id, consultant.id, Decimal("5"), date(YEAR, 1, 1)
    )
    return [
        await approve_hours(consultant, acme_project, "10", date(YEAR, 3, 2)),
        await approve_hours(consultant, globex_project, "4", date(YEAR, 3, 3)),
        await approve_hours(leader, acme_project, "2", date(YEAR, 3, 4)),
    ]


class TestMarginPercentage:
    def test_margin_percentage(self):
        assert margin_percentage(Decimal("750"), Decimal("1500")) == Decimal("50.00")
        assert margin_percentage(Decimal("1"), Decimal("3")) == Decimal("33.33")

    def test_zero_client_amount(self):
        assert margin_percentage(Decimal("0"), Decimal("0")) == Decimal("0.00")


class TestForm1099:
    async def test_direct_and_fip_income(self, session, leader, consultant, ledger):
        service = ReportingService(session)

        consultant_report = await service.form_1099(consultant.id, YEAR)
        assert consultant_report.direct_hours == Decimal("14")
        # 10h + 4h at $75
        assert consultant_report.direct_earnings == Decimal("1050")
        assert consultant_report.fip_total == Decimal("0")

        leader_report = await service.form_1099(leader.id, YEAR)
        # 2h at $120 direct, 14h x $5 FIP
        assert leader_report.direct_earnings == Decimal("240")
        assert leader_report.fip_hours == Decimal("14")
        assert leader_report.fip_total == Decimal("70")
        assert leader_report.total_income == Decimal("310")

    async def test_other_year_is_empty(self, session, consultant, ledger):
        report = await ReportingService(session).form_1099(consultant.id, YEAR - 1)

        assert report.direct_entries == []
        assert report.total_income == Decimal("0")

    async def test_unknown_user(self, session):
        with pytest.raises(NotFoundError):
            await ReportingService(session).form_1099(uuid4(), YEAR)


class TestProjectProfitability:
    async def test_summary_and_consultant_breakdown(
        self, session, leader, consultant, acme_project, ledger
    ):
        report = await ReportingService(session).project_profitability(acme_project.id)

        assert report.project.client.name == "Acme Corp"
        assert report.summary.hours == Decimal("12")
        assert report.summary.client_amount == Decimal("1800")
        # 750 + 240
        assert report.summary.consultant_amount == Decimal("990")
        assert report.summary.margin == Decimal("810")
        assert report.summary.fip_amount == Decimal("50")
        assert report.summary.margin_percentage == Decimal("45.00")

        names = [b.name for b in report.by_consultant]
        assert names == ["Carl Consultant", "Lena Leader"]
        assert sum(b.client_amount for b in report.by_consultant) == report.summary.client_amount

    async def test_date_window(self, session, acme_project, ledger):
        report = await ReportingService(session).project_profitability(
            acme_project.id, date(YEAR, 3, 3), date(YEAR, 3, 31)
        )

        assert report.summary.hours == Decimal("2")
        assert len(report.entries) == 1

    async def test_unknown_project(self, session):
        with pytest.raises(NotFoundError):
            await ReportingService(session).project_profitability(uuid4())


class TestCompanySummary:
    async def test_breakdowns_add_up_to_summary(self, session, ledger):
        report = await ReportingService(session).company_summary()

        assert report.summary.client_amount == Decimal("2600")
        for breakdown in (report.by_project, report.by_client):
            assert sum(b.hours for b in breakdown) == report.summary.hours
            assert sum(b.client_amount for b in breakdown) == report.summary.client_amount
            assert sum(b.consultant_amount for b in breakdown) == report.summary.consultant_amount
            assert sum(b.fip_amount for b in breakdown) == report.summary.fip_amount
            assert sum(b.margin for b in breakdown) == report.summary.margin

        assert [b.client_name for b in report.by_client] == ["Acme Corp", "Globex"]

    async def test_excludes_unapproved_entries(
        self, session, consultant, acme_project, ledger
    ):
        service = TimeEntryService(session)
        draft = await service.create_entry(
            consultant.id, acme_project.client_id, acme_project.id, date(YEAR, 3, 5), Decimal("8")
        )
        await service.submit_entry(draft.id, consultant.id)

        report = await ReportingService(session).company_summary()

        assert report.summary.hours == Decimal("16")

    async def test_null_rates_count_as_zero(self, session, consultant, acme, approve_hours):
        unpriced = Project(name="Pro bono", client_id=acme.id, billing_rate=None)
        session.add(unpriced)
        await session.flush()
        await approve_hours(consultant, unpriced, "3", date(YEAR, 4, 1))

        report = await ReportingService(session).company_summary()

        assert report.summary.hours == Decimal("3")
        assert report.summary.client_amount == Decimal("0")
        assert report.summary.margin == Decimal("0")
        assert report.summary.margin_percentage == Decimal("0.00")
