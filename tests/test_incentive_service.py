"""Tests for FIP assignment management and earnings."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from billing_engine.exceptions import ConflictError, NotFoundError, ValidationError
from billing_engine.models import IncentiveEarning, utcnow
from billing_engine.services import IncentiveService

START = date(2024, 1, 1)


class TestCreateAssignment:
    """Test assignment validation."""

    async def test_create_global_assignment(self, session, leader, consultant):
        assignment = await IncentiveService(session).create_assignment(
            leader.id, consultant.id, Decimal("5.00"), START
        )

        assert assignment.project_id is None
        assert assignment.is_global is True
        assert assignment.is_active is True
        assert assignment.leader.name == "Lena Leader"

    async def test_leader_cannot_be_consultant(self, session, leader):
        with pytest.raises(ValidationError, match="cannot be the same person"):
            await IncentiveService(session).create_assignment(
                leader.id, leader.id, Decimal("5.00"), START
            )

    async def test_missing_fields(self, session, leader):
        with pytest.raises(ValidationError, match="are required"):
            await IncentiveService(session).create_assignment(leader.id, None, Decimal("5"), START)

    async def test_negative_rate(self, session, leader, consultant):
        with pytest.raises(ValidationError, match="zero or greater"):
            await IncentiveService(session).create_assignment(
                leader.id, consultant.id, Decimal("-1"), START
            )

    async def test_end_before_start(self, session, leader, consultant):
        with pytest.raises(ValidationError, match="End date"):
            await IncentiveService(session).create_assignment(
                leader.id, consultant.id, Decimal("5"), START, end_date=date(2023, 12, 31)
            )

    async def test_unknown_users_and_project(self, session, leader, consultant):
        service = IncentiveService(session)

        with pytest.raises(NotFoundError, match="Leader user not found"):
            await service.create_assignment(uuid4(), consultant.id, Decimal("5"), START)
        with pytest.raises(NotFoundError, match="Consultant user not found"):
            await service.create_assignment(leader.id, uuid4(), Decimal("5"), START)
        with pytest.raises(NotFoundError, match="Project not found"):
            await service.create_assignment(
                leader.id, consultant.id, Decimal("5"), START, project_id=uuid4()
            )

    async def test_duplicate_global_assignment(self, session, leader, consultant):
        service = IncentiveService(session)
        await service.create_assignment(leader.id, consultant.id, Decimal("5"), START)

        with pytest.raises(ConflictError):
            await service.create_assignment(leader.id, consultant.id, Decimal("6"), START)

    async def test_global_and_project_assignments_coexist(
        self, session, leader, consultant, acme_project
    ):
        service = IncentiveService(session)
        await service.create_assignment(leader.id, consultant.id, Decimal("5"), START)
        scoped = await service.create_assignment(
            leader.id, consultant.id, Decimal("8"), START, project_id=acme_project.id
        )

        assert scoped.project.name == "Data Platform"
        assert len(await service.list_assignments()) == 2


class TestEarnings:
    """Test earning creation and history."""

    async def test_project_scoped_fip_only_earns_on_its_project(
        self, session, leader, consultant, acme_project, globex_project, approve_hours
    ):
        await IncentiveService(session).create_assignment(
            leader.id, consultant.id, Decimal("10"), START, project_id=acme_project.id
        )

        on_project = await approve_hours(consultant, acme_project, "4", date(2024, 6, 3))
        off_project = await approve_hours(consultant, globex_project, "4", date(2024, 6, 3))

        assert [e.incentive_amount for e in on_project.incentive_earnings] == [Decimal("40")]
        assert off_project.incentive_earnings == []

    async def test_inactive_or_out_of_window_assignments_do_not_earn(
        self, session, leader, consultant, acme_project, approve_hours
    ):
        service = IncentiveService(session)
        assignment = await service.create_assignment(
            leader.id, consultant.id, Decimal("5"), date(2024, 6, 1), end_date=date(2024, 6, 30)
        )

        before = await approve_hours(consultant, acme_project, "2", date(2024, 5, 31))
        after = await approve_hours(consultant, acme_project, "2", date(2024, 7, 1))
        await service.update_assignment(assignment.id, is_active=False)
        inside = await approve_hours(consultant, acme_project, "2", date(2024, 6, 15))

        assert before.incentive_earnings == []
        assert after.incentive_earnings == []
        assert inside.incentive_earnings == []

    async def test_rate_change_does_not_touch_history(
        self, session, leader, consultant, acme_project, approve_hours
    ):
        service = IncentiveService(session)
        assignment = await service.create_assignment(leader.id, consultant.id, Decimal("5"), START)
        entry = await approve_hours(consultant, acme_project, "10", date(2024, 6, 3))

        await service.update_assignment(assignment.id, incentive_rate=Decimal("9"))

        [earning] = entry.incentive_earnings
        await session.refresh(earning)
        assert earning.incentive_rate == Decimal("5")
        assert earning.incentive_amount == Decimal("50")

    async def test_delete_assignment_keeps_earnings(
        self, session, leader, consultant, acme_project, approve_hours
    ):
        service = IncentiveService(session)
        assignment = await service.create_assignment(leader.id, consultant.id, Decimal("5"), START)
        entry = await approve_hours(consultant, acme_project, "10", date(2024, 6, 3))

        await service.delete_assignment(assignment.id)

        result = await session.execute(
            select(IncentiveEarning)
            .where(IncentiveEarning.time_entry_id == entry.id)
            .execution_options(populate_existing=True)
        )
        [earning] = result.scalars().all()
        assert earning.fractional_incentive_id is None
        assert earning.incentive_amount == Decimal("50")
        with pytest.raises(NotFoundError):
            await service.get_assignment(assignment.id)

    async def test_earnings_for_year_and_my_incentives(
        self, session, leader, consultant, acme_project, approve_hours
    ):
        service = IncentiveService(session)
        await service.create_assignment(leader.id, consultant.id, Decimal("5"), START)
        await approve_hours(consultant, acme_project, "10", date(2024, 6, 3))
        await approve_hours(consultant, acme_project, "2", date(2024, 6, 4))
        year = utcnow().year

        result = await service.earnings_for_year(leader.id, year)
        assert result.entries_count == 2
        assert result.total_hours == Decimal("12")
        assert result.total_earnings == Decimal("60")

        mine = await service.my_incentives(leader.id)
        assert len(mine.as_leader) == 1
        assert mine.as_consultant == []
        assert mine.total_earnings == Decimal("60")

        theirs = await service.my_incentives(consultant.id)
        assert len(theirs.as_consultant) == 1
        assert theirs.earnings == []

        empty = await service.earnings_for_year(leader.id, year - 1)
        assert empty.entries_count == 0
        assert empty.total_earnings == Decimal("0")

    async def test_update_end_date_can_be_cleared(self, session, leader, consultant):
        service = IncentiveService(session)
        assignment = await service.create_assignment(
            leader.id, consultant.id, Decimal("5"), START, end_date=date(2024, 12, 31)
        )

        updated = await service.update_assignment(assignment.id, end_date=None)

        assert updated.end_date is None
