"""Financial report API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from billing_engine.api.dependencies import AdminUser, CurrentUser, DbSession
from billing_engine.api.schemas import (
    ClientBreakdownResponse,
    ClientRef,
    CompanySummaryResponse,
    ConsultantBreakdownResponse,
    ErrorResponse,
    Form1099DirectResponse,
    Form1099FipResponse,
    Form1099Response,
    IncentiveEarningResponse,
    ProjectBreakdownResponse,
    ProjectProfitabilityResponse,
    ProjectRef,
    TimeEntryResponse,
    TotalsResponse,
    UserRef,
)
from billing_engine.exceptions import AuthorizationError
from billing_engine.services import ReportingService

router = APIRouter(prefix="/financial-reports", tags=["financial-reports"])

StartDate = Annotated[date | None, Query(alias="startDate")]
EndDate = Annotated[date | None, Query(alias="endDate")]


@router.get(
    "/1099/{user_id}/{year}",
    response_model=Form1099Response,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def form_1099(
    db: DbSession,
    identity: CurrentUser,
    user_id: Annotated[UUID, Path()],
    year: Annotated[int, Path(ge=1900, le=9999)],
) -> Form1099Response:
    """Direct earnings plus FIP income for one consultant and year."""
    if not identity.is_admin and identity.user_id != user_id:
        raise AuthorizationError("Access denied")
    report = await ReportingService(db).form_1099(user_id, year)
    return Form1099Response(
        year=report.year,
        user=UserRef.model_validate(report.user),
        direct=Form1099DirectResponse(
            entries=[TimeEntryResponse.model_validate(e) for e in report.direct_entries],
            total_hours=report.direct_hours,
            total_earnings=report.direct_earnings,
        ),
        fip=Form1099FipResponse(
            earnings=[IncentiveEarningResponse.model_validate(e) for e in report.fip_earnings],
            total_hours=report.fip_hours,
            total_earnings=report.fip_total,
        ),
        total_income=report.total_income,
    )


@router.get(
    "/project-profitability/{project_id}",
    response_model=ProjectProfitabilityResponse,
    responses={404: {"model": ErrorResponse}},
)
async def project_profitability(
    db: DbSession,
    _: AdminUser,
    project_id: Annotated[UUID, Path()],
    start_date: StartDate = None,
    end_date: EndDate = None,
) -> ProjectProfitabilityResponse:
    report = await ReportingService(db).project_profitability(project_id, start_date, end_date)
    return ProjectProfitabilityResponse(
        project=ProjectRef.model_validate(report.project),
        client=ClientRef.model_validate(report.project.client),
        start_date=report.start_date,
        end_date=report.end_date,
        summary=TotalsResponse.model_validate(report.summary),
        by_consultant=[ConsultantBreakdownResponse.model_validate(b) for b in report.by_consultant],
        entries=[TimeEntryResponse.model_validate(e) for e in report.entries],
    )


@router.get("/company-summary", response_model=CompanySummaryResponse)
async def company_summary(
    db: DbSession,
    _: AdminUser,
    start_date: StartDate = None,
    end_date: EndDate = None,
) -> CompanySummaryResponse:
    """Company-wide totals with per-project and per-client breakdowns."""
    report = await ReportingService(db).company_summary(start_date, end_date)
    return CompanySummaryResponse(
        start_date=report.start_date,
        end_date=report.end_date,
        summary=TotalsResponse.model_validate(report.summary),
        by_project=[ProjectBreakdownResponse.model_validate(b) for b in report.by_project],
        by_client=[ClientBreakdownResponse.model_validate(b) for b in report.by_client],
    )
