"""Fractional incentive (FIP) API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from billing_engine.api.dependencies import AdminUser, CurrentUser, DbSession
from billing_engine.api.schemas import (
    EarningsSummary,
    ErrorResponse,
    FractionalIncentiveCreate,
    FractionalIncentiveResponse,
    FractionalIncentiveUpdate,
    IncentiveEarningResponse,
    MessageResponse,
    MyIncentivesResponse,
    YearEarningsResponse,
)
from billing_engine.exceptions import AuthorizationError
from billing_engine.services import IncentiveService

router = APIRouter(prefix="/fractional-incentives", tags=["fractional-incentives"])


@router.get("", response_model=list[FractionalIncentiveResponse])
async def list_fractional_incentives(
    db: DbSession,
    _: AdminUser,
    is_active: Annotated[bool | None, Query(alias="isActive")] = None,
) -> list[FractionalIncentiveResponse]:
    """List FIP assignments, newest first."""
    assignments = await IncentiveService(db).list_assignments(is_active)
    return [FractionalIncentiveResponse.model_validate(a) for a in assignments]


@router.post(
    "",
    response_model=FractionalIncentiveResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def create_fractional_incentive(
    db: DbSession,
    _: AdminUser,
    payload: FractionalIncentiveCreate,
) -> FractionalIncentiveResponse:
    """Create a FIP assignment. A null project makes it global."""
    assignment = await IncentiveService(db).create_assignment(
        leader_id=payload.leader_id,
        consultant_id=payload.consultant_id,
        incentive_rate=payload.incentive_rate,
        start_date=payload.start_date,
        project_id=payload.project_id,
        end_date=payload.end_date,
    )
    await db.commit()
    return FractionalIncentiveResponse.model_validate(assignment)


@router.get("/my-incentives", response_model=MyIncentivesResponse)
async def my_incentives(db: DbSession, identity: CurrentUser) -> MyIncentivesResponse:
    """The caller's active assignments and current-year earnings."""
    view = await IncentiveService(db).my_incentives(identity.user_id)
    return MyIncentivesResponse(
        as_leader=[FractionalIncentiveResponse.model_validate(a) for a in view.as_leader],
        as_consultant=[FractionalIncentiveResponse.model_validate(a) for a in view.as_consultant],
        earnings=[IncentiveEarningResponse.model_validate(e) for e in view.earnings],
        total_earnings=view.total_earnings,
    )


@router.get(
    "/earnings/{user_id}/{year}",
    response_model=YearEarningsResponse,
    responses={403: {"model": ErrorResponse}},
)
async def earnings_for_year(
    db: DbSession,
    identity: CurrentUser,
    user_id: Annotated[UUID, Path()],
    year: Annotated[int, Path(ge=1900, le=9999)],
) -> YearEarningsResponse:
    """A leader's earnings for one year. Admins may view anyone."""
    if not identity.is_admin and identity.user_id != user_id:
        raise AuthorizationError("Access denied")
    result = await IncentiveService(db).earnings_for_year(user_id, year)
    return YearEarningsResponse(
        user_id=user_id,
        year=year,
        earnings=[IncentiveEarningResponse.model_validate(e) for e in result.earnings],
        summary=EarningsSummary(
            total_earnings=result.total_earnings,
            total_hours=result.total_hours,
            entries_count=result.entries_count,
        ),
    )


@router.put(
    "/{assignment_id}",
    response_model=FractionalIncentiveResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_fractional_incentive(
    db: DbSession,
    _: AdminUser,
    assignment_id: Annotated[UUID, Path()],
    payload: FractionalIncentiveUpdate,
) -> FractionalIncentiveResponse:
    """Change rate, end date or active flag. Existing earnings are untouched."""
    changes = payload.model_dump(exclude_unset=True, by_alias=False)
    assignment = await IncentiveService(db).update_assignment(assignment_id, **changes)
    await db.commit()
    return FractionalIncentiveResponse.model_validate(assignment)


@router.delete(
    "/{assignment_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}},
)
async def delete_fractional_incentive(
    db: DbSession,
    _: AdminUser,
    assignment_id: Annotated[UUID, Path()],
) -> MessageResponse:
    await IncentiveService(db).delete_assignment(assignment_id)
    await db.commit()
    return MessageResponse(message="FIP assignment deleted")
