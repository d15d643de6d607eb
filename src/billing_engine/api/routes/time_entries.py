"""Time entry API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from billing_engine.api.dependencies import AdminUser, CurrentUser, DbSession, Precedence
from billing_engine.api.schemas import (
    ApprovedBatchCreate,
    ErrorResponse,
    TimeEntryCreate,
    TimeEntryResponse,
    TimeEntryReview,
    TimeEntryUpdate,
)
from billing_engine.services import EntryDraft, TimeEntryService

router = APIRouter(prefix="/time-entries", tags=["time-entries"])


@router.post(
    "",
    response_model=TimeEntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_time_entry(
    db: DbSession,
    identity: CurrentUser,
    payload: TimeEntryCreate,
) -> TimeEntryResponse:
    """Create a draft time entry for the caller."""
    service = TimeEntryService(db)
    entry = await service.create_entry(
        user_id=identity.user_id,
        client_id=payload.client_id,
        project_id=payload.project_id,
        work_date=payload.work_date,
        hours_worked=payload.hours_worked,
        description=payload.description,
    )
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.get("/pending", response_model=list[TimeEntryResponse])
async def list_pending_entries(db: DbSession, _: AdminUser) -> list[TimeEntryResponse]:
    """Entries awaiting review."""
    entries = await TimeEntryService(db).list_pending()
    return [TimeEntryResponse.model_validate(e) for e in entries]


@router.post(
    "/approved-batch",
    response_model=list[TimeEntryResponse],
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_approved_batch(
    db: DbSession,
    admin: AdminUser,
    precedence: Precedence,
    payload: ApprovedBatchCreate,
) -> list[TimeEntryResponse]:
    """Create entries that are approved on creation, with rates frozen."""
    service = TimeEntryService(db, precedence)
    entries = await service.create_approved_entries(
        user_id=payload.user_id,
        client_id=payload.client_id,
        project_id=payload.project_id,
        drafts=[
            EntryDraft(work_date=d.work_date, hours=d.hours, description=d.description)
            for d in payload.entries
        ],
        reviewer_id=admin.user_id,
    )
    await db.commit()
    return [TimeEntryResponse.model_validate(e) for e in entries]


@router.put(
    "/{entry_id}",
    response_model=TimeEntryResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_time_entry(
    db: DbSession,
    identity: CurrentUser,
    entry_id: Annotated[UUID, Path()],
    payload: TimeEntryUpdate,
) -> TimeEntryResponse:
    """Edit a draft entry owned by the caller."""
    changes = payload.model_dump(exclude_unset=True, by_alias=False)
    entry = await TimeEntryService(db).update_entry(entry_id, identity.user_id, **changes)
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_time_entry(
    db: DbSession,
    identity: CurrentUser,
    entry_id: Annotated[UUID, Path()],
) -> None:
    await TimeEntryService(db).delete_entry(entry_id, identity.user_id)
    await db.commit()


@router.post(
    "/{entry_id}/submit",
    response_model=TimeEntryResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def submit_time_entry(
    db: DbSession,
    identity: CurrentUser,
    entry_id: Annotated[UUID, Path()],
) -> TimeEntryResponse:
    """Move a draft entry to SUBMITTED."""
    entry = await TimeEntryService(db).submit_entry(entry_id, identity.user_id)
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.patch(
    "/{entry_id}/review",
    response_model=TimeEntryResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def review_time_entry(
    db: DbSession,
    identity: CurrentUser,
    precedence: Precedence,
    entry_id: Annotated[UUID, Path()],
    payload: TimeEntryReview,
) -> TimeEntryResponse:
    """Approve or reject a submitted entry.

    Approval freezes rates and creates FIP earnings in the same transaction.
    """
    service = TimeEntryService(db, precedence)
    entry = await service.review_entry(
        entry_id,
        identity.user_id,
        payload.status,
        reviewer_is_admin=identity.is_admin,
    )
    await db.commit()
    return TimeEntryResponse.model_validate(entry)
