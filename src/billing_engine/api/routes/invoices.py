"""Invoice batch and invoice API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from billing_engine.api.dependencies import (
    AdminUser,
    DbSession,
    Notifications,
    ProviderFactoryDep,
    SettingsDep,
)
from billing_engine.api.schemas import (
    BatchGenerateRequest,
    ErrorResponse,
    InvoiceBatchResponse,
    InvoiceResponse,
    InvoiceUpdate,
    SubmissionResponse,
    SubmissionResultResponse,
)
from billing_engine.services import InvoiceService, SubmissionService

router = APIRouter(prefix="/invoices", tags=["invoices"])


# ============================================================================
# Batches
# ============================================================================


@router.post(
    "/batches/generate",
    response_model=InvoiceBatchResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def generate_batch(
    db: DbSession,
    admin: AdminUser,
    notifications: Notifications,
    payload: BatchGenerateRequest,
) -> InvoiceBatchResponse:
    """Group approved entries in the window into one draft invoice per client."""
    service = InvoiceService(db, notifications)
    batch = await service.generate_batch(
        start_date=payload.start_date,
        end_date=payload.end_date,
        generated_by=admin.user_id,
        notes=payload.notes,
    )
    await db.commit()
    await service.notify_batch_ready(batch)
    return InvoiceBatchResponse.model_validate(batch)


@router.get("/batches", response_model=list[InvoiceBatchResponse])
async def list_batches(
    db: DbSession,
    _: AdminUser,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[InvoiceBatchResponse]:
    batches = await InvoiceService(db).list_batches(status_filter)
    return [InvoiceBatchResponse.model_validate(b) for b in batches]


@router.get(
    "/batches/{batch_id}",
    response_model=InvoiceBatchResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_batch(
    db: DbSession,
    _: AdminUser,
    batch_id: Annotated[UUID, Path()],
) -> InvoiceBatchResponse:
    batch = await InvoiceService(db).get_batch(batch_id)
    return InvoiceBatchResponse.model_validate(batch)


@router.post(
    "/batches/{batch_id}/submit",
    response_model=SubmissionResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def submit_batch(
    db: DbSession,
    admin: AdminUser,
    settings: SettingsDep,
    notifications: Notifications,
    provider_factory: ProviderFactoryDep,
    batch_id: Annotated[UUID, Path()],
) -> SubmissionResponse:
    """Submit every APPROVED invoice in the batch to Bill.com.

    Each invoice succeeds or fails on its own; the response reports both.
    """
    service = SubmissionService(
        db,
        provider_factory,
        notifications=notifications,
        due_days=settings.invoice_due_days,
    )
    summary = await service.submit_batch(batch_id, admin.user_id)
    await db.commit()
    return SubmissionResponse(
        success_count=summary.success_count,
        failure_count=summary.failure_count,
        message=summary.message,
        results=[SubmissionResultResponse.model_validate(r) for r in summary.results],
    )


# ============================================================================
# Invoices
# ============================================================================


@router.get("/invoices", response_model=list[InvoiceResponse])
async def list_invoices(
    db: DbSession,
    _: AdminUser,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    client_id: Annotated[UUID | None, Query(alias="clientId")] = None,
    start_date: Annotated[date | None, Query(alias="startDate")] = None,
    end_date: Annotated[date | None, Query(alias="endDate")] = None,
) -> list[InvoiceResponse]:
    invoices = await InvoiceService(db).list_invoices(status_filter, client_id, start_date, end_date)
    return [InvoiceResponse.model_validate(i) for i in invoices]


@router.get(
    "/invoices/{invoice_id}",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_invoice(
    db: DbSession,
    _: AdminUser,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    invoice = await InvoiceService(db).get_invoice(invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.patch(
    "/invoices/{invoice_id}",
    response_model=InvoiceResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_invoice(
    db: DbSession,
    _: AdminUser,
    invoice_id: Annotated[UUID, Path()],
    payload: InvoiceUpdate,
) -> InvoiceResponse:
    """Approve, reopen or annotate an invoice."""
    changes = payload.model_dump(exclude_unset=True, by_alias=False)
    invoice = await InvoiceService(db).update_invoice(invoice_id, **changes)
    await db.commit()
    return InvoiceResponse.model_validate(invoice)


@router.delete(
    "/invoices/{invoice_id}/line-items/{line_item_id}",
    response_model=InvoiceResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_line_item(
    db: DbSession,
    _: AdminUser,
    invoice_id: Annotated[UUID, Path()],
    line_item_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    """Remove a line from a draft invoice; totals are recomputed."""
    invoice = await InvoiceService(db).delete_line_item(invoice_id, line_item_id)
    await db.commit()
    return InvoiceResponse.model_validate(invoice)


@router.post(
    "/invoices/{invoice_id}/sync",
    response_model=InvoiceResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def sync_invoice(
    db: DbSession,
    _: AdminUser,
    provider_factory: ProviderFactoryDep,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    """Refresh payment status and amount from Bill.com."""
    invoice = await SubmissionService(db, provider_factory).sync_invoice(invoice_id)
    await db.commit()
    invoice = await InvoiceService(db).get_invoice(invoice_id)
    return InvoiceResponse.model_validate(invoice)
