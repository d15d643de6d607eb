"""Bill.com configuration and customer mapping API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from billing_engine.api.dependencies import (
    AdminUser,
    BillComConfigDep,
    DbSession,
    SessionRegistry,
    SettingsDep,
)
from billing_engine.api.schemas import (
    BillComCredentialsRequest,
    BillComCustomerResponse,
    BillComStatusResponse,
    ClientRef,
    ConnectionTestResponse,
    CustomerMappingRequest,
    CustomerMappingResponse,
    ErrorResponse,
    MessageResponse,
)

router = APIRouter(prefix="/billcom", tags=["billcom"])


# ============================================================================
# Credentials
# ============================================================================


@router.post(
    "/credentials",
    response_model=BillComStatusResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def save_credentials(
    db: DbSession,
    _: AdminUser,
    config_service: BillComConfigDep,
    sessions: SessionRegistry,
    payload: BillComCredentialsRequest,
) -> BillComStatusResponse:
    """Encrypt and store credentials; older configurations are deactivated."""
    await config_service.save_credentials(
        environment=payload.environment,
        dev_key=payload.dev_key,
        username=payload.username,
        password=payload.password,
        organization_id=payload.organization_id,
    )
    await db.commit()
    config_status = await config_service.status(sessions)
    return BillComStatusResponse.model_validate(config_status)


@router.get("/status", response_model=BillComStatusResponse)
async def get_status(
    _: AdminUser,
    config_service: BillComConfigDep,
    sessions: SessionRegistry,
) -> BillComStatusResponse:
    config_status = await config_service.status(sessions)
    return BillComStatusResponse.model_validate(config_status)


@router.post(
    "/test-connection",
    response_model=ConnectionTestResponse,
    responses={400: {"model": ErrorResponse}},
)
async def test_connection(
    _: AdminUser,
    config_service: BillComConfigDep,
    sessions: SessionRegistry,
    settings: SettingsDep,
) -> ConnectionTestResponse:
    """Log in with the stored credentials and report the outcome."""
    async with config_service.open_client(sessions, settings.billcom_timeout_seconds) as client:
        result = await client.test_connection()
    return ConnectionTestResponse(
        success=result.success,
        message=result.message,
        environment=getattr(result.environment, "value", result.environment),
    )


@router.post(
    "/sync-customers",
    response_model=list[BillComCustomerResponse],
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def sync_customers(
    _: AdminUser,
    config_service: BillComConfigDep,
    sessions: SessionRegistry,
    settings: SettingsDep,
) -> list[BillComCustomerResponse]:
    """Fetch the customer list from Bill.com for mapping."""
    async with config_service.open_client(sessions, settings.billcom_timeout_seconds) as client:
        customers = await client.list_customers()
    return [BillComCustomerResponse.model_validate(c) for c in customers]


# ============================================================================
# Customer mappings
# ============================================================================


@router.get("/customer-mappings", response_model=list[CustomerMappingResponse])
async def list_customer_mappings(
    _: AdminUser,
    config_service: BillComConfigDep,
) -> list[CustomerMappingResponse]:
    mappings = await config_service.list_mappings()
    return [CustomerMappingResponse.model_validate(m) for m in mappings]


@router.post(
    "/customer-mappings",
    response_model=CustomerMappingResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def save_customer_mapping(
    db: DbSession,
    _: AdminUser,
    config_service: BillComConfigDep,
    payload: CustomerMappingRequest,
) -> CustomerMappingResponse:
    """Create or replace the Bill.com customer for a client."""
    mapping = await config_service.save_mapping(
        payload.client_id,
        payload.billcom_customer_id,
        payload.billcom_customer_name,
    )
    await db.commit()
    return CustomerMappingResponse.model_validate(mapping)


@router.delete(
    "/customer-mappings/{client_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}},
)
async def delete_customer_mapping(
    db: DbSession,
    _: AdminUser,
    config_service: BillComConfigDep,
    client_id: Annotated[UUID, Path()],
) -> MessageResponse:
    await config_service.delete_mapping(client_id)
    await db.commit()
    return MessageResponse(message="Customer mapping deleted")


@router.get("/unmapped-clients", response_model=list[ClientRef])
async def list_unmapped_clients(
    _: AdminUser,
    config_service: BillComConfigDep,
) -> list[ClientRef]:
    """Active clients that still need a Bill.com customer."""
    clients = await config_service.unmapped_clients()
    return [ClientRef.model_validate(c) for c in clients]
