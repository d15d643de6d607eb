"""Pydantic schemas for API request/response models.

Field names are snake_case in Python and camelCase on the wire; both forms
are accepted on input.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base schema: camelCase aliases, ORM attribute loading."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ============================================================================
# Shared references
# ============================================================================


class UserRef(ApiModel):
    id: UUID
    name: str
    email: str


class ClientRef(ApiModel):
    id: UUID
    name: str


class ProjectRef(ApiModel):
    id: UUID
    name: str
    client_id: UUID


class MessageResponse(ApiModel):
    """Generic acknowledgement."""

    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Error response schema."""

    detail: str
    code: str | None = None


# ============================================================================
# Time entry schemas
# ============================================================================


class TimeEntryCreate(ApiModel):
    """Schema for creating a draft time entry."""

    client_id: UUID
    project_id: UUID
    work_date: date = Field(alias="date")
    hours_worked: Decimal
    description: str | None = None


class TimeEntryUpdate(ApiModel):
    """Partial edit of a draft time entry. Only fields sent are changed."""

    client_id: UUID | None = None
    project_id: UUID | None = None
    work_date: date | None = Field(default=None, alias="date")
    hours_worked: Decimal | None = None
    description: str | None = None


class TimeEntryReview(ApiModel):
    status: str


class ApprovedEntryDraft(ApiModel):
    work_date: date = Field(alias="date")
    hours: Decimal
    description: str | None = None


class ApprovedBatchCreate(ApiModel):
    """Pre-approved hours for one user on one project."""

    user_id: UUID
    client_id: UUID
    project_id: UUID
    entries: list[ApprovedEntryDraft]


class TimeEntryResponse(ApiModel):
    """Schema for time entry response."""

    id: UUID
    user_id: UUID
    client_id: UUID
    project_id: UUID
    work_date: date = Field(alias="date")
    hours_worked: Decimal
    description: str | None = None
    status: str
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    consultant_rate: Decimal | None = None
    client_rate: Decimal | None = None
    consultant_amount: Decimal | None = None
    client_amount: Decimal | None = None
    margin: Decimal | None = None
    user: UserRef
    client: ClientRef
    project: ProjectRef
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Fractional incentive schemas
# ============================================================================


class FractionalIncentiveCreate(ApiModel):
    """Schema for creating a FIP assignment. Omit the project for a global one."""

    leader_id: UUID | None = None
    consultant_id: UUID | None = None
    project_id: UUID | None = None
    incentive_rate: Decimal | None = None
    start_date: date | None = None
    end_date: date | None = None

    @field_validator("project_id", "end_date", mode="before")
    @classmethod
    def blank_is_none(cls, value):
        return None if value == "" else value


class FractionalIncentiveUpdate(ApiModel):
    incentive_rate: Decimal | None = None
    end_date: date | None = None
    is_active: bool | None = None


class FractionalIncentiveResponse(ApiModel):
    """Schema for FIP assignment response."""

    id: UUID
    leader_id: UUID
    consultant_id: UUID
    project_id: UUID | None = None
    incentive_rate: Decimal
    start_date: date
    end_date: date | None = None
    is_active: bool
    leader: UserRef
    consultant: UserRef
    project: ProjectRef | None = None
    created_at: datetime
    updated_at: datetime


class EarningEntryRef(ApiModel):
    id: UUID
    work_date: date = Field(alias="date")
    hours_worked: Decimal
    user: UserRef
    project: ProjectRef


class IncentiveEarningResponse(ApiModel):
    """One immutable earning row."""

    id: UUID
    time_entry_id: UUID
    leader_id: UUID
    fractional_incentive_id: UUID | None = None
    incentive_rate: Decimal
    incentive_amount: Decimal
    created_at: datetime
    time_entry: EarningEntryRef


class MyIncentivesResponse(ApiModel):
    as_leader: list[FractionalIncentiveResponse]
    as_consultant: list[FractionalIncentiveResponse]
    earnings: list[IncentiveEarningResponse]
    total_earnings: Decimal


class EarningsSummary(ApiModel):
    total_earnings: Decimal
    total_hours: Decimal
    entries_count: int


class YearEarningsResponse(ApiModel):
    user_id: UUID
    year: int
    earnings: list[IncentiveEarningResponse]
    summary: EarningsSummary


# ============================================================================
# Invoice schemas
# ============================================================================


class BatchGenerateRequest(ApiModel):
    """Schema for generating an invoice batch."""

    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None


class InvoiceLineItemResponse(ApiModel):
    id: UUID
    invoice_id: UUID
    time_entry_id: UUID | None = None
    employee_name: str
    project_name: str
    description: str
    hours: Decimal
    rate: Decimal
    amount: Decimal
    line_date: date = Field(alias="date")


class InvoiceResponse(ApiModel):
    """Schema for invoice response with its lines."""

    id: UUID
    batch_id: UUID
    client_id: UUID
    status: str
    total_hours: Decimal
    total_amount: Decimal
    billcom_invoice_id: str | None = None
    invoice_number: str | None = None
    due_date: date | None = None
    submitted_at: datetime | None = None
    failure_reason: str | None = None
    notes: str | None = None
    external_payment_status: str | None = None
    client: ClientRef
    line_items: list[InvoiceLineItemResponse]
    created_at: datetime
    updated_at: datetime


class InvoiceUpdate(ApiModel):
    """Status change and/or notes edit. Only fields sent are applied."""

    status: str | None = None
    notes: str | None = None


class InvoiceBatchResponse(ApiModel):
    """Schema for invoice batch response."""

    id: UUID
    start_date: date
    end_date: date
    status: str
    generated_by: UUID
    notes: str | None = None
    submitted_at: datetime | None = None
    completed_at: datetime | None = None
    invoices: list[InvoiceResponse]
    created_at: datetime
    updated_at: datetime


class SubmissionResultResponse(ApiModel):
    invoice_id: UUID
    client_name: str
    success: bool
    billcom_invoice_id: str | None = None
    failure_reason: str | None = None


class SubmissionResponse(ApiModel):
    """Schema for batch submission outcome."""

    success: bool = True
    success_count: int
    failure_count: int
    message: str
    results: list[SubmissionResultResponse]


# ============================================================================
# Financial report schemas
# ============================================================================


class TotalsResponse(ApiModel):
    hours: Decimal
    client_amount: Decimal
    consultant_amount: Decimal
    fip_amount: Decimal
    margin: Decimal
    margin_percentage: Decimal


class ConsultantBreakdownResponse(TotalsResponse):
    user_id: UUID
    name: str


class ProjectBreakdownResponse(TotalsResponse):
    project_id: UUID
    project_name: str
    client_id: UUID
    client_name: str


class ClientBreakdownResponse(TotalsResponse):
    client_id: UUID
    client_name: str


class Form1099DirectResponse(ApiModel):
    entries: list[TimeEntryResponse]
    total_hours: Decimal
    total_earnings: Decimal


class Form1099FipResponse(ApiModel):
    earnings: list[IncentiveEarningResponse]
    total_hours: Decimal
    total_earnings: Decimal


class Form1099Response(ApiModel):
    """Annual income statement for one consultant."""

    year: int
    user: UserRef
    direct: Form1099DirectResponse
    fip: Form1099FipResponse
    total_income: Decimal


class ProjectProfitabilityResponse(ApiModel):
    project: ProjectRef
    client: ClientRef
    start_date: date | None = None
    end_date: date | None = None
    summary: TotalsResponse
    by_consultant: list[ConsultantBreakdownResponse]
    entries: list[TimeEntryResponse]


class CompanySummaryResponse(ApiModel):
    start_date: date | None = None
    end_date: date | None = None
    summary: TotalsResponse
    by_project: list[ProjectBreakdownResponse]
    by_client: list[ClientBreakdownResponse]


# ============================================================================
# Bill.com schemas
# ============================================================================


class BillComCredentialsRequest(ApiModel):
    """Credentials are write-only; they are never echoed back."""

    environment: str = "SANDBOX"
    dev_key: str = ""
    username: str = ""
    password: str = ""
    organization_id: str = ""


class BillComStatusResponse(ApiModel):
    configured: bool
    environment: str | None = None
    session_valid: bool = False
    last_updated: datetime | None = None
    message: str | None = None


class ConnectionTestResponse(ApiModel):
    success: bool
    message: str
    environment: str | None = None


class BillComCustomerResponse(ApiModel):
    id: str
    name: str
    email: str | None = None
    is_active: bool = True


class CustomerMappingRequest(ApiModel):
    client_id: UUID
    billcom_customer_id: str
    billcom_customer_name: str | None = None


class CustomerMappingResponse(ApiModel):
    id: UUID
    client_id: UUID
    billcom_customer_id: str
    billcom_customer_name: str | None = None
    client: ClientRef
    created_at: datetime
    updated_at: datetime
