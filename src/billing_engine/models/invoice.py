"""Invoice batch, invoice, line item and Bill.com mapping/config models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from billing_engine.models.directory import Client, User
    from billing_engine.models.time_entry import TimeEntry


class InvoiceBatch(Base, TimestampMixin):
    """One invoice-generation run over a date range."""

    __tablename__ = "invoice_batch"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")
    generated_by: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("app_user.id"),
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'COMPLETED', 'FAILED')",
            name="invoice_batch_status_check",
        ),
        CheckConstraint("end_date >= start_date", name="invoice_batch_dates_check"),
    )

    # Relationships
    generator: Mapped[User] = relationship(lazy="selectin")
    invoices: Mapped[list[Invoice]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Invoice.created_at",
    )


class Invoice(Base, TimestampMixin):
    """One client's bill within a batch."""

    __tablename__ = "invoice"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    batch_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("invoice_batch.id", ondelete="CASCADE"),
        nullable=False,
    )
    client_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("client.id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")
    total_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    billcom_invoice_id: Mapped[str | None] = mapped_column(String, nullable=True)
    invoice_number: Mapped[str | None] = mapped_column(String, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_payment_status: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'APPROVED', 'SUBMITTED', 'FAILED')",
            name="invoice_status_check",
        ),
    )

    # Relationships
    batch: Mapped[InvoiceBatch] = relationship(back_populates="invoices")
    client: Mapped[Client] = relationship(lazy="selectin")
    line_items: Mapped[list[InvoiceLineItem]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceLineItem.created_at",
    )


class InvoiceLineItem(Base, TimestampMixin):
    """Aggregated billing line for one (employee, project) pair."""

    __tablename__ = "invoice_line_item"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("invoice.id", ondelete="CASCADE"),
        nullable=False,
    )
    time_entry_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("time_entry.id", ondelete="SET NULL"),
        nullable=True,
    )
    employee_name: Mapped[str] = mapped_column(String, nullable=False)
    project_name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    line_date: Mapped[date] = mapped_column("date", Date, nullable=False)

    # Relationships
    invoice: Mapped[Invoice] = relationship(back_populates="line_items")
    time_entry: Mapped[TimeEntry | None] = relationship()


class BillComCustomerMapping(Base, TimestampMixin):
    """Maps a local client to its Bill.com customer id."""

    __tablename__ = "billcom_customer_mapping"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    client_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("client.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    billcom_customer_id: Mapped[str] = mapped_column(String, nullable=False)
    billcom_customer_name: Mapped[str | None] = mapped_column(String, nullable=True)

    # Relationships
    client: Mapped[Client] = relationship(back_populates="billcom_mapping", lazy="selectin")


class BillComConfig(Base, TimestampMixin):
    """Encrypted Bill.com credentials. Only the newest row is active."""

    __tablename__ = "billcom_config"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    environment: Mapped[str] = mapped_column(String, nullable=False)
    dev_key: Mapped[str] = mapped_column(Text, nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    password: Mapped[str] = mapped_column(Text, nullable=False)
    organization_id: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "environment IN ('SANDBOX', 'PRODUCTION')",
            name="billcom_config_environment_check",
        ),
    )

    def __repr__(self) -> str:
        return f"<BillComConfig id={self.id} environment={self.environment} active={self.is_active}>"
