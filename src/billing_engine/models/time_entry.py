"""Time entry model with its frozen monetary snapshot."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from billing_engine.models.directory import Client, Project, User
    from billing_engine.models.incentive import IncentiveEarning


class TimeEntry(Base, TimestampMixin):
    """One unit of billable work.

    The rate/amount columns stay NULL until the entry is approved and are
    never rewritten afterwards, even when the user's or project's rate
    changes.
    """

    __tablename__ = "time_entry"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
    )
    client_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("client.id"),
        nullable=False,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("project.id"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")
    reviewed_by: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("app_user.id"),
        nullable=True,
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Frozen at approval
    consultant_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    client_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    consultant_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    client_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    margin: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'APPROVED', 'REJECTED')",
            name="time_entry_status_check",
        ),
        CheckConstraint(
            "hours_worked > 0 AND hours_worked <= 24",
            name="time_entry_hours_check",
        ),
        Index("ix_time_entry_status_date", "status", "date"),
    )

    # Relationships
    user: Mapped[User] = relationship(
        back_populates="time_entries",
        foreign_keys=[user_id],
        lazy="selectin",
    )
    reviewer: Mapped[User | None] = relationship(foreign_keys=[reviewed_by], lazy="selectin")
    client: Mapped[Client] = relationship(lazy="selectin")
    project: Mapped[Project] = relationship(lazy="selectin")
    incentive_earnings: Mapped[list[IncentiveEarning]] = relationship(
        back_populates="time_entry",
        lazy="selectin",
    )
