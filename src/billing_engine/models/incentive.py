"""Fractional incentive (FIP) assignment and earning ledger models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from billing_engine.models.directory import Project, User
    from billing_engine.models.time_entry import TimeEntry


class FractionalIncentive(Base, TimestampMixin):
    """Standing rule: ``leader`` earns ``incentive_rate`` per hour ``consultant`` bills.

    ``project_id`` NULL means the assignment applies to every project.
    """

    __tablename__ = "fractional_incentive"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    leader_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
    )
    consultant_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("project.id", ondelete="CASCADE"),
        nullable=True,
    )
    incentive_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        # NULL project ids are distinct to the database; the service layer
        # enforces uniqueness of the global (NULL) assignment.
        UniqueConstraint(
            "leader_id",
            "consultant_id",
            "project_id",
            name="fractional_incentive_triple_unique",
        ),
        CheckConstraint("leader_id <> consultant_id", name="fractional_incentive_distinct_users"),
        CheckConstraint("incentive_rate >= 0", name="fractional_incentive_rate_check"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="fractional_incentive_dates_check",
        ),
    )

    # Relationships
    leader: Mapped[User] = relationship(foreign_keys=[leader_id], lazy="selectin")
    consultant: Mapped[User] = relationship(foreign_keys=[consultant_id], lazy="selectin")
    project: Mapped[Project | None] = relationship(lazy="selectin")

    @property
    def is_global(self) -> bool:
        return self.project_id is None

    def is_active_on(self, as_of_date: date) -> bool:
        """Check if the assignment earns on a given date."""
        if not self.is_active:
            return False
        if self.start_date > as_of_date:
            return False
        if self.end_date is not None and self.end_date < as_of_date:
            return False
        return True

    def applies_to_project(self, project_id: UUID) -> bool:
        return self.project_id is None or self.project_id == project_id


class IncentiveEarning(Base, TimestampMixin):
    """Immutable ledger row: one per (approved time entry x matching assignment)."""

    __tablename__ = "incentive_earning"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    time_entry_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("time_entry.id", ondelete="CASCADE"),
        nullable=False,
    )
    leader_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("app_user.id"),
        nullable=False,
    )
    fractional_incentive_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("fractional_incentive.id", ondelete="SET NULL"),
        nullable=True,
    )
    incentive_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    incentive_amount: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "time_entry_id",
            "fractional_incentive_id",
            name="incentive_earning_entry_assignment_unique",
        ),
    )

    # Relationships
    time_entry: Mapped[TimeEntry] = relationship(
        back_populates="incentive_earnings",
        lazy="selectin",
    )
    leader: Mapped[User] = relationship(lazy="selectin")
    fractional_incentive: Mapped[FractionalIncentive | None] = relationship(lazy="selectin")
