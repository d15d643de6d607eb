"""User, client and project models supplied by the CRUD layer."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from billing_engine.models.invoice import BillComCustomerMapping
    from billing_engine.models.time_entry import TimeEntry


class User(Base, TimestampMixin):
    """Firm employee. ``billable_rate`` is what the firm pays per hour."""

    __tablename__ = "app_user"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="EMPLOYEE")
    billable_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    __table_args__ = (
        CheckConstraint("role IN ('EMPLOYEE', 'ADMIN')", name="app_user_role_check"),
    )

    # Relationships
    time_entries: Mapped[list[TimeEntry]] = relationship(
        back_populates="user",
        foreign_keys="TimeEntry.user_id",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"


class Client(Base, TimestampMixin):
    """Billed customer of the firm."""

    __tablename__ = "client"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    projects: Mapped[list[Project]] = relationship(back_populates="client")
    billcom_mapping: Mapped[BillComCustomerMapping | None] = relationship(
        back_populates="client",
        uselist=False,
    )


class Project(Base, TimestampMixin):
    """Client engagement. ``billing_rate`` is what the client pays per hour."""

    __tablename__ = "project"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    client_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("client.id", ondelete="CASCADE"),
        nullable=False,
    )
    billing_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("client_id", "name", name="project_client_name_unique"),
    )

    # Relationships
    client: Mapped[Client] = relationship(back_populates="projects")
