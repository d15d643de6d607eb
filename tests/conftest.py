"""Pytest fixtures for billing engine tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date
from decimal import Decimal
from typing import Any

import pytest
from cryptography.fernet import Fernet
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from billing_engine.models import Base, Client, Project, TimeEntry, User
from billing_engine.services import EntryDraft, TimeEntryService

# One shared in-memory SQLite connection per test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create test database engine with a fresh schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def encryption_key() -> str:
    return Fernet.generate_key().decode()


# ============================================================================
# Directory fixtures
# ============================================================================


@pytest.fixture
async def admin(session: AsyncSession) -> User:
    user = User(name="Ada Admin", email="ada@example.com", role="ADMIN", billable_rate=None)
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def consultant(session: AsyncSession) -> User:
    """Consultant paid $75/hr."""
    user = User(
        name="Carl Consultant",
        email="carl@example.com",
        role="EMPLOYEE",
        billable_rate=Decimal("75.00"),
    )
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def leader(session: AsyncSession) -> User:
    user = User(
        name="Lena Leader",
        email="lena@example.com",
        role="EMPLOYEE",
        billable_rate=Decimal("120.00"),
    )
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def acme(session: AsyncSession) -> Client:
    client = Client(name="Acme Corp")
    session.add(client)
    await session.flush()
    return client


@pytest.fixture
async def globex(session: AsyncSession) -> Client:
    client = Client(name="Globex")
    session.add(client)
    await session.flush()
    return client


@pytest.fixture
async def acme_project(session: AsyncSession, acme: Client) -> Project:
    """Acme engagement billed at $150/hr."""
    project = Project(name="Data Platform", client_id=acme.id, billing_rate=Decimal("150.00"))
    session.add(project)
    await session.flush()
    return project


@pytest.fixture
async def globex_project(session: AsyncSession, globex: Client) -> Project:
    project = Project(name="Migration", client_id=globex.id, billing_rate=Decimal("200.00"))
    session.add(project)
    await session.flush()
    return project


ApproveFn = Callable[..., Awaitable[TimeEntry]]


@pytest.fixture
def approve_hours(session: AsyncSession, admin: User) -> ApproveFn:
    """Create one pre-approved entry with rates frozen and earnings recorded."""

    async def _approve(
        user: User,
        project: Project,
        hours: str | Decimal,
        work_date: date,
        **kwargs: Any,
    ) -> TimeEntry:
        service = TimeEntryService(session, **kwargs)
        [entry] = await service.create_approved_entries(
            user_id=user.id,
            client_id=project.client_id,
            project_id=project.id,
            drafts=[EntryDraft(work_date=work_date, hours=Decimal(hours))],
            reviewer_id=admin.id,
        )
        return entry

    return _approve
