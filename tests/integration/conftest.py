"""API fixtures: the app bound to the in-memory test database."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass, replace
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from billing_engine.api.app import create_app
from billing_engine.api.dependencies import get_db_session
from billing_engine.config import Settings, get_settings
from billing_engine.models import Client, Project, User


@dataclass
class Directory:
    admin: User
    consultant: User
    leader: User
    acme: Client
    project: Project


@pytest.fixture
async def directory(session_factory) -> Directory:
    """Committed users, one client and one $150/hr project."""
    async with session_factory() as session:
        admin = User(name="Ada Admin", email="ada@example.com", role="ADMIN")
        consultant = User(
            name="Carl Consultant",
            email="carl@example.com",
            role="EMPLOYEE",
            billable_rate=Decimal("75.00"),
        )
        leader = User(
            name="Lena Leader",
            email="lena@example.com",
            role="EMPLOYEE",
            billable_rate=Decimal("120.00"),
        )
        acme = Client(name="Acme Corp")
        session.add_all([admin, consultant, leader, acme])
        await session.flush()
        project = Project(name="Data Platform", client_id=acme.id, billing_rate=Decimal("150.00"))
        session.add(project)
        await session.commit()
    return Directory(admin, consultant, leader, acme, project)


@pytest.fixture
async def client(session_factory, encryption_key) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app with database and settings overridden."""
    app = create_app()
    settings = replace(Settings.from_env(), encryption_key=encryption_key)

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_settings] = lambda: settings

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
