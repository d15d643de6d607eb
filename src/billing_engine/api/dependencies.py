"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from billing_engine.billcom import SessionCacheRegistry
from billing_engine.calculators import IncentivePrecedence
from billing_engine.config import Settings, get_settings
from billing_engine.database import init_db
from billing_engine.exceptions import AuthorizationError
from billing_engine.services import BillComConfigService, NotificationService
from billing_engine.services.submission_service import ProviderFactory

ROLES = frozenset({"EMPLOYEE", "ADMIN"})


@dataclass(frozen=True)
class Identity:
    """Caller identity as asserted by the upstream gateway."""

    user_id: UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency. Routes commit; errors roll back."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_identity(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Identity:
    """Extract the caller from the X-User-ID / X-User-Role headers."""
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID and X-User-Role headers are required",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-ID format",
        )
    role = x_user_role.upper()
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-Role",
        )
    return Identity(user_id=user_id, role=role)


async def require_admin(identity: Annotated[Identity, Depends(get_identity)]) -> Identity:
    if not identity.is_admin:
        raise AuthorizationError("Admin access required")
    return identity


def get_incentive_precedence(
    settings: Annotated[Settings, Depends(get_settings)],
) -> IncentivePrecedence:
    return settings.precedence


def get_notifications(request: Request) -> NotificationService:
    return NotificationService(getattr(request.app.state, "notifier", None))


def get_session_registry(request: Request) -> SessionCacheRegistry:
    registry = getattr(request.app.state, "billcom_sessions", None)
    if registry is None:
        settings = get_settings()
        registry = SessionCacheRegistry(
            settings.billcom_session_ttl_minutes,
            settings.billcom_session_buffer_minutes,
        )
        request.app.state.billcom_sessions = registry
    return registry


def get_billcom_config_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> BillComConfigService:
    return BillComConfigService(db, settings.encryption_key)


def get_provider_factory(
    config_service: Annotated[BillComConfigService, Depends(get_billcom_config_service)],
    sessions: Annotated[SessionCacheRegistry, Depends(get_session_registry)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ProviderFactory:
    """Opens a Bill.com client for the active configuration on demand."""
    return lambda: config_service.open_client(sessions, settings.billcom_timeout_seconds)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentUser = Annotated[Identity, Depends(get_identity)]
AdminUser = Annotated[Identity, Depends(require_admin)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
Precedence = Annotated[IncentivePrecedence, Depends(get_incentive_precedence)]
Notifications = Annotated[NotificationService, Depends(get_notifications)]
SessionRegistry = Annotated[SessionCacheRegistry, Depends(get_session_registry)]
BillComConfigDep = Annotated[BillComConfigService, Depends(get_billcom_config_service)]
ProviderFactoryDep = Annotated[ProviderFactory, Depends(get_provider_factory)]
