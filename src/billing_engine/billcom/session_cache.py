"""Cached Bill.com session with expiry and a safety buffer."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from uuid import UUID

from billing_engine.billcom.base import BillComSession
from billing_engine.models import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL_MINUTES = 35
DEFAULT_BUFFER_MINUTES = 5


class SessionCache:
    """Holds one session per configured environment.

    A session is usable while more than ``buffer`` remains before expiry.
    Concurrent refreshes may race; the last login simply wins.
    """

    def __init__(
        self,
        ttl_minutes: int = DEFAULT_TTL_MINUTES,
        buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl = timedelta(minutes=ttl_minutes)
        self.buffer = timedelta(minutes=buffer_minutes)
        self.clock = clock
        self._session: BillComSession | None = None
        self._expires_at: datetime | None = None

    @property
    def expires_at(self) -> datetime | None:
        return self._expires_at

    def get(self) -> BillComSession | None:
        """Return the cached session if it is still outside the buffer."""
        if self._session is None or self._expires_at is None:
            return None
        if self._expires_at - self.clock() <= self.buffer:
            return None
        return self._session

    def store(self, session: BillComSession) -> BillComSession:
        self._session = session
        self._expires_at = self.clock() + self.ttl
        return session

    async def refresh(self, login: Callable[[], Awaitable[BillComSession]]) -> BillComSession:
        """Log in again and replace the cached session."""
        session = await login()
        self.store(session)
        logger.info("Bill.com session refreshed: %s", session.short_id)
        return session

    async def get_or_refresh(
        self, login: Callable[[], Awaitable[BillComSession]]
    ) -> BillComSession:
        session = self.get()
        if session is not None:
            logger.debug("Using cached Bill.com session %s", session.short_id)
            return session
        return await self.refresh(login)

    def invalidate(self) -> None:
        self._session = None
        self._expires_at = None


class SessionCacheRegistry:
    """Process-wide caches keyed by BillComConfig id."""

    def __init__(
        self,
        ttl_minutes: int = DEFAULT_TTL_MINUTES,
        buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl_minutes = ttl_minutes
        self.buffer_minutes = buffer_minutes
        self.clock = clock
        self._caches: dict[UUID, SessionCache] = {}

    def for_config(self, config_id: UUID) -> SessionCache:
        cache = self._caches.get(config_id)
        if cache is None:
            cache = SessionCache(self.ttl_minutes, self.buffer_minutes, self.clock)
            self._caches[config_id] = cache
        return cache

    def clear(self) -> None:
        """Drop every cached session, e.g. after credentials change."""
        self._caches.clear()
