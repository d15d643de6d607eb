"""Tests for Bill.com session caching and the credential cipher."""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from billing_engine.billcom import (
    BillComSession,
    CredentialCipher,
    SessionCache,
    SessionCacheRegistry,
)
from billing_engine.exceptions import ValidationError


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 7, 10, 9, 0)

    def __call__(self):
        return self.now

    def advance(self, minutes):
        self.now += timedelta(minutes=minutes)


class CountingLogin:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return BillComSession(session_id=f"session-{self.calls}-0123456789")


class TestSessionCache:
    """Test expiry with the refresh buffer."""

    def test_empty_cache(self):
        assert SessionCache().get() is None

    def test_session_usable_until_buffer(self):
        clock = FakeClock()
        cache = SessionCache(ttl_minutes=35, buffer_minutes=5, clock=clock)
        session = cache.store(BillComSession(session_id="abc-0123456789"))

        assert cache.expires_at == clock.now + timedelta(minutes=35)
        clock.advance(29)
        assert cache.get() is session
        # 5 minutes left is inside the buffer
        clock.advance(1)
        assert cache.get() is None

    async def test_get_or_refresh_logs_in_once(self):
        clock = FakeClock()
        cache = SessionCache(clock=clock)
        login = CountingLogin()

        first = await cache.get_or_refresh(login)
        clock.advance(10)
        second = await cache.get_or_refresh(login)

        assert first is second
        assert login.calls == 1

    async def test_refresh_after_expiry(self):
        clock = FakeClock()
        cache = SessionCache(clock=clock)
        login = CountingLogin()
        await cache.get_or_refresh(login)

        clock.advance(31)
        session = await cache.get_or_refresh(login)

        assert login.calls == 2
        assert session.session_id.startswith("session-2")

    async def test_invalidate(self):
        cache = SessionCache()
        login = CountingLogin()
        await cache.get_or_refresh(login)

        cache.invalidate()

        assert cache.get() is None
        assert cache.expires_at is None
        await cache.get_or_refresh(login)
        assert login.calls == 2

    def test_session_repr_hides_id(self):
        session = BillComSession(session_id="secret-session-id")

        assert "secret-session-id" not in repr(session)
        assert session.short_id == "secret-ses..."


class TestSessionCacheRegistry:
    def test_one_cache_per_config(self):
        registry = SessionCacheRegistry(ttl_minutes=20, buffer_minutes=2)
        config_a, config_b = uuid4(), uuid4()

        cache = registry.for_config(config_a)

        assert registry.for_config(config_a) is cache
        assert registry.for_config(config_b) is not cache
        assert cache.ttl == timedelta(minutes=20)
        assert cache.buffer == timedelta(minutes=2)

    def test_clear(self):
        registry = SessionCacheRegistry()
        config_id = uuid4()
        cache = registry.for_config(config_id)
        cache.store(BillComSession(session_id="abc-0123456789"))

        registry.clear()

        assert registry.for_config(config_id) is not cache
        assert registry.for_config(config_id).get() is None


class TestCredentialCipher:
    def test_round_trip(self, encryption_key):
        cipher = CredentialCipher(encryption_key)

        token = cipher.encrypt("s3cret")

        assert token != "s3cret"
        assert cipher.decrypt(token) == "s3cret"

    def test_missing_key(self):
        with pytest.raises(ValidationError, match="ENCRYPTION_KEY is not configured"):
            CredentialCipher(None)
        with pytest.raises(ValidationError):
            CredentialCipher("")

    def test_invalid_key(self):
        with pytest.raises(ValidationError, match="not a valid Fernet key"):
            CredentialCipher("not-a-key")

    def test_wrong_key_cannot_decrypt(self, encryption_key):
        token = CredentialCipher(encryption_key).encrypt("s3cret")
        other = CredentialCipher(CredentialCipher.generate_key())

        with pytest.raises(ValidationError, match="cannot be decrypted"):
            other.decrypt(token)
