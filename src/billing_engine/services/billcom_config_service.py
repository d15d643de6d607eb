"""Bill.com credentials and client-to-customer mappings."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from billing_engine.billcom import (
    BillComClient,
    BillComCredentials,
    BillComEnvironment,
    CredentialCipher,
    SessionCacheRegistry,
)
from billing_engine.billcom.client import DEFAULT_TIMEOUT_SECONDS
from billing_engine.exceptions import NotFoundError, ValidationError
from billing_engine.models import BillComConfig, BillComCustomerMapping, Client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigStatus:
    """Configuration state without any secret material."""

    configured: bool
    environment: str | None = None
    session_valid: bool = False
    last_updated: datetime | None = None
    message: str | None = None


class BillComConfigService:
    """Service for Bill.com configuration.

    Credentials are Fernet-encrypted before they reach the database and are
    decrypted only to build a client. Saving new credentials deactivates all
    older rows.
    """

    def __init__(self, session: AsyncSession, encryption_key: str | None = None):
        self.session = session
        self.encryption_key = encryption_key

    def _cipher(self) -> CredentialCipher:
        return CredentialCipher(self.encryption_key)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def save_credentials(
        self,
        environment: str,
        dev_key: str,
        username: str,
        password: str,
        organization_id: str,
    ) -> BillComConfig:
        if not all((dev_key, username, password, organization_id)):
            raise ValidationError("All credentials are required")
        if environment not in {e.value for e in BillComEnvironment}:
            raise ValidationError("Environment must be SANDBOX or PRODUCTION", environment=environment)

        cipher = self._cipher()
        await self.session.execute(
            update(BillComConfig)
            .where(BillComConfig.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        config = BillComConfig(
            environment=environment,
            dev_key=cipher.encrypt(dev_key),
            username=cipher.encrypt(username),
            password=cipher.encrypt(password),
            organization_id=cipher.encrypt(organization_id),
            is_active=True,
        )
        self.session.add(config)
        await self.session.flush()
        logger.info("Saved Bill.com credentials for %s as config %s", environment, config.id)
        return config

    async def get_active_config(self) -> BillComConfig | None:
        result = await self.session.execute(
            select(BillComConfig)
            .where(BillComConfig.is_active.is_(True))
            .order_by(BillComConfig.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def load_credentials(self) -> tuple[BillComConfig, BillComCredentials]:
        """Decrypt the active configuration.

        Raises:
            ValidationError: No active configuration or undecryptable values
        """
        config = await self.get_active_config()
        if config is None:
            raise ValidationError(
                "Bill.com configuration not found. "
                "Please set up Bill.com credentials in admin settings."
            )
        cipher = self._cipher()
        credentials = BillComCredentials(
            environment=BillComEnvironment(config.environment),
            dev_key=cipher.decrypt(config.dev_key),
            username=cipher.decrypt(config.username),
            password=cipher.decrypt(config.password),
            organization_id=cipher.decrypt(config.organization_id),
        )
        return config, credentials

    @asynccontextmanager
    async def open_client(
        self,
        sessions: SessionCacheRegistry,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> AsyncIterator[BillComClient]:
        """Build a client for the active configuration and close it afterwards."""
        config, credentials = await self.load_credentials()
        async with BillComClient(
            credentials,
            sessions.for_config(config.id),
            timeout=timeout,
        ) as client:
            yield client

    async def status(self, sessions: SessionCacheRegistry | None = None) -> ConfigStatus:
        config = await self.get_active_config()
        if config is None:
            return ConfigStatus(configured=False, message="Bill.com not configured")

        session_valid = False
        if sessions is not None:
            session_valid = sessions.for_config(config.id).get() is not None
        return ConfigStatus(
            configured=True,
            environment=config.environment,
            session_valid=session_valid,
            last_updated=config.updated_at,
        )

    # ------------------------------------------------------------------
    # Customer mappings
    # ------------------------------------------------------------------

    async def list_mappings(self) -> list[BillComCustomerMapping]:
        result = await self.session.execute(
            select(BillComCustomerMapping).order_by(BillComCustomerMapping.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_mapping(self, client_id: UUID) -> BillComCustomerMapping | None:
        result = await self.session.execute(
            select(BillComCustomerMapping).where(BillComCustomerMapping.client_id == client_id)
        )
        return result.scalar_one_or_none()

    async def save_mapping(
        self,
        client_id: UUID,
        billcom_customer_id: str,
        billcom_customer_name: str | None = None,
    ) -> BillComCustomerMapping:
        """Create or replace the mapping for a client."""
        if not client_id or not billcom_customer_id:
            raise ValidationError("Client ID and Bill.com Customer ID are required")
        if await self.session.get(Client, client_id) is None:
            raise NotFoundError("Client", client_id, "Client not found")

        mapping = await self.get_mapping(client_id)
        if mapping is None:
            mapping = BillComCustomerMapping(
                client_id=client_id,
                billcom_customer_id=billcom_customer_id,
                billcom_customer_name=billcom_customer_name,
            )
            self.session.add(mapping)
        else:
            mapping.billcom_customer_id = billcom_customer_id
            mapping.billcom_customer_name = billcom_customer_name

        await self.session.flush()
        await self.session.refresh(mapping, ["client"])
        return mapping

    async def delete_mapping(self, client_id: UUID) -> None:
        mapping = await self.get_mapping(client_id)
        if mapping is None:
            raise NotFoundError("Customer mapping", client_id, "Customer mapping not found")
        await self.session.delete(mapping)
        await self.session.flush()

    async def unmapped_clients(self) -> list[Client]:
        """Active clients with no Bill.com customer mapping, by name."""
        mapped = select(BillComCustomerMapping.client_id)
        result = await self.session.execute(
            select(Client)
            .where(Client.is_active.is_(True), Client.id.not_in(mapped))
            .order_by(Client.name)
        )
        return list(result.scalars().all())
