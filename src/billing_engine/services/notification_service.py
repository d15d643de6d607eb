"""Fire-and-forget notifications for invoice workflow events."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol, runtime_checkable
from uuid import UUID

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    INVOICE_READY = "INVOICE_READY"
    INVOICE_FAILED = "INVOICE_FAILED"
    INVOICE_SUCCESS = "INVOICE_SUCCESS"


@runtime_checkable
class Notifier(Protocol):
    """Delivery channel for user notifications.

    Delivery mechanics (email, SMS) live outside this service; any object
    with this coroutine can be plugged in.
    """

    async def notify(self, user_id: UUID, type: str, subject: str, message: str) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes each notification to the log."""

    async def notify(self, user_id: UUID, type: str, subject: str, message: str) -> None:
        logger.info("Notification %s to user %s: %s - %s", type, user_id, subject, message)


class NotificationService:
    """Sends workflow notifications without ever failing the caller.

    Every send is wrapped: a notifier error is logged and swallowed so the
    primary operation (generation, submission) is never rolled back by it.
    """

    def __init__(self, notifier: Notifier | None = None):
        self.notifier = notifier or LoggingNotifier()

    async def _send(self, user_id: UUID, type: NotificationType, subject: str, message: str) -> bool:
        try:
            await self.notifier.notify(user_id, type.value, subject, message)
            return True
        except Exception:
            logger.exception("Failed to send %s notification to user %s", type.value, user_id)
            return False

    async def invoice_ready(self, user_id: UUID, invoice_count: int, batch_id: UUID) -> bool:
        return await self._send(
            user_id,
            NotificationType.INVOICE_READY,
            "Invoice Batch Ready for Review",
            f"{invoice_count} invoice(s) in batch {batch_id} are ready for review.",
        )

    async def invoice_failed(self, user_id: UUID, client_name: str, reason: str) -> bool:
        return await self._send(
            user_id,
            NotificationType.INVOICE_FAILED,
            "Invoice Submission Failed",
            f"Invoice for {client_name} failed to submit: {reason}",
        )

    async def invoice_success(self, user_id: UUID, success_count: int) -> bool:
        return await self._send(
            user_id,
            NotificationType.INVOICE_SUCCESS,
            "Invoices Successfully Submitted",
            f"{success_count} invoice(s) were submitted to Bill.com.",
        )
