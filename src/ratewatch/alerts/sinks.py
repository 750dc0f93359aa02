"""
Notification and Audit Sinks

Best-effort side channels used when an alert triggers. Callers treat every
sink failure as non-fatal: it is logged and never rolls back alert state.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Callable
from uuid import uuid4

import asyncpg

from ratewatch.database import get_connection
from ratewatch.models import AuditAction, Notification

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Port for user notifications."""

    @abstractmethod
    async def create(self, notification: Notification) -> None:
        pass


class AuditSink(ABC):
    """Port for the audit trail."""

    @abstractmethod
    async def log_event(
        self,
        action: AuditAction,
        entity_id: str,
        metadata: dict[str, Any],
    ) -> None:
        pass


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to the application log."""

    async def create(self, notification: Notification) -> None:
        logger.info(
            f"🔔 Notification for user {notification.user_id}: "
            f"{notification.title} - {notification.message}"
        )


class LoggingAuditSink(AuditSink):
    """Writes audit events to the application log."""

    async def log_event(
        self,
        action: AuditAction,
        entity_id: str,
        metadata: dict[str, Any],
    ) -> None:
        logger.info(f"Audit {action.value} entity={entity_id} metadata={metadata}")


class PostgresNotificationSink(NotificationSink):
    """Inserts notifications into the notifications table."""

    def __init__(
        self,
        connection_factory: Callable[[], AsyncContextManager[asyncpg.Connection]] = get_connection,
    ):
        self._connection_factory = connection_factory

    async def create(self, notification: Notification) -> None:
        async with self._connection_factory() as conn:
            await conn.execute(
                """
                INSERT INTO notifications (
                    id, user_id, type, title, message, related_id, metadata
                ) VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb)
                """,
                uuid4(),
                notification.user_id,
                notification.type.value,
                notification.title,
                notification.message,
                notification.related_id,
                json.dumps(notification.metadata, default=str)
            )


class PostgresAuditSink(AuditSink):
    """Inserts system events into the audit_logs table."""

    def __init__(
        self,
        connection_factory: Callable[[], AsyncContextManager[asyncpg.Connection]] = get_connection,
    ):
        self._connection_factory = connection_factory

    async def log_event(
        self,
        action: AuditAction,
        entity_id: str,
        metadata: dict[str, Any],
    ) -> None:
        async with self._connection_factory() as conn:
            await conn.execute(
                """
                INSERT INTO audit_logs (id, action, entity_id, metadata)
                VALUES ($1, $2, $3, $4::jsonb)
                """,
                uuid4(),
                action.value,
                entity_id,
                json.dumps(metadata, default=str)
            )
