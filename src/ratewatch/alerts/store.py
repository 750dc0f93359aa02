"""
Rate Alert Storage

AlertStore is the persistence port used by the alert engine and the alert
service. Returned alerts are copies; callers write changes back explicitly.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncContextManager, AsyncGenerator, Callable
from uuid import UUID

import asyncpg

from ratewatch.database import get_connection
from ratewatch.errors import AlertStoreError
from ratewatch.models import AlertCondition, RateAlert

logger = logging.getLogger(__name__)


class AlertStore(ABC):
    """Persistence port for RateAlert records."""

    @abstractmethod
    async def find_active(self) -> list[RateAlert]:
        """All alerts with is_active=True."""

    @abstractmethod
    async def find_recurring_inactive_before(self, cutoff: datetime) -> list[RateAlert]:
        """Recurring, inactive alerts with triggered_at <= cutoff."""

    @abstractmethod
    async def set_active(self, alert_ids: Iterable[UUID], is_active: bool) -> int:
        """Batch-update the active flag; returns the number of rows changed."""

    @abstractmethod
    async def save(self, alert: RateAlert) -> RateAlert:
        """Insert or update a single alert."""

    @abstractmethod
    async def get(self, alert_id: UUID) -> RateAlert | None:
        pass

    @abstractmethod
    async def find_by_user(self, user_id: str) -> list[RateAlert]:
        """A user's alerts, newest first."""

    @abstractmethod
    async def delete(self, alert_id: UUID) -> bool:
        pass


class InMemoryAlertStore(AlertStore):
    """Dict-backed store for tests and single-process deployments."""

    def __init__(self, alerts: Iterable[RateAlert] = ()):
        self._alerts: dict[UUID, RateAlert] = {
            alert.id: alert.model_copy() for alert in alerts
        }

    async def find_active(self) -> list[RateAlert]:
        return [a.model_copy() for a in self._alerts.values() if a.is_active]

    async def find_recurring_inactive_before(self, cutoff: datetime) -> list[RateAlert]:
        return [
            a.model_copy()
            for a in self._alerts.values()
            if a.recurring
            and not a.is_active
            and a.triggered_at is not None
            and a.triggered_at <= cutoff
        ]

    async def set_active(self, alert_ids: Iterable[UUID], is_active: bool) -> int:
        updated = 0
        for alert_id in alert_ids:
            alert = self._alerts.get(alert_id)
            if alert is not None:
                alert.is_active = is_active
                updated += 1
        return updated

    async def save(self, alert: RateAlert) -> RateAlert:
        self._alerts[alert.id] = alert.model_copy()
        return alert.model_copy()

    async def get(self, alert_id: UUID) -> RateAlert | None:
        alert = self._alerts.get(alert_id)
        return alert.model_copy() if alert else None

    async def find_by_user(self, user_id: str) -> list[RateAlert]:
        alerts = [a.model_copy() for a in self._alerts.values() if a.user_id == user_id]
        return sorted(alerts, key=lambda a: a.created_at, reverse=True)

    async def delete(self, alert_id: UUID) -> bool:
        return self._alerts.pop(alert_id, None) is not None


_ALERT_COLUMNS = """
    id, user_id, from_currency, to_currency, target_rate, condition,
    is_active, recurring, triggered_at, created_at
"""


class PostgresAlertStore(AlertStore):
    """
    asyncpg-backed store over the rate_alerts table
    (see db/migrations/001_rate_alerts.sql).

    Database failures are raised as AlertStoreError.
    """

    def __init__(
        self,
        connection_factory: Callable[[], AsyncContextManager[asyncpg.Connection]] = get_connection,
    ):
        self._connection_factory = connection_factory

    @asynccontextmanager
    async def _connection(self) -> AsyncGenerator[asyncpg.Connection, None]:
        try:
            async with self._connection_factory() as conn:
                yield conn
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Alert store operation failed: {e}")
            raise AlertStoreError(f"Alert store operation failed: {e}") from e

    @staticmethod
    def _to_alert(row: Any) -> RateAlert:
        return RateAlert(
            id=row["id"],
            user_id=str(row["user_id"]),
            from_currency=row["from_currency"],
            to_currency=row["to_currency"],
            target_rate=row["target_rate"],
            condition=AlertCondition(row["condition"]),
            is_active=row["is_active"],
            recurring=row["recurring"],
            triggered_at=row["triggered_at"],
            created_at=row["created_at"],
        )

    async def find_active(self) -> list[RateAlert]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"SELECT {_ALERT_COLUMNS} FROM rate_alerts WHERE is_active = TRUE"
            )
        return [self._to_alert(row) for row in rows]

    async def find_recurring_inactive_before(self, cutoff: datetime) -> list[RateAlert]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_ALERT_COLUMNS} FROM rate_alerts
                WHERE recurring = TRUE
                  AND is_active = FALSE
                  AND triggered_at <= $1
                """,
                cutoff
            )
        return [self._to_alert(row) for row in rows]

    async def set_active(self, alert_ids: Iterable[UUID], is_active: bool) -> int:
        ids = list(alert_ids)
        if not ids:
            return 0
        async with self._connection() as conn:
            status = await conn.execute(
                "UPDATE rate_alerts SET is_active = $1 WHERE id = ANY($2::uuid[])",
                is_active,
                ids
            )
        # asyncpg returns the command tag, e.g. "UPDATE 3"
        return int(status.split()[-1])

    async def save(self, alert: RateAlert) -> RateAlert:
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO rate_alerts (
                    id, user_id, from_currency, to_currency, target_rate,
                    condition, is_active, recurring, triggered_at, created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                ON CONFLICT (id) DO UPDATE SET
                    target_rate = EXCLUDED.target_rate,
                    condition = EXCLUDED.condition,
                    is_active = EXCLUDED.is_active,
                    recurring = EXCLUDED.recurring,
                    triggered_at = EXCLUDED.triggered_at
                """,
                alert.id,
                alert.user_id,
                alert.from_currency,
                alert.to_currency,
                alert.target_rate,
                alert.condition.value,
                alert.is_active,
                alert.recurring,
                alert.triggered_at,
                alert.created_at
            )
        return alert.model_copy()

    async def get(self, alert_id: UUID) -> RateAlert | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_ALERT_COLUMNS} FROM rate_alerts WHERE id = $1",
                alert_id
            )
        return self._to_alert(row) if row else None

    async def find_by_user(self, user_id: str) -> list[RateAlert]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_ALERT_COLUMNS} FROM rate_alerts
                WHERE user_id = $1
                ORDER BY created_at DESC
                """,
                user_id
            )
        return [self._to_alert(row) for row in rows]

    async def delete(self, alert_id: UUID) -> bool:
        async with self._connection() as conn:
            status = await conn.execute(
                "DELETE FROM rate_alerts WHERE id = $1",
                alert_id
            )
        return status.endswith(" 1")
