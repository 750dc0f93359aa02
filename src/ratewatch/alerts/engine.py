"""
Rate Alert Engine - one evaluation sweep over all active alerts

Sweep stages:
├─ Reactivate recurring alerts whose 24h cooldown has elapsed
├─ Load the active set (including just-reactivated alerts)
├─ Resolve one rate per distinct (from, to) pair
├─ Evaluate each alert against its pair's rate
└─ Trigger: notify -> deactivate + persist -> audit

The engine has no timer of its own; an external scheduler calls
check_and_trigger_alerts().
"""

import asyncio
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable

from ratewatch.alerts.sinks import AuditSink, NotificationSink
from ratewatch.alerts.store import AlertStore
from ratewatch.models import (
    AlertCheckResult,
    AlertCondition,
    AuditAction,
    Notification,
    NotificationType,
    RateAlert,
    utc_now,
)
from ratewatch.rates.service import RateService

logger = logging.getLogger(__name__)

REACTIVATION_COOLDOWN = timedelta(hours=24)

Pair = tuple[str, str]


def should_trigger(
    condition: AlertCondition,
    current_rate: Decimal,
    target_rate: Decimal,
) -> bool:
    """Both directions trigger on equality."""
    if condition == AlertCondition.ABOVE:
        return current_rate >= target_rate
    return current_rate <= target_rate


class AlertEngine:
    """
    Periodic batch evaluator for rate alerts.

    Failures are isolated per pair and per alert: a provider error skips only
    the alerts on that pair, and notification/audit errors are logged without
    affecting the alert's state transition. Alert store errors propagate.

    Overlapping calls to check_and_trigger_alerts() are serialized.
    """

    def __init__(
        self,
        store: AlertStore,
        rate_service: RateService,
        notifications: NotificationSink,
        audit: AuditSink,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.rate_service = rate_service
        self.notifications = notifications
        self.audit = audit
        self._clock = clock
        self._sweep_lock = asyncio.Lock()

    async def check_and_trigger_alerts(self) -> AlertCheckResult:
        """
        Run one complete sweep.

        Returns:
            AlertCheckResult with the number of active alerts checked,
            alerts triggered and alerts reactivated
        """
        if self._sweep_lock.locked():
            logger.warning("Alert sweep already running, waiting for it to finish")

        async with self._sweep_lock:
            now = self._clock()
            logger.info(f"Starting rate alert sweep at {now.isoformat()}")

            reactivated = await self._reactivate_recurring_alerts(now)

            active_alerts = await self.store.find_active()
            if not active_alerts:
                logger.info(f"No active alerts (reactivated={reactivated})")
                return AlertCheckResult(checked=0, triggered=0, reactivated=reactivated)

            rate_by_pair = await self._resolve_rates(active_alerts)

            triggered = 0
            for alert in active_alerts:
                current_rate = rate_by_pair.get(alert.pair)
                if current_rate is None:
                    continue

                if not should_trigger(alert.condition, current_rate, alert.target_rate):
                    continue

                await self._trigger_alert(alert, current_rate, now)
                triggered += 1

            result = AlertCheckResult(
                checked=len(active_alerts),
                triggered=triggered,
                reactivated=reactivated,
            )
            logger.info(
                f"✅ Alert sweep complete: checked={result.checked}, "
                f"triggered={result.triggered}, reactivated={result.reactivated}"
            )
            return result

    async def _reactivate_recurring_alerts(self, now: datetime) -> int:
        cutoff = now - REACTIVATION_COOLDOWN

        due = await self.store.find_recurring_inactive_before(cutoff)
        if not due:
            return 0

        await self.store.set_active([alert.id for alert in due], True)
        logger.info(f"Reactivated {len(due)} recurring alerts")
        return len(due)

    async def _resolve_rates(self, alerts: list[RateAlert]) -> dict[Pair, Decimal]:
        """Fetch one rate per distinct pair; failed pairs are left out."""
        pairs = list(dict.fromkeys(alert.pair for alert in alerts))

        resolved = await asyncio.gather(*(self._resolve_pair(pair) for pair in pairs))

        return {pair: rate for pair, rate in resolved if rate is not None}

    async def _resolve_pair(self, pair: Pair) -> tuple[Pair, Decimal | None]:
        from_currency, to_currency = pair
        try:
            result = await self.rate_service.get_rate(from_currency, to_currency)
        except Exception as e:
            logger.warning(f"Failed to fetch rate for {from_currency}/{to_currency}: {e}")
            return pair, None
        return pair, result.rate

    async def _trigger_alert(
        self,
        alert: RateAlert,
        current_rate: Decimal,
        now: datetime,
    ) -> None:
        details = {
            "from_currency": alert.from_currency,
            "to_currency": alert.to_currency,
            "condition": alert.condition.value,
            "target_rate": str(alert.target_rate),
            "current_rate": str(current_rate),
            "recurring": alert.recurring,
        }

        notification = Notification(
            user_id=alert.user_id,
            type=NotificationType.SYSTEM,
            title="Rate Alert Triggered",
            message=(
                f"{alert.from_currency}/{alert.to_currency} is now {current_rate}. "
                f"Your {alert.condition.value} {alert.target_rate} alert was triggered."
            ),
            related_id=str(alert.id),
            metadata={"alert_id": str(alert.id), **details},
        )
        try:
            await self.notifications.create(notification)
        except Exception as e:
            logger.error(f"❌ Failed to send notification for alert {alert.id}: {e}")

        alert.is_active = False
        alert.triggered_at = now
        await self.store.save(alert)

        logger.info(
            f"Alert {alert.id} triggered: {alert.from_currency}/{alert.to_currency} "
            f"{current_rate} {alert.condition.value} {alert.target_rate}"
        )

        try:
            await self.audit.log_event(
                AuditAction.RATE_ALERT_TRIGGERED,
                str(alert.id),
                {
                    "user_id": alert.user_id,
                    **details,
                    "triggered_at": now.isoformat(),
                },
            )
        except Exception as e:
            logger.error(f"❌ Failed to write audit event for alert {alert.id}: {e}")
