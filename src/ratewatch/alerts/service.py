"""Rate alert management: create, list and delete a user's alerts."""

import logging
from uuid import UUID

from ratewatch.alerts.store import AlertStore
from ratewatch.errors import AlertNotFoundError, InvalidInputError
from ratewatch.models import CreateRateAlert, RateAlert
from ratewatch.rates.service import RateService

logger = logging.getLogger(__name__)


class RateAlertService:
    """User-facing alert operations backed by an AlertStore."""

    def __init__(self, store: AlertStore, rate_service: RateService):
        self.store = store
        self.rate_service = rate_service

    async def create_alert(self, user_id: str, payload: CreateRateAlert) -> RateAlert:
        """
        Create an active alert for ``user_id``.

        Raises:
            InvalidInputError: Identical currencies or unsupported currency
        """
        from_currency = self.rate_service.normalize(payload.from_currency, "from_currency")
        to_currency = self.rate_service.normalize(payload.to_currency, "to_currency")

        if from_currency == to_currency:
            raise InvalidInputError("from_currency and to_currency must be different")

        await self.rate_service.validate_pair(from_currency, to_currency)

        alert = RateAlert(
            user_id=user_id,
            from_currency=from_currency,
            to_currency=to_currency,
            target_rate=payload.target_rate,
            condition=payload.condition,
            recurring=payload.recurring,
            is_active=True,
            triggered_at=None,
        )
        saved = await self.store.save(alert)
        logger.info(f"Created rate alert {saved.id} for user {user_id}")
        return saved

    async def get_user_alerts(self, user_id: str) -> list[RateAlert]:
        return await self.store.find_by_user(user_id)

    async def delete_alert(self, user_id: str, alert_id: UUID) -> None:
        alert = await self.store.get(alert_id)
        if alert is None or alert.user_id != user_id:
            raise AlertNotFoundError("Rate alert not found", {"alert_id": str(alert_id)})

        await self.store.delete(alert.id)
        logger.info(f"Deleted rate alert {alert_id} for user {user_id}")
