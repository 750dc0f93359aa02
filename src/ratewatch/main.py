"""
RateWatch Host Process

Wires one rate cache, provider, validator, rate service and alert engine,
then acts as the external scheduler that calls the alert sweep.

Modes:
  --once      Run a single sweep and exit.
  (default)   Sweep every ALERT_CHECK_INTERVAL_SECONDS until interrupted.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ratewatch import __version__
from ratewatch.alerts import (
    AlertEngine,
    AlertStore,
    AuditSink,
    NotificationSink,
    PostgresAlertStore,
    PostgresAuditSink,
    PostgresNotificationSink,
    RateAlertService,
)
from ratewatch.config import Settings, get_settings
from ratewatch.currencies import SupportedCurrencyValidator
from ratewatch.database import check_connection, close_pool
from ratewatch.providers import ExchangeRateHostClient
from ratewatch.rates import RateCache, RateService

logger = logging.getLogger(__name__)


@dataclass
class Application:
    """Process-wide component graph."""
    settings: Settings
    cache: RateCache
    rate_service: RateService
    alert_service: RateAlertService
    engine: AlertEngine


def build_application(
    settings: Settings | None = None,
    store: AlertStore | None = None,
    notifications: NotificationSink | None = None,
    audit: AuditSink | None = None,
) -> Application:
    """
    Construct the component graph with a single shared RateCache.

    Collaborators default to the PostgreSQL-backed implementations.
    """
    settings = settings or get_settings()

    cache = RateCache(
        ttl_seconds=settings.exchange_rates_cache_ttl_seconds,
        max_size=settings.exchange_rates_cache_max_size,
    )
    rate_service = RateService(
        cache=cache,
        provider=ExchangeRateHostClient(settings),
        validator=SupportedCurrencyValidator(settings.supported_currency_codes),
    )
    store = store or PostgresAlertStore()
    engine = AlertEngine(
        store=store,
        rate_service=rate_service,
        notifications=notifications or PostgresNotificationSink(),
        audit=audit or PostgresAuditSink(),
    )

    return Application(
        settings=settings,
        cache=cache,
        rate_service=rate_service,
        alert_service=RateAlertService(store, rate_service),
        engine=engine,
    )


async def run_sweep(app: Application) -> dict[str, Any]:
    """Run one sweep, logging instead of raising on failure."""
    try:
        result = await app.engine.check_and_trigger_alerts()
    except Exception as e:
        logger.error(f"❌ Alert sweep failed: {e}")
        return {"success": False, "error": str(e)}

    return {"success": True, **result.model_dump()}


async def serve(app: Application) -> None:
    """Run sweeps on a fixed interval until cancelled."""
    settings = app.settings

    if await check_connection():
        logger.info("✅ Database connection pool initialized")
    else:
        logger.warning("⚠️ Database not available, sweeps will fail until it is")

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_sweep,
        IntervalTrigger(seconds=settings.alert_check_interval_seconds),
        args=[app],
        id="rate_alert_sweep",
        name="Rate Alert Sweep",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"⏰ Scheduler started: alert sweep every "
        f"{settings.alert_check_interval_seconds}s"
    )

    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("⏰ Scheduler stopped")
        await close_pool()


async def run_once(app: Application) -> dict[str, Any]:
    try:
        return await run_sweep(app)
    finally:
        await close_pool()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the host process."""
    parser = argparse.ArgumentParser(description="RateWatch rate alert host")
    parser.add_argument("--once", action="store_true", help="Run one sweep and exit")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    logger.info(f"🚀 Starting RateWatch v.{__version__}")

    app = build_application(settings)

    if args.once:
        result = asyncio.run(run_once(app))
        if not result["success"]:
            sys.exit(1)
        return

    try:
        asyncio.run(serve(app))
    except KeyboardInterrupt:
        logger.info("🛑 Shutting down RateWatch")


if __name__ == "__main__":
    main()
