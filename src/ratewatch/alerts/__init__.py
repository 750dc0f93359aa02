"""
Rate Alerts Module

AlertEngine sweeps active alerts; RateAlertService manages them per user.
"""

from ratewatch.alerts.engine import AlertEngine, should_trigger
from ratewatch.alerts.service import RateAlertService
from ratewatch.alerts.sinks import (
    AuditSink,
    LoggingAuditSink,
    LoggingNotificationSink,
    NotificationSink,
    PostgresAuditSink,
    PostgresNotificationSink,
)
from ratewatch.alerts.store import AlertStore, InMemoryAlertStore, PostgresAlertStore

__all__ = [
    "AlertEngine",
    "should_trigger",
    "RateAlertService",
    "AlertStore",
    "InMemoryAlertStore",
    "PostgresAlertStore",
    "NotificationSink",
    "AuditSink",
    "LoggingNotificationSink",
    "LoggingAuditSink",
    "PostgresNotificationSink",
    "PostgresAuditSink",
]
