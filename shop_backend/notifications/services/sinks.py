# notifications/services/sinks.py

"""
NOTIFICATION SINKS

Where "a payment was recorded" goes after the money is committed.

- The sink is chosen ONCE from settings.LEDGER["NOTIFICATION_SINK"]
  (dotted path) by get_notification_sink(); call sites never check for
  optional services at runtime.
- Message text comes from a TemplateProvider. StaticTemplateProvider is the
  built-in table; a custom provider can be passed to a sink.
- publish() failures raise NotificationFailed; the payment orchestrator runs
  publishing through the best-effort helper.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

from notifications.models import Notification
from payments.services.exceptions import NotificationFailed

logger = logging.getLogger("ledger.notifications")

DEFAULT_SINK = "notifications.services.sinks.DatabaseNotificationSink"

EVENT_PAYMENT_RECEIVED = "payment_received"
EVENT_PAYMENT_MADE = "payment_made"


class _SafeDict(dict):
    def __missing__(self, key):
        return "{" + key + "}"


# ======================================================
# TEMPLATE PROVIDERS
# ======================================================


class TemplateProvider:
    def render(self, event: str, context: dict) -> tuple[str, str]:
        raise NotImplementedError


class StaticTemplateProvider(TemplateProvider):
    TEMPLATES = {
        EVENT_PAYMENT_RECEIVED: (
            "Payment received",
            "{payment_number}: received {amount} from {party_name}.",
        ),
        EVENT_PAYMENT_MADE: (
            "Payment made",
            "{payment_number}: paid {amount} to {party_name}.",
        ),
    }

    FALLBACK = ("{event}", "")

    def render(self, event: str, context: dict) -> tuple[str, str]:
        title, body = self.TEMPLATES.get(event, self.FALLBACK)
        ctx = _SafeDict(context or {}, event=event)
        return title.format_map(ctx), body.format_map(ctx)


# ======================================================
# SINKS
# ======================================================


class NotificationSink:
    def __init__(self, templates: TemplateProvider | None = None):
        self.templates = templates or StaticTemplateProvider()

    def publish(self, event: str, *, party=None, context: dict | None = None):
        raise NotImplementedError


class DatabaseNotificationSink(NotificationSink):
    def publish(self, event: str, *, party=None, context: dict | None = None) -> Notification:
        context = dict(context or {})
        title, message = self.templates.render(event, context)

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    event=event,
                    title=title,
                    message=message,
                    payload=context,
                    party=party,
                )
        except Exception as exc:
            raise NotificationFailed(
                f"Notification could not be stored: {exc}",
                event=event,
            ) from exc

        logger.info(
            "Notification published",
            extra={"event": event, "notification_id": str(notification.id)},
        )
        return notification


class LogNotificationSink(NotificationSink):
    """Fallback sink: nothing is stored, the event is only logged."""

    def publish(self, event: str, *, party=None, context: dict | None = None) -> None:
        title, message = self.templates.render(event, dict(context or {}))
        logger.info(
            "%s: %s",
            title,
            message,
            extra={
                "event": event,
                "party_id": str(party.pk) if party is not None else None,
            },
        )
        return None


@lru_cache(maxsize=None)
def _sink_class(path: str):
    return import_string(path)


def get_notification_sink() -> NotificationSink:
    path = (getattr(settings, "LEDGER", {}) or {}).get("NOTIFICATION_SINK") or DEFAULT_SINK
    return _sink_class(path)()
