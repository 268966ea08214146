# backend/settings/dev.py
"""
LOCAL DEVELOPMENT SETTINGS

- sqlite by default (DATABASE_URL overrides)
- payment engine logs at DEBUG unless LOG_LEVEL says otherwise
- LEDGER_NOTIFICATION_SINK may point at the log-only sink to keep the
  notifications table empty while experimenting
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LOGGING, TESTING, env

DEBUG = True

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["localhost", "127.0.0.1", "0.0.0.0"])

if not TESTING:
    _level = env("LOG_LEVEL", default="DEBUG").strip().upper()
    LOGGING["loggers"]["payments"]["level"] = _level
    LOGGING["loggers"]["ledger"]["level"] = _level
