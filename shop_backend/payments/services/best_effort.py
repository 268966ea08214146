# payments/services/best_effort.py

"""
BEST-EFFORT SIDE EFFECTS

Bank mirror, notifications and audit entries run AFTER the payment's
financial unit is committed. Each one:
- runs in its own savepoint (a failure rolls back only that step),
- is logged with the traceback when it fails,
- comes back as a SideEffectOutcome instead of an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from django.db import transaction

from payments.services.exceptions import PaymentError

logger = logging.getLogger("payments")


@dataclass(frozen=True)
class SideEffectOutcome:
    step: str
    ok: bool
    value: Any = None
    error: Exception | None = None

    @property
    def error_code(self) -> str | None:
        if self.error is None:
            return None
        if isinstance(self.error, PaymentError):
            return self.error.code
        return f"{self.step}_failed"

    @property
    def error_message(self) -> str:
        if self.error is None:
            return ""
        return str(self.error) or self.error.__class__.__name__


def run_best_effort(step: str, fn, *args, **kwargs) -> SideEffectOutcome:
    try:
        with transaction.atomic():
            value = fn(*args, **kwargs)
    except Exception as exc:
        logger.exception(
            "Best-effort step failed",
            extra={"step": step, "error_type": exc.__class__.__name__},
        )
        return SideEffectOutcome(step=step, ok=False, error=exc)

    return SideEffectOutcome(step=step, ok=True, value=value)
