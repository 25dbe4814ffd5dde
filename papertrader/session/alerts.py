"""Bounded alert log — newest first, oldest entries drop off at capacity."""

import itertools
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Optional

from papertrader.session.models import HealthAlert

logger = logging.getLogger("papertrader.alerts")

ALERT_CAPACITY = 20
ALERT_TYPES = ("info", "warning", "error")

_LOG_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class AlertLog:
    """Fixed-capacity ring buffer of ``HealthAlert`` entries.

    Args:
        capacity: Maximum number of alerts retained (default 20).
    """

    def __init__(self, capacity: int = ALERT_CAPACITY) -> None:
        self._alerts: deque[HealthAlert] = deque(maxlen=capacity)
        self._ids = itertools.count(1)

    def add(
        self,
        alert_type: str,
        message: str,
        utc_now: Optional[datetime] = None,
    ) -> HealthAlert:
        """Insert a new alert at the front and return it."""
        if alert_type not in ALERT_TYPES:
            raise ValueError(
                f"alert_type must be one of {', '.join(ALERT_TYPES)}, "
                f"got {alert_type!r}"
            )
        if utc_now is None:
            utc_now = datetime.now(timezone.utc)

        alert = HealthAlert(
            id=f"alert_{next(self._ids)}",
            type=alert_type,
            message=message,
            timestamp=utc_now.isoformat(),
        )
        self._alerts.appendleft(alert)
        logger.log(_LOG_LEVELS[alert_type], "%s", message)
        return alert

    def resolve(self, alert_id: str) -> bool:
        """Mark an alert resolved.  Returns ``False`` if it has dropped off."""
        for alert in self._alerts:
            if alert.id == alert_id:
                alert.resolved = True
                return True
        return False

    def clear(self) -> None:
        self._alerts.clear()

    def all(self) -> list[HealthAlert]:
        """Every retained alert, newest first."""
        return list(self._alerts)

    def unresolved(self, limit: Optional[int] = None) -> list[HealthAlert]:
        pending = [a for a in self._alerts if not a.resolved]
        return pending if limit is None else pending[:limit]

    def load(self, alerts: list[dict]) -> None:
        """Replace the log with *alerts* (newest first), e.g. from a snapshot."""
        self._alerts.clear()
        for data in alerts[: self._alerts.maxlen]:
            self._alerts.append(HealthAlert(**data))
        # Keep new ids clear of restored ones.
        highest = 0
        for alert in self._alerts:
            suffix = alert.id.rsplit("_", 1)[-1]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        self._ids = itertools.count(highest + 1)

    def __len__(self) -> int:
        return len(self._alerts)
