"""Health alert bookkeeping."""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from .models import AlertSeverity, AlertType, HealthAlert, utcnow

logger = logging.getLogger(__name__)

AlertKey = Tuple[AlertType, str, str]


class AlertManager:
    """Tracks alerts with one open entry per (type, component, rule).

    A condition that keeps firing refreshes its open alert instead of adding
    a new one. Resolved alerts are kept up to history_size, oldest dropped
    first.
    """

    def __init__(self, history_size: int = 500) -> None:
        self.history_size = history_size
        self._alerts: Dict[str, HealthAlert] = {}
        self._open: Dict[AlertKey, str] = {}

    def raise_alert(
        self,
        type: AlertType,
        severity: AlertSeverity,
        message: str,
        component: str,
        rule: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> HealthAlert:
        """Open an alert, or refresh the open one for the same condition."""
        key = (type, component, rule)
        open_id = self._open.get(key)
        if open_id is not None:
            alert = self._alerts[open_id]
            alert.severity = severity
            alert.message = message
            alert.details = details
            alert.timestamp = utcnow()
            alert.occurrences += 1
            logger.debug(
                "Health alert refreshed",
                extra={"alert_id": alert.id, "occurrences": alert.occurrences},
            )
            return alert

        alert = HealthAlert(
            id=self._new_id(type, component),
            type=type,
            severity=severity,
            message=message,
            component=component,
            rule=rule,
            details=details,
        )
        self._alerts[alert.id] = alert
        self._open[key] = alert.id

        logger.warning(
            "Health alert generated",
            extra={
                "alert_id": alert.id,
                "alert_type": type.value,
                "severity": severity.value,
                "component": component,
                "alert_message": message,
            },
        )
        return alert

    def clear_condition(
        self, type: AlertType, component: str, rule: str
    ) -> Optional[HealthAlert]:
        """Auto-resolve the open alert of a condition that no longer holds."""
        alert_id = self._open.get((type, component, rule))
        if alert_id is None:
            return None
        self._mark_resolved(alert_id, automatic=True)
        return self._alerts.get(alert_id)

    def resolve(self, alert_id: str) -> bool:
        """Resolve an alert by id; False when the id is unknown."""
        if alert_id not in self._alerts:
            return False
        self._mark_resolved(alert_id, automatic=False)
        return True

    def get(self, alert_id: str) -> Optional[HealthAlert]:
        return self._alerts.get(alert_id)

    def active(self) -> List[HealthAlert]:
        """Unresolved alerts, oldest first."""
        return [a for a in self._alerts.values() if not a.resolved]

    def all(self) -> List[HealthAlert]:
        return list(self._alerts.values())

    def clear(self) -> None:
        self._alerts.clear()
        self._open.clear()

    def _new_id(self, type: AlertType, component: str) -> str:
        base = f"{type.value}_{component}_{int(time.time() * 1000)}"
        alert_id = base
        suffix = 1
        while alert_id in self._alerts:
            alert_id = f"{base}_{suffix}"
            suffix += 1
        return alert_id

    def _mark_resolved(self, alert_id: str, automatic: bool) -> None:
        alert = self._alerts[alert_id]
        key = (alert.type, alert.component, alert.rule)
        if self._open.get(key) == alert_id:
            del self._open[key]
        if alert.resolved:
            return

        alert.resolved = True
        alert.resolved_at = utcnow()
        logger.info(
            "Alert resolved",
            extra={"alert_id": alert_id, "automatic": automatic},
        )
        self._prune_history()

    def _prune_history(self) -> None:
        resolved = [a.id for a in self._alerts.values() if a.resolved]
        for alert_id in resolved[: max(0, len(resolved) - self.history_size)]:
            del self._alerts[alert_id]
