"""Reservation funnel tracking."""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Optional

from loftwatch.core.exceptions import ValidationError
from loftwatch.models.stats import ReservationMetrics

logger = logging.getLogger(__name__)

WINDOW_HOURS = {"1h": 1, "24h": 24, "7d": 24 * 7, "30d": 24 * 30}

# Event names counted by the funnel
RESERVATION_CREATED = "reservation_created"
RESERVATION_CONFIRMED = "reservation_confirmed"
RESERVATION_CANCELLED = "reservation_cancelled"
PAYMENT_INITIATED = "payment_initiated"
PAYMENT_COMPLETED = "payment_completed"
PAYMENT_FAILED = "payment_failed"
RESERVATION_ERROR = "reservation_error"
SECURITY_INCIDENT = "security_incident"
USER_BEHAVIOR = "user_behavior"


@dataclass
class ReservationEvent:
    """A tracked reservation event."""

    name: str
    timestamp: float
    reservation_id: Optional[str] = None
    user_id: Optional[str] = None
    duration_ms: Optional[float] = None
    context: Dict[str, Any] = field(default_factory=dict)


class ReservationMonitoringService:
    """Keeps recent reservation events in memory and derives funnel metrics."""

    def __init__(self, max_events: int = 50000) -> None:
        self._events: Deque[ReservationEvent] = deque(maxlen=max_events)

    def track_event(
        self,
        name: str,
        reservation_id: Optional[str] = None,
        user_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record a funnel event such as reservation_created."""
        self._events.append(
            ReservationEvent(
                name=name,
                timestamp=time.time(),
                reservation_id=reservation_id,
                user_id=user_id,
                duration_ms=duration_ms,
                context=context or {},
            )
        )

    async def track_user_behavior(
        self, action: str, user_id: str, context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Record a user action."""
        self.track_event(
            USER_BEHAVIOR, user_id=user_id, context={"action": action, **(context or {})}
        )
        logger.debug("User behavior tracked", extra={"action": action, "user_id": user_id})

    async def track_reservation_error(
        self,
        error: BaseException,
        error_type: str,
        reservation_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record a reservation error."""
        self.track_event(
            RESERVATION_ERROR,
            reservation_id=reservation_id,
            context={
                "error_type": error_type,
                "error_class": type(error).__name__,
                "message": str(error),
                **(context or {}),
            },
        )
        logger.error(
            "Reservation error tracked",
            extra={
                "error_type": error_type,
                "error_class": type(error).__name__,
                "reservation_id": reservation_id,
            },
        )

    async def get_reservation_metrics(self, window: str = "24h") -> ReservationMetrics:
        """
        Funnel metrics over a window.

        Args:
            window: One of 1h, 24h, 7d, 30d

        Returns:
            ReservationMetrics for the window
        """
        if window not in WINDOW_HOURS:
            raise ValidationError(
                f"Unsupported metrics window '{window}'",
                "INVALID_WINDOW",
                {"supported": list(WINDOW_HOURS)},
            )

        cutoff = time.time() - WINDOW_HOURS[window] * 3600
        counts: Dict[str, int] = {}
        booking_times = []
        for event in self._events:
            if event.timestamp <= cutoff:
                continue
            counts[event.name] = counts.get(event.name, 0) + 1
            if event.name == RESERVATION_CONFIRMED and event.duration_ms is not None:
                booking_times.append(event.duration_ms)

        created = counts.get(RESERVATION_CREATED, 0)
        confirmed = counts.get(RESERVATION_CONFIRMED, 0)
        errors = counts.get(RESERVATION_ERROR, 0)
        payments_started = counts.get(PAYMENT_INITIATED, 0)
        attempts = created + errors

        return ReservationMetrics(
            total_reservations=created,
            successful_reservations=confirmed,
            failed_reservations=counts.get(PAYMENT_FAILED, 0),
            cancelled_reservations=counts.get(RESERVATION_CANCELLED, 0),
            conversion_rate=confirmed / created * 100 if created else 0.0,
            average_booking_time=(
                sum(booking_times) / len(booking_times) if booking_times else 0.0
            ),
            payment_success_rate=(
                counts.get(PAYMENT_COMPLETED, 0) / max(1, payments_started) * 100
            ),
            error_rate=errors / attempts * 100 if attempts else 0.0,
            security_incidents=counts.get(SECURITY_INCIDENT, 0),
        )
