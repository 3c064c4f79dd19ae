"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride`` and ``Rental``: enforces valid lifecycle
  transitions (PENDING -> ACCEPTED -> IN_PROGRESS -> COMPLETED | CANCELLED).
- ``Ride.can_cancel`` encapsulates the time-boxed cancellation rule.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .enums import (
    RENTAL_TRANSITIONS,
    RIDE_TRANSITIONS,
    CancellationAnchor,
    PaymentMethod,
    RentalStatus,
    RideStatus,
)
from .errors import (
    CancellationNotAllowed,
    InvalidStateTransition,
    RatingNotAllowed,
)

DEFAULT_CANCELLATION_WINDOW = timedelta(minutes=5)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    address: str = ""


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    id: Optional[int] = None
    passenger_id: int = 0
    driver_id: Optional[int] = None
    category_id: Optional[int] = None
    pickup: Location = field(default_factory=lambda: Location(0, 0))
    dropoff: Location = field(default_factory=lambda: Location(0, 0))
    status: RideStatus = RideStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.CASH
    distance_km: Optional[float] = None
    estimated_fare: Optional[float] = None
    final_fare: Optional[float] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Any) -> "Ride":
        """Build an entity from an ORM row (or anything with the same attributes)."""
        return cls(
            id=record.id,
            passenger_id=record.passenger_id,
            driver_id=record.driver_id,
            category_id=record.category_id,
            pickup=Location(
                record.pickup_lat, record.pickup_lng, record.pickup_address or ""
            ),
            dropoff=Location(
                record.dropoff_lat, record.dropoff_lng, record.dropoff_address or ""
            ),
            status=RideStatus(record.status),
            payment_method=PaymentMethod(record.payment_method),
            distance_km=record.distance_km,
            estimated_fare=record.estimated_fare,
            final_fare=record.final_fare,
            rating=record.rating,
            feedback=record.feedback,
            created_at=_utc(record.created_at),
            accepted_at=_utc(record.accepted_at),
            started_at=_utc(record.started_at),
            completed_at=_utc(record.completed_at),
        )

    def apply_to(self, record: Any) -> None:
        """Copy the mutable lifecycle fields back onto an ORM row."""
        for name in (
            "status",
            "driver_id",
            "final_fare",
            "rating",
            "feedback",
            "accepted_at",
            "started_at",
            "completed_at",
        ):
            setattr(record, name, getattr(self, name))

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        allowed = RIDE_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition ride from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    # ── Driver actions ────────────────────────────────────────────

    def accept(self, driver_id: int, now: Optional[datetime] = None) -> None:
        self.transition_to(RideStatus.ACCEPTED)
        self.driver_id = driver_id
        self.accepted_at = now or _now()

    def start(self, now: Optional[datetime] = None) -> None:
        self.transition_to(RideStatus.IN_PROGRESS)
        self.started_at = now or _now()

    def complete(self, now: Optional[datetime] = None) -> None:
        """Finish the trip; the charged fare is the server-side estimate."""
        self.transition_to(RideStatus.COMPLETED)
        self.final_fare = self.estimated_fare
        self.completed_at = now or _now()

    # ── Passenger actions ─────────────────────────────────────────

    def _window_anchor(self, anchor: CancellationAnchor) -> Optional[datetime]:
        if CancellationAnchor(anchor) is CancellationAnchor.ACCEPTED_AT:
            return _utc(self.accepted_at)
        return _utc(self.created_at)

    def can_cancel(
        self,
        now: Optional[datetime] = None,
        window: timedelta = DEFAULT_CANCELLATION_WINDOW,
        anchor: CancellationAnchor = CancellationAnchor.CREATED_AT,
    ) -> bool:
        if self.status is RideStatus.PENDING:
            return True
        if self.status is not RideStatus.ACCEPTED:
            return False
        started = self._window_anchor(anchor)
        if started is None:
            return False
        return (_utc(now) or _now()) - started < window

    def cancellation_block_reason(
        self,
        now: Optional[datetime] = None,
        window: timedelta = DEFAULT_CANCELLATION_WINDOW,
        anchor: CancellationAnchor = CancellationAnchor.CREATED_AT,
    ) -> str:
        """Human-readable reason a cancel is refused ("" when it is allowed)."""
        if self.can_cancel(now, window, anchor):
            return ""
        if self.status is RideStatus.IN_PROGRESS:
            return "Cannot cancel ride in progress. Please contact your driver."
        if self.status is RideStatus.ACCEPTED:
            minutes = int(window.total_seconds() // 60)
            return (
                f"Cannot cancel after {minutes} minutes of driver acceptance. "
                "Please contact your driver."
            )
        return f"Cannot cancel a {self.status.value} ride."

    def cancel(
        self,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
        window: timedelta = DEFAULT_CANCELLATION_WINDOW,
        anchor: CancellationAnchor = CancellationAnchor.CREATED_AT,
    ) -> None:
        if not self.can_cancel(now, window, anchor):
            raise CancellationNotAllowed(
                self.cancellation_block_reason(now, window, anchor)
            )
        self.transition_to(RideStatus.CANCELLED)
        self.feedback = reason or "Cancelled by passenger"

    def rate(self, rating: int, feedback: Optional[str] = None) -> None:
        if self.status is not RideStatus.COMPLETED:
            raise RatingNotAllowed("Only completed rides can be rated")
        if self.rating is not None:
            raise RatingNotAllowed("Ride has already been rated")
        if not 1 <= rating <= 5:
            raise RatingNotAllowed("Rating must be between 1 and 5")
        self.rating = rating
        if feedback:
            self.feedback = feedback


@dataclass
class Rental:
    id: Optional[int] = None
    car_id: int = 0
    user_id: int = 0
    status: RentalStatus = RentalStatus.PENDING

    def transition_to(self, new_status: RentalStatus) -> None:
        allowed = RENTAL_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition rental from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
