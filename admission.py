"""
Booking admission: decide whether a requested interval on a spot can be granted.

Eligibility (maintenance flag, weekday, daily time slots) is checked first,
then the store's atomic insert decides conflicts. The advisory overlap read
only lets obvious conflicts fail fast; two requests that both pass it are
still settled by the insert, first committed wins.
"""
import logging
import uuid
from datetime import datetime, time, timedelta
from typing import Callable, Tuple, Union
from uuid import UUID

import pytz

from crud import ReservationStore
from errors import ConflictDetected, InvalidInterval, OutsideAvailabilityWindow, SlotConflict, SpotUnavailable
from intervals import TimeInterval, contains, duration_hours, utcnow
from models import PENDING_PAYMENT, Reservation
from schemas.spotSchema import WEEKDAYS, SpotConstraints, TimeSlot

logger = logging.getLogger(__name__)


def _local_midnight(day, tz) -> datetime:
    return tz.localize(datetime.combine(day, time.min))


def _slot_interval(day, slot: TimeSlot, tz) -> TimeInterval:
    start = tz.localize(datetime.combine(day, time.fromisoformat(slot.start)))
    if slot.end == "24:00":
        end = _local_midnight(day + timedelta(days=1), tz)
    else:
        end = tz.localize(datetime.combine(day, time.fromisoformat(slot.end)))
    return TimeInterval(start, end)


def check_spot_constraints(interval: TimeInterval, constraints: SpotConstraints):
    """Raise if the spot is flagged unavailable or the interval falls outside its declared availability."""
    if not constraints.is_available:
        raise SpotUnavailable("This parking spot is currently unavailable.")

    tz = pytz.timezone(constraints.timezone)
    day = interval.start.astimezone(tz).date()
    if interval.end > _local_midnight(day + timedelta(days=1), tz):
        raise OutsideAvailabilityWindow("A booking must start and end on the same day.")

    weekday = WEEKDAYS[day.weekday()]
    if weekday not in constraints.available_days:
        raise OutsideAvailabilityWindow(f"This spot is not available on {weekday}s.")

    # No declared slots means the whole day is bookable
    if not constraints.time_slots:
        return
    windows = [_slot_interval(day, slot, tz) for slot in constraints.time_slots]
    if not any(contains(window, interval) for window in windows):
        hours = ", ".join(f"{slot.start}-{slot.end}" for slot in constraints.time_slots)
        raise OutsideAvailabilityWindow(f"Requested time is outside the spot's hours ({hours}).")


def compute_total_amount(price_per_hour: float, interval: TimeInterval) -> float:
    return round(price_per_hour * duration_hours(interval), 2)


class AdmissionController:
    def __init__(self, store: ReservationStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def request_booking(
        self,
        spot_id: UUID,
        requester_id: str,
        interval: Union[TimeInterval, Tuple[datetime, datetime]],
        spot_constraints: SpotConstraints,
    ) -> Reservation:
        """
        Admit a booking and persist it as ``pending-payment``.

        Raises InvalidInterval, OutsideAvailabilityWindow, SpotUnavailable
        or SlotConflict. Nothing is retried; on SlotConflict the caller
        has to pick another interval.
        """
        if not isinstance(interval, TimeInterval):
            interval = TimeInterval(*interval)

        now = self.clock()
        if interval.start < now:
            raise InvalidInterval("Reservation start time cannot be in the past.")

        check_spot_constraints(interval, spot_constraints)

        if self.store.find_active_overlapping(spot_id, interval):
            logger.info("Rejected %s on spot %s for %s: slot taken", interval, spot_id, requester_id)
            raise SlotConflict("Spot already reserved in that period.")

        reservation = Reservation(
            id=uuid.uuid4(),
            spot_id=spot_id,
            requester_id=requester_id,
            owner_id=spot_constraints.owner_id,
            start_time=interval.start,
            end_time=interval.end,
            total_amount=compute_total_amount(spot_constraints.price_per_hour, interval),
            lifecycle_state=PENDING_PAYMENT,
            created_at=now,
            updated_at=now,
        )
        try:
            reservation = self.store.insert(reservation)
        except ConflictDetected as exc:
            logger.info("Rejected %s on spot %s for %s: lost insert race", interval, spot_id, requester_id)
            raise SlotConflict(exc.message) from exc

        logger.info(
            "Admitted reservation %s on spot %s for %s (%.2f)",
            reservation.id, spot_id, requester_id, reservation.total_amount,
        )
        return reservation
