"""
Reservation lifecycle: payment events, cancellations and clock-driven moves.

    pending-payment -> confirmed -> active -> completed
           |               |          |
           +-> expired     +----------+--> cancelled
           +-> cancelled

Every move is a compare-and-swap through ``ReservationStore.transition``;
losing a race surfaces as StaleState and is never retried here.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID

from crud import ReservationStore
from errors import CancellationWindowClosed, InvalidTransition, NotFound, NotPermitted, StaleState
from intervals import utcnow
from models import (
    ACTIVE, CANCELLED, COMPLETED, CONFIRMED, EXPIRED, PENDING_PAYMENT, TERMINAL_STATES, Reservation,
)

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    DRIVER = "driver"
    OWNER = "owner"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """Caller identity as supplied by the identity provider."""
    user_id: str
    role: Role


def next_timed_transition(reservation: Reservation, now: datetime, payment_wait: timedelta) -> Optional[str]:
    """The state the clock moves ``reservation`` to at ``now``, or None."""
    state = reservation.lifecycle_state
    if state == PENDING_PAYMENT and reservation.created_at + payment_wait <= now:
        return EXPIRED
    if state == CONFIRMED and now >= reservation.start_time:
        return ACTIVE
    if state == ACTIVE and now >= reservation.end_time:
        return COMPLETED
    return None


class LifecycleManager:
    def __init__(
        self,
        store: ReservationStore,
        payment_wait: timedelta = timedelta(minutes=15),
        cancellation_grace: timedelta = timedelta(minutes=60),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.payment_wait = payment_wait
        self.cancellation_grace = cancellation_grace
        self.clock = clock

    def _move(self, reservation_id: UUID, to_state: str, **fields) -> Reservation:
        current = self.store.get(reservation_id)
        return self.store.transition(reservation_id, current.lifecycle_state, to_state, **fields)

    def confirm_payment(self, reservation_id: UUID, payment_reference: Optional[str] = None) -> Reservation:
        reservation = self._move(reservation_id, CONFIRMED, payment_reference=payment_reference)
        logger.info("Payment confirmed for reservation %s", reservation_id)
        return reservation

    def record_payment_failure(self, reservation_id: UUID) -> Reservation:
        current = self.store.get(reservation_id)
        if current.lifecycle_state != PENDING_PAYMENT:
            raise InvalidTransition(
                f"Payment failure only applies to unpaid bookings, this one is '{current.lifecycle_state}'."
            )
        reservation = self.store.transition(reservation_id, PENDING_PAYMENT, CANCELLED)
        logger.info("Payment failed for reservation %s, slot released", reservation_id)
        return reservation

    def cancel(self, reservation_id: UUID, actor: Actor, now: Optional[datetime] = None) -> Reservation:
        """
        Cancel on behalf of ``actor``.

        Unpaid bookings: requester or admin. Confirmed bookings: requester,
        owner or admin, non-admins only until ``start - cancellation_grace``.
        Active bookings: admin only.
        """
        now = now or self.clock()
        reservation = self.store.get(reservation_id)
        state = reservation.lifecycle_state
        if state in TERMINAL_STATES:
            raise InvalidTransition(f"Reservation is already {state}.")

        is_admin = actor.role == Role.ADMIN
        is_requester = actor.user_id == reservation.requester_id
        is_owner = actor.user_id == reservation.owner_id
        if not (is_admin or is_requester or is_owner):
            raise NotPermitted("Not authorized to cancel this reservation.")

        if not is_admin:
            if state == PENDING_PAYMENT and not is_requester:
                raise NotPermitted("Only the requester or an admin can cancel an unpaid booking.")
            if state == CONFIRMED and now >= reservation.start_time - self.cancellation_grace:
                raise CancellationWindowClosed(
                    "Confirmed bookings can only be cancelled up to "
                    f"{int(self.cancellation_grace.total_seconds() // 60)} minutes before they start."
                )
            if state == ACTIVE:
                raise CancellationWindowClosed("An active booking can only be cancelled by an admin.")

        cancelled = self.store.transition(reservation_id, state, CANCELLED, cancelled_by=actor.user_id)
        logger.info("Reservation %s cancelled by %s (%s)", reservation_id, actor.user_id, actor.role.value)
        return cancelled

    def advance(self, reservation_id: UUID, now: Optional[datetime] = None) -> Reservation:
        """Apply every clock-driven transition due at ``now``."""
        now = now or self.clock()
        reservation = self.store.get(reservation_id)
        moved = False
        while True:
            target = next_timed_transition(reservation, now, self.payment_wait)
            if target is None:
                return reservation
            try:
                reservation = self.store.transition(reservation.id, reservation.lifecycle_state, target)
            except StaleState as exc:
                if not moved:
                    raise
                # Earlier steps are committed; whoever moved it owns the rest
                logger.warning("Advance of reservation %s stopped at %s: %s",
                               reservation_id, reservation.lifecycle_state, exc.message)
                return reservation
            moved = True

    def sweep(self, now: Optional[datetime] = None) -> List[Reservation]:
        """Entry point for the external poller."""
        now = now or self.clock()
        due_ids = [reservation.id for reservation in self.store.find_due(now, self.payment_wait)]
        advanced = []
        for reservation_id in due_ids:
            try:
                advanced.append(self.advance(reservation_id, now))
            except (StaleState, NotFound) as exc:
                # Another worker moved or archived it first
                logger.warning("Sweep skipped reservation %s: %s", reservation_id, exc.message)
        logger.info("Sweep at %s advanced %d reservation(s)", now.isoformat(), len(advanced))
        return advanced
