import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import ConflictDetected, InvalidTransition, NotFound, StaleState
from intervals import TimeInterval, utcnow
from models import (
    ACTIVE, ALLOWED_TRANSITIONS, CONFIRMED, PENDING_PAYMENT, SLOT_HOLDING_STATES,
    ParkingSpot, Reservation, SpotBookingGuard,
)
from schemas.spotSchema import ParkingSpotCreate, SpotConstraints

logger = logging.getLogger(__name__)


class ReservationStore:
    """
    Durable record of bookings per spot.

    The store is the single source of truth for which intervals are held.
    ``insert`` and ``transition`` are the only writers and both are
    conditional, so concurrent handlers working through separate sessions
    can never commit overlapping active bookings or double-apply a transition.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, reservation_id: UUID) -> Reservation:
        reservation = self.db.get(Reservation, reservation_id, populate_existing=True)
        if reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found.")
        return reservation

    def find_active_overlapping(self, spot_id: UUID, interval: TimeInterval) -> List[Reservation]:
        """Slot-holding reservations on ``spot_id`` overlapping ``interval``, oldest first."""
        return (
            self.db.query(Reservation)
            .filter(Reservation.spot_id == spot_id)
            .filter(Reservation.lifecycle_state.in_(SLOT_HOLDING_STATES))
            .filter(Reservation.start_time < interval.end)
            .filter(Reservation.end_time > interval.start)
            .order_by(Reservation.created_at.asc(), Reservation.id.asc())
            .all()
        )

    def insert(self, reservation: Reservation) -> Reservation:
        """
        Persist a new reservation unless it overlaps a slot-holding one.

        The spot's guard version is read before the overlap query and bumped
        with ``UPDATE ... WHERE version = :seen`` in the same transaction as
        the insert. A writer that committed in between makes the bump match
        no row; the overlap is then re-evaluated against the committed state.
        Only a real overlap rejects: every lost bump means another writer
        committed, so the loop ends once competing writers are done.
        """
        spot_id = reservation.spot_id
        interval = reservation.interval
        self._ensure_guard(spot_id)

        while True:
            seen = (
                self.db.query(SpotBookingGuard.version)
                .filter(SpotBookingGuard.spot_id == spot_id)
                .scalar()
            )
            conflicts = self.find_active_overlapping(spot_id, interval)
            if conflicts:
                self.db.rollback()
                logger.warning(
                    "Insert on spot %s for %s conflicts with reservation %s",
                    spot_id, interval, conflicts[0].id,
                )
                raise ConflictDetected("Spot already reserved in that period.")

            bumped = (
                self.db.query(SpotBookingGuard)
                .filter(SpotBookingGuard.spot_id == spot_id, SpotBookingGuard.version == seen)
                .update({SpotBookingGuard.version: seen + 1}, synchronize_session=False)
            )
            if bumped == 1:
                self.db.add(reservation)
                self.db.commit()
                self.db.refresh(reservation)
                return reservation

            self.db.rollback()
            logger.info("Spot %s guard moved past version %s, re-checking overlap", spot_id, seen)

    def transition(self, reservation_id: UUID, from_state: str, to_state: str, **fields) -> Reservation:
        """Compare-and-swap the lifecycle state; extra ``fields`` are written alongside."""
        if to_state not in ALLOWED_TRANSITIONS.get(from_state, ()):
            raise InvalidTransition(f"Cannot move a reservation from '{from_state}' to '{to_state}'.")

        values = {Reservation.lifecycle_state: to_state, Reservation.updated_at: utcnow()}
        for name, value in fields.items():
            values[getattr(Reservation, name)] = value

        updated = (
            self.db.query(Reservation)
            .filter(Reservation.id == reservation_id, Reservation.lifecycle_state == from_state)
            .update(values, synchronize_session=False)
        )
        self.db.commit()

        if updated != 1:
            current = self.db.get(Reservation, reservation_id, populate_existing=True)
            if current is None:
                raise NotFound(f"Reservation {reservation_id} not found.")
            raise StaleState(
                f"Reservation is now '{current.lifecycle_state}', expected '{from_state}'."
            )

        logger.info("Reservation %s: %s -> %s", reservation_id, from_state, to_state)
        return self.get(reservation_id)

    def find_due(self, now: datetime, payment_wait: timedelta) -> List[Reservation]:
        """Reservations a clock sweep should look at, oldest first."""
        return (
            self.db.query(Reservation)
            .filter(
                or_(
                    and_(Reservation.lifecycle_state == PENDING_PAYMENT,
                         Reservation.created_at <= now - payment_wait),
                    and_(Reservation.lifecycle_state == CONFIRMED,
                         Reservation.start_time <= now),
                    and_(Reservation.lifecycle_state == ACTIVE,
                         Reservation.end_time <= now),
                )
            )
            .order_by(Reservation.created_at.asc(), Reservation.id.asc())
            .all()
        )

    def list_for_requester(self, requester_id: str) -> List[Reservation]:
        return (
            self.db.query(Reservation)
            .filter(Reservation.requester_id == requester_id)
            .order_by(Reservation.created_at.desc())
            .all()
        )

    def list_for_owner(self, owner_id: str) -> List[Reservation]:
        return (
            self.db.query(Reservation)
            .filter(Reservation.owner_id == owner_id)
            .order_by(Reservation.created_at.desc())
            .all()
        )

    def _ensure_guard(self, spot_id: UUID):
        exists = (
            self.db.query(SpotBookingGuard.spot_id)
            .filter(SpotBookingGuard.spot_id == spot_id)
            .first()
        )
        if exists:
            return
        self.db.add(SpotBookingGuard(spot_id=spot_id, version=0))
        try:
            self.db.commit()
        except IntegrityError:
            # Created by a concurrent first booking on the same spot
            self.db.rollback()


# --- Spot catalog ---

def create_spot(db: Session, spot_in: ParkingSpotCreate, default_timezone: str = "UTC") -> ParkingSpot:
    data = spot_in.model_dump()
    data["timezone"] = data.get("timezone") or default_timezone
    db_spot = ParkingSpot(**data)
    db.add(db_spot)
    db.commit()
    db.refresh(db_spot)
    return db_spot


def get_spot(db: Session, spot_id: UUID) -> ParkingSpot:
    spot = db.query(ParkingSpot).filter(ParkingSpot.id == spot_id).first()
    if not spot:
        raise NotFound("Parking spot not found.")
    return spot


def set_spot_availability(db: Session, spot_id: UUID, is_available: bool) -> ParkingSpot:
    spot = get_spot(db, spot_id)
    spot.is_available = is_available
    db.commit()
    db.refresh(spot)
    return spot


def get_spot_constraints(db: Session, spot_id: UUID) -> SpotConstraints:
    spot = get_spot(db, spot_id)
    return SpotConstraints(
        spot_id=spot.id,
        owner_id=spot.owner_id,
        price_per_hour=spot.price_per_hour,
        available_days=spot.available_days or [],
        time_slots=spot.time_slots or [],
        is_available=spot.is_available,
        timezone=spot.timezone,
    )


def find_spot_reservations(
    db: Session, spot_id: UUID, interval: Optional[TimeInterval] = None
) -> List[Reservation]:
    """Slot-holding reservations for a spot, recomputed from the store on every call."""
    query = (
        db.query(Reservation)
        .filter(Reservation.spot_id == spot_id)
        .filter(Reservation.lifecycle_state.in_(SLOT_HOLDING_STATES))
    )
    if interval is not None:
        query = query.filter(Reservation.start_time < interval.end, Reservation.end_time > interval.start)
    return query.order_by(Reservation.start_time.asc()).all()
