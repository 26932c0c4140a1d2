import uuid
from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Enum, Boolean, Index, JSON, Uuid, TypeDecorator
)

from database import Base
from intervals import TimeInterval, ensure_utc, utcnow

PENDING_PAYMENT = "pending-payment"
CONFIRMED = "confirmed"
ACTIVE = "active"
COMPLETED = "completed"
CANCELLED = "cancelled"
EXPIRED = "expired"

RESERVATION_STATES = (PENDING_PAYMENT, CONFIRMED, ACTIVE, COMPLETED, CANCELLED, EXPIRED)
# States that still hold the spot for their interval
SLOT_HOLDING_STATES = (PENDING_PAYMENT, CONFIRMED, ACTIVE)
TERMINAL_STATES = (COMPLETED, CANCELLED, EXPIRED)

ALLOWED_TRANSITIONS = {
    PENDING_PAYMENT: (CONFIRMED, EXPIRED, CANCELLED),
    CONFIRMED: (ACTIVE, CANCELLED),
    ACTIVE: (COMPLETED, CANCELLED),
}


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, hands back aware UTC datetimes on every backend."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return ensure_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return ensure_utc(value)


class ParkingSpot(Base):
    __tablename__ = "parking_spots"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    price_per_hour = Column(Float, nullable=False)
    available_days = Column(JSON, nullable=False, default=list)  # ["Monday", "Tuesday", ...]
    time_slots = Column(JSON, nullable=False, default=list)  # [{"start": "08:00", "end": "18:00"}]
    is_available = Column(Boolean, default=True, nullable=False)
    timezone = Column(String, nullable=False, default="UTC")
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=True)


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_spot_state", "spot_id", "lifecycle_state"),
    )
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    spot_id = Column(Uuid, nullable=False)
    requester_id = Column(String, nullable=False, index=True)
    owner_id = Column(String, nullable=False, index=True)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    total_amount = Column(Float, nullable=False)
    lifecycle_state = Column(
        Enum(*RESERVATION_STATES, name="reservation_lifecycle_state"),
        default=PENDING_PAYMENT,
        nullable=False,
    )
    payment_reference = Column(String, nullable=True)
    cancelled_by = Column(String, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=True)

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start_time, self.end_time)

    def __repr__(self):
        return f"<Reservation {self.id} spot={self.spot_id} state={self.lifecycle_state}>"


class SpotBookingGuard(Base):
    """Per-spot version counter; every accepted booking bumps it with a conditional update."""

    __tablename__ = "spot_booking_guards"
    spot_id = Column(Uuid, primary_key=True)
    version = Column(Integer, nullable=False, default=0)
