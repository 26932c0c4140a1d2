from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from config import settings
from crud import create_spot, find_spot_reservations, get_spot, set_spot_availability
from database import get_db
from errors import InvalidInterval
from intervals import TimeInterval
from schemas.reservationsSchema import ErrorResponse, ReservationRead
from schemas.spotSchema import AvailabilityToggle, ParkingSpotCreate, ParkingSpotRead

router = APIRouter(prefix="/spots", tags=["spots"])


@router.post("/", response_model=ParkingSpotRead, status_code=status.HTTP_201_CREATED)
def create_parking_spot(spot_in: ParkingSpotCreate, db: Session = Depends(get_db)):
    return create_spot(db, spot_in, default_timezone=settings.default_spot_timezone)


@router.get("/{spot_id}", response_model=ParkingSpotRead, responses={404: {"model": ErrorResponse}})
def get_parking_spot(spot_id: UUID, db: Session = Depends(get_db)):
    return get_spot(db, spot_id)


@router.post("/{spot_id}/toggle-availability", response_model=ParkingSpotRead,
             responses={404: {"model": ErrorResponse}})
def toggle_spot_availability(spot_id: UUID, toggle: AvailabilityToggle, db: Session = Depends(get_db)):
    return set_spot_availability(db, spot_id, toggle.is_available)


@router.get("/{spot_id}/reservations", response_model=List[ReservationRead],
            responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}})
def get_spot_reservations(
    spot_id: UUID,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
):
    """Reservations currently holding the spot, optionally limited to those overlapping [start, end)."""
    get_spot(db, spot_id)
    if (start is None) != (end is None):
        raise InvalidInterval("Both start and end are required to filter reservations.")
    window = TimeInterval(start, end) if start is not None else None
    return find_spot_reservations(db, spot_id, window)
