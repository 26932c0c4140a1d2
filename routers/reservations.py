from datetime import timedelta
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from admission import AdmissionController
from config import settings
from crud import ReservationStore, get_spot_constraints
from database import get_db
from intervals import TimeInterval, utcnow
from lifecycle import Actor, LifecycleManager
from schemas.reservationsSchema import (
    ErrorResponse, PaymentEvent, ReservationCancel, ReservationCreate, ReservationRead, SweepResult,
)

router = APIRouter(prefix="/reservations", tags=["reservations"])

_errors = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def get_clock():
    return utcnow


def get_store(db: Session = Depends(get_db)) -> ReservationStore:
    return ReservationStore(db)


def get_admission(store: ReservationStore = Depends(get_store), clock=Depends(get_clock)) -> AdmissionController:
    return AdmissionController(store, clock=clock)


def get_lifecycle(store: ReservationStore = Depends(get_store), clock=Depends(get_clock)) -> LifecycleManager:
    return LifecycleManager(
        store,
        payment_wait=timedelta(minutes=settings.payment_wait_minutes),
        cancellation_grace=timedelta(minutes=settings.cancellation_grace_minutes),
        clock=clock,
    )


@router.post("/", response_model=ReservationRead, status_code=status.HTTP_201_CREATED,
             responses={**_errors, 400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}})
def create_reservation(
    res: ReservationCreate,
    db: Session = Depends(get_db),
    admission: AdmissionController = Depends(get_admission),
):
    constraints = get_spot_constraints(db, res.spot_id)
    interval = TimeInterval(res.start_time, res.end_time)
    return admission.request_booking(res.spot_id, res.requester_id, interval, constraints)


@router.post("/sweep", response_model=SweepResult)
def sweep_reservations(lifecycle: LifecycleManager = Depends(get_lifecycle)):
    return SweepResult(advanced=[ReservationRead.model_validate(r) for r in lifecycle.sweep()])


@router.get("/user/{requester_id}", response_model=List[ReservationRead])
def get_user_reservations(requester_id: str, store: ReservationStore = Depends(get_store)):
    return store.list_for_requester(requester_id)


@router.get("/owner/{owner_id}", response_model=List[ReservationRead])
def get_owner_reservations(owner_id: str, store: ReservationStore = Depends(get_store)):
    return store.list_for_owner(owner_id)


@router.get("/{reservation_id}", response_model=ReservationRead, responses=_errors)
def get_reservation(reservation_id: UUID, store: ReservationStore = Depends(get_store)):
    return store.get(reservation_id)


@router.post("/{reservation_id}/cancel", response_model=ReservationRead,
             responses={**_errors, 403: {"model": ErrorResponse}})
def cancel_reservation(
    reservation_id: UUID,
    cancel_data: ReservationCancel,
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    actor = Actor(user_id=cancel_data.user_id, role=cancel_data.role)
    return lifecycle.cancel(reservation_id, actor)


@router.post("/{reservation_id}/payment-success", response_model=ReservationRead, responses=_errors)
def payment_succeeded(
    reservation_id: UUID,
    event: PaymentEvent,
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    return lifecycle.confirm_payment(reservation_id, payment_reference=event.payment_reference)


@router.post("/{reservation_id}/payment-failure", response_model=ReservationRead, responses=_errors)
def payment_failed(reservation_id: UUID, lifecycle: LifecycleManager = Depends(get_lifecycle)):
    return lifecycle.record_payment_failure(reservation_id)
