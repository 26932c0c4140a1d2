from typing import List, Optional
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime

from lifecycle import Role


class ReservationCreate(BaseModel):
    spot_id: UUID
    requester_id: str
    start_time: datetime
    end_time: datetime


class ReservationRead(BaseModel):
    id: UUID
    spot_id: UUID
    requester_id: str
    owner_id: str
    start_time: datetime
    end_time: datetime
    total_amount: float
    lifecycle_state: str
    payment_reference: Optional[str] = None
    cancelled_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReservationCancel(BaseModel):
    user_id: str  # To verify ownership or admin privilege
    role: Role


class PaymentEvent(BaseModel):
    payment_reference: Optional[str] = None


class SweepResult(BaseModel):
    advanced: List[ReservationRead]


class ErrorResponse(BaseModel):
    detail: str
    code: str
