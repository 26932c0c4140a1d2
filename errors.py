"""Error kinds raised by the booking scheduler.

Every kind has its own machine-readable ``code`` and HTTP status so callers
can branch on conflict vs. validation vs. staleness. None of them are retried
by the scheduler itself.
"""
from fastapi import status


class BookingError(Exception):
    code = "booking_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Booking request failed."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInterval(BookingError):
    code = "invalid_interval"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Reservation end time must be after start time."


class OutsideAvailabilityWindow(BookingError):
    code = "outside_availability_window"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Requested time is outside the spot's availability window."


class SpotUnavailable(BookingError):
    code = "spot_unavailable"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This parking spot is currently unavailable."


class SlotConflict(BookingError):
    code = "slot_conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Spot already reserved in that period."


class ConflictDetected(SlotConflict):
    """Raised by the store when its atomic insert finds an overlapping booking."""


class InvalidTransition(BookingError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Reservation cannot move to the requested state."


class StaleState(BookingError):
    code = "stale_state"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Reservation state changed concurrently; re-fetch and try again."


class NotFound(BookingError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Reservation not found."


class CancellationWindowClosed(BookingError):
    code = "cancellation_window_closed"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "The cancellation window for this reservation has closed."


class NotPermitted(BookingError):
    code = "not_permitted"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized to cancel this reservation."
