"""
Booking exceptions.

Raised by the conflict guard and the booking manager, caught in views.py and
rendered as {"detail": message, "code": code} with `status_code`.

Two families that must never be confused by the UI:
- local precondition failures: the user's own input is wrong (past slot,
  unknown slot, double click, slot already shown as taken);
- ConflictError: the server says someone else took the slot meanwhile.
"""


class BookingError(Exception):
    """Base exception for booking failures."""

    code = "error"
    status_code = 400
    local_precondition = False
    default_message = "The booking could not be completed."

    def __init__(self, message=None, attempts=None):
        self.message = message or self.default_message
        self.attempts = attempts
        super().__init__(self.message)

    def as_dict(self) -> dict:
        data = {"detail": self.message, "code": self.code}
        if self.attempts is not None:
            data["attempts"] = self.attempts
        return data


# -------------------------
# Local preconditions (never retried, never sent to the server)
# -------------------------
class PastDateError(BookingError):
    code = "past_date"
    local_precondition = True
    default_message = "This time slot has already started. Choose a future slot."


class UnknownSlotError(BookingError):
    code = "unknown_slot"
    local_precondition = True
    default_message = "Unknown time slot."


class AlreadyInProgressError(BookingError):
    code = "already_in_progress"
    status_code = 429
    local_precondition = True
    default_message = "A booking for this slot is already being submitted."


class SlotUnavailableError(BookingError):
    """
    Caught by the local availability check before any submit. Over HTTP it is
    reported like a conflict: the server's own data says the slot is taken.
    """

    code = "slot_unavailable"
    status_code = 409
    local_precondition = True
    default_message = "This slot is not available. Choose another slot."


# -------------------------
# Server / transport outcomes
# -------------------------
class ConflictError(BookingError):
    code = "slot_unavailable"
    status_code = 409
    default_message = "Someone else has just booked this slot. Please pick another one."


class TransientError(BookingError):
    code = "transient_failure"
    status_code = 503
    default_message = "Temporary problem reaching the booking service. Please try again."


class AuthError(BookingError):
    code = "auth_failed"
    status_code = 401
    default_message = "Session expired or insufficient permissions. Please log in again."


class ValidationFailedError(BookingError):
    code = "validation_failed"
    default_message = "The booking data is not valid."


class GenericError(BookingError):
    code = "error"
    status_code = 500
    default_message = "An unexpected error occurred."


# -------------------------
# Raised server-side by BookingManager
# -------------------------
class SlotConflictError(BookingError):
    """The requested time overlaps an active reservation, or the room is blocked."""

    code = "slot_unavailable"
    status_code = 409
    default_message = "The room is no longer available at the requested time."
