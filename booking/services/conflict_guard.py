"""
conflict_guard.py
-----------------
Wraps the create/update path of a reservation so a user never silently
double-books a room.

Order of checks for one attempt (strictly sequential):
1) the slot id must be known                       -> UnknownSlotError
2) the slot's start must not have passed           -> PastDateError
3) no identical (room, date, slot) attempt pending -> AlreadyInProgressError
4) local availability pre-check (hint only)        -> SlotUnavailableError
5) submit(payload) through the retry policy:
   - success            -> the booking returned by submit
   - conflict           -> ConflictError (never retried)
   - network/server     -> retried, then TransientError(attempts=N)
   - auth/validation/.. -> AuthError / ValidationFailedError / GenericError

The local check is not authoritative; the submit response is. After a
ConflictError the caller re-fetches reservations and re-runs the engine before
letting the user try again. The guard keeps no cache.

The in-flight registry belongs to the caller (one per booking flow/session),
so two sessions never see each other's pending attempts.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from ..exceptions import (
    AlreadyInProgressError,
    AuthError,
    ConflictError,
    GenericError,
    PastDateError,
    SlotUnavailableError,
    TransientError,
    UnknownSlotError,
    ValidationFailedError,
)
from .availability_engine import compute_availability, room_block
from .clock import get_clock
from .retry_policy import ClassifiedError, ErrorKind, RetryPolicy
from .slot_utils import find_slot, format_hhmm, get_time_slots, parse_iso_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    room_id: int
    date: object  # datetime.date or "YYYY-MM-DD"
    slot_id: str
    purpose: str = ""
    reservation_id: Optional[int] = None  # set when editing an existing reservation

    @property
    def day(self):
        return parse_iso_date(self.date)

    @property
    def key(self) -> tuple:
        return (str(self.room_id), self.day.isoformat(), self.slot_id)


class InFlightRegistry:
    """
    Set of (room_id, date, slot_id) keys with a submission outstanding.
    """

    def __init__(self):
        self._keys = set()
        self._lock = threading.Lock()

    def acquire(self, key) -> bool:
        """Register `key`; False if it was already registered."""
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def release(self, key) -> None:
        with self._lock:
            self._keys.discard(key)

    def __contains__(self, key) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)


def _raise_for(error: ClassifiedError):
    if error.kind == ErrorKind.CONFLICT:
        raise ConflictError(error.message) from error
    if error.kind in (ErrorKind.NETWORK, ErrorKind.SERVER):
        raise TransientError(
            f"{error.message} (gave up after {error.attempts} attempt(s))",
            attempts=error.attempts,
        ) from error
    if error.kind == ErrorKind.AUTH:
        raise AuthError(error.message) from error
    if error.kind == ErrorKind.VALIDATION:
        raise ValidationFailedError(error.message) from error
    raise GenericError(error.message) from error


class ConflictGuard:
    """
    Args:
        fetch_reservations: callable(room_id, date) -> reservations of that day.
        fetch_room: optional callable(room_id) -> room (for its block).
        slots: TimeSlot sequence; defaults to the configured slots.
        clock: injectable clock (see clock.py).
        retry_policy: RetryPolicy used for fetches and submit.
        in_flight: InFlightRegistry owned by the calling flow.
    """

    def __init__(self, fetch_reservations, fetch_room=None, slots=None, clock=None,
                 retry_policy=None, in_flight=None):
        self.fetch_reservations = fetch_reservations
        self.fetch_room = fetch_room
        self.slots = tuple(slots) if slots is not None else get_time_slots()
        self.clock = get_clock(clock)
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.in_flight = in_flight if in_flight is not None else InFlightRegistry()

    def _call(self, operation):
        try:
            return self.retry_policy.run(operation)
        except ClassifiedError as e:
            _raise_for(e)

    def check_availability(self, request: BookingRequest, slot):
        """
        Local pre-check. Raises SlotUnavailableError when the slot is taken or
        the room is blocked.
        """
        day = request.day
        reservations = self._call(lambda: self.fetch_reservations(request.room_id, day))
        room = self._call(lambda: self.fetch_room(request.room_id)) if self.fetch_room else None

        if request.reservation_id is not None:
            reservations = [
                r for r in reservations
                if str(_id_of(r)) != str(request.reservation_id)
            ]

        result = compute_availability([slot], reservations, room=room)
        if not result.is_available(slot.id):
            message = result.message if room_block(room) is not None else None
            logger.info("Slot %s unavailable locally for room %s on %s", slot.id, request.room_id, day)
            raise SlotUnavailableError(message)
        return result

    def build_payload(self, request: BookingRequest, slot) -> dict:
        payload = {
            "room_id": request.room_id,
            "date": request.day.isoformat(),
            "slot": slot.id,
            "start": format_hhmm(slot.start),
            "end": format_hhmm(slot.end),
            "purpose": request.purpose or "",
        }
        if request.reservation_id is not None:
            payload["reservation_id"] = request.reservation_id
        return payload

    def attempt_booking(self, request: BookingRequest, submit, on_retry=None):
        """
        Run the checks, then submit.

        on_retry(attempt, kind, delay) is called before each backoff wait of
        the submit, so a caller can show "retrying (attempt N)..." live.

        Returns:
            whatever `submit(payload)` returns (the created/updated booking).

        Raises:
            BookingError subclasses (see module docstring), RetryCancelledError.
        """
        slot = find_slot(request.slot_id, self.slots)
        if slot is None:
            logger.info("Rejected booking for unknown slot %r", request.slot_id)
            raise UnknownSlotError(f"Unknown time slot {request.slot_id!r}.")

        if slot.starts_at(request.day) < self.clock.now():
            logger.info("Rejected booking for elapsed slot %s on %s", slot.id, request.day)
            raise PastDateError()

        key = request.key
        if not self.in_flight.acquire(key):
            logger.warning("Duplicate booking attempt ignored for %s", key)
            raise AlreadyInProgressError()

        try:
            self.check_availability(request, slot)
            payload = self.build_payload(request, slot)
            try:
                booking = self.retry_policy.run(lambda: submit(payload), on_retry=on_retry)
            except ClassifiedError as e:
                if e.kind == ErrorKind.CONFLICT:
                    logger.info("Server reported a conflict for %s: %s", key, e.message)
                _raise_for(e)
            return booking
        finally:
            self.in_flight.release(key)


def _id_of(reservation):
    if isinstance(reservation, dict):
        return reservation.get("id")
    return getattr(reservation, "id", None)


def attempt_booking(request: BookingRequest, submit, fetch_reservations, on_retry=None, **kwargs):
    """Functional shortcut: ConflictGuard(fetch_reservations, **kwargs).attempt_booking(...)."""
    return ConflictGuard(fetch_reservations, **kwargs).attempt_booking(request, submit, on_retry=on_retry)
