"""
client.py
---------
HTTP client for the reservation API, for front ends and scripts that talk to
a remote booking server instead of the local database.

It offers the same three calls as services.gateways.LocalBookingGateway, so a
ConflictGuard can be driven over the network:

    client = BookingApiClient("https://rooms.example.org/api/", auth=("user", "pw"))
    guard = client.booking_guard()
    guard.attempt_booking(BookingRequest(room_id=3, date="2025-09-04", slot_id="morning"),
                          client.submit_booking)

Error handling:
- Non-2xx responses raise BookingServiceError carrying the HTTP status and the
  machine-readable "code" from the error body; the retry policy classifies it
  from those fields.
- Transport failures (connection refused, timeouts) propagate as requests
  exceptions and are classified as NETWORK.
"""

import logging

import requests
from django.conf import settings

from .services.conflict_guard import ConflictGuard
from .services.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


class BookingServiceError(Exception):
    """A non-2xx answer from the booking API."""

    def __init__(self, status_code, code=None, message=""):
        self.status_code = status_code
        self.code = code
        self.message = message or f"Booking service returned HTTP {status_code}"
        super().__init__(self.message)


def _error_from_response(response) -> BookingServiceError:
    code = None
    message = ""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        code = body.get("code")
        detail = body.get("detail")
        if isinstance(detail, str):
            message = detail
        elif body:
            # DRF field errors: {"field": ["msg", ...], ...}
            parts = []
            for field, errors in body.items():
                if isinstance(errors, list):
                    errors = "; ".join(str(e) for e in errors)
                parts.append(f"{field}: {errors}")
            message = " | ".join(parts)
    elif response.text:
        message = response.text[:200]

    return BookingServiceError(response.status_code, code=code, message=message)


class BookingApiClient:
    def __init__(self, base_url=None, session=None, timeout=None, auth=None):
        base_url = base_url or getattr(settings, "BOOKING_API_BASE_URL", "http://localhost:8000/api/")
        self.base_url = base_url.rstrip("/") + "/"
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else getattr(settings, "BOOKING_API_TIMEOUT", 10)
        if auth is not None:
            self.session.auth = auth

    def _url(self, path: str) -> str:
        return self.base_url + path.lstrip("/")

    def _request(self, method: str, path: str, **kwargs):
        url = self._url(path)
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        if not 200 <= response.status_code < 300:
            error = _error_from_response(response)
            logger.warning("%s %s failed: HTTP %s %s", method, url, error.status_code, error.code or "")
            raise error
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ---- rooms ----
    def list_rooms(self):
        data = self._request("GET", "rooms/")
        # Paginated or plain list, depending on server settings.
        if isinstance(data, dict) and "results" in data:
            return data["results"]
        return data

    def fetch_room(self, room_id):
        return self._request("GET", f"rooms/{room_id}/")

    # ---- reservations ----
    def get_availability(self, room_id, date):
        date = date.isoformat() if hasattr(date, "isoformat") else date
        return self._request("GET", "reservations/availability/", params={"room": room_id, "date": date})

    def fetch_reservations(self, room_id, date):
        """
        Active reservations of a room on one date, as records the availability
        engine understands (id, date, start_time, end_time, purpose, status).
        Built from the availability endpoint, which lists every occupied
        period of the room and not only the caller's own reservations.
        """
        data = self.get_availability(room_id, date)
        day = data.get("date")
        return [
            {
                "id": period.get("reservation_id"),
                "date": day,
                "start_time": period["start"],
                "end_time": period["end"],
                "purpose": period.get("purpose", ""),
                "status": "ACTIVE",
            }
            for period in data.get("occupied_periods", [])
        ]

    def submit_booking(self, payload: dict):
        """
        POST a new reservation, or PATCH an existing one when the payload
        carries reservation_id.
        """
        body = {
            "date": payload["date"],
            "slot": payload["slot"],
            "purpose": payload.get("purpose", ""),
        }
        reservation_id = payload.get("reservation_id")
        if reservation_id is not None:
            return self._request("PATCH", f"reservations/{reservation_id}/", json=body)
        body["room"] = payload["room_id"]
        return self._request("POST", "reservations/", json=body)

    def cancel_reservation(self, reservation_id, reason=""):
        return self._request("POST", f"reservations/{reservation_id}/cancel/", json={"reason": reason})

    def booking_guard(self, in_flight=None, retry_policy=None, **kwargs) -> ConflictGuard:
        return ConflictGuard(
            fetch_reservations=self.fetch_reservations,
            fetch_room=self.fetch_room,
            retry_policy=retry_policy or RetryPolicy.from_settings(),
            in_flight=in_flight,
            **kwargs,
        )
