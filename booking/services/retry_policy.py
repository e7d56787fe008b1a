"""
retry_policy.py
---------------
One retry policy for every network-calling action.

    classify(error) -> ErrorKind
    is_retryable(kind) -> bool          (only NETWORK and SERVER)
    RetryPolicy(...).run(operation)     -> result, or raises ClassifiedError

Algorithm: call the operation; on failure classify the error; if it is
retryable and attempts remain, wait attempt * backoff_seconds (attempt counts
from 1: 1s, 2s, ...) and call again. AUTH, CONFLICT, VALIDATION and GENERIC
fail on the first occurrence.

Classification reads structured signals first (explicit `kind`, error `code`,
HTTP status code, exception type). Message keywords are only a fallback for
untyped errors from older services.

A pending backoff wait can be cancelled (the booking dialog was closed): the
policy then raises RetryCancelledError and never calls the operation again.
"""

import enum
import logging
import re
import threading

import requests
from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import exceptions as drf_exceptions

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    AUTH = "AUTH"
    NETWORK = "NETWORK"
    SERVER = "SERVER"
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION"
    GENERIC = "GENERIC"


RETRYABLE_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.SERVER})

USER_MESSAGES = {
    ErrorKind.AUTH: "Session expired or insufficient permissions. Please log in again.",
    ErrorKind.NETWORK: "Connection problem. Check your internet connection and try again.",
    ErrorKind.SERVER: "Temporary server problem. Please try again in a moment.",
    ErrorKind.CONFLICT: "This slot has just been taken by someone else. Please pick another one.",
    ErrorKind.VALIDATION: "The data provided is not valid. Check the fields and try again.",
    ErrorKind.GENERIC: "An unexpected error occurred. Please try again later.",
}

# Error codes in the structured error body (see booking.exceptions).
CONFLICT_CODES = {"slot_unavailable", "conflict"}
AUTH_CODES = {"auth_failed", "not_authenticated", "authentication_failed", "permission_denied"}
VALIDATION_CODES = {"validation_failed", "invalid", "past_date", "unknown_slot"}
GENERIC_CODES = {"error"}


def _words(*patterns):
    return re.compile(r"\b(?:" + "|".join(patterns) + r")\b")


# Fallback keywords for untyped errors (English + the legacy Italian backend).
# Whole words only: "rete" must not match "interpreted", nor "500" "Room 1500".
_KEYWORDS = (
    (ErrorKind.AUTH, _words("unauthori[sz]ed", "forbidden", "token", r"non autorizzat\w*", "autorizzazione", "permessi")),
    (ErrorKind.CONFLICT, _words("no longer available", "already booked", "conflict", r"non disponibil\w*", r"occupat[aoie]")),
    (ErrorKind.NETWORK, _words("connection", "network", "timeout", "timed out", "fetch", "connessione", "rete")),
    (ErrorKind.SERVER, _words("server error", "service unavailable", "bad gateway", "500", "502", "503", "server")),
    (ErrorKind.VALIDATION, _words("invalid", "validation", "required", "validazione", "campo")),
)


class ClassifiedError(Exception):
    """A failure after the retry policy gave up (or refused to retry)."""

    def __init__(self, kind: ErrorKind, message: str, attempts: int = 1, status_code=None, cause=None):
        self.kind = kind
        self.message = message
        self.attempts = attempts
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.kind)

    @property
    def user_message(self) -> str:
        return user_message(self.kind)


class RetryCancelledError(Exception):
    """The retry loop was cancelled while waiting to retry."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Retry cancelled after {attempts} attempt(s).")


# -------------------------
# Classification
# -------------------------
def status_code_of(error):
    code = getattr(error, "status_code", None)
    if code is None:
        response = getattr(error, "response", None)
        code = getattr(response, "status_code", None)
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def kind_for_status(status_code):
    if status_code is None:
        return None
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code == 409:
        return ErrorKind.CONFLICT
    if status_code in (400, 422):
        return ErrorKind.VALIDATION
    if status_code >= 500:
        return ErrorKind.SERVER
    return None


def classify(error) -> ErrorKind:
    """
    Map any exception raised by a network-calling operation to an ErrorKind.
    """
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind
    if isinstance(kind, str) and kind.upper() in ErrorKind.__members__:
        return ErrorKind[kind.upper()]

    code = getattr(error, "code", None)
    if isinstance(code, str):
        if code in CONFLICT_CODES:
            return ErrorKind.CONFLICT
        if code in AUTH_CODES:
            return ErrorKind.AUTH
        if code in VALIDATION_CODES:
            return ErrorKind.VALIDATION
        if code in GENERIC_CODES:
            return ErrorKind.GENERIC

    by_status = kind_for_status(status_code_of(error))
    if by_status is not None:
        return by_status

    if isinstance(error, (requests.ConnectionError, requests.Timeout, ConnectionError, TimeoutError)):
        return ErrorKind.NETWORK
    if isinstance(error, (PermissionDenied, drf_exceptions.NotAuthenticated, drf_exceptions.PermissionDenied)):
        return ErrorKind.AUTH
    if isinstance(error, (DjangoValidationError, drf_exceptions.ValidationError)):
        return ErrorKind.VALIDATION

    return classify_message(str(error))


def classify_message(message: str) -> ErrorKind:
    """Keyword fallback for errors that only carry prose."""
    text = (message or "").lower()
    for kind, pattern in _KEYWORDS:
        if pattern.search(text):
            return kind
    return ErrorKind.GENERIC


def is_retryable(kind: ErrorKind) -> bool:
    return kind in RETRYABLE_KINDS


def user_message(kind: ErrorKind) -> str:
    return USER_MESSAGES.get(kind, USER_MESSAGES[ErrorKind.GENERIC])


def error_message(error) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error) or error.__class__.__name__


# -------------------------
# Retry loop
# -------------------------
class RetryPolicy:
    """
    Linear-backoff retry for transient (NETWORK/SERVER) failures.

    Args:
        max_attempts: total attempts including the first one.
        backoff_seconds: base delay; the wait after attempt N is N * base.
        sleep: injectable wait function (tests record delays instead of sleeping).
            Without it, waits block on cancel_event so cancel() interrupts them.
        cancel_event: threading.Event; once set, no further attempt is made.
    """

    def __init__(self, max_attempts: int = 3, backoff_seconds: float = 1.0, sleep=None, cancel_event=None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

    @classmethod
    def from_settings(cls, **kwargs):
        conf = getattr(settings, "BOOKING_RETRY", {}) or {}
        kwargs.setdefault("max_attempts", int(conf.get("MAX_ATTEMPTS", 3)))
        kwargs.setdefault("backoff_seconds", float(conf.get("BACKOFF_SECONDS", 1.0)))
        return cls(**kwargs)

    def delay_for(self, attempt: int) -> float:
        return attempt * self.backoff_seconds

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def _wait(self, delay: float) -> bool:
        """Wait `delay` seconds; return True if cancelled meanwhile."""
        if self.sleep is not None:
            self.sleep(delay)
            return self.cancelled
        return self.cancel_event.wait(delay)

    def run(self, operation, on_retry=None):
        """
        Call `operation()` until it succeeds or the policy gives up.

        Args:
            operation: zero-argument callable.
            on_retry: optional callback(attempt, kind, delay) fired before each wait.

        Returns:
            whatever `operation()` returns.

        Raises:
            ClassifiedError: non-retryable failure, or retries exhausted.
            RetryCancelledError: cancelled before or while waiting to retry.
        """
        attempt = 0
        while True:
            if self.cancelled:
                raise RetryCancelledError(attempt)
            attempt += 1
            try:
                return operation()
            except Exception as e:
                kind = classify(e)
                message = error_message(e)

                if not is_retryable(kind):
                    raise ClassifiedError(kind, message, attempt, status_code_of(e), e) from e

                if attempt >= self.max_attempts:
                    logger.error("Giving up after %s attempt(s): %s (%s)", attempt, message, kind.value)
                    raise ClassifiedError(kind, message, attempt, status_code_of(e), e) from e

                delay = self.delay_for(attempt)
                logger.warning(
                    "Attempt %s/%s failed with %s (%s); retrying in %.1fs",
                    attempt, self.max_attempts, kind.value, message, delay,
                )
                if on_retry is not None:
                    on_retry(attempt, kind, delay)
                if self._wait(delay):
                    logger.info("Retry cancelled after %s attempt(s)", attempt)
                    raise RetryCancelledError(attempt) from e


def with_retry(operation, max_attempts: int = 3, **kwargs):
    """Shortcut for RetryPolicy(max_attempts, **kwargs).run(operation)."""
    on_retry = kwargs.pop("on_retry", None)
    return RetryPolicy(max_attempts=max_attempts, **kwargs).run(operation, on_retry=on_retry)
