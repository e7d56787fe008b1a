# booking/tests/test_retry_policy.py

import threading

import requests
from django.test import SimpleTestCase, override_settings

from booking.client import BookingServiceError
from booking.exceptions import ConflictError, PastDateError, SlotConflictError
from booking.services.retry_policy import (
    ClassifiedError,
    ErrorKind,
    RetryCancelledError,
    RetryPolicy,
    classify,
    classify_message,
    is_retryable,
    user_message,
    with_retry,
)


class FlakyOperation:
    """Raises the queued errors in order, then returns `result`."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class ClassifyTests(SimpleTestCase):
    def test_status_codes(self):
        self.assertEqual(classify(BookingServiceError(401)), ErrorKind.AUTH)
        self.assertEqual(classify(BookingServiceError(403)), ErrorKind.AUTH)
        self.assertEqual(classify(BookingServiceError(409)), ErrorKind.CONFLICT)
        self.assertEqual(classify(BookingServiceError(400)), ErrorKind.VALIDATION)
        self.assertEqual(classify(BookingServiceError(502)), ErrorKind.SERVER)

    def test_error_code_wins_over_status(self):
        err = BookingServiceError(400, code="slot_unavailable", message="taken")
        self.assertEqual(classify(err), ErrorKind.CONFLICT)

    def test_booking_exceptions_by_code(self):
        self.assertEqual(classify(SlotConflictError()), ErrorKind.CONFLICT)
        self.assertEqual(classify(ConflictError()), ErrorKind.CONFLICT)
        self.assertEqual(classify(PastDateError()), ErrorKind.VALIDATION)

    def test_transport_errors_are_network(self):
        self.assertEqual(classify(requests.ConnectionError("refused")), ErrorKind.NETWORK)
        self.assertEqual(classify(requests.Timeout("slow")), ErrorKind.NETWORK)
        self.assertEqual(classify(ConnectionResetError()), ErrorKind.NETWORK)

    def test_explicit_kind_attribute(self):
        err = Exception("whatever")
        err.kind = "server"
        self.assertEqual(classify(err), ErrorKind.SERVER)

    def test_keyword_fallback(self):
        self.assertEqual(classify(Exception("Token expired")), ErrorKind.AUTH)
        self.assertEqual(classify(Exception("Sala non disponibile")), ErrorKind.CONFLICT)
        self.assertEqual(classify(Exception("Failed to fetch")), ErrorKind.NETWORK)
        self.assertEqual(classify(Exception("Internal Server Error")), ErrorKind.SERVER)
        self.assertEqual(classify(Exception("Field is required")), ErrorKind.VALIDATION)
        self.assertEqual(classify_message("something odd"), ErrorKind.GENERIC)

    def test_only_network_and_server_are_retryable(self):
        retryable = {kind for kind in ErrorKind if is_retryable(kind)}
        self.assertEqual(retryable, {ErrorKind.NETWORK, ErrorKind.SERVER})

    def test_generic_error_code_wins_over_5xx_status(self):
        # GenericError is sent as HTTP 500 with code "error"; it must not look transient
        self.assertEqual(classify(BookingServiceError(500, code="error")), ErrorKind.GENERIC)

    def test_keywords_match_whole_words_only(self):
        self.assertEqual(classify_message("Value could not be interpreted"), ErrorKind.GENERIC)
        self.assertEqual(classify_message("The secret is concrete"), ErrorKind.GENERIC)
        self.assertEqual(classify_message("Room 1500 not found"), ErrorKind.GENERIC)
        self.assertEqual(classify_message("Errore di rete"), ErrorKind.NETWORK)
        self.assertEqual(classify_message("HTTP 500 from upstream"), ErrorKind.SERVER)
        self.assertEqual(classify_message("Stanza occupata"), ErrorKind.CONFLICT)

    def test_user_messages_exist_for_every_kind(self):
        for kind in ErrorKind:
            self.assertTrue(user_message(kind))


class RetryPolicyTests(SimpleTestCase):
    def setUp(self):
        self.delays = []
        self.policy = RetryPolicy(max_attempts=3, backoff_seconds=1.0, sleep=self.delays.append)

    def test_success_first_time(self):
        op = FlakyOperation([])
        self.assertEqual(self.policy.run(op), "ok")
        self.assertEqual(op.calls, 1)
        self.assertEqual(self.delays, [])

    def test_server_errors_then_success(self):
        op = FlakyOperation([BookingServiceError(503), BookingServiceError(500)], result="booked")
        self.assertEqual(self.policy.run(op), "booked")
        self.assertEqual(op.calls, 3)
        # Linear backoff: 1s after the first failure, 2s after the second
        self.assertEqual(self.delays, [1.0, 2.0])

    def test_gives_up_after_max_attempts(self):
        op = FlakyOperation([requests.ConnectionError("down")] * 5)
        with self.assertRaises(ClassifiedError) as ctx:
            self.policy.run(op)
        self.assertEqual(ctx.exception.kind, ErrorKind.NETWORK)
        self.assertEqual(ctx.exception.attempts, 3)
        self.assertEqual(op.calls, 3)

    def test_auth_fails_immediately(self):
        op = FlakyOperation([BookingServiceError(401, message="expired")])
        with self.assertRaises(ClassifiedError) as ctx:
            self.policy.run(op)
        self.assertEqual(ctx.exception.kind, ErrorKind.AUTH)
        self.assertEqual(ctx.exception.attempts, 1)
        self.assertEqual(ctx.exception.message, "expired")
        self.assertEqual(op.calls, 1)
        self.assertEqual(self.delays, [])

    def test_conflict_is_never_retried(self):
        op = FlakyOperation([BookingServiceError(409, code="slot_unavailable")])
        with self.assertRaises(ClassifiedError) as ctx:
            self.policy.run(op)
        self.assertEqual(ctx.exception.kind, ErrorKind.CONFLICT)
        self.assertEqual(op.calls, 1)

    def test_generic_server_error_fails_fast(self):
        op = FlakyOperation([BookingServiceError(500, code="error", message="Unexpected failure")])
        with self.assertRaises(ClassifiedError) as ctx:
            self.policy.run(op)
        self.assertEqual(ctx.exception.kind, ErrorKind.GENERIC)
        self.assertEqual(op.calls, 1)
        self.assertEqual(self.delays, [])

    def test_on_retry_callback(self):
        seen = []
        op = FlakyOperation([BookingServiceError(500)])
        self.policy.run(op, on_retry=lambda attempt, kind, delay: seen.append((attempt, kind, delay)))
        self.assertEqual(seen, [(1, ErrorKind.SERVER, 1.0)])

    def test_cancel_during_wait_stops_retrying(self):
        policy = RetryPolicy(max_attempts=3, backoff_seconds=1.0, sleep=lambda delay: policy.cancel())
        op = FlakyOperation([BookingServiceError(500), BookingServiceError(500)])
        with self.assertRaises(RetryCancelledError) as ctx:
            policy.run(op)
        self.assertEqual(ctx.exception.attempts, 1)
        self.assertEqual(op.calls, 1)

    def test_cancelled_before_start(self):
        event = threading.Event()
        event.set()
        policy = RetryPolicy(cancel_event=event)
        op = FlakyOperation([])
        with self.assertRaises(RetryCancelledError):
            policy.run(op)
        self.assertEqual(op.calls, 0)

    def test_event_wait_is_interrupted_by_cancel(self):
        # No injected sleep: the wait blocks on the cancel event itself
        event = threading.Event()
        policy = RetryPolicy(max_attempts=3, backoff_seconds=30.0, cancel_event=event)

        def operation():
            event.set()
            raise BookingServiceError(503)

        with self.assertRaises(RetryCancelledError):
            policy.run(operation)

    def test_invalid_max_attempts(self):
        with self.assertRaises(ValueError):
            RetryPolicy(max_attempts=0)

    @override_settings(BOOKING_RETRY={"MAX_ATTEMPTS": 5, "BACKOFF_SECONDS": 0.5})
    def test_from_settings(self):
        policy = RetryPolicy.from_settings()
        self.assertEqual(policy.max_attempts, 5)
        self.assertEqual(policy.delay_for(2), 1.0)

    def test_with_retry_shortcut(self):
        delays = []
        op = FlakyOperation([BookingServiceError(500)])
        self.assertEqual(with_retry(op, max_attempts=2, backoff_seconds=0.1, sleep=delays.append), "ok")
        self.assertEqual(delays, [0.1])
