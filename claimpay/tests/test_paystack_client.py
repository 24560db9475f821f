"""
Tests for the Paystack API client and its circuit breaker.
"""

from unittest.mock import Mock, patch

import requests
from django.core.cache import cache
from django.test import TestCase

from claimpay.paystack.client import PaystackClient
from claimpay.paystack.resilience import (
    CircuitBreaker,
    CircuitBreakerOpen,
    is_processor_outage,
    retry_with_backoff,
)
from claimpay.settlements.exceptions import ProcessorError, TransientNetworkError


def response(status_code=200, body=None):
    resp = Mock(spec=requests.Response)
    resp.status_code = status_code
    resp.ok = status_code < 400
    if body is None:
        resp.json.side_effect = ValueError("No JSON")
    else:
        resp.json.return_value = body
    return resp


class PaystackClientTests(TestCase):
    def setUp(self):
        cache.clear()
        self.session = Mock(spec=requests.Session)
        self.client = PaystackClient(
            secret_key="sk_test_abc",  # pragma: allowlist secret
            base_url="https://paystack.test/",
            connect_timeout=2,
            read_timeout=7,
            session=self.session,
        )

    def test_initiate_transfer_sends_minor_units(self):
        self.session.request.return_value = response(
            body={"status": True, "message": "Transfer has been queued", "data": {"transfer_code": "TRF_1", "status": "pending"}}
        )

        data = self.client.initiate_transfer(
            amount=500000,
            recipient_code="RCP_1",
            reference="CLM-SETTLE-1-ABCDEF",
            reason="Claim settlement: CLM-1",
        )

        self.assertEqual(data, {"transfer_code": "TRF_1", "status": "pending"})
        method, url = self.session.request.call_args.args
        kwargs = self.session.request.call_args.kwargs
        self.assertEqual((method, url), ("POST", "https://paystack.test/transfer"))
        self.assertEqual(kwargs["json"]["amount"], 500000)
        self.assertEqual(kwargs["json"]["recipient"], "RCP_1")
        self.assertEqual(kwargs["json"]["source"], "balance")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk_test_abc")
        self.assertEqual(kwargs["timeout"], (2, 7))

    def test_rejection_becomes_processor_error(self):
        self.session.request.return_value = response(
            400, {"status": False, "message": "Invalid bank code"}
        )

        with self.assertRaises(ProcessorError) as ctx:
            self.client.create_recipient("Ada Obi", "0123456789", "999")

        self.assertEqual(ctx.exception.message, "Invalid bank code")
        self.assertEqual(ctx.exception.http_status, 400)
        self.assertEqual(ctx.exception.response["message"], "Invalid bank code")

    def test_status_false_with_http_200_is_rejection(self):
        self.session.request.return_value = response(200, {"status": False, "message": "Nope"})

        with self.assertRaises(ProcessorError):
            self.client.fetch_transfer("TRF_1")

    def test_non_json_error_body(self):
        self.session.request.return_value = response(502)

        with self.assertRaises(ProcessorError) as ctx:
            self.client.fetch_transfer("TRF_1")

        self.assertEqual(ctx.exception.message, "HTTP 502")

    def test_timeout_becomes_transient_error(self):
        self.session.request.side_effect = requests.Timeout("read timed out")

        with self.assertRaises(TransientNetworkError):
            self.client.fetch_transfer("TRF_1")

    def test_truncated_body_becomes_transient_error(self):
        self.session.request.side_effect = requests.exceptions.ChunkedEncodingError("truncated")

        with self.assertRaises(TransientNetworkError):
            self.client.fetch_transfer("TRF_1")

    def test_non_object_body_is_rejection(self):
        self.session.request.return_value = response(body=["not", "an", "object"])

        with self.assertRaises(ProcessorError) as ctx:
            self.client.fetch_transfer("TRF_1")

        self.assertEqual(ctx.exception.http_status, 200)

    @patch("claimpay.paystack.resilience.time.sleep")
    def test_lookups_retry_transient_failures(self, mock_sleep):
        self.session.request.side_effect = [
            requests.ConnectionError("reset"),
            response(body={"status": True, "data": {"account_name": "ADA OBI"}}),
        ]

        data = self.client.resolve_account("0123456789", "058")

        self.assertEqual(data["account_name"], "ADA OBI")
        self.assertEqual(self.session.request.call_count, 2)
        mock_sleep.assert_called_once_with(0.5)

    def test_transfers_are_never_retried(self):
        self.session.request.side_effect = requests.ConnectionError("reset")

        with self.assertRaises(TransientNetworkError):
            self.client.initiate_transfer(
                amount=1000, recipient_code="RCP_1", reference="R", reason="r"
            )

        self.assertEqual(self.session.request.call_count, 1)

    def test_list_banks_returns_list(self):
        self.session.request.return_value = response(
            body={"status": True, "data": [{"name": "GTBank", "code": "058", "active": True}]}
        )

        banks = self.client.list_banks(currency="NGN")

        self.assertEqual(banks[0]["code"], "058")
        self.assertEqual(
            self.session.request.call_args.kwargs["params"], {"country": "nigeria", "currency": "NGN"}
        )


class CircuitBreakerTests(TestCase):
    def setUp(self):
        cache.clear()
        self.breaker = CircuitBreaker("test-paystack", failure_threshold=2, recovery_timeout=60)

    def failing_call(self, error):
        def call():
            raise error

        with self.assertRaises(type(error)):
            self.breaker.call(call)

    def test_opens_after_repeated_outages(self):
        self.failing_call(TransientNetworkError())
        self.failing_call(ProcessorError(http_status=503))

        self.assertEqual(self.breaker.state, CircuitBreaker.OPEN)
        with self.assertRaises(CircuitBreakerOpen):
            self.breaker.call(lambda: "never")

    def test_client_errors_do_not_open_circuit(self):
        for _ in range(3):
            self.failing_call(ProcessorError(http_status=400))

        self.assertEqual(self.breaker.state, CircuitBreaker.CLOSED)

    def test_half_open_success_closes_circuit(self):
        self.failing_call(TransientNetworkError())
        self.failing_call(TransientNetworkError())
        self.breaker.recovery_timeout = 0

        self.assertEqual(self.breaker.call(lambda: "ok"), "ok")
        self.assertEqual(self.breaker.state, CircuitBreaker.CLOSED)

    def test_failed_trial_call_reopens_circuit(self):
        self.failing_call(TransientNetworkError())
        self.failing_call(TransientNetworkError())
        self.breaker.recovery_timeout = 0

        self.failing_call(ProcessorError(http_status=502))

        self.assertEqual(self.breaker.state, CircuitBreaker.OPEN)

    def test_state_is_shared_between_processes(self):
        other = CircuitBreaker("test-paystack", failure_threshold=2, recovery_timeout=60)
        self.failing_call(TransientNetworkError())
        self.failing_call(TransientNetworkError())

        with self.assertRaises(CircuitBreakerOpen):
            other.call(lambda: "never")

        other.reset()
        self.assertEqual(self.breaker.state, CircuitBreaker.CLOSED)
        self.assertEqual(self.breaker.call(lambda: "ok"), "ok")

    def test_outage_classification(self):
        self.assertTrue(is_processor_outage(TransientNetworkError()))
        self.assertTrue(is_processor_outage(ProcessorError(http_status=500)))
        self.assertFalse(is_processor_outage(ProcessorError(http_status=422)))
        self.assertFalse(is_processor_outage(ValueError()))


class RetryWithBackoffTests(TestCase):
    @patch("claimpay.paystack.resilience.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep):
        calls = []

        @retry_with_backoff(max_retries=2, base_delay=1.0)
        def lookup():
            calls.append(1)
            raise TransientNetworkError()

        with self.assertRaises(TransientNetworkError):
            lookup()

        self.assertEqual(len(calls), 3)
        self.assertEqual([c.args[0] for c in mock_sleep.call_args_list], [1.0, 2.0])

    def test_open_circuit_is_not_retried(self):
        calls = []

        @retry_with_backoff()
        def lookup():
            calls.append(1)
            raise CircuitBreakerOpen()

        with self.assertRaises(CircuitBreakerOpen):
            lookup()

        self.assertEqual(len(calls), 1)
