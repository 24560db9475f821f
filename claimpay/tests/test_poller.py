"""
Tests for transfer status polling.
"""

import threading
from unittest.mock import Mock, patch

import requests
from django.core.cache import cache
from django.test import TestCase, override_settings

from claimpay.paystack.client import PaystackClient
from claimpay.settlements import store, tasks
from claimpay.settlements.exceptions import ProcessorError, TransientNetworkError
from claimpay.settlements.models import Notification, PaymentActionLog
from claimpay.settlements.poller import (
    CANCELLED,
    CONTINUE,
    EXHAUSTED,
    FINISHED,
    MAX_POLLS,
    StatusPoller,
    configured_max_polls,
    poll_delay,
    poll_offsets,
)
from claimpay.settlements.state import SettlementStatus
from claimpay.tests.factories import ClaimFactory, TransferAttemptFactory, make_user


def fetching(*statuses):
    client = Mock(spec=PaystackClient)
    client.fetch_transfer.side_effect = [
        s if isinstance(s, Exception) else {"status": s, "transfer_code": "TRF_x"} for s in statuses
    ]
    return client


class CadenceTests(TestCase):
    def test_delays_by_poll_number(self):
        self.assertEqual([poll_delay(n) for n in (1, 12)], [10, 10])
        self.assertEqual([poll_delay(n) for n in (13, 22)], [30, 30])
        self.assertEqual([poll_delay(n) for n in (23, 60)], [60, 60])

    def test_offsets_are_cumulative(self):
        offsets = list(poll_offsets())

        self.assertEqual(len(offsets), MAX_POLLS)
        self.assertEqual(offsets[0], 10)
        self.assertEqual(offsets[11], 120)
        self.assertEqual(offsets[21], 420)
        self.assertEqual(offsets[-1], 420 + 38 * 60)

    def test_default_budget(self):
        self.assertEqual(configured_max_polls(), 60)

    @override_settings(SETTLEMENT_MAX_POLLS=5)
    def test_budget_is_configurable(self):
        self.assertEqual(configured_max_polls(), 5)


class StatusPollerTickTests(TestCase):
    def setUp(self):
        self.operator = make_user("insurer")
        self.claim = ClaimFactory(processing=True, settlement_initiated_by=self.operator)
        TransferAttemptFactory(claim=self.claim)

    def test_pending_status_continues(self):
        poller = StatusPoller(self.claim.pk, self.claim.poll_token, client=fetching("pending"))

        self.assertEqual(poller.tick(1), CONTINUE)

        self.claim.refresh_from_db()
        self.assertEqual(self.claim.poll_count, 1)
        self.assertIsNotNone(self.claim.last_polled_at)
        self.assertEqual(self.claim.settlement_status, SettlementStatus.PROCESSING)

    def test_success_finishes_and_notifies(self):
        finished = []
        poller = StatusPoller(
            self.claim.pk,
            self.claim.poll_token,
            client=fetching("success"),
            on_finished=lambda outcome, claim: finished.append((outcome, claim.settlement_status)),
        )

        self.assertEqual(poller.tick(4), FINISHED)

        self.claim.refresh_from_db()
        self.assertEqual(self.claim.settlement_status, SettlementStatus.COMPLETED)
        self.assertEqual(finished, [(FINISHED, SettlementStatus.COMPLETED)])
        self.assertTrue(poller.stopped)
        self.assertTrue(
            PaymentActionLog.objects.filter(claim=self.claim, action="poll_transition").exists()
        )
        self.assertEqual(Notification.objects.get().type, "settlement_completed")

    def test_network_errors_keep_polling(self):
        poller = StatusPoller(
            self.claim.pk,
            self.claim.poll_token,
            client=fetching(TransientNetworkError(), ProcessorError(detail="Transfer not found")),
        )

        self.assertEqual(poller.tick(1), CONTINUE)
        self.assertEqual(poller.tick(2), CONTINUE)

        self.claim.refresh_from_db()
        self.assertEqual(self.claim.settlement_status, SettlementStatus.PROCESSING)

    def test_broken_responses_keep_polling(self):
        cache.clear()
        session = Mock(spec=requests.Session)
        session.request.side_effect = requests.exceptions.ChunkedEncodingError("truncated")
        client = PaystackClient(secret_key="sk_test_abc", session=session)  # pragma: allowlist secret
        poller = StatusPoller(self.claim.pk, self.claim.poll_token, client=client)

        self.assertEqual(poller.tick(1), CONTINUE)

        body = Mock(spec=requests.Response, status_code=200, ok=True)
        body.json.return_value = ["unexpected"]
        session.request.side_effect = None
        session.request.return_value = body

        self.assertEqual(poller.tick(2), CONTINUE)
        self.claim.refresh_from_db()
        self.assertEqual(self.claim.settlement_status, SettlementStatus.PROCESSING)
        self.assertEqual(self.claim.poll_count, 2)

    def test_exhaustion_marks_stalled_and_alerts_operator(self):
        poller = StatusPoller(
            self.claim.pk, self.claim.poll_token, client=fetching("pending"), max_polls=3
        )

        with self.assertLogs("claimpay.services.poller", level="ERROR"):
            self.assertEqual(poller.tick(3), EXHAUSTED)

        self.claim.refresh_from_db()
        self.assertEqual(self.claim.settlement_status, SettlementStatus.STALLED)
        self.assertEqual(self.claim.poll_count, 3)
        self.assertIsNone(self.claim.poll_token)
        entry = PaymentActionLog.objects.get(claim=self.claim, action="settlement_stalled")
        self.assertEqual(entry.details["poll_count"], 3)
        notification = Notification.objects.get()
        self.assertEqual(notification.user, self.operator)
        self.assertEqual(notification.type, "settlement_stalled")

    def test_stale_token_is_cancelled(self):
        client = fetching("success")
        poller = StatusPoller(self.claim.pk, "00000000-0000-0000-0000-000000000000", client=client)

        self.assertEqual(poller.tick(1), CANCELLED)

        client.fetch_transfer.assert_not_called()

    def test_webhook_settlement_stops_polling(self):
        poller = StatusPoller(self.claim.pk, self.claim.poll_token, client=fetching("pending"))
        store.apply_transition(self.claim.pk, self.claim.transfer_reference, SettlementStatus.FAILED)

        self.assertEqual(poller.tick(2), CANCELLED)

    def test_stopped_poller_does_nothing(self):
        client = fetching("pending")
        poller = StatusPoller(self.claim.pk, self.claim.poll_token, client=client)
        poller.stop()

        self.assertEqual(poller.tick(1), CANCELLED)
        client.fetch_transfer.assert_not_called()


class StatusPollerRunTests(TestCase):
    def setUp(self):
        self.claim = ClaimFactory(processing=True)
        TransferAttemptFactory(claim=self.claim)

    @patch.object(threading.Event, "wait", return_value=False)
    def test_run_polls_until_final_status(self, mock_wait):
        client = fetching("pending", "otp", "success")

        outcome = StatusPoller(self.claim.pk, self.claim.poll_token, client=client).run()

        self.assertEqual(outcome, FINISHED)
        self.assertEqual(client.fetch_transfer.call_count, 3)
        self.assertEqual([c.args[0] for c in mock_wait.call_args_list], [10, 10, 10])

    @patch.object(threading.Event, "wait", return_value=True)
    def test_stop_interrupts_wait(self, mock_wait):
        client = fetching("pending")

        outcome = StatusPoller(self.claim.pk, self.claim.poll_token, client=client).run()

        self.assertEqual(outcome, CANCELLED)
        client.fetch_transfer.assert_not_called()

    def test_context_manager_stops_on_exit(self):
        with StatusPoller(self.claim.pk, self.claim.poll_token, client=fetching()) as poller:
            self.assertFalse(poller.stopped)

        self.assertTrue(poller.stopped)


@patch("claimpay.settlements.tasks.poll_transfer_status.apply_async")
class PollTaskTests(TestCase):
    def setUp(self):
        self.claim = ClaimFactory(processing=True)
        TransferAttemptFactory(claim=self.claim)

    @patch("claimpay.settlements.poller.get_paystack_client")
    def test_task_schedules_next_poll(self, mock_get_client, mock_apply_async):
        mock_get_client.return_value = fetching("pending")
        mock_apply_async.return_value.id = "poll-13"

        result = tasks.poll_transfer_status(self.claim.pk, str(self.claim.poll_token), 12)

        self.assertEqual(result["outcome"], CONTINUE)
        mock_apply_async.assert_called_once_with(
            args=[self.claim.pk, str(self.claim.poll_token), 13], countdown=30
        )
        self.claim.refresh_from_db()
        self.assertEqual(self.claim.poll_task_id, "poll-13")

    @patch("claimpay.settlements.poller.get_paystack_client")
    def test_task_stops_on_final_status(self, mock_get_client, mock_apply_async):
        mock_get_client.return_value = fetching("failed")

        result = tasks.poll_transfer_status(self.claim.pk, str(self.claim.poll_token), 5)

        self.assertEqual(result["outcome"], FINISHED)
        mock_apply_async.assert_not_called()

    def test_resume_replaces_poll_chain(self, mock_apply_async):
        mock_apply_async.return_value.id = "poll-1"
        old_token = self.claim.poll_token

        tasks.resume_polling(self.claim.pk)

        self.claim.refresh_from_db()
        self.assertNotEqual(self.claim.poll_token, old_token)
        mock_apply_async.assert_called_once_with(
            args=[self.claim.pk, str(self.claim.poll_token), 1], countdown=10
        )

    def test_resume_skips_settled_claims(self, mock_apply_async):
        claim = ClaimFactory(completed=True)

        self.assertIsNone(tasks.resume_polling(claim.pk))
        mock_apply_async.assert_not_called()
