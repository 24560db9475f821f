"""
Tests for the settlement REST API.
"""

from unittest.mock import Mock, patch

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from claimpay.paystack.client import PaystackClient
from claimpay.settlements.exceptions import ProcessorError, TransientNetworkError
from claimpay.settlements.models import PaymentActionLog
from claimpay.settlements.state import SettlementStatus
from claimpay.tests.factories import ClaimFactory, TransferAttemptFactory, make_user


def paystack_mock():
    client = Mock(spec=PaystackClient)
    client.create_recipient.return_value = {
        "recipient_code": "RCP_t0ya41mp35flk40",
        "active": True,
        "details": {"account_number": "0123456789", "bank_code": "058", "bank_name": "GTBank"},
    }
    client.initiate_transfer.side_effect = lambda **kwargs: {
        "transfer_code": "TRF_1ptvuv321ahaa7q",
        "reference": kwargs["reference"],
        "status": "pending",
        "amount": kwargs["amount"],
        "currency": kwargs["currency"],
    }
    return client


class APITestBase(TestCase):
    def setUp(self):
        self.api = APIClient()
        self.insurer = make_user("insurer")
        self.customer = make_user("customer")
        self.paystack = paystack_mock()
        patcher = patch("claimpay.settlements.initiator.get_paystack_client", return_value=self.paystack)
        patcher.start()
        self.addCleanup(patcher.stop)
        poll_patcher = patch("claimpay.settlements.tasks.poll_transfer_status.apply_async")
        self.mock_apply_async = poll_patcher.start()
        self.addCleanup(poll_patcher.stop)


class InitiateTransferAPITests(APITestBase):
    def setUp(self):
        super().setUp()
        self.url = reverse("transfer-initiate")
        self.claim = ClaimFactory(customer=self.customer)
        self.payload = {
            "source": "balance",
            "amount": 500000,
            "recipient": {
                "account_number": "0123456789",
                "bank_code": "058",
                "account_name": "Ada Obi",
            },
            "metadata": {"claim_id": self.claim.pk},
        }

    def test_insurer_initiates_transfer(self):
        self.api.force_authenticate(self.insurer)

        response = self.api.post(self.url, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertEqual(body["transfer_code"], "TRF_1ptvuv321ahaa7q")
        self.assertEqual(body["status"], "pending")
        self.assertEqual(body["settlement_status"], SettlementStatus.PROCESSING)
        self.assertEqual(body["amount"], 500000)
        self.assertEqual(body["recipient"]["recipient_code"], "RCP_t0ya41mp35flk40")
        self.assertTrue(body["reference"].startswith("CLM-SETTLE-"))

    def test_customer_gets_authorization_error(self):
        self.api.force_authenticate(self.customer)

        response = self.api.post(self.url, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()["error"]["code"], "authorization_error")
        self.paystack.initiate_transfer.assert_not_called()

    def test_anonymous_is_rejected(self):
        response = self.api.post(self.url, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_missing_claim_id(self):
        self.api.force_authenticate(self.insurer)
        self.payload["metadata"] = {}

        response = self.api.post(self.url, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["error"]["code"], "validation_error")

    def test_non_numeric_claim_id(self):
        self.api.force_authenticate(self.insurer)
        self.payload["metadata"] = {"claim_id": "abc"}

        response = self.api.post(self.url, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        error = response.json()["error"]
        self.assertEqual(error["code"], "validation_error")
        self.assertIn("metadata", error["details"])
        self.paystack.initiate_transfer.assert_not_called()

    def test_numeric_string_claim_id_is_accepted(self):
        self.api.force_authenticate(self.insurer)
        self.payload["metadata"] = {"claim_id": str(self.claim.pk)}

        response = self.api.post(self.url, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_missing_bank_details_lists_fields(self):
        self.api.force_authenticate(self.insurer)
        self.payload["recipient"] = {"account_number": "0123456789"}

        response = self.api.post(self.url, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        error = response.json()["error"]
        self.assertEqual(error["code"], "validation_error")
        self.assertIn("bank_code", error["details"])
        self.assertIn("account_name", error["details"])

    def test_processor_rejection_is_502(self):
        self.api.force_authenticate(self.insurer)
        self.paystack.initiate_transfer.side_effect = ProcessorError(detail="Insufficient balance")

        response = self.api.post(self.url, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        error = response.json()["error"]
        self.assertEqual(error["code"], "processor_error")
        self.assertEqual(error["message"], "Insufficient balance")
        self.assertIn("request_id", error)

    def test_processor_unreachable_is_503(self):
        self.api.force_authenticate(self.insurer)
        self.paystack.initiate_transfer.side_effect = TransientNetworkError()

        response = self.api.post(self.url, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.json()["error"]["code"], "processor_unavailable")

    def test_already_processing_is_409(self):
        self.api.force_authenticate(self.insurer)
        self.api.post(self.url, self.payload, format="json")

        response = self.api.post(self.url, self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()["error"]["code"], "invalid_settlement_state")

    def test_request_id_is_recorded_on_action_log(self):
        self.api.force_authenticate(self.insurer)

        response = self.api.post(self.url, self.payload, format="json", HTTP_X_REQUEST_ID="req-abc-123")

        self.assertEqual(response["X-Request-Id"], "req-abc-123")
        entry = PaymentActionLog.objects.get(claim=self.claim, action="transfer_initiation")
        self.assertEqual(entry.request_id, "req-abc-123")


class TransferStatusAPITests(APITestBase):
    @patch("claimpay.paystack.client.PaystackClient.fetch_transfer")
    def test_status_query_reconciles_claim(self, mock_fetch):
        attempt = TransferAttemptFactory()
        claim = attempt.claim
        mock_fetch.return_value = {
            "transfer_code": claim.transfer_code,
            "reference": claim.transfer_reference,
            "status": "success",
            "amount": 500000,
            "currency": "NGN",
            "recipient": {"name": "Ada Obi", "details": {"account_number": "0123456789", "bank_name": "GTBank"}},
        }
        self.api.force_authenticate(self.insurer)

        response = self.api.get(reverse("transfer-status", args=[claim.transfer_code]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], "success")
        self.assertEqual(response.json()["settlement_status"], SettlementStatus.COMPLETED)
        claim.refresh_from_db()
        self.assertEqual(claim.settlement_status, SettlementStatus.COMPLETED)
        self.assertTrue(PaymentActionLog.objects.filter(claim=claim, action="status_query").exists())


class CreateRecipientAPITests(APITestBase):
    @patch("claimpay.settlements.views.get_paystack_client")
    def test_creates_recipient(self, mock_get_client):
        mock_get_client.return_value = self.paystack
        self.api.force_authenticate(self.insurer)

        response = self.api.post(
            reverse("recipient-create"),
            {"name": "Ada Obi", "account_number": "0123456789", "bank_code": "058"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()["recipient_code"], "RCP_t0ya41mp35flk40")
        self.assertTrue(response.json()["active"])
        kwargs = self.paystack.create_recipient.call_args.kwargs
        self.assertEqual(kwargs["recipient_type"], "nuban")
        self.assertEqual(kwargs["currency"], "NGN")


class ClaimSettlementAPITests(APITestBase):
    def setUp(self):
        super().setUp()
        self.own = ClaimFactory(customer=self.customer, failed=True)
        TransferAttemptFactory(claim=self.own)
        self.other = ClaimFactory(completed=True)

    def test_customer_sees_only_own_settlements(self):
        self.api.force_authenticate(self.customer)

        response = self.api.get(reverse("settlement-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [row["id"] for row in response.json()["results"]]
        self.assertEqual(ids, [self.own.pk])
        self.assertEqual(response.json()["results"][0]["bank_account_number"], "******6789")

    def test_insurer_filters_by_status(self):
        self.api.force_authenticate(self.insurer)

        response = self.api.get(reverse("settlement-list"), {"settlement_status": "failed"})

        ids = [row["id"] for row in response.json()["results"]]
        self.assertEqual(ids, [self.own.pk])
        self.assertTrue(response.json()["results"][0]["can_retry"])

    def test_customer_cannot_read_other_claim(self):
        self.api.force_authenticate(self.customer)

        response = self.api.get(reverse("settlement-detail", args=[self.other.pk]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_detail_includes_attempts(self):
        self.api.force_authenticate(self.insurer)

        response = self.api.get(reverse("settlement-detail", args=[self.own.pk]))

        self.assertEqual(len(response.json()["transfer_attempts"]), 1)

    def test_retry_failed_settlement(self):
        self.api.force_authenticate(self.insurer)

        response = self.api.post(reverse("settlement-retry", args=[self.own.pk]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.own.refresh_from_db()
        self.assertEqual(self.own.retry_count, 1)
        self.assertEqual(self.own.settlement_status, SettlementStatus.PROCESSING)
        self.assertEqual(response.json()["reference"], self.own.transfer_reference)

    def test_retry_completed_settlement_is_409(self):
        self.api.force_authenticate(self.insurer)

        response = self.api.post(reverse("settlement-retry", args=[self.other.pk]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_customer_cannot_retry(self):
        self.api.force_authenticate(self.customer)

        response = self.api.post(reverse("settlement-retry", args=[self.own.pk]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_action_log(self):
        self.api.force_authenticate(self.insurer)
        self.api.post(reverse("settlement-retry", args=[self.own.pk]), {}, format="json")

        response = self.api.get(reverse("settlement-action-history", args=[self.own.pk]))

        actions = [row["action"] for row in response.json()]
        self.assertIn("settlement_retry", actions)


class BankLookupAPITests(APITestBase):
    @patch("claimpay.settlements.views.get_paystack_client")
    def test_resolve_account(self, mock_get_client):
        mock_get_client.return_value.resolve_account.return_value = {
            "account_number": "0123456789",
            "account_name": "ADA OBI",
        }
        self.api.force_authenticate(self.customer)

        response = self.api.post(
            reverse("account-resolve"), {"account_number": "0123456789", "bank_code": "058"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["account_name"], "ADA OBI")

    def test_resolve_account_requires_ten_digits(self):
        self.api.force_authenticate(self.customer)

        response = self.api.post(
            reverse("account-resolve"), {"account_number": "12345", "bank_code": "058"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch("claimpay.settlements.views.get_paystack_client")
    def test_bank_list_hides_inactive_banks(self, mock_get_client):
        mock_get_client.return_value.list_banks.return_value = [
            {"name": "GTBank", "code": "058", "slug": "guaranty-trust-bank", "active": True},
            {"name": "Old Bank", "code": "999", "slug": "old-bank", "active": False},
        ]
        self.api.force_authenticate(self.customer)

        response = self.api.get(reverse("bank-list"))

        self.assertEqual([b["code"] for b in response.json()], ["058"])


class HealthCheckAPITests(TestCase):
    def test_health_needs_no_auth(self):
        response = APIClient().get(reverse("api-health"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], "healthy")
