"""
Settlement API views.

Money-moving endpoints (transfers, recipients, retries) are limited to
insurers and admins and share the ``settlement_write`` throttle. The
processor webhook is a plain Django view: it authenticates by signature,
not by user.
"""

import logging

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from claimpay.api.permissions import CanInitiateSettlement, IsClaimOwnerOrStaff, is_staff_role
from claimpay.api.throttling import LookupThrottle, SettlementWriteThrottle
from claimpay.models import Claim
from claimpay.paystack.client import get_paystack_client
from claimpay.settlements import payments, reconcile
from claimpay.settlements.exceptions import SettlementError, ValidationError
from claimpay.settlements.filters import SettlementFilter
from claimpay.settlements.initiator import TransferInitiator
from claimpay.settlements.models import Notification
from claimpay.settlements.retry import RetryCoordinator
from claimpay.settlements.serializers import (
    ClaimSettlementDetailSerializer,
    ClaimSettlementSerializer,
    CreateRecipientSerializer,
    InitializePaymentSerializer,
    InitiateTransferSerializer,
    NotificationSerializer,
    PaymentActionLogSerializer,
    ResolveAccountSerializer,
    RetrySettlementSerializer,
    TransferResponseSerializer,
    VerifyPaymentSerializer,
)
from claimpay.settlements.webhooks import SIGNATURE_HEADER, receive_webhook

logger = logging.getLogger(__name__)


def _transfer_response(result):
    attempt = result.attempt
    return {
        "transfer_code": attempt.transfer_code,
        "reference": attempt.reference,
        "status": result.transfer.get("status") or attempt.status,
        "settlement_status": result.claim.settlement_status,
        "amount": attempt.amount,
        "currency": attempt.currency,
        "recipient": {
            "recipient_code": attempt.recipient_code,
            "account_name": attempt.account_name,
            "bank_code": attempt.bank_code,
            "account_number": attempt.account_number,
        },
        "created_at": attempt.created_at,
        "updated_at": attempt.updated_at,
    }


class InitiateTransferView(APIView):
    """
    Pay out an approved claim.

    POST /api/v1/transfers/
    """

    permission_classes = [IsAuthenticated, CanInitiateSettlement]
    throttle_classes = [SettlementWriteThrottle]

    @extend_schema(
        tags=["Transfers"],
        request=InitiateTransferSerializer,
        responses={201: TransferResponseSerializer},
    )
    def post(self, request):
        serializer = InitiateTransferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        claim = get_object_or_404(Claim, pk=data["metadata"]["claim_id"])
        result = TransferInitiator().initiate(
            claim,
            data["amount"],
            data["recipient"],
            request.user,
            reference=data["reference"] or None,
            reason=data["reason"] or None,
            source=data["source"],
            metadata=data["metadata"],
        )
        return Response(_transfer_response(result), status=status.HTTP_201_CREATED)


class TransferStatusView(APIView):
    """
    Current processor status of a transfer, reconciled into its claim.

    GET /api/v1/transfers/<transfer_code>/
    """

    permission_classes = [IsAuthenticated, CanInitiateSettlement]

    @extend_schema(tags=["Transfers"], responses={200: dict})
    def get(self, request, transfer_code):
        transfer = reconcile.query_transfer_status(transfer_code)
        recipient = transfer.get("recipient") or {}
        details = recipient.get("details") or {} if isinstance(recipient, dict) else {}
        claim = reconcile.find_claim(reference=transfer.get("reference"), transfer_code=transfer_code)
        return Response(
            {
                "transfer_code": transfer.get("transfer_code", transfer_code),
                "reference": transfer.get("reference"),
                "status": transfer.get("status"),
                "amount": transfer.get("amount"),
                "currency": transfer.get("currency"),
                "reason": transfer.get("reason"),
                "failure_reason": transfer.get("failure_reason"),
                "recipient": {
                    "name": recipient.get("name") if isinstance(recipient, dict) else None,
                    "account_number": details.get("account_number"),
                    "bank_name": details.get("bank_name"),
                },
                "settlement_status": claim.settlement_status if claim else None,
                "created_at": transfer.get("createdAt"),
                "updated_at": transfer.get("updatedAt"),
                "transferred_at": transfer.get("transferred_at"),
            }
        )


class CreateRecipientView(APIView):
    """
    Register a bank account with the processor.

    POST /api/v1/recipients/
    """

    permission_classes = [IsAuthenticated, CanInitiateSettlement]
    throttle_classes = [SettlementWriteThrottle]

    @extend_schema(tags=["Transfers"], request=CreateRecipientSerializer, responses={201: dict})
    def post(self, request):
        serializer = CreateRecipientSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        recipient = get_paystack_client().create_recipient(
            name=data["name"],
            account_number=data["account_number"],
            bank_code=data["bank_code"],
            currency=data["currency"],
            metadata=data["metadata"],
            recipient_type=data["type"],
        )
        return Response(
            {
                "recipient_code": recipient.get("recipient_code"),
                "active": recipient.get("active", True),
                "details": recipient.get("details") or {},
            },
            status=status.HTTP_201_CREATED,
        )


class ClaimSettlementViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Settlement history and per-claim settlement actions.

    Customers see their own claims; insurers and admins see all of them.
    """

    serializer_class = ClaimSettlementSerializer
    permission_classes = [IsAuthenticated, IsClaimOwnerOrStaff]
    filterset_class = SettlementFilter
    ordering_fields = ["updated_at", "settlement_date", "settlement_amount", "retry_count"]
    ordering = ["-updated_at"]

    def get_queryset(self):
        queryset = (
            Claim.objects.select_related("customer")
            .filter(transfer_reference__isnull=False)
        )
        if self.action == "retrieve":
            queryset = queryset.prefetch_related("transfer_attempts")
        if not is_staff_role(self.request.user):
            queryset = queryset.filter(customer=self.request.user)
        return queryset

    def get_serializer_class(self):
        if self.action == "retrieve":
            return ClaimSettlementDetailSerializer
        return ClaimSettlementSerializer

    @extend_schema(
        tags=["Settlements"],
        summary="Retry a failed settlement",
        request=RetrySettlementSerializer,
        responses={201: TransferResponseSerializer},
    )
    @action(
        detail=True,
        methods=["post"],
        permission_classes=[IsAuthenticated, CanInitiateSettlement],
        throttle_classes=[SettlementWriteThrottle],
    )
    def retry(self, request, pk=None):
        serializer = RetrySettlementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        claim = self.get_object()
        result = RetryCoordinator().retry(
            claim.pk, request.user, amount=serializer.validated_data.get("amount")
        )
        return Response(_transfer_response(result), status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Settlements"],
        summary="Settlement action log",
        responses={200: PaymentActionLogSerializer(many=True)},
    )
    @action(detail=True, methods=["get"], url_path="actions")
    def action_history(self, request, pk=None):
        claim = self.get_object()
        entries = claim.action_log.order_by("timestamp", "id")
        return Response(PaymentActionLogSerializer(entries, many=True).data)


class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """The signed-in user's notifications."""

    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)

    @extend_schema(tags=["Settlements"], request=None, responses={200: NotificationSerializer})
    @action(detail=True, methods=["post"], url_path="read")
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read"])
        return Response(NotificationSerializer(notification).data)


class BankListView(APIView):
    """
    Banks the processor can pay into.

    GET /api/v1/banks/?country=nigeria&currency=NGN
    """

    throttle_classes = [LookupThrottle]

    @extend_schema(tags=["Banks"], responses={200: dict})
    def get(self, request):
        banks = get_paystack_client().list_banks(
            country=request.query_params.get("country", "nigeria"),
            currency=request.query_params.get("currency"),
        )
        return Response(
            [
                {"name": bank.get("name"), "code": bank.get("code"), "slug": bank.get("slug")}
                for bank in banks
                if bank.get("active", True)
            ]
        )


class ResolveAccountView(APIView):
    """
    Look up the account name behind an account number.

    POST /api/v1/accounts/resolve/
    """

    throttle_classes = [LookupThrottle]

    @extend_schema(tags=["Banks"], request=ResolveAccountSerializer, responses={200: dict})
    def post(self, request):
        serializer = ResolveAccountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        account = get_paystack_client().resolve_account(data["account_number"], data["bank_code"])
        return Response(
            {
                "account_name": account.get("account_name"),
                "account_number": account.get("account_number", data["account_number"]),
                "bank_code": data["bank_code"],
            }
        )


class InitializePaymentView(APIView):
    """
    Start a premium or deductible charge.

    POST /api/v1/payments/initialize/
    """

    @extend_schema(tags=["Payments"], request=InitializePaymentSerializer, responses={201: dict})
    def post(self, request):
        serializer = InitializePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        claim = None
        if data.get("claim_id"):
            claim = get_object_or_404(Claim, pk=data["claim_id"])
            if claim.customer_id != request.user.pk and not is_staff_role(request.user):
                raise ValidationError(detail="Claim does not belong to you.", details={"claim_id": [data["claim_id"]]})

        result = payments.initialize_payment(
            request.user,
            data["amount"],
            data["email"],
            payment_type=data["payment_type"],
            claim=claim,
            callback_url=data.get("callback_url") or None,
        )
        return Response(result, status=status.HTTP_201_CREATED)


class VerifyPaymentView(APIView):
    """
    Confirm a charge with the processor and record its outcome.

    POST /api/v1/payments/verify/
    """

    @extend_schema(tags=["Payments"], request=VerifyPaymentSerializer, responses={200: dict})
    def post(self, request):
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(payments.verify_payment(serializer.validated_data["reference"]))


@csrf_exempt
@require_POST
def paystack_webhook(request):
    """
    Handle Paystack webhook events.

    POST /webhooks/paystack/

    Answers 200 for every delivery whose signature checks out, including
    duplicates and unhandled events, so the processor stops redelivering.
    """
    try:
        outcome = receive_webhook(request.body, request.META.get(SIGNATURE_HEADER, ""))
    except SettlementError as e:
        return JsonResponse({"error": e.message}, status=400)

    logger.info("Paystack webhook acknowledged: %s", outcome)
    return JsonResponse({"received": True})
