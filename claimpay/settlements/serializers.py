"""
Serializers for the settlement API.

Request serializers only check shape; business validation (required bank
details, positive amount) lives in ``TransferInitiator`` so the same rules
apply to every caller.
"""

from rest_framework import serializers

from claimpay.models import Claim
from claimpay.settlements.models import Notification, PaymentActionLog, TransferAttempt


class RecipientSerializer(serializers.Serializer):
    account_number = serializers.CharField(allow_blank=True, required=False, default="")
    bank_code = serializers.CharField(allow_blank=True, required=False, default="")
    account_name = serializers.CharField(allow_blank=True, required=False, default="")


class InitiateTransferSerializer(serializers.Serializer):
    source = serializers.CharField(required=False, default="balance")
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    amount = serializers.IntegerField()
    recipient = RecipientSerializer(required=False, default=dict)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=100, default="")
    metadata = serializers.DictField(required=False, default=dict)

    def validate_metadata(self, value):
        if "claim_id" not in value:
            raise serializers.ValidationError("metadata.claim_id is required.")
        claim_id = value["claim_id"]
        if isinstance(claim_id, bool) or not str(claim_id).isdigit():
            raise serializers.ValidationError("metadata.claim_id must be a claim id.")
        return {**value, "claim_id": int(claim_id)}


class TransferResponseSerializer(serializers.Serializer):
    transfer_code = serializers.CharField()
    reference = serializers.CharField()
    status = serializers.CharField()
    amount = serializers.IntegerField()
    currency = serializers.CharField()
    recipient = serializers.DictField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class CreateRecipientSerializer(serializers.Serializer):
    type = serializers.CharField(required=False, default="nuban")
    name = serializers.CharField()
    account_number = serializers.CharField()
    bank_code = serializers.CharField()
    currency = serializers.CharField(required=False, default="NGN")
    metadata = serializers.DictField(required=False, default=dict)


class ResolveAccountSerializer(serializers.Serializer):
    account_number = serializers.RegexField(r"^\d{10}$", error_messages={"invalid": "Account number must be 10 digits."})
    bank_code = serializers.CharField()


class InitializePaymentSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1)
    email = serializers.EmailField()
    claim_id = serializers.IntegerField(required=False, allow_null=True)
    payment_type = serializers.ChoiceField(choices=["premium", "deductible"], default="premium")
    callback_url = serializers.URLField(required=False, allow_blank=True)


class VerifyPaymentSerializer(serializers.Serializer):
    reference = serializers.CharField(max_length=100)


class RetrySettlementSerializer(serializers.Serializer):
    amount = serializers.IntegerField(required=False, min_value=1)


class TransferAttemptSerializer(serializers.ModelSerializer):
    class Meta:
        model = TransferAttempt
        fields = [
            "attempt_number",
            "reference",
            "transfer_code",
            "amount",
            "currency",
            "status",
            "failure_reason",
            "bank_code",
            "account_name",
            "created_at",
            "updated_at",
            "completed_at",
        ]
        read_only_fields = fields


class ClaimSettlementSerializer(serializers.ModelSerializer):
    """Settlement view of a claim; drives the status badge and retry control."""

    customer = serializers.PrimaryKeyRelatedField(read_only=True)
    customer_name = serializers.SerializerMethodField()
    bank_account_number = serializers.SerializerMethodField()
    can_retry = serializers.BooleanField(source="can_retry_settlement", read_only=True)

    class Meta:
        model = Claim
        fields = [
            "id",
            "claim_number",
            "customer",
            "customer_name",
            "status",
            "settlement_status",
            "settlement_amount",
            "currency",
            "transfer_code",
            "transfer_reference",
            "retry_count",
            "failure_reason",
            "settlement_date",
            "bank_account_name",
            "bank_account_number",
            "bank_code",
            "poll_count",
            "can_retry",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_customer_name(self, obj):
        return obj.customer.get_full_name() or obj.customer.username

    def get_bank_account_number(self, obj):
        number = obj.bank_account_number or ""
        return f"******{number[-4:]}" if number else ""


class ClaimSettlementDetailSerializer(ClaimSettlementSerializer):
    transfer_attempts = TransferAttemptSerializer(many=True, read_only=True)

    class Meta(ClaimSettlementSerializer.Meta):
        fields = ClaimSettlementSerializer.Meta.fields + ["transfer_attempts"]
        read_only_fields = fields


class PaymentActionLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentActionLog
        fields = ["id", "action", "status", "details", "reference", "request_id", "timestamp"]
        read_only_fields = fields


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ["id", "type", "title", "message", "data", "is_read", "created_at"]
        read_only_fields = ["id", "type", "title", "message", "data", "created_at"]
