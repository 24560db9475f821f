"""
Settlement models: transfer attempts, the payment action log, the
notification outbox, processed webhook events and inbound payments.
"""

from django.conf import settings
from django.db import models

from claimpay.settlements.state import STATUS_RANK, SettlementStatus


class TransferAttempt(models.Model):
    """
    One transfer sent to the processor for a claim.

    The Claim row mirrors the current attempt; rows here are never reused,
    so a retry always adds a new attempt with a new reference. Bank details
    are snapshotted as they were sent.
    """

    claim = models.ForeignKey(
        "claimpay.Claim",
        on_delete=models.CASCADE,
        related_name="transfer_attempts",
    )
    attempt_number = models.PositiveIntegerField(
        help_text="1 for the first initiation, retry_count + 1 afterwards",
    )
    reference = models.CharField(max_length=100, unique=True)
    transfer_code = models.CharField(max_length=64, blank=True, default="", db_index=True)
    amount = models.PositiveBigIntegerField()
    currency = models.CharField(max_length=3, default="NGN")
    recipient_code = models.CharField(max_length=64, blank=True, default="")
    account_number = models.CharField(max_length=20)
    bank_code = models.CharField(max_length=20)
    account_name = models.CharField(max_length=255)
    status = models.CharField(
        max_length=20,
        choices=SettlementStatus.choices,
        default=SettlementStatus.PENDING,
    )
    status_rank = models.PositiveSmallIntegerField(
        default=STATUS_RANK[SettlementStatus.PENDING],
    )
    failure_reason = models.TextField(blank=True, default="")
    initiated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = "claimpay_transfer_attempt"
        ordering = ["claim", "attempt_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["claim", "attempt_number"],
                name="transfer_attempt_claim_number_uniq",
            ),
        ]

    def __str__(self):
        return f"{self.reference} ({self.status})"


class PaymentActionLog(models.Model):
    """
    Append-only audit trail of settlement and payment activity.

    Rows can be created but never updated or deleted through the ORM.
    Nothing in the settlement state machine reads this table.
    """

    ACTION_CHOICES = [
        ("transfer_initiation", "Transfer Initiation"),
        ("settlement_retry", "Settlement Retry"),
        ("webhook_transition", "Webhook Transition"),
        ("poll_transition", "Poll Transition"),
        ("status_query", "Status Query"),
        ("transition_rejected", "Transition Rejected"),
        ("settlement_stalled", "Settlement Stalled"),
        ("recipient_created", "Recipient Created"),
        ("payment_initialized", "Payment Initialized"),
        ("payment_verified", "Payment Verified"),
        ("charge_webhook", "Charge Webhook"),
    ]

    action = models.CharField(max_length=40, choices=ACTION_CHOICES, db_index=True)
    status = models.CharField(max_length=20)
    details = models.JSONField(default=dict, blank=True)
    claim = models.ForeignKey(
        "claimpay.Claim",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="action_log",
    )
    payment = models.ForeignKey(
        "settlements.Payment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="action_log",
    )
    reference = models.CharField(max_length=100, blank=True, default="", db_index=True)
    request_id = models.CharField(max_length=64, blank=True, null=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "claimpay_payment_action_log"
        ordering = ["timestamp", "id"]
        indexes = [
            models.Index(fields=["claim", "timestamp"], name="action_log_claim_idx"),
        ]

    def __str__(self):
        return f"{self.action}:{self.status} at {self.timestamp}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("PaymentActionLog entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("PaymentActionLog entries are append-only")


class Notification(models.Model):
    """
    User-facing message produced by a settlement or payment transition.

    Doubles as an outbox: ``delivered_at`` is set once the email copy has
    been sent. ``dedupe_key`` makes creation idempotent per transition.
    """

    TYPE_CHOICES = [
        ("settlement_completed", "Settlement Completed"),
        ("settlement_failed", "Settlement Failed"),
        ("settlement_stalled", "Settlement Stalled"),
        ("payment_success", "Payment Successful"),
        ("payment_failed", "Payment Failed"),
        ("claim_settled", "Claim Settled"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    type = models.CharField(max_length=40, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    dedupe_key = models.CharField(max_length=255, unique=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    delivered_at = models.DateTimeField(blank=True, null=True)
    delivery_attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default="")

    class Meta:
        db_table = "claimpay_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "is_read"], name="notification_user_read_idx"),
            models.Index(fields=["delivered_at"], name="notification_pending_idx"),
        ]

    def __str__(self):
        return f"{self.type} for user {self.user_id}"


class WebhookEvent(models.Model):
    """Processor webhook already accepted, keyed by its idempotency key."""

    idempotency_key = models.CharField(max_length=255, unique=True)
    event = models.CharField(max_length=64, db_index=True)
    reference = models.CharField(max_length=100, blank=True, default="")
    payload = models.JSONField(default=dict)
    outcome = models.CharField(max_length=40, blank=True, default="")
    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "claimpay_webhook_event"
        ordering = ["-received_at"]

    def __str__(self):
        return f"{self.event} ({self.idempotency_key})"


class Payment(models.Model):
    """Inbound customer charge (premium or deductible), not a payout."""

    TYPE_CHOICES = [
        ("premium", "Premium"),
        ("deductible", "Deductible"),
    ]

    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("completed", "Completed"),
        ("failed", "Failed"),
    ]

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payments",
    )
    claim = models.ForeignKey(
        "claimpay.Claim",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
    )
    reference = models.CharField(max_length=100, unique=True)
    amount = models.PositiveBigIntegerField(help_text="Minor currency units")
    currency = models.CharField(max_length=3, default="NGN")
    payment_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default="premium")
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="pending", db_index=True
    )
    email = models.EmailField(blank=True, default="")
    channel = models.CharField(max_length=40, blank=True, default="")
    fees = models.PositiveBigIntegerField(blank=True, null=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    gateway_response = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "claimpay_payment"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.reference} ({self.status})"
