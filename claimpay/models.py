"""
Core ClaimPay models.

A Claim carries its settlement as first-class columns: the status, its
ordinal rank (used by the guarded UPDATE in ``claimpay.settlements.store``),
the identifiers of the current transfer attempt and the poll bookkeeping
for that attempt. Earlier attempts are kept as
``claimpay.settlements.models.TransferAttempt`` rows.
"""

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from claimpay.settlements.state import STATUS_RANK, SettlementStatus


class UserProfile(models.Model):
    """Role assignment for a ClaimPay user."""

    ROLE_CHOICES = [
        ("customer", "Customer"),
        ("insurer", "Insurer"),
        ("admin", "Admin"),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        db_index=True,
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="customer")
    phone = models.CharField(max_length=32, blank=True, default="")

    class Meta:
        db_table = "claimpay_userprofile"

    def __str__(self):
        return f"Profile for {self.user.username} ({self.role})"

    @property
    def is_admin(self):
        return self.role == "admin"

    @property
    def is_insurer(self):
        return self.role in ("insurer", "admin")

    @property
    def can_initiate_settlements(self):
        """Check if user can pay out approved claims."""
        return self.role in ("insurer", "admin")


class Claim(models.Model):
    """
    An insurance claim and the settlement of its approved amount.

    ``settlement_status`` and ``settlement_status_rank`` always change
    together and only through ``claimpay.settlements.store``.
    """

    STATUS_CHOICES = [
        ("submitted", "Submitted"),
        ("under_review", "Under Review"),
        ("approved", "Approved"),
        ("rejected", "Rejected"),
        ("settled", "Settled"),
    ]

    claim_number = models.CharField(
        max_length=64,
        unique=True,
        help_text="Customer-facing claim number (CLM-...)",
    )
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="claims",
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default="submitted",
        db_index=True,
    )
    description = models.TextField(blank=True, default="")
    claim_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Amount claimed, in minor currency units",
    )

    # Recipient details as currently on file; re-read for every attempt
    bank_account_number = models.CharField(max_length=20, blank=True, default="")
    bank_code = models.CharField(max_length=20, blank=True, default="")
    bank_account_name = models.CharField(max_length=255, blank=True, default="")

    settlement_amount = models.PositiveBigIntegerField(
        blank=True,
        null=True,
        validators=[MinValueValidator(1)],
        help_text="Amount paid out, in minor currency units",
    )
    currency = models.CharField(max_length=3, default="NGN")
    settlement_status = models.CharField(
        max_length=20,
        choices=SettlementStatus.choices,
        default=SettlementStatus.PENDING,
        db_index=True,
    )
    settlement_status_rank = models.PositiveSmallIntegerField(
        default=STATUS_RANK[SettlementStatus.PENDING],
        help_text="Ordinal of settlement_status; writes only move it forward",
    )
    transfer_code = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        help_text="Processor transfer code (TRF_xxxxx)",
    )
    transfer_reference = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        unique=True,
        help_text="Reference of the current transfer attempt",
    )
    recipient_code = models.CharField(max_length=64, blank=True, default="")
    recipient_fingerprint = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Hash of the bank details recipient_code was created for",
    )
    retry_count = models.PositiveIntegerField(default=0)
    failure_reason = models.TextField(blank=True, default="")
    settlement_date = models.DateTimeField(blank=True, null=True)
    settlement_initiated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="+",
    )

    # Poll bookkeeping for the current attempt
    poll_token = models.UUIDField(blank=True, null=True)
    poll_count = models.PositiveIntegerField(default=0)
    poll_task_id = models.CharField(max_length=255, blank=True, default="")
    last_polled_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "claimpay_claim"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["settlement_status", "updated_at"],
                name="claim_settlement_status_idx",
            ),
            models.Index(
                fields=["customer", "status"],
                name="claim_customer_status_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(settlement_status_rank__lte=3),
                name="claim_settlement_rank_valid",
            ),
            models.CheckConstraint(
                condition=models.Q(settlement_amount__isnull=True)
                | models.Q(settlement_amount__gt=0),
                name="claim_settlement_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.claim_number} ({self.settlement_status})"

    @property
    def recipient(self):
        return {
            "account_number": self.bank_account_number,
            "bank_code": self.bank_code,
            "account_name": self.bank_account_name,
        }

    @property
    def can_retry_settlement(self):
        return self.settlement_status == SettlementStatus.FAILED
