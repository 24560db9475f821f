"""
Factory classes for generating test data.

Uses factory_boy to create valid instances with sensible defaults.
Claim traits cover the settlement states tests most often start from.
"""

import uuid

import factory
from factory.django import DjangoModelFactory
from django.contrib.auth.models import User
from django.utils import timezone

from claimpay.models import Claim, UserProfile
from claimpay.settlements.models import Payment, TransferAttempt
from claimpay.settlements.state import STATUS_RANK, SettlementStatus


class UserFactory(DjangoModelFactory):
    """Factory for Django User model."""

    class Meta:
        model = User
        django_get_or_create = ("username",)

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda obj: f"{obj.username}@example.com")
    first_name = factory.Faker("first_name")
    last_name = factory.Faker("last_name")
    is_active = True

    @factory.post_generation
    def password(obj, create, extracted, **kwargs):
        if not create:
            return
        obj.set_password(extracted or "testpass123")


class UserProfileFactory(DjangoModelFactory):
    class Meta:
        model = UserProfile

    user = factory.SubFactory(UserFactory)
    role = "customer"


def make_user(role="customer", **kwargs):
    """User with a profile in ``role``."""
    return UserProfileFactory(role=role, user=UserFactory(**kwargs)).user


class ClaimFactory(DjangoModelFactory):
    """Approved claim with bank details on file and no settlement yet."""

    class Meta:
        model = Claim

    claim_number = factory.Sequence(lambda n: f"CLM-2026-{n:05d}")
    customer = factory.SubFactory(UserFactory)
    status = "approved"
    description = "Water damage to kitchen"
    claim_amount = 500000
    bank_account_number = "0123456789"
    bank_code = "058"
    bank_account_name = "Ada Obi"
    currency = "NGN"

    class Params:
        processing = factory.Trait(
            settlement_status=SettlementStatus.PROCESSING,
            settlement_status_rank=STATUS_RANK[SettlementStatus.PROCESSING],
            settlement_amount=500000,
            transfer_reference=factory.Sequence(lambda n: f"CLM-SETTLE-1700000000000-P{n:05d}"),
            transfer_code=factory.Sequence(lambda n: f"TRF_proc{n}"),
            poll_token=factory.LazyFunction(uuid.uuid4),
        )
        failed = factory.Trait(
            settlement_status=SettlementStatus.FAILED,
            settlement_status_rank=STATUS_RANK[SettlementStatus.FAILED],
            settlement_amount=500000,
            transfer_reference=factory.Sequence(lambda n: f"CLM-SETTLE-1700000000000-F{n:05d}"),
            transfer_code=factory.Sequence(lambda n: f"TRF_fail{n}"),
            failure_reason="Account not found",
        )
        stalled = factory.Trait(
            settlement_status=SettlementStatus.STALLED,
            settlement_status_rank=STATUS_RANK[SettlementStatus.STALLED],
            settlement_amount=500000,
            transfer_reference=factory.Sequence(lambda n: f"CLM-SETTLE-1700000000000-S{n:05d}"),
            transfer_code=factory.Sequence(lambda n: f"TRF_stall{n}"),
        )
        completed = factory.Trait(
            status="settled",
            settlement_status=SettlementStatus.COMPLETED,
            settlement_status_rank=STATUS_RANK[SettlementStatus.COMPLETED],
            settlement_amount=500000,
            transfer_reference=factory.Sequence(lambda n: f"CLM-SETTLE-1700000000000-C{n:05d}"),
            transfer_code=factory.Sequence(lambda n: f"TRF_done{n}"),
            settlement_date=factory.LazyFunction(timezone.now),
        )


class TransferAttemptFactory(DjangoModelFactory):
    """Attempt row mirroring the claim's current settlement."""

    class Meta:
        model = TransferAttempt

    claim = factory.SubFactory(ClaimFactory, processing=True)
    attempt_number = 1
    reference = factory.LazyAttribute(lambda obj: obj.claim.transfer_reference)
    transfer_code = factory.LazyAttribute(lambda obj: obj.claim.transfer_code)
    amount = factory.LazyAttribute(lambda obj: obj.claim.settlement_amount or 500000)
    currency = "NGN"
    account_number = factory.LazyAttribute(lambda obj: obj.claim.bank_account_number)
    bank_code = factory.LazyAttribute(lambda obj: obj.claim.bank_code)
    account_name = factory.LazyAttribute(lambda obj: obj.claim.bank_account_name)
    status = factory.LazyAttribute(lambda obj: obj.claim.settlement_status)
    status_rank = factory.LazyAttribute(lambda obj: obj.claim.settlement_status_rank)


class PaymentFactory(DjangoModelFactory):
    class Meta:
        model = Payment

    customer = factory.SubFactory(UserFactory)
    reference = factory.Sequence(lambda n: f"PAY-1700000000000-{n:06d}")
    amount = 25000
    currency = "NGN"
    payment_type = "premium"
    status = "pending"
    email = factory.LazyAttribute(lambda obj: obj.customer.email)
