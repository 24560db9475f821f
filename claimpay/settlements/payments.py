"""
Inbound customer payments (premiums and deductibles).

These are charges *to* customers, separate from settlement payouts. A
successful charge linked to a claim marks the claim settled; it never
touches the claim's ``settlement_status``, which belongs to the payout
state machine.
"""

import logging
import secrets
import string
import time
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from claimpay.models import Claim
from claimpay.paystack.client import PaystackClient, get_paystack_client
from claimpay.settlements import store
from claimpay.settlements.exceptions import ProcessorError, TransientNetworkError, ValidationError
from claimpay.settlements.models import Payment
from claimpay.settlements.notifications import NotificationEmitter

logger = logging.getLogger(__name__)

PAYMENT_REFERENCE_PREFIX = "PAY"
FAILED_CHARGE_STATUSES = {"failed", "abandoned", "reversed"}


def generate_payment_reference() -> str:
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(6))
    return f"{PAYMENT_REFERENCE_PREFIX}-{int(time.time() * 1000)}-{suffix}"


def _paid_at(data: Dict[str, Any]):
    value = data.get("paid_at") or data.get("paidAt")
    if not value:
        return timezone.now()
    parsed = parse_datetime(value) if isinstance(value, str) else None
    return parsed or timezone.now()


def record_charge_success(
    payment: Payment, data: Dict[str, Any], action: str = "charge_webhook"
) -> bool:
    """
    Mark a pending payment completed. Returns False if it was already final.
    """
    with transaction.atomic():
        updated = Payment.objects.filter(pk=payment.pk, status="pending").update(
            status="completed",
            paid_at=_paid_at(data),
            channel=data.get("channel") or "",
            fees=data.get("fees"),
            gateway_response=data,
            updated_at=timezone.now(),
        )
        if not updated:
            logger.info("Payment %s already %s", payment.reference, payment.status)
            return False

        payment.refresh_from_db()
        store.log_action(
            action,
            "completed",
            details={"amount": data.get("amount"), "channel": data.get("channel")},
            claim=payment.claim,
            payment=payment,
            reference=payment.reference,
        )
        emitter = NotificationEmitter()
        emitter.payment_transition(payment, succeeded=True)

        if payment.claim_id:
            settled = Claim.objects.filter(pk=payment.claim_id).exclude(status="settled").update(
                status="settled", updated_at=timezone.now()
            )
            if settled:
                emitter.claim_settled(payment.claim, payment)
                logger.info("Claim %s settled by payment %s", payment.claim_id, payment.reference)

    return True


def record_charge_failure(
    payment: Payment, data: Dict[str, Any], action: str = "charge_webhook"
) -> bool:
    with transaction.atomic():
        updated = Payment.objects.filter(pk=payment.pk, status="pending").update(
            status="failed",
            gateway_response=data,
            updated_at=timezone.now(),
        )
        if not updated:
            return False

        payment.refresh_from_db()
        store.log_action(
            action,
            "failed",
            details={"gateway_response": data.get("gateway_response")},
            claim=payment.claim,
            payment=payment,
            reference=payment.reference,
        )
        NotificationEmitter().payment_transition(payment, succeeded=False)
    return True


def initialize_payment(
    user,
    amount: int,
    email: str,
    payment_type: str = "premium",
    claim: Optional[Claim] = None,
    callback_url: Optional[str] = None,
    client: Optional[PaystackClient] = None,
) -> Dict[str, Any]:
    """
    Create a pending Payment and a processor checkout for it.

    Returns ``{authorization_url, access_code, reference}``.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(
            detail="Amount must be greater than 0.", details={"amount": ["Must be a positive integer."]}
        )
    if not email:
        raise ValidationError(detail="Email is required.", details={"email": ["This field is required."]})

    client = client or get_paystack_client()
    payment = Payment.objects.create(
        customer=user,
        claim=claim,
        reference=generate_payment_reference(),
        amount=amount,
        currency=getattr(settings, "SETTLEMENT_CURRENCY", "NGN"),
        payment_type=payment_type,
        email=email,
    )

    try:
        data = client.initialize_transaction(
            email=email,
            amount=amount,
            reference=payment.reference,
            currency=payment.currency,
            callback_url=callback_url or f"{settings.FRONTEND_URL}/payments/callback",
            metadata={
                "payment_id": payment.pk,
                "customer_id": user.pk,
                "claim_id": claim.pk if claim else None,
                "payment_type": payment_type,
            },
        )
    except (ProcessorError, TransientNetworkError) as e:
        Payment.objects.filter(pk=payment.pk).update(status="failed", updated_at=timezone.now())
        store.log_action(
            "payment_initialized",
            "failed",
            details={"error": e.message, "amount": amount},
            claim=claim,
            payment=payment,
            reference=payment.reference,
        )
        raise

    store.log_action(
        "payment_initialized",
        "pending",
        details={"amount": amount, "access_code": data.get("access_code")},
        claim=claim,
        payment=payment,
        reference=payment.reference,
    )
    return {
        "authorization_url": data.get("authorization_url"),
        "access_code": data.get("access_code"),
        "reference": payment.reference,
    }


def verify_payment(reference: str, client: Optional[PaystackClient] = None) -> Dict[str, Any]:
    """
    Ask the processor for the outcome of a charge and record it.

    Returns ``{status, amount, paid_at, channel, fees, customer, metadata}``
    where ``status`` is True only for a successful charge.
    """
    if not reference:
        raise ValidationError(detail="Reference is required.", details={"reference": ["This field is required."]})

    client = client or get_paystack_client()
    data = client.verify_transaction(reference)
    charge_status = (data.get("status") or "").lower()

    payment = Payment.objects.select_related("claim", "customer").filter(reference=reference).first()
    if payment is None:
        logger.warning("Verified charge %s has no payment record", reference)
    elif charge_status == "success":
        record_charge_success(payment, data, action="payment_verified")
    elif charge_status in FAILED_CHARGE_STATUSES:
        record_charge_failure(payment, data, action="payment_verified")

    return {
        "status": charge_status == "success",
        "amount": data.get("amount"),
        "paid_at": data.get("paid_at") or data.get("paidAt"),
        "channel": data.get("channel"),
        "fees": data.get("fees"),
        "customer": data.get("customer") or {},
        "metadata": data.get("metadata") or {},
    }
