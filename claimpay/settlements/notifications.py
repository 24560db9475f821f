"""
User-facing notifications for settlement and payment outcomes.

Notifications are written in the same transaction as the transition that
caused them and delivered afterwards (email) by the ``deliver_notification``
task, queued on commit. A unique ``dedupe_key`` per transition means a
replayed transition can never produce a second message.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone

from claimpay.settlements.models import Notification
from claimpay.settlements.state import SettlementStatus

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {
    "NGN": "₦",
    "GHS": "GH₵",
    "USD": "$",
    "ZAR": "R",
    "KES": "KSh",
}


def format_amount(amount: Optional[int], currency: str = "NGN") -> str:
    """
    Render minor units for people: ``format_amount(50000)`` -> ``"₦500.00"``.
    """
    major = (Decimal(amount or 0) / 100).quantize(Decimal("0.01"))
    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"{symbol}{major:,}"
    return f"{currency} {major:,}"


class NotificationEmitter:
    """Creates notifications for accepted transitions."""

    def emit(
        self,
        user,
        notification_type: str,
        title: str,
        message: str,
        dedupe_key: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        """
        Store a notification once per ``dedupe_key`` and queue its delivery.

        Returns the new notification, or None if one already existed.
        """
        notification, created = Notification.objects.get_or_create(
            dedupe_key=dedupe_key,
            defaults={
                "user": user,
                "type": notification_type,
                "title": title,
                "message": message,
                "data": data or {},
            },
        )
        if not created:
            logger.info("Notification %s already exists, skipping", dedupe_key)
            return None

        transaction.on_commit(lambda: _queue_delivery(notification.pk))
        return notification

    def settlement_transition(self, claim, status: str, reference: str) -> Optional[Notification]:
        """Tell the right person that ``claim`` reached ``status``."""
        amount = format_amount(claim.settlement_amount, claim.currency)
        data = {
            "claim_id": claim.pk,
            "claim_number": claim.claim_number,
            "amount": claim.settlement_amount,
            "currency": claim.currency,
            "transfer_reference": reference,
            "status": status,
        }
        dedupe_key = f"{claim.pk}:{reference}:{status}"

        if status == SettlementStatus.COMPLETED:
            return self.emit(
                claim.customer,
                "settlement_completed",
                "Claim Settlement Completed",
                f"Your claim {claim.claim_number} has been settled. {amount} has been "
                f"transferred to your bank account.",
                dedupe_key,
                data,
            )

        if status == SettlementStatus.FAILED:
            reason = claim.failure_reason or "Transfer failed"
            return self.emit(
                claim.customer,
                "settlement_failed",
                "Claim Settlement Failed",
                f"The settlement of {amount} for claim {claim.claim_number} could not be "
                f"completed: {reason}. Our team will review it and retry.",
                dedupe_key,
                {**data, "failure_reason": reason},
            )

        if status == SettlementStatus.STALLED:
            operator = claim.settlement_initiated_by
            if operator is None:
                logger.warning("Stalled claim %s has no initiating operator", claim.pk)
                return None
            return self.emit(
                operator,
                "settlement_stalled",
                "Settlement Needs Attention",
                f"The {amount} transfer for claim {claim.claim_number} has not been "
                f"confirmed by the payment processor. Check reference {reference} "
                f"before taking action.",
                dedupe_key,
                data,
            )

        return None

    def payment_transition(self, payment, succeeded: bool) -> Optional[Notification]:
        amount = format_amount(payment.amount, payment.currency)
        status = "success" if succeeded else "failed"
        data = {
            "payment_id": payment.pk,
            "reference": payment.reference,
            "amount": payment.amount,
            "currency": payment.currency,
            "claim_id": payment.claim_id,
        }
        if succeeded:
            title = "Payment Successful"
            message = f"Your {payment.get_payment_type_display().lower()} payment of {amount} was received."
        else:
            title = "Payment Failed"
            message = f"Your {payment.get_payment_type_display().lower()} payment of {amount} could not be completed."
        return self.emit(
            payment.customer,
            f"payment_{status}",
            title,
            message,
            f"payment:{payment.reference}:{status}",
            data,
        )

    def claim_settled(self, claim, payment) -> Optional[Notification]:
        return self.emit(
            payment.customer,
            "claim_settled",
            "Claim Settled",
            f"Your insurance claim {claim.claim_number} has been settled and payment processed.",
            f"claim-settled:{claim.pk}:{payment.reference}",
            {"claim_id": claim.pk, "payment_id": payment.pk},
        )


def _queue_delivery(notification_id: int) -> None:
    from claimpay.settlements.tasks import deliver_notification

    deliver_notification.delay(notification_id)


def deliver(notification: Notification) -> bool:
    """
    Send the email copy of ``notification``.

    Delivery failures are recorded on the notification and left for the
    ``deliver_notifications`` command to pick up again.
    """
    if notification.delivered_at is not None:
        return True

    email = notification.user.email
    notification.delivery_attempts += 1

    if not email:
        logger.info("User %s has no email address; notification %s kept in-app only",
                    notification.user_id, notification.pk)
        notification.delivered_at = timezone.now()
        notification.save(update_fields=["delivered_at", "delivery_attempts"])
        return True

    try:
        send_mail(
            subject=notification.title,
            message=notification.message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[email],
            fail_silently=False,
        )
    except OSError as e:
        notification.last_error = str(e)[:1000]
        notification.save(update_fields=["delivery_attempts", "last_error"])
        logger.warning("Delivery of notification %s failed: %s", notification.pk, e)
        return False

    notification.delivered_at = timezone.now()
    notification.last_error = ""
    notification.save(update_fields=["delivered_at", "delivery_attempts", "last_error"])
    logger.info("Notification %s delivered", notification.pk)
    return True
