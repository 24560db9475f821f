"""
Paystack webhook handling.

A delivery is processed in three steps:

1. ``verify_webhook_signature`` checks the HMAC-SHA512 of the raw body.
   A mismatch raises SignatureError before anything is parsed or stored.
2. ``process_webhook_event`` records the event under its idempotency key
   in the same transaction as its effects. A redelivery finds the key
   already taken and is acknowledged without doing anything.
3. The handler for the event applies the transition through the shared
   reconciliation path.
"""

import hashlib
import json
import logging
from typing import Any, Dict

from django.conf import settings
from django.db import IntegrityError, transaction

from claimpay.paystack.signatures import verify_signature
from claimpay.settlements import reconcile
from claimpay.settlements.exceptions import SignatureError, ValidationError
from claimpay.settlements.models import Payment, WebhookEvent
from claimpay.settlements.payments import record_charge_failure, record_charge_success

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("claimpay.security")

SIGNATURE_HEADER = "HTTP_X_PAYSTACK_SIGNATURE"

# Handler outcomes
IGNORED = "ignored"
DUPLICATE = "duplicate"
CLAIM_NOT_FOUND = "claim_not_found"
PAYMENT_NOT_FOUND = "payment_not_found"


def verify_webhook_signature(payload: bytes, signature: str) -> None:
    """
    Raises:
        SignatureError: if ``signature`` is not the HMAC of ``payload``.
    """
    secret = getattr(settings, "PAYSTACK_WEBHOOK_SECRET", None)
    if not secret:
        security_logger.error("PAYSTACK_WEBHOOK_SECRET not configured; rejecting webhook")
        raise SignatureError()
    if not verify_signature(payload, secret, signature or ""):
        security_logger.warning(
            "Rejected webhook with invalid signature (%d bytes, signature %s)",
            len(payload),
            "present" if signature else "missing",
        )
        raise SignatureError()


def parse_event(payload: bytes) -> Dict[str, Any]:
    """Decode a verified body into ``{event, data}``."""
    try:
        event = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise ValidationError(detail="Malformed webhook payload.") from e
    if not isinstance(event, dict) or not isinstance(event.get("event"), str):
        raise ValidationError(detail="Webhook payload has no event type.")
    if not isinstance(event.get("data", {}), dict):
        raise ValidationError(detail="Webhook payload data must be an object.")
    return event


def idempotency_key(event: Dict[str, Any]) -> str:
    """
    ``<event>:<data.id>`` when the processor supplies an id, otherwise a
    hash of the canonical JSON of the whole event.
    """
    data = event.get("data") or {}
    if data.get("id") is not None:
        return f"{event['event']}:{data['id']}"
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return f"{event['event']}:sha256:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"


def _handle_transfer(event: Dict[str, Any]) -> str:
    transfer = event.get("data") or {}
    reference = transfer.get("reference")
    claim = reconcile.find_claim(
        reference=reference,
        metadata=transfer.get("metadata"),
        reason=transfer.get("reason"),
        transfer_code=transfer.get("transfer_code"),
    )
    if claim is None:
        logger.warning("No claim found for %s (reference %s)", event["event"], reference)
        return CLAIM_NOT_FOUND

    processor_status = event["event"].split(".", 1)[1]
    result = reconcile.apply_processor_status(
        claim,
        reference,
        processor_status,
        reason=reconcile.failure_reason_of(transfer) or (
            "Transfer reversed" if processor_status == "reversed" else ""
        ),
        source="webhook",
        details={"event": event["event"], "transfer_code": transfer.get("transfer_code")},
    )
    return result.outcome


def handle_transfer_success(event: Dict[str, Any]) -> str:
    return _handle_transfer(event)


def handle_transfer_failed(event: Dict[str, Any]) -> str:
    return _handle_transfer(event)


def handle_transfer_reversed(event: Dict[str, Any]) -> str:
    return _handle_transfer(event)


def _payment_for(event: Dict[str, Any]):
    reference = (event.get("data") or {}).get("reference")
    payment = (
        Payment.objects.select_related("claim", "customer").filter(reference=reference).first()
        if reference
        else None
    )
    if payment is None:
        logger.warning("No payment found for %s (reference %s)", event["event"], reference)
    return payment


def handle_charge_success(event: Dict[str, Any]) -> str:
    payment = _payment_for(event)
    if payment is None:
        return PAYMENT_NOT_FOUND
    return "applied" if record_charge_success(payment, event["data"]) else DUPLICATE


def handle_charge_failed(event: Dict[str, Any]) -> str:
    payment = _payment_for(event)
    if payment is None:
        return PAYMENT_NOT_FOUND
    return "applied" if record_charge_failure(payment, event["data"]) else DUPLICATE


WEBHOOK_HANDLERS = {
    "charge.success": handle_charge_success,
    "charge.failed": handle_charge_failed,
    "transfer.success": handle_transfer_success,
    "transfer.failed": handle_transfer_failed,
    "transfer.reversed": handle_transfer_reversed,
}


def process_webhook_event(event: Dict[str, Any]) -> str:
    """
    Apply a verified event exactly once.

    Returns the handler outcome, ``duplicate`` for a redelivery or
    ``ignored`` for events outside the handled set.
    """
    event_type = event["event"]
    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        logger.debug("Unhandled webhook event type: %s", event_type)
        return IGNORED

    key = idempotency_key(event)
    data = event.get("data") or {}
    with transaction.atomic():
        try:
            with transaction.atomic():
                record, created = WebhookEvent.objects.get_or_create(
                    idempotency_key=key,
                    defaults={
                        "event": event_type,
                        "reference": str(data.get("reference") or "")[:100],
                        "payload": event,
                    },
                )
        except IntegrityError:
            # A concurrent delivery of the same event won the insert
            logger.info("Concurrent duplicate webhook %s acknowledged", key)
            return DUPLICATE
        if not created:
            logger.info("Duplicate webhook %s acknowledged without processing", key)
            return DUPLICATE

        outcome = handler(event)
        record.outcome = outcome
        record.save(update_fields=["outcome"])

    logger.info("Webhook %s processed: %s", event_type, outcome)
    return outcome


def receive_webhook(payload: bytes, signature: str) -> str:
    """Verify, decode and process one delivery."""
    verify_webhook_signature(payload, signature)
    return process_webhook_event(parse_event(payload))
