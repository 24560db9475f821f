"""
Applying processor-reported transfer statuses to claims.

Webhook deliveries, poll ticks and on-demand status queries all report
the same thing: "transfer X is now in state Y". They all come through
``apply_processor_status`` so they share one guarded write and one
notification rule.
"""

import re
from typing import Any, Dict, Optional

from django.db import transaction

from claimpay.logging_utils import add_log_context, get_service_logger
from claimpay.models import Claim
from claimpay.settlements import store
from claimpay.settlements.models import TransferAttempt
from claimpay.settlements.notifications import NotificationEmitter
from claimpay.settlements.state import SettlementStatus, settlement_status_for

logger = get_service_logger("reconcile")

CLAIM_NUMBER_IN_REASON = re.compile(r"Claim settlement: (CLM-[A-Z0-9-]+)")

NOTIFY_STATUSES = {
    SettlementStatus.COMPLETED,
    SettlementStatus.FAILED,
    SettlementStatus.STALLED,
}


def find_claim(
    reference: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
    transfer_code: Optional[str] = None,
) -> Optional[Claim]:
    """
    Locate the claim a transfer belongs to.

    Tried in order: the attempt reference, the transfer code, the
    ``claim_id`` sent as transfer metadata, then the claim number embedded
    in the transfer reason.
    """
    if reference:
        attempt = (
            TransferAttempt.objects.select_related("claim").filter(reference=reference).first()
        )
        if attempt:
            return attempt.claim
        claim = Claim.objects.filter(transfer_reference=reference).first()
        if claim:
            return claim

    if transfer_code:
        attempt = (
            TransferAttempt.objects.select_related("claim")
            .filter(transfer_code=transfer_code)
            .first()
        )
        if attempt:
            return attempt.claim

    claim_id = metadata.get("claim_id") if isinstance(metadata, dict) else None
    if claim_id:
        try:
            claim = Claim.objects.filter(pk=int(claim_id)).first()
        except (TypeError, ValueError):
            claim = None
        if claim:
            return claim

    match = CLAIM_NUMBER_IN_REASON.search(reason or "")
    if match:
        return Claim.objects.filter(claim_number=match.group(1)).first()

    return None


def apply_processor_status(
    claim: Claim,
    reference: Optional[str],
    processor_status: str,
    reason: str = "",
    source: str = "webhook",
    details: Optional[Dict[str, Any]] = None,
) -> store.TransitionResult:
    """
    Reconcile one processor report against the stored settlement.

    Returns the store's TransitionResult. A refused transition is logged to
    the action log as ``transition_rejected`` and otherwise ignored.
    """
    new_status = settlement_status_for(processor_status)
    return apply_status(
        claim,
        reference or claim.transfer_reference,
        new_status,
        reason=reason,
        source=source,
        details={**(details or {}), "processor_status": processor_status},
    )


def apply_status(
    claim: Claim,
    reference: str,
    new_status: str,
    reason: str = "",
    source: str = "webhook",
    details: Optional[Dict[str, Any]] = None,
) -> store.TransitionResult:
    action = {
        "webhook": "webhook_transition",
        "poll": "poll_transition",
        "status_query": "status_query",
        "exhaustion": "settlement_stalled",
    }.get(source, "webhook_transition")

    with add_log_context(claim_id=claim.pk, transfer_reference=reference, source=source):
        with transaction.atomic():
            result = store.apply_transition(
                claim.pk,
                reference,
                new_status,
                failure_reason=reason,
                action=action,
                details={**(details or {}), "source": source},
            )

            if result.applied and new_status in NOTIFY_STATUSES:
                NotificationEmitter().settlement_transition(result.claim, new_status, reference)

            elif result.outcome == store.CONFLICT:
                logger.info(
                    "Transition to %s refused; settlement stays %s",
                    new_status,
                    result.previous_status,
                )
                store.log_action(
                    "transition_rejected",
                    new_status,
                    details={
                        **(details or {}),
                        "source": source,
                        "stored_status": result.previous_status,
                        "reason": reason,
                    },
                    claim=result.claim,
                    reference=reference,
                )

            elif result.outcome == store.STALE_ATTEMPT:
                store.log_action(
                    "transition_rejected",
                    new_status,
                    details={
                        **(details or {}),
                        "source": source,
                        "stale_reference": True,
                        "current_reference": result.claim.transfer_reference,
                    },
                    claim=result.claim,
                    reference=reference,
                )

    return result


def failure_reason_of(transfer: Dict[str, Any]) -> str:
    """Human-readable failure reason from a processor transfer object."""
    reason = transfer.get("failure_reason") or transfer.get("gateway_response")
    return reason if isinstance(reason, str) else ""


def query_transfer_status(transfer_code: str, client=None) -> Dict[str, Any]:
    """
    Fetch a transfer from the processor and reconcile its claim.

    Returns the processor's transfer object. If the status moved since it
    was last recorded, the guarded write and notification happen here the
    same way they would for a webhook.
    """
    from claimpay.paystack.client import get_paystack_client

    client = client or get_paystack_client()
    transfer = client.fetch_transfer(transfer_code)
    claim = find_claim(
        reference=transfer.get("reference"),
        metadata=transfer.get("metadata"),
        reason=transfer.get("reason"),
        transfer_code=transfer_code,
    )
    if claim is None:
        logger.info("Transfer %s is not linked to a claim", transfer_code)
        return transfer

    processor_status = transfer.get("status") or ""
    if claim.settlement_status != settlement_status_for(processor_status):
        apply_processor_status(
            claim,
            transfer.get("reference"),
            processor_status,
            reason=failure_reason_of(transfer),
            source="status_query",
            details={"transfer_code": transfer_code},
        )
    return transfer
