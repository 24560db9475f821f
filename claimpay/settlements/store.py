"""
Settlement persistence.

All writes to a claim's settlement columns go through this module. Each
write is one conditional UPDATE, so concurrent writers (webhook deliveries,
poll ticks, status queries, operators) never need a shared lock:

- ``apply_transition`` only matches rows whose stored rank is below the
  new status and whose current reference is the attempt being reported.
- ``reserve_attempt`` only matches rows still carrying the reference the
  caller read, so two concurrent initiations cannot both win.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from claimpay.middleware import get_request_id
from claimpay.models import Claim
from claimpay.settlements.exceptions import ReconciliationConflict
from claimpay.settlements.models import PaymentActionLog, TransferAttempt
from claimpay.settlements.state import (
    STATUS_RANK,
    SettlementStatus,
    check_transition,
    rank,
)

logger = logging.getLogger(__name__)

# Transition outcomes
APPLIED = "applied"
DUPLICATE = "duplicate"
CONFLICT = "conflict"
STALE_ATTEMPT = "stale_attempt"
NOT_FOUND = "not_found"


@dataclass
class TransitionResult:
    outcome: str
    status: str
    previous_status: Optional[str] = None
    claim: Optional[Claim] = None

    @property
    def applied(self) -> bool:
        return self.outcome == APPLIED


def log_action(
    action: str,
    status: str,
    details: Optional[Dict[str, Any]] = None,
    claim=None,
    payment=None,
    reference: str = "",
) -> PaymentActionLog:
    """Append an entry to the payment action log."""
    return PaymentActionLog.objects.create(
        action=action,
        status=status,
        details=details or {},
        claim=claim,
        payment=payment,
        reference=reference or "",
        request_id=get_request_id(),
    )


def reserve_attempt(
    claim: Claim,
    reference: str,
    amount: int,
    initiated_by=None,
    is_retry: bool = False,
) -> TransferAttempt:
    """
    Claim the right to start a new transfer attempt.

    Rotates ``transfer_reference`` to ``reference`` only if the row still
    carries the reference and status ``claim`` was read with. A retry also
    bumps ``retry_count`` by exactly one in the same statement. The claim
    keeps its status until the processor accepts the transfer.

    Raises:
        ReconciliationConflict: if the claim changed since it was read.
    """
    allowed = SettlementStatus.FAILED if is_retry else SettlementStatus.PENDING
    values = {
        "transfer_reference": reference,
        "transfer_code": "",
        "settlement_amount": amount,
        "settlement_initiated_by": initiated_by,
        "updated_at": timezone.now(),
    }
    if is_retry:
        values["retry_count"] = F("retry_count") + 1

    with transaction.atomic():
        updated = Claim.objects.filter(
            pk=claim.pk,
            transfer_reference=claim.transfer_reference,
            settlement_status=allowed,
        ).update(**values)
        if not updated:
            current = Claim.objects.filter(pk=claim.pk).values_list(
                "settlement_status", flat=True
            ).first()
            raise ReconciliationConflict(
                current=current,
                attempted=SettlementStatus.PROCESSING,
                detail="Settlement changed while a transfer was being prepared.",
            )

        attempt = TransferAttempt.objects.create(
            claim=claim,
            attempt_number=claim.transfer_attempts.count() + 1,
            reference=reference,
            amount=amount,
            currency=claim.currency,
            account_number=claim.bank_account_number,
            bank_code=claim.bank_code,
            account_name=claim.bank_account_name,
            initiated_by=initiated_by,
        )

    claim.refresh_from_db()
    return attempt


def save_recipient(claim: Claim, recipient_code: str, fingerprint: str) -> None:
    Claim.objects.filter(pk=claim.pk).update(
        recipient_code=recipient_code,
        recipient_fingerprint=fingerprint,
        updated_at=timezone.now(),
    )
    claim.recipient_code = recipient_code
    claim.recipient_fingerprint = fingerprint


def activate_attempt(
    claim: Claim,
    attempt: TransferAttempt,
    transfer_code: str,
    recipient_code: str,
    processor_response: Dict[str, Any],
    action: str = "transfer_initiation",
) -> Claim:
    """
    Record that the processor accepted ``attempt``.

    Moves the claim to processing with a fresh poll token and a zero poll
    counter and writes the ``processing`` log entry, all in one
    transaction. Keyed on the attempt's reference, so anything still
    reporting on an older attempt can no longer touch the row.

    If a webhook for this reference already settled the attempt, only the
    transfer code is recorded.
    """
    processing = SettlementStatus.PROCESSING
    now = timezone.now()

    with transaction.atomic():
        attempt_open = TransferAttempt.objects.filter(
            pk=attempt.pk, status_rank__lt=STATUS_RANK[processing]
        ).update(
            transfer_code=transfer_code,
            recipient_code=recipient_code,
            status=processing,
            status_rank=STATUS_RANK[processing],
            updated_at=now,
        )

        claims = Claim.objects.filter(pk=claim.pk, transfer_reference=attempt.reference)
        if attempt_open:
            claims.filter(
                settlement_status__in=[SettlementStatus.PENDING, SettlementStatus.FAILED]
            ).update(
                settlement_status=processing,
                settlement_status_rank=STATUS_RANK[processing],
                transfer_code=transfer_code,
                failure_reason="",
                settlement_date=None,
                poll_token=uuid.uuid4(),
                poll_count=0,
                poll_task_id="",
                last_polled_at=None,
                updated_at=now,
            )
        else:
            logger.info(
                "Transfer %s for claim %s settled before it was recorded",
                attempt.reference,
                claim.pk,
            )
            TransferAttempt.objects.filter(pk=attempt.pk).update(transfer_code=transfer_code)
            claims.update(transfer_code=transfer_code, updated_at=now)

        log_action(
            action,
            processing,
            details={
                "amount": attempt.amount,
                "currency": attempt.currency,
                "transfer_code": transfer_code,
                "attempt_number": attempt.attempt_number,
                "processor_response": processor_response,
            },
            claim=claim,
            reference=attempt.reference,
        )

    claim.refresh_from_db()
    return claim


def record_attempt_failure(
    claim: Claim,
    attempt: TransferAttempt,
    reason: str,
    details: Dict[str, Any],
    action: str = "transfer_initiation",
) -> None:
    """
    Record a transfer the processor refused or never answered.

    The claim's own status is left alone: a refused first attempt stays
    pending, a refused retry stays failed.
    """
    failed = SettlementStatus.FAILED
    with transaction.atomic():
        TransferAttempt.objects.filter(
            pk=attempt.pk, status_rank__lt=STATUS_RANK[failed]
        ).update(
            status=failed,
            status_rank=STATUS_RANK[failed],
            failure_reason=reason,
            updated_at=timezone.now(),
        )
        if claim.settlement_status == failed:
            Claim.objects.filter(
                pk=claim.pk,
                transfer_reference=attempt.reference,
                settlement_status=failed,
            ).update(failure_reason=reason, updated_at=timezone.now())
        log_action(action, failed, details=details, claim=claim, reference=attempt.reference)
    claim.refresh_from_db()


def apply_transition(
    claim_id: int,
    reference: str,
    new_status: str,
    failure_reason: str = "",
    action: str = "webhook_transition",
    details: Optional[Dict[str, Any]] = None,
) -> TransitionResult:
    """
    Move a settlement forward, never backward.

    The UPDATE matches only when the stored rank is strictly below
    ``new_status`` and ``reference`` is still the claim's current attempt.
    When nothing matches, the stored row is read back to classify the
    outcome; nothing is written for a duplicate, a conflict or a stale
    attempt.
    """
    new_rank = rank(new_status)
    now = timezone.now()
    values = {
        "settlement_status": new_status,
        "settlement_status_rank": new_rank,
        "updated_at": now,
    }
    if new_status == SettlementStatus.COMPLETED:
        values.update(settlement_date=now, status="settled", failure_reason="")
    elif new_status == SettlementStatus.FAILED:
        values["failure_reason"] = failure_reason or "Transfer failed"
    if new_status != SettlementStatus.PROCESSING:
        values["poll_token"] = None

    with transaction.atomic():
        previous = Claim.objects.filter(pk=claim_id).values_list(
            "settlement_status", flat=True
        ).first()
        updated = Claim.objects.filter(
            pk=claim_id,
            transfer_reference=reference,
            settlement_status_rank__lt=new_rank,
        ).update(**values)

        if updated:
            claim = Claim.objects.get(pk=claim_id)
            TransferAttempt.objects.filter(
                reference=reference, status_rank__lt=new_rank
            ).update(
                status=new_status,
                status_rank=new_rank,
                failure_reason=values.get("failure_reason", ""),
                completed_at=now if new_status == SettlementStatus.COMPLETED else None,
                updated_at=now,
            )
            log_action(
                action,
                new_status,
                details={
                    **(details or {}),
                    "previous_status": previous,
                    "failure_reason": values.get("failure_reason", ""),
                },
                claim=claim,
                reference=reference,
            )
            logger.info(
                "Claim %s settlement moved to %s (%s)", claim_id, new_status, reference
            )
            return TransitionResult(APPLIED, new_status, previous, claim)

    claim = Claim.objects.filter(pk=claim_id).first()
    if claim is None:
        return TransitionResult(NOT_FOUND, new_status)

    current = claim.settlement_status
    if claim.transfer_reference != reference:
        logger.info(
            "Ignoring %s for superseded attempt %s of claim %s (current %s)",
            new_status,
            reference,
            claim_id,
            claim.transfer_reference,
        )
        return TransitionResult(STALE_ATTEMPT, new_status, current, claim)

    try:
        check_transition(current, new_status)
    except ReconciliationConflict:
        logger.info(
            "Refusing %s -> %s for claim %s (%s)", current, new_status, claim_id, reference
        )
        return TransitionResult(CONFLICT, new_status, current, claim)

    if current == new_status:
        return TransitionResult(DUPLICATE, new_status, current, claim)

    # Forward move that still did not match: the row changed under us
    return TransitionResult(CONFLICT, new_status, current, claim)


def record_poll(claim_id: int, poll_token, poll_number: int) -> bool:
    """Bump the poll counter if ``poll_token`` still owns the claim."""
    return bool(
        Claim.objects.filter(pk=claim_id, poll_token=poll_token).update(
            poll_count=poll_number, last_polled_at=timezone.now()
        )
    )


def set_poll_task(claim_id: int, poll_token, task_id: str) -> None:
    Claim.objects.filter(pk=claim_id, poll_token=poll_token).update(poll_task_id=task_id)


def restart_polling(claim_id: int):
    """
    Issue a fresh poll token for a claim still processing.

    Any tick holding the previous token stops at its next check.
    Returns the new token, or None if the claim is not processing.
    """
    poll_token = uuid.uuid4()
    updated = Claim.objects.filter(
        pk=claim_id, settlement_status=SettlementStatus.PROCESSING
    ).update(poll_token=poll_token, poll_count=0, poll_task_id="")
    return poll_token if updated else None


def cancel_polling(claim_id: int) -> bool:
    """Drop the claim's poll token; scheduled ticks become no-ops."""
    return bool(
        Claim.objects.filter(pk=claim_id, poll_token__isnull=False).update(
            poll_token=None, poll_task_id=""
        )
    )
