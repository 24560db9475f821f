"""
Transfer initiation for approved claims.

One call makes exactly one transfer attempt: register the recipient with
the processor when needed, ask for the transfer, and record the result.
A refused or unanswered attempt is logged and raised to the caller;
nothing here retries on its own.
"""

import hashlib
import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction

from claimpay.api.permissions import can_initiate_settlements
from claimpay.logging_utils import add_log_context, get_service_logger
from claimpay.models import Claim
from claimpay.paystack.client import PaystackClient, get_paystack_client
from claimpay.settlements import store
from claimpay.settlements.exceptions import (
    AuthorizationError,
    InvalidSettlementState,
    ProcessorError,
    TransientNetworkError,
    ValidationError,
)
from claimpay.settlements.models import TransferAttempt
from claimpay.settlements.state import SettlementStatus, settlement_status_for

logger = get_service_logger("initiator")

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REQUIRED_RECIPIENT_FIELDS = ("account_name", "account_number", "bank_code")


def generate_reference(prefix: Optional[str] = None) -> str:
    """``CLM-SETTLE-<epoch ms>-<6 random chars>``."""
    prefix = prefix or settings.SETTLEMENT_REFERENCE_PREFIX
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(6))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def recipient_fingerprint(recipient: Dict[str, str]) -> str:
    raw = "|".join(recipient[field].strip() for field in REQUIRED_RECIPIENT_FIELDS)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def validate_request(amount: Any, recipient: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """
    Check amount and bank details before anything leaves the building.

    Returns the cleaned recipient dict.

    Raises:
        ValidationError: listing every missing or invalid field.
    """
    errors = {}
    recipient = recipient or {}
    cleaned = {}
    for field in REQUIRED_RECIPIENT_FIELDS:
        value = str(recipient.get(field) or "").strip()
        if not value:
            errors[field] = ["This field is required."]
        cleaned[field] = value

    if isinstance(amount, bool) or not isinstance(amount, int):
        errors["amount"] = ["Amount must be an integer number of minor currency units."]
    elif amount <= 0:
        errors["amount"] = ["Amount must be greater than 0."]

    if errors:
        raise ValidationError(
            detail="Settlement request is missing required fields.", details=errors
        )
    return cleaned


@dataclass
class InitiationResult:
    claim: Claim
    attempt: TransferAttempt
    transfer: Dict[str, Any]


class TransferInitiator:
    """Sends settlement transfers to the processor."""

    def __init__(self, client: Optional[PaystackClient] = None):
        self.client = client or get_paystack_client()

    def initiate(
        self,
        claim: Claim,
        amount: Any,
        recipient: Optional[Dict[str, Any]],
        user,
        reference: Optional[str] = None,
        reason: Optional[str] = None,
        source: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        is_retry: bool = False,
    ) -> InitiationResult:
        """
        Make one transfer attempt for ``claim``.

        Raises:
            AuthorizationError: ``user`` may not initiate settlements
            ValidationError: missing bank details, bad amount or reused reference
            InvalidSettlementState: claim not approved, or not in a state
                that allows a new attempt
            ProcessorError: the processor refused the recipient or transfer
            TransientNetworkError: the processor could not be reached
        """
        if not can_initiate_settlements(user):
            raise AuthorizationError()

        cleaned = validate_request(amount, recipient)

        if claim.status != "approved":
            raise InvalidSettlementState(
                detail=f"Claim {claim.claim_number} is {claim.status}; only approved claims can be settled."
            )
        expected = SettlementStatus.FAILED if is_retry else SettlementStatus.PENDING
        if claim.settlement_status != expected:
            raise InvalidSettlementState(
                detail=f"Settlement is {claim.settlement_status}; expected {expected}."
            )

        reference = reference or generate_reference()
        if (
            TransferAttempt.objects.filter(reference=reference).exists()
            or Claim.objects.filter(transfer_reference=reference).exists()
        ):
            raise ValidationError(
                detail="Transfer reference has already been used.",
                details={"reference": [reference]},
            )

        with add_log_context(claim_id=claim.pk, transfer_reference=reference, user_id=user.pk):
            self._store_bank_details(claim, cleaned)
            attempt = store.reserve_attempt(
                claim, reference, amount, initiated_by=user, is_retry=is_retry
            )
            action = "settlement_retry" if is_retry else "transfer_initiation"
            log_details = {
                "amount": amount,
                "currency": claim.currency,
                "recipient": {
                    "account_name": cleaned["account_name"],
                    "bank_code": cleaned["bank_code"],
                    "account_number": cleaned["account_number"][-4:],
                },
                "reference": reference,
                "attempt_number": attempt.attempt_number,
            }

            try:
                recipient_code = self._ensure_recipient(claim, cleaned)
                transfer = self.client.initiate_transfer(
                    amount=amount,
                    recipient_code=recipient_code,
                    reference=reference,
                    reason=reason or f"Claim settlement: {claim.claim_number}",
                    source=source or settings.SETTLEMENT_TRANSFER_SOURCE,
                    currency=claim.currency,
                    metadata={
                        **(metadata or {}),
                        "claim_id": claim.pk,
                        "claim_number": claim.claim_number,
                        "initiated_by": user.pk,
                        "attempt_number": attempt.attempt_number,
                    },
                )
            except (ProcessorError, TransientNetworkError) as e:
                error_details = {**log_details, "error": e.message, "code": e.code}
                if isinstance(e, ProcessorError):
                    error_details["processor_response"] = e.response
                store.record_attempt_failure(claim, attempt, e.message, error_details, action=action)
                logger.warning("Transfer attempt %s not accepted: %s", reference, e.message)
                raise

            transfer_code = transfer.get("transfer_code") or ""
            if not transfer_code:
                message = "Processor accepted the transfer without a transfer code"
                store.record_attempt_failure(
                    claim, attempt, message, {**log_details, "processor_response": transfer}, action=action
                )
                raise ProcessorError(detail=message, response=transfer)

            claim = store.activate_attempt(
                claim,
                attempt,
                transfer_code=transfer_code,
                recipient_code=recipient_code,
                processor_response=transfer,
                action=action,
            )
            logger.info("Transfer %s accepted as %s", reference, transfer_code)

            processor_status = transfer.get("status") or ""
            if settlement_status_for(processor_status) != SettlementStatus.PROCESSING:
                from claimpay.settlements.reconcile import apply_processor_status, failure_reason_of

                apply_processor_status(
                    claim,
                    reference,
                    processor_status,
                    reason=failure_reason_of(transfer),
                    source="status_query",
                    details={"transfer_code": transfer_code},
                )
                claim.refresh_from_db()
            else:
                transaction.on_commit(lambda: _start_polling(claim.pk))

        attempt.refresh_from_db()
        return InitiationResult(claim=claim, attempt=attempt, transfer=transfer)

    def _store_bank_details(self, claim: Claim, recipient: Dict[str, str]) -> None:
        values = {
            "bank_account_name": recipient["account_name"],
            "bank_account_number": recipient["account_number"],
            "bank_code": recipient["bank_code"],
        }
        if all(getattr(claim, field) == value for field, value in values.items()):
            return
        Claim.objects.filter(pk=claim.pk).update(**values)
        for field, value in values.items():
            setattr(claim, field, value)

    def _ensure_recipient(self, claim: Claim, recipient: Dict[str, str]) -> str:
        """Reuse the processor recipient unless the bank details changed."""
        fingerprint = recipient_fingerprint(recipient)
        if claim.recipient_code and claim.recipient_fingerprint == fingerprint:
            return claim.recipient_code

        data = self.client.create_recipient(
            name=recipient["account_name"],
            account_number=recipient["account_number"],
            bank_code=recipient["bank_code"],
            currency=claim.currency,
            metadata={"claim_id": claim.pk, "customer_id": claim.customer_id},
        )
        recipient_code = data.get("recipient_code")
        if not recipient_code:
            raise ProcessorError(detail="Processor did not return a recipient code", response=data)

        store.save_recipient(claim, recipient_code, fingerprint)
        store.log_action(
            "recipient_created",
            "success",
            details={"recipient_code": recipient_code, "active": data.get("active", True)},
            claim=claim,
        )
        return recipient_code


def _start_polling(claim_id: int) -> None:
    from claimpay.settlements.tasks import start_polling

    start_polling(claim_id)

