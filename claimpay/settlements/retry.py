"""
Operator-triggered retry of a failed settlement.

A retry is a brand-new transfer attempt: fresh reference, bank details
re-read from the claim as they are now, ``retry_count`` bumped once and
a fresh poll chain once the processor accepts it. Stalled settlements
cannot be retried because their transfer may still land.
"""

from typing import Optional

from claimpay.logging_utils import add_log_context, get_service_logger
from claimpay.models import Claim
from claimpay.paystack.client import PaystackClient
from claimpay.settlements.exceptions import InvalidSettlementState
from claimpay.settlements.initiator import InitiationResult, TransferInitiator
from claimpay.settlements.state import SettlementStatus

logger = get_service_logger("retry")


class RetryCoordinator:
    def __init__(self, client: Optional[PaystackClient] = None, initiator: Optional[TransferInitiator] = None):
        self.initiator = initiator or TransferInitiator(client=client)

    def retry(self, claim_id: int, user, amount: Optional[int] = None) -> InitiationResult:
        """
        Start a new attempt for a failed settlement.

        Raises:
            InvalidSettlementState: the settlement is not failed
            plus anything ``TransferInitiator.initiate`` raises
        """
        # Always read bank details from the database, never from a cached claim
        claim = Claim.objects.select_related("customer").get(pk=claim_id)
        if claim.settlement_status != SettlementStatus.FAILED:
            raise InvalidSettlementState(
                detail=f"Only failed settlements can be retried; this one is {claim.settlement_status}."
            )

        with add_log_context(claim_id=claim.pk, user_id=getattr(user, "pk", None)):
            logger.info(
                "Retrying settlement of claim %s (retry %s, previous reference %s)",
                claim.claim_number,
                claim.retry_count + 1,
                claim.transfer_reference,
            )
            return self.initiator.initiate(
                claim,
                amount if amount is not None else claim.settlement_amount,
                claim.recipient,
                user,
                is_retry=True,
            )
