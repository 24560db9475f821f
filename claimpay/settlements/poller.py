"""
Transfer status polling.

A claim in ``processing`` is polled on a fixed cadence until the
processor reports a final status or the poll budget runs out:

    polls 1-12   every 10s
    polls 13-22  every 30s
    polls 23+    every 60s

The delay before each poll is a pure function of the poll number, and
every tick first checks that it still owns the claim's ``poll_token``.
Issuing a new token (retry, resume) or clearing it (terminal status,
cancellation) stops whatever was polling before.

``StatusPoller.tick`` is the unit of work. The Celery task in
``claimpay.settlements.tasks`` runs one tick per task and schedules the
next; ``StatusPoller.run`` drives the same ticks in-process, waiting on a
``threading.Event`` so ``stop()`` takes effect immediately.
"""

import threading
from typing import Callable, Optional

from django.conf import settings

from claimpay.logging_utils import add_log_context, get_service_logger
from claimpay.models import Claim
from claimpay.paystack.client import PaystackClient, get_paystack_client
from claimpay.settlements import reconcile, store
from claimpay.settlements.exceptions import ProcessorError, TransientNetworkError
from claimpay.settlements.state import SettlementStatus, settlement_status_for

logger = get_service_logger("poller")

MAX_POLLS = 60

# Tick results
CONTINUE = "continue"
FINISHED = "finished"
EXHAUSTED = "exhausted"
CANCELLED = "cancelled"


def poll_delay(poll_number: int) -> int:
    """Seconds to wait before poll ``poll_number`` (1-based)."""
    if poll_number <= 12:
        return 10
    if poll_number <= 22:
        return 30
    return 60


def poll_offsets(max_polls: int = MAX_POLLS):
    """Seconds after entering processing at which each poll runs."""
    elapsed = 0
    for poll_number in range(1, max_polls + 1):
        elapsed += poll_delay(poll_number)
        yield elapsed


def configured_max_polls() -> int:
    return getattr(settings, "SETTLEMENT_MAX_POLLS", MAX_POLLS)


class StatusPoller:
    """
    Polls one settlement attempt, identified by its claim and poll token.

    Usable as a context manager; leaving the block stops the poller.
    """

    def __init__(
        self,
        claim_id: int,
        poll_token,
        client: Optional[PaystackClient] = None,
        max_polls: Optional[int] = None,
        on_finished: Optional[Callable[[str, Optional[Claim]], None]] = None,
    ):
        self.claim_id = claim_id
        self.poll_token = poll_token
        self.client = client or get_paystack_client()
        self.max_polls = max_polls or configured_max_polls()
        self.on_finished = on_finished
        self.poll_count = 0
        self._stop = threading.Event()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        self._stop.set()

    def _owned_claim(self) -> Optional[Claim]:
        claim = Claim.objects.filter(pk=self.claim_id).first()
        if claim is None:
            return None
        if str(claim.poll_token) != str(self.poll_token):
            return None
        if claim.settlement_status != SettlementStatus.PROCESSING:
            return None
        return claim

    def tick(self, poll_number: int) -> str:
        """
        Run poll ``poll_number`` once.

        Returns CONTINUE when another poll should be scheduled, FINISHED
        when the processor reported a final status, EXHAUSTED when the
        poll budget ran out and CANCELLED when this poller no longer owns
        the claim.
        """
        if self.stopped:
            return CANCELLED

        claim = self._owned_claim()
        if claim is None:
            logger.info("Polling of claim %s stopped: attempt no longer current", self.claim_id)
            return self._finish(CANCELLED, None)

        self.poll_count = poll_number
        with add_log_context(
            claim_id=claim.pk,
            transfer_reference=claim.transfer_reference,
            transfer_code=claim.transfer_code,
            source="poll",
        ):
            if not store.record_poll(claim.pk, self.poll_token, poll_number):
                return self._finish(CANCELLED, claim)

            try:
                transfer = self.client.fetch_transfer(claim.transfer_code)
            except TransientNetworkError as e:
                logger.warning("Poll %s of %s failed: %s", poll_number, self.max_polls, e.message)
                transfer = None
            except ProcessorError as e:
                logger.warning(
                    "Poll %s of %s rejected by processor: %s", poll_number, self.max_polls, e.message
                )
                transfer = None

            if transfer is not None:
                processor_status = transfer.get("status") or ""
                if settlement_status_for(processor_status) != SettlementStatus.PROCESSING:
                    result = reconcile.apply_processor_status(
                        claim,
                        claim.transfer_reference,
                        processor_status,
                        reason=reconcile.failure_reason_of(transfer),
                        source="poll",
                        details={"transfer_code": claim.transfer_code, "poll_number": poll_number},
                    )
                    return self._finish(FINISHED, result.claim)

            if poll_number >= self.max_polls:
                return self._finish(EXHAUSTED, self._mark_stalled(claim, poll_number))

        return CONTINUE

    def _mark_stalled(self, claim: Claim, poll_number: int) -> Optional[Claim]:
        logger.error(
            "Transfer %s unconfirmed after %s polls; marking claim %s stalled",
            claim.transfer_reference,
            poll_number,
            claim.pk,
        )
        result = reconcile.apply_status(
            claim,
            claim.transfer_reference,
            SettlementStatus.STALLED,
            source="exhaustion",
            details={"poll_count": poll_number, "transfer_code": claim.transfer_code},
        )
        return result.claim

    def _finish(self, outcome: str, claim: Optional[Claim]) -> str:
        self.stop()
        if self.on_finished is not None:
            self.on_finished(outcome, claim)
        return outcome

    def run(self, start_at: int = 1) -> str:
        """
        Poll in the foreground until finished, exhausted or stopped.

        Only one query is ever in flight: the next wait starts after the
        previous tick returns.
        """
        poll_number = start_at
        while True:
            if self._stop.wait(poll_delay(poll_number)):
                return CANCELLED
            outcome = self.tick(poll_number)
            if outcome != CONTINUE:
                return outcome
            poll_number += 1

