"""
Celery tasks for settlement polling and notification delivery.

Polling is a chain of single-tick tasks: each tick runs one
``StatusPoller.tick`` and, if the transfer is still in flight, schedules
the next tick with ``countdown=poll_delay(n + 1)``. The chain carries the
claim's poll token, so a retry or resume that issues a new token leaves
the old chain to stop at its next tick.
"""

from typing import Any, Dict, Optional

from celery import shared_task

from claimpay.logging_utils import get_task_logger
from claimpay.settlements import store
from claimpay.settlements.poller import CONTINUE, StatusPoller, poll_delay

logger = get_task_logger("settlements")


def schedule_poll(claim_id: int, poll_token, poll_number: int) -> Optional[str]:
    """Queue poll ``poll_number`` after its cadence delay; returns the task id."""
    result = poll_transfer_status.apply_async(
        args=[claim_id, str(poll_token), poll_number],
        countdown=poll_delay(poll_number),
    )
    store.set_poll_task(claim_id, poll_token, result.id)
    return result.id


def start_polling(claim_id: int) -> Optional[str]:
    """Start the poll chain for a claim that just entered processing."""
    from claimpay.models import Claim

    poll_token = (
        Claim.objects.filter(pk=claim_id, settlement_status="processing")
        .values_list("poll_token", flat=True)
        .first()
    )
    if poll_token is None:
        logger.info(f"Claim {claim_id} is not processing; nothing to poll")
        return None
    logger.info(f"Starting status polling for claim {claim_id}")
    return schedule_poll(claim_id, poll_token, 1)


def resume_polling(claim_id: int) -> Optional[str]:
    """Replace any existing poll chain with a fresh one starting at poll 1."""
    poll_token = store.restart_polling(claim_id)
    if poll_token is None:
        return None
    logger.info(f"Resuming status polling for claim {claim_id}")
    return schedule_poll(claim_id, poll_token, 1)


@shared_task(name="claimpay.settlements.tasks.poll_transfer_status", ignore_result=True)
def poll_transfer_status(claim_id: int, poll_token: str, poll_number: int) -> Dict[str, Any]:
    """
    Run one status poll for a settlement attempt.

    Args:
        claim_id: Claim being settled
        poll_token: Token of the poll chain; stale tokens stop immediately
        poll_number: 1-based number of this poll

    Returns:
        dict: Outcome of the tick
    """
    outcome = StatusPoller(claim_id, poll_token).tick(poll_number)
    if outcome == CONTINUE:
        schedule_poll(claim_id, poll_token, poll_number + 1)
    else:
        logger.info(f"Polling of claim {claim_id} ended after poll {poll_number}: {outcome}")
    return {"claim_id": claim_id, "poll_number": poll_number, "outcome": outcome}


@shared_task(name="claimpay.settlements.tasks.deliver_notification")
def deliver_notification(notification_id: int) -> Dict[str, Any]:
    """Send one notification from the outbox."""
    from claimpay.settlements.models import Notification
    from claimpay.settlements.notifications import deliver

    notification = Notification.objects.select_related("user").filter(pk=notification_id).first()
    if notification is None:
        logger.warning(f"Notification {notification_id} not found")
        return {"notification_id": notification_id, "delivered": False}
    return {"notification_id": notification_id, "delivered": deliver(notification)}


@shared_task(name="claimpay.settlements.tasks.deliver_pending_notifications")
def deliver_pending_notifications(limit: int = 200, max_attempts: int = 5) -> Dict[str, Any]:
    """Flush undelivered notifications; safe to run on a schedule."""
    from claimpay.settlements.models import Notification
    from claimpay.settlements.notifications import deliver

    pending = (
        Notification.objects.select_related("user")
        .filter(delivered_at__isnull=True, delivery_attempts__lt=max_attempts)
        .order_by("created_at")[:limit]
    )
    delivered = failed = 0
    for notification in pending:
        if deliver(notification):
            delivered += 1
        else:
            failed += 1
    logger.info(f"Notification outbox flushed: {delivered} delivered, {failed} failed")
    return {"delivered": delivered, "failed": failed}
