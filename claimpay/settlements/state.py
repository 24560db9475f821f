"""
Settlement status ordering and the monotonic transition guard.

Statuses are stored alongside an ordinal rank so the storage layer can
reject non-forward writes with a single conditional UPDATE:

    pending (0) < processing (1) < stalled (2) < completed | failed (3)

``completed`` and ``failed`` share a rank, so one can never replace the
other. ``stalled`` sits below them so a late webhook or status query can
still settle a transfer whose polling ran out.
"""

from django.db import models

from claimpay.settlements.exceptions import ReconciliationConflict


class SettlementStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    STALLED = "stalled", "Stalled"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


STATUS_RANK = {
    SettlementStatus.PENDING: 0,
    SettlementStatus.PROCESSING: 1,
    SettlementStatus.STALLED: 2,
    SettlementStatus.COMPLETED: 3,
    SettlementStatus.FAILED: 3,
}

TERMINAL_STATUSES = frozenset({SettlementStatus.COMPLETED, SettlementStatus.FAILED})

# Processor transfer statuses that end an attempt
PROCESSOR_SUCCESS_STATUSES = frozenset({"success"})
PROCESSOR_FAILURE_STATUSES = frozenset({"failed", "reversed"})


def rank(status: str) -> int:
    """Ordinal of ``status``; unknown statuses raise ValueError."""
    try:
        return STATUS_RANK[SettlementStatus(status)]
    except ValueError:
        raise ValueError(f"Unknown settlement status: {status!r}") from None


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def is_forward(current: str, new: str) -> bool:
    """True when ``new`` is strictly ahead of ``current``."""
    return rank(new) > rank(current)


def check_transition(current: str, new: str) -> bool:
    """
    Validate a proposed write against the stored status.

    Returns:
        True if the write moves the status forward, False if it repeats
        the stored status (an idempotent no-op).

    Raises:
        ReconciliationConflict: if ``new`` is behind ``current`` or is a
            sideways move between the two terminal statuses.
    """
    if current == new:
        return False
    if is_forward(current, new):
        return True
    raise ReconciliationConflict(current=current, attempted=new)


def settlement_status_for(processor_status: str) -> str:
    """
    Map a processor transfer status onto a settlement status.

    Anything the processor reports that is not final ("pending", "otp",
    "queued", "received", ...) keeps the settlement in processing.
    """
    normalized = (processor_status or "").lower()
    if normalized in PROCESSOR_SUCCESS_STATUSES:
        return SettlementStatus.COMPLETED
    if normalized in PROCESSOR_FAILURE_STATUSES:
        return SettlementStatus.FAILED
    return SettlementStatus.PROCESSING
