"""
Structured logging utilities for ClaimPay.

Settlement events arrive from three directions (operator requests,
processor webhooks, poll ticks), so every log line should say which claim
and which transfer attempt it concerns.

Usage:
    from claimpay.logging_utils import add_log_context, get_service_logger

    logger = get_service_logger("initiator")

    with add_log_context(claim_id=claim.id, transfer_reference=reference):
        logger.info("Transfer accepted by processor")
"""

import logging
from typing import Any, Dict, Optional
from contextvars import ContextVar


_log_context: ContextVar[Dict[str, Any]] = ContextVar('log_context', default={})

# Fields the structured formatter renders before the message, in order
CONTEXT_FIELDS = [
    'request_id',
    'user_id',
    'claim_id',
    'transfer_reference',
    'transfer_code',
    'event',
    'source',
    'task_name',
    'service_name',
]


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """
    Adds the current log context, plus the adapter's own fixed fields,
    to the ``extra`` of every record.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**_log_context.get({}), **self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def set_log_context(**kwargs: Any) -> None:
    """
    Set context for all subsequent log messages in this thread/async context.
    """
    _log_context.set({**_log_context.get({}), **kwargs})


def clear_log_context() -> None:
    _log_context.set({})


def get_log_context() -> Dict[str, Any]:
    return _log_context.get({}).copy()


class add_log_context:
    """
    Context manager to temporarily add log context.

    Usage:
        with add_log_context(claim_id=12, source='webhook'):
            logger.info("Applying transition")
        # Context is restored after the block
    """

    def __init__(self, **kwargs: Any):
        self.new_context = kwargs
        self.previous_context: Optional[Dict[str, Any]] = None

    def __enter__(self):
        self.previous_context = get_log_context()
        set_log_context(**self.new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_context is not None:
            _log_context.set(self.previous_context)
        else:
            clear_log_context()


class StructuredLogFormatter(logging.Formatter):
    """
    Log formatter that outputs structured (key=value) logs.

    Example output:
        2026-01-28 10:30:45 INFO claim_id=12 transfer_reference=CLM-SETTLE-... source=webhook message="Transition applied"
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, self.datefmt)
        parts = [f"{timestamp} {record.levelname} logger={record.name}"]

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                value = getattr(record, field)
                if value is None:
                    continue
                if isinstance(value, str) and ' ' in value:
                    parts.append(f'{field}="{value}"')
                else:
                    parts.append(f'{field}={value}')

        msg = record.getMessage()
        if ' ' in msg or '=' in msg:
            parts.append(f'message="{msg}"')
        else:
            parts.append(f'message={msg}')

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)

        if record.exc_text:
            parts.append(f'\n{record.exc_text}')

        return ' '.join(parts)


def get_service_logger(service_name: str) -> ContextualLoggerAdapter:
    """
    Logger for a settlement service, tagged with ``service_name``.

    Usage:
        logger = get_service_logger('reconcile')
        logger.info("Transition applied")  # Includes service_name=reconcile
    """
    return ContextualLoggerAdapter(
        logging.getLogger(f"claimpay.services.{service_name}"), {'service_name': service_name}
    )


def get_task_logger(task_name: str) -> ContextualLoggerAdapter:
    return ContextualLoggerAdapter(
        logging.getLogger(f"claimpay.tasks.{task_name}"), {'task_name': task_name}
    )
