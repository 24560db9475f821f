"""
Centralized logging configuration for ClaimPay.

Every handler masks bank details; production writes structured
key=value lines so log aggregation can filter by claim or transfer.
"""

from pathlib import Path
from typing import Any, Dict


def get_logging_config(
    base_dir: Path, environment: str = "production", log_level: str = "INFO"
) -> Dict[str, Any]:
    """
    Build the LOGGING dict for a settings module.

    Args:
        base_dir: Project root; file logs go to ``base_dir / "logs"``
        environment: "production" or "development"
        log_level: Root level for the ``claimpay`` logger

    Returns:
        dict suitable for Django's LOGGING setting
    """
    scrubber = (
        "claimpay.logging_filters.SelectiveBankDetailsScrubberFilter"
        if environment == "development"
        else "claimpay.logging_filters.BankDetailsScrubberFilter"
    )

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "filters": ["bank_scrubber"],
            "formatter": "structured" if environment == "production" else "verbose",
        },
    }
    claimpay_handlers = ["console"]

    if environment == "production":
        log_dir = Path(base_dir) / "logs"
        log_dir.mkdir(exist_ok=True)
        handlers["security_file"] = {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "filename": str(log_dir / "security.log"),
            "when": "midnight",
            "backupCount": 90,
            "delay": True,
            "filters": ["bank_scrubber"],
            "formatter": "structured",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "bank_scrubber": {"()": scrubber},
        },
        "formatters": {
            "structured": {"()": "claimpay.logging_utils.StructuredLogFormatter"},
            "verbose": {
                "format": "{asctime} {levelname} {name} {message}",
                "style": "{",
            },
        },
        "handlers": handlers,
        "loggers": {
            "django": {"handlers": ["console"], "level": "WARNING"},
            "celery": {"handlers": ["console"], "level": "INFO"},
            "claimpay": {
                "handlers": claimpay_handlers,
                "level": log_level,
                "propagate": False,
            },
            "claimpay.security": {
                "handlers": list(handlers),
                "level": "WARNING",
                "propagate": False,
            },
        },
    }
