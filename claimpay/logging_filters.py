"""
Logging filters for bank detail scrubbing.

Settlement logs mention recipients, transfer payloads and processor
responses. These filters redact bank account numbers, card numbers and
email addresses from log messages before any handler writes them.

Usage:
    # In settings LOGGING configuration:
    LOGGING = {
        'filters': {
            'bank_scrubber': {
                '()': 'claimpay.logging_filters.BankDetailsScrubberFilter',
            },
        },
        'handlers': {
            'console': {
                'filters': ['bank_scrubber'],
            },
        },
    }
"""

import re
import logging
from typing import Any, Dict


# =============================================================================
# Sensitive Data Patterns
# =============================================================================

# NUBAN and similar 10-12 digit account numbers
ACCOUNT_NUMBER_PATTERNS = [
    re.compile(r'\b\d{10,12}\b'),
    re.compile(r'(account_number["\']?\s*[:=]\s*["\']?)(\d{6,})', re.IGNORECASE),
]

CARD_NUMBER_PATTERNS = [
    re.compile(r'\b(?:\d{4}[-\s]?){3}\d{4}\b'),  # 1234-5678-9012-3456
]

EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')


def mask_account_number(account_number: str) -> str:
    """
    Mask all but the last four digits of an account number.

    Example:
        >>> mask_account_number("0123456789")
        '******6789'
    """
    if not account_number:
        return account_number
    visible = account_number[-4:]
    return "*" * max(len(account_number) - 4, 0) + visible


def _mask_match(match: re.Match) -> str:
    if match.lastindex:
        return match.group(1) + mask_account_number(match.group(2))
    return mask_account_number(match.group(0))


class BankDetailsScrubberFilter(logging.Filter):
    """
    Logging filter that masks bank details in log messages.

    Account numbers keep their last four digits so support staff can still
    correlate a log line with a claimant's bank account.

    Example:
        Input:  "Creating recipient for account 0123456789 (ada@example.com)"
        Output: "Creating recipient for account ******6789 ([REDACTED_EMAIL])"
    """

    def __init__(self, name: str = '', mask_emails: bool = True):
        super().__init__(name)
        self.mask_emails = mask_emails

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.scrub(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    key: self.scrub(value) if isinstance(value, str) else value
                    for key, value in record.args.items()
                }
            else:
                record.args = tuple(
                    self.scrub(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return True

    def scrub(self, text: str) -> str:
        if not text:
            return text

        scrubbed = text
        for pattern in CARD_NUMBER_PATTERNS:
            scrubbed = pattern.sub('[REDACTED_CARD]', scrubbed)
        for pattern in ACCOUNT_NUMBER_PATTERNS:
            scrubbed = pattern.sub(_mask_match, scrubbed)
        if self.mask_emails:
            scrubbed = EMAIL_PATTERN.sub('[REDACTED_EMAIL]', scrubbed)
        return scrubbed


class SelectiveBankDetailsScrubberFilter(BankDetailsScrubberFilter):
    """
    Development variant that leaves email addresses readable.
    """

    def __init__(self, name: str = ''):
        super().__init__(name, mask_emails=False)


def scrub_dict(data: Dict[str, Any], scrubber: BankDetailsScrubberFilter = None) -> Dict[str, Any]:
    """
    Scrub bank details from a dictionary (useful for structured logs).

    Keys named ``account_number`` are always masked, whatever their shape.
    """
    if scrubber is None:
        scrubber = BankDetailsScrubberFilter()

    scrubbed = {}
    for key, value in data.items():
        if key == 'account_number' and value:
            scrubbed[key] = mask_account_number(str(value))
        elif isinstance(value, str):
            scrubbed[key] = scrubber.scrub(value)
        elif isinstance(value, dict):
            scrubbed[key] = scrub_dict(value, scrubber)
        elif isinstance(value, list):
            scrubbed[key] = [
                scrubber.scrub(item) if isinstance(item, str) else item
                for item in value
            ]
        else:
            scrubbed[key] = value

    return scrubbed
