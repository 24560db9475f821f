"""HMAC signatures for Paystack webhook bodies."""

import hashlib
import hmac
from typing import Union


def generate_signature(payload: Union[str, bytes], secret: Union[str, bytes]) -> str:
    """Hex HMAC-SHA512 of the raw body, as sent in ``x-paystack-signature``."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    return hmac.new(secret, payload, hashlib.sha512).hexdigest()


def verify_signature(
    payload: Union[str, bytes],
    secret: Union[str, bytes],
    signature: str,
) -> bool:
    """Constant-time comparison against the signature header."""
    if not signature or not secret:
        return False
    expected_signature = generate_signature(payload, secret)
    return hmac.compare_digest(expected_signature, signature.strip().lower())
