"""
Paystack API client.

Every call goes out with a ``(connect, read)`` timeout through a shared
circuit breaker. Failures are mapped onto the settlement error taxonomy:

- timeouts and connection failures -> TransientNetworkError
- non-2xx answers or ``"status": false`` bodies -> ProcessorError

Successful calls return the ``data`` member of the processor's envelope.
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings

from claimpay.paystack.resilience import CircuitBreaker, retry_with_backoff
from claimpay.settlements.exceptions import ProcessorError, TransientNetworkError

logger = logging.getLogger(__name__)


class PaystackClient:
    """Thin wrapper over the Paystack REST API."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = (
            connect_timeout or settings.PAYSTACK_CONNECT_TIMEOUT,
            read_timeout or settings.PAYSTACK_READ_TIMEOUT,
        )
        self.session = session or requests.Session()
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="paystack",
            failure_threshold=settings.PAYSTACK_CIRCUIT_FAILURE_THRESHOLD,
            recovery_timeout=settings.PAYSTACK_CIRCUIT_RECOVERY_TIMEOUT,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _send(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.warning("Paystack %s %s failed: %s", method, path, e)
            raise TransientNetworkError(
                detail=f"Payment processor did not respond: {e.__class__.__name__}"
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            logger.warning("Paystack %s %s returned a non-object body", method, path)
            raise ProcessorError(
                detail="Unexpected response from payment processor",
                http_status=response.status_code,
            )

        if not response.ok or not body.get("status"):
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.warning(
                "Paystack %s %s rejected (HTTP %s): %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise ProcessorError(
                detail=message,
                response=body,
                http_status=response.status_code,
            )

        data = body.get("data")
        return data if data is not None else {}

    def request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        return self.circuit_breaker.call(self._send, method, path, **kwargs)

    def create_recipient(
        self,
        name: str,
        account_number: str,
        bank_code: str,
        currency: str = "NGN",
        metadata: Optional[Dict[str, Any]] = None,
        recipient_type: str = "nuban",
    ) -> Dict[str, Any]:
        """Register a bank account as a transfer recipient."""
        return self.request(
            "POST",
            "/transferrecipient",
            json={
                "type": recipient_type,
                "name": name,
                "account_number": account_number,
                "bank_code": bank_code,
                "currency": currency,
                "metadata": metadata or {},
            },
        )

    def initiate_transfer(
        self,
        amount: int,
        recipient_code: str,
        reference: str,
        reason: str,
        source: str = "balance",
        currency: str = "NGN",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Start a transfer. ``amount`` is in minor units."""
        return self.request(
            "POST",
            "/transfer",
            json={
                "source": source,
                "amount": amount,
                "recipient": recipient_code,
                "reference": reference,
                "reason": reason,
                "currency": currency,
                "metadata": metadata or {},
            },
        )

    def fetch_transfer(self, transfer_code: str) -> Dict[str, Any]:
        return self.request("GET", f"/transfer/{transfer_code}")

    def verify_transaction(self, reference: str) -> Dict[str, Any]:
        return self.request("GET", f"/transaction/verify/{reference}")

    def initialize_transaction(
        self,
        email: str,
        amount: int,
        reference: str,
        currency: str = "NGN",
        callback_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload = {
            "email": email,
            "amount": amount,
            "reference": reference,
            "currency": currency,
            "metadata": metadata or {},
        }
        if callback_url:
            payload["callback_url"] = callback_url
        return self.request("POST", "/transaction/initialize", json=payload)

    @retry_with_backoff()
    def resolve_account(self, account_number: str, bank_code: str) -> Dict[str, Any]:
        return self.request(
            "GET",
            "/bank/resolve",
            params={"account_number": account_number, "bank_code": bank_code},
        )

    @retry_with_backoff()
    def list_banks(
        self, country: str = "nigeria", currency: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        params = {"country": country}
        if currency:
            params["currency"] = currency
        return self.request("GET", "/bank", params=params)


def get_paystack_client() -> PaystackClient:
    """Client configured from settings."""
    return PaystackClient()
