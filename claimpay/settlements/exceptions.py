"""
Settlement error taxonomy.

Every error carries a machine-readable ``code`` and the HTTP status the
API layer answers with. They derive from DRF's ``APIException`` so views
can let them propagate to ``claimpay.api.exceptions.custom_exception_handler``.
"""

from rest_framework import status
from rest_framework.exceptions import APIException


class SettlementError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "settlement_error"
    default_detail = "Settlement request could not be processed."

    def __init__(self, detail=None, code=None, details=None):
        super().__init__(detail=detail, code=code)
        self.code = code or self.default_code
        self.details = details

    @property
    def message(self) -> str:
        return str(self.detail)


class ValidationError(SettlementError):
    """Malformed caller input. Never retried."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"
    default_detail = "Invalid settlement request."


class AuthorizationError(SettlementError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "authorization_error"
    default_detail = "You are not allowed to initiate settlements."


class SignatureError(SettlementError):
    """Webhook body does not match its HMAC signature."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "invalid_signature"
    default_detail = "Invalid webhook signature."


class ProcessorError(SettlementError):
    """
    The payment processor rejected a request.

    ``response`` holds the processor's decoded body (when there was one) so
    callers can copy it into the action log.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "processor_error"
    default_detail = "The payment processor rejected the request."

    def __init__(self, detail=None, code=None, details=None, response=None, http_status=None):
        super().__init__(detail=detail, code=code, details=details)
        self.response = response or {}
        self.http_status = http_status


class TransientNetworkError(SettlementError):
    """Timeout or connectivity failure talking to the processor."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = "processor_unavailable"
    default_detail = "The payment processor could not be reached. Try again shortly."


class ReconciliationConflict(SettlementError):
    """
    A transition the monotonic guard refuses.

    Raised by ``state.check_transition``; reconciliation code treats it as
    a logged no-op and never lets it reach a webhook response.
    """

    status_code = status.HTTP_409_CONFLICT
    default_code = "reconciliation_conflict"

    def __init__(self, current=None, attempted=None, detail=None):
        self.current = current
        self.attempted = attempted
        if detail is None:
            detail = f"Settlement is {current}; refusing transition to {attempted}."
        super().__init__(detail=detail, details={"current": current, "attempted": attempted})


class InvalidSettlementState(SettlementError):
    """The settlement is not in a state that allows the requested action."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "invalid_settlement_state"
    default_detail = "The settlement is not in a state that allows this action."
