"""
DRF exception handler for the ClaimPay API.

Every error response uses one envelope:
{
    "error": {
        "code": "processor_error",
        "message": "Invalid bank account",
        "details": {...},
        "type": "/errors/processor-error",
        "request_id": "3f0c..."
    }
}

Settlement errors bring their own ``code`` and ``details``. Framework
exceptions are looked up in ``FRAMEWORK_ERRORS``.
"""

import logging

from rest_framework import exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

from claimpay.settlements.exceptions import SettlementError

logger = logging.getLogger(__name__)

# Checked in order; the first matching class wins
FRAMEWORK_ERRORS = [
    (exceptions.NotAuthenticated, "authentication_failed", "Authentication credentials were not provided or are invalid."),
    (exceptions.AuthenticationFailed, "authentication_failed", "Authentication credentials were not provided or are invalid."),
    (exceptions.PermissionDenied, "permission_denied", "You do not have permission to perform this action."),
    (exceptions.NotFound, "not_found", "The requested resource was not found."),
    (exceptions.ParseError, "parse_error", "Malformed request data."),
    (exceptions.MethodNotAllowed, "method_not_allowed", None),
    (exceptions.Throttled, "throttled", "Request was throttled. Please try again later."),
]


def error_type_uri(code):
    return f"/errors/{code.replace('_', '-')}"


def _envelope(code, message, details, request_id):
    error = {
        "code": code,
        "message": message,
        "details": details,
        "type": error_type_uri(code),
    }
    if request_id:
        error["request_id"] = request_id
    return {"error": error}


def describe_error(exc, response_data=None):
    """
    ``(code, message, details)`` for an exception DRF knows how to answer.
    """
    if isinstance(exc, SettlementError):
        return exc.code, exc.message, exc.details

    if isinstance(exc, exceptions.ValidationError):
        details = response_data if isinstance(response_data, dict) else {"non_field_errors": response_data}
        return "validation_error", "Invalid input data.", details

    detail = str(exc) or None
    for exc_class, code, message in FRAMEWORK_ERRORS:
        if isinstance(exc, exc_class):
            if isinstance(exc, exceptions.Throttled):
                return code, message, {"wait_seconds": exc.wait}
            if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
                return code, message, None
            return code, message or detail, {"detail": detail} if message and detail else None

    return "error", detail or "An error occurred.", None


def custom_exception_handler(exc, context):
    """
    Render ``exc`` in the standard error envelope.

    Exceptions DRF does not handle are logged with their traceback and answered with a 500.
    """
    request = (context or {}).get("request")
    request_id = getattr(request, "request_id", None)

    response = exception_handler(exc, context)
    if response is not None:
        code, message, details = describe_error(exc, response.data)
        response.data = _envelope(code, message, details, request_id)
        return response

    logger.error(
        "Unhandled exception: %s: %s",
        exc.__class__.__name__,
        exc,
        exc_info=True,
        extra={"request_id": request_id},
    )
    return Response(
        _envelope(
            "internal_server_error",
            "An unexpected error occurred. Please try again later.",
            {"request_id": request_id} if request_id else None,
            request_id,
        ),
        status=500,
    )
