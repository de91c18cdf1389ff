"""
JSON error bodies for the PostPurchase Pro API.

All failures leave the API as::

    {"status": 404, "message": "Offer not found", "code": "OFFER_NOT_FOUND"}

with an optional ``error`` field for internal detail. Merchants and the
checkout extension only ever see ``message``.
"""
import logging
from enum import Enum
from flask import jsonify
from typing import Optional

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    # 401 / 403
    AUTH_REQUIRED = "AUTH_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    SHOP_INACTIVE = "SHOP_INACTIVE"
    UPGRADE_REQUIRED = "UPGRADE_REQUIRED"

    # 400
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # 404
    NOT_FOUND = "NOT_FOUND"
    OFFER_NOT_FOUND = "OFFER_NOT_FOUND"
    SHOP_NOT_FOUND = "SHOP_NOT_FOUND"

    # 429
    LIMIT_REACHED = "LIMIT_REACHED"

    # 400 / 502 / 504
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"

    # 500
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    error: Optional[str] = None,
    log_error: bool = True,
    **extra
) -> tuple:
    """
    Build a ``(response, status)`` pair in the shared error shape.

    ``code`` may be an ErrorCode or a plain string (domain exceptions carry
    strings). Keyword extras such as quota limits are merged into the body.
    Server errors are logged at error level, client errors at warning.
    """
    code_value = code.value if isinstance(code, ErrorCode) else code

    if log_error:
        if status_code >= 500:
            logger.error(f"{status_code} {code_value}: {message}", extra={"details": error})
        elif status_code >= 400:
            logger.warning(f"{status_code} {code_value}: {message}")

    body = {'status': status_code, 'message': message, 'code': code_value}
    if error:
        body['error'] = error
    body.update(extra)
    return jsonify(body), status_code


def exception_response(exc) -> tuple:
    """Turn a PostPurchaseError into an error response."""
    original = getattr(exc, 'original_error', None)
    return error_response(
        exc.message,
        exc.code,
        exc.status_code,
        error=str(original) if original else None,
        **exc.to_dict()
    )


def unauthorized(message: str = "Authentication required", code: ErrorCode = ErrorCode.AUTH_REQUIRED) -> tuple:
    return error_response(message, code, 401, log_error=False)


def forbidden(message: str = "Permission denied", code: ErrorCode = ErrorCode.SHOP_INACTIVE) -> tuple:
    return error_response(message, code, 403, log_error=False)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    return error_response(message, code, 404, log_error=False)


def internal_error(message: str = "An unexpected error occurred", error: Optional[str] = None) -> tuple:
    return error_response(message, ErrorCode.INTERNAL_ERROR, 500, error=error)
