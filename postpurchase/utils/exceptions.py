"""
Custom exceptions for PostPurchase Pro business logic.

Each exception carries the HTTP status it maps to, so API handlers can
turn any of them into a consistent error response.
"""


class PostPurchaseError(Exception):
    """Base exception for all PostPurchase Pro business logic errors."""

    status_code = 500

    def __init__(self, message: str, code: str = "POSTPURCHASE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {}


class ValidationError(PostPurchaseError):
    """Missing or invalid input data."""

    status_code = 400

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)

    def to_dict(self) -> dict:
        return {'field': self.field} if self.field else {}


class NotFoundError(PostPurchaseError):
    """Resource not found."""

    status_code = 404

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper()}_NOT_FOUND")


class OfferNotFoundError(NotFoundError):
    """Offer not found for this shop."""

    def __init__(self, identifier=None):
        super().__init__("Offer", identifier)


class ExternalServiceError(PostPurchaseError):
    """
    The billing API call failed.

    ``rejected`` is True when Shopify answered with user errors (a validation
    rejection on their side) and False for transport failures.
    """

    def __init__(self, message: str, original_error: Exception = None,
                 rejected: bool = False, user_errors: list = None):
        self.original_error = original_error
        self.rejected = rejected
        self.user_errors = user_errors or []
        super().__init__(message, "EXTERNAL_SERVICE_ERROR")

    @property
    def status_code(self) -> int:
        return 400 if self.rejected else 502

    def to_dict(self) -> dict:
        return {'user_errors': self.user_errors} if self.user_errors else {}


class ExternalServiceTimeout(ExternalServiceError):
    """The billing API did not answer within the configured timeout."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message, original_error=original_error)
        self.code = "EXTERNAL_SERVICE_TIMEOUT"

    @property
    def status_code(self) -> int:
        return 504


class PersistenceError(PostPurchaseError):
    """A storage operation failed."""

    status_code = 500

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "DATABASE_ERROR")


class AnalyticsRecordingError(PersistenceError):
    """
    The raw event was stored but the daily aggregate update failed.

    The stored event is kept on the exception so callers can still report it.
    """

    def __init__(self, message: str, event=None, original_error: Exception = None):
        self.event = event
        super().__init__(message, original_error=original_error)
        self.code = "ANALYTICS_PARTIAL_FAILURE"
