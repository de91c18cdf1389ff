"""
Utility modules for PostPurchase Pro.
"""
from .logging_config import setup_logging
from .errors import (
    ErrorCode,
    error_response,
    exception_response,
    unauthorized,
    forbidden,
    not_found,
    internal_error
)
from .exceptions import (
    PostPurchaseError,
    ValidationError,
    NotFoundError,
    OfferNotFoundError,
    ExternalServiceError,
    ExternalServiceTimeout,
    PersistenceError,
    AnalyticsRecordingError,
)
from .shopify_ids import to_numeric_id, to_global_id, matches_product_ref
