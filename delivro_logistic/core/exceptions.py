"""
Delivro Logistic Exception Hierarchy

Structured exception classes for carrier integrations. Every error carries
a machine-readable code, a human-readable message and optional details for
logging. Carrier errors additionally record the originating carrier, the
HTTP status (when there was one), the underlying cause and whether a retry
is sensible.

Exception Hierarchy:
    DelivroBaseError
    └── CarrierError
        ├── InvalidAddressError
        ├── ServiceUnavailableError
        ├── QuoteExpiredError
        ├── QuoteNotFoundError
        ├── OrderNotFoundError
        ├── CancellationNotAllowedError
        ├── LabelNotAvailableError
        ├── AuthenticationFailedError
        ├── RateLimitExceededError
        ├── InvalidPackageError
        ├── CarrierNotFoundError
        └── AnnotatedCarrierError

Two carrier errors are equal when their codes are equal, regardless of
carrier or message. That is what lets callers ask "is this an invalid
address?" without caring which adapter produced it.
"""
import logging
from typing import Any, Dict, Optional, Type, Union

logger = logging.getLogger(__name__)


# =============================================================================
# ERROR CODES
# =============================================================================

INVALID_ADDRESS = "INVALID_ADDRESS"
SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
QUOTE_EXPIRED = "QUOTE_EXPIRED"
QUOTE_NOT_FOUND = "QUOTE_NOT_FOUND"
ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
CANCELLATION_NOT_ALLOWED = "CANCELLATION_NOT_ALLOWED"
LABEL_NOT_AVAILABLE = "LABEL_NOT_AVAILABLE"
AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
INVALID_PACKAGE = "INVALID_PACKAGE"
CARRIER_NOT_FOUND = "CARRIER_NOT_FOUND"

# Adapter-level codes
CARRIER_ERROR = "CARRIER_ERROR"
TIMEOUT = "TIMEOUT"
RATE_ERROR = "RATE_ERROR"
SHIPMENT_ERROR = "SHIPMENT_ERROR"
UNKNOWN_STATUS = "UNKNOWN_STATUS"
LABEL_NOT_FOUND = "LABEL_NOT_FOUND"
TRACKING_NOT_FOUND = "TRACKING_NOT_FOUND"
PARSE_ERROR = "PARSE_ERROR"
NETWORK_ERROR = "NETWORK_ERROR"
NOT_SUPPORTED = "NOT_SUPPORTED"
MOCK_ERROR = "MOCK_ERROR"

RETRYABLE_CODES = frozenset({SERVICE_UNAVAILABLE, RATE_LIMIT_EXCEEDED})


class DelivroBaseError(Exception):
    """
    Base exception for all Delivro Logistic errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
    """

    default_code: str = "DELIVRO_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# CARRIER ERRORS
# =============================================================================

class CarrierError(DelivroBaseError):
    """
    Error raised by a carrier adapter.

    ``retryable`` is tri-state: ``None`` means "not stated", in which case
    ``is_retryable`` falls back to the code.
    """

    default_code = CARRIER_ERROR
    default_message = "carrier error"
    default_retryable: Optional[bool] = None

    def __init__(
        self,
        carrier: str = "",
        code: Optional[str] = None,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message or self.default_message, code=code, details=details)
        self.carrier = carrier
        self.status_code = status_code
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_cause(self, cause: BaseException) -> "CarrierError":
        self.cause = cause
        self.__cause__ = cause
        return self

    def with_status_code(self, status_code: int) -> "CarrierError":
        self.status_code = status_code
        return self

    def with_retryable(self, retryable: bool) -> "CarrierError":
        self.retryable = retryable
        return self

    def matches(self, other: Union["CarrierError", Type["CarrierError"], str]) -> bool:
        """True when ``other`` (an error, an error class or a bare code) has our code."""
        if isinstance(other, str):
            return self.code == other
        if isinstance(other, type) and issubclass(other, CarrierError):
            return self.code == other.default_code
        if isinstance(other, CarrierError):
            return self.code == other.code
        return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CarrierError):
            return NotImplemented
        return self.code == other.code

    def __hash__(self) -> int:
        return hash(self.code)

    def __str__(self) -> str:
        text = f"{self.carrier} error ({self.code}): {self.message}"
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "carrier": self.carrier,
            "status_code": self.status_code,
            "retryable": is_retryable(self),
        })
        return data


class InvalidAddressError(CarrierError):
    default_code = INVALID_ADDRESS
    default_message = "invalid address"


class ServiceUnavailableError(CarrierError):
    default_code = SERVICE_UNAVAILABLE
    default_message = "service unavailable"
    default_retryable = True


class QuoteExpiredError(CarrierError):
    default_code = QUOTE_EXPIRED
    default_message = "quote has expired"


class QuoteNotFoundError(CarrierError):
    default_code = QUOTE_NOT_FOUND
    default_message = "quote not found"


class OrderNotFoundError(CarrierError):
    default_code = ORDER_NOT_FOUND
    default_message = "order not found"


class CancellationNotAllowedError(CarrierError):
    default_code = CANCELLATION_NOT_ALLOWED
    default_message = "cancellation not allowed"


class LabelNotAvailableError(CarrierError):
    default_code = LABEL_NOT_AVAILABLE
    default_message = "label not available"


class AuthenticationFailedError(CarrierError):
    default_code = AUTHENTICATION_FAILED
    default_message = "authentication failed"


class RateLimitExceededError(CarrierError):
    default_code = RATE_LIMIT_EXCEEDED
    default_message = "rate limit exceeded"
    default_retryable = True


class InvalidPackageError(CarrierError):
    default_code = INVALID_PACKAGE
    default_message = "invalid package"


class CarrierNotFoundError(CarrierError):
    default_code = CARRIER_NOT_FOUND
    default_message = "carrier not found"


class AnnotatedCarrierError(CarrierError):
    """
    A carrier failure tagged with the registry name it came from.

    Produced by the registry fan-out; ``str()`` reads ``"{name}: {error}"``.
    Code, status and retryability are inherited from the wrapped error.
    """

    def __init__(self, name: str, error: BaseException):
        if isinstance(error, CarrierError):
            super().__init__(
                carrier=error.carrier or name,
                code=error.code,
                message=error.message,
                status_code=error.status_code,
                retryable=error.retryable,
                cause=error,
            )
        else:
            super().__init__(carrier=name, message=str(error) or type(error).__name__, cause=error)
        self.name = name
        self.error = error

    def __str__(self) -> str:
        return f"{self.name}: {self.error}"


# =============================================================================
# HELPERS
# =============================================================================

def is_retryable(exc: BaseException) -> bool:
    """
    Decide whether a failed carrier call is worth retrying.

    An explicit flag on a CarrierError wins. Otherwise only service
    unavailability and rate limiting count as transient.
    """
    if isinstance(exc, CarrierError):
        if exc.retryable is not None:
            return exc.retryable
        return exc.code in RETRYABLE_CODES
    return False


def error_from_status(
    carrier: str,
    status_code: int,
    message: str,
    code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> CarrierError:
    """
    Build the error for a non-success HTTP status.

    ``code`` is the carrier-supplied error code, if the body had one. It
    becomes the error code unless the status maps onto a shared condition,
    in which case it is kept under ``details["carrier_code"]``.
    """
    details = dict(details or {})
    if status_code in (401, 403):
        error: CarrierError = AuthenticationFailedError(carrier, message=message)
    elif status_code == 429:
        error = RateLimitExceededError(carrier, message=message)
    elif status_code >= 500:
        error = ServiceUnavailableError(carrier, message=message)
    else:
        return CarrierError(
            carrier, code=code or f"HTTP_{status_code}", message=message,
            status_code=status_code, details=details,
        )
    if code:
        details["carrier_code"] = code
    error.status_code = status_code
    error.details = details
    return error
