"""
Custom Exception Hierarchy

Every failure a handler can surface maps to one of these, and every one of
them renders as ``{"error": {"code", "message", "details"}}``.
"""
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"
    UNAUTHORIZED = "ERR_1004"
    FORBIDDEN = "ERR_1005"

    # Parcel errors (2xxx)
    PARCEL_NOT_FOUND = "ERR_2001"
    PARCEL_ALREADY_PAID = "ERR_2002"

    # Payment errors (3xxx)
    PAYMENT_TRANSACTION_FAILED = "ERR_3001"

    # User / rider errors (4xxx)
    USER_NOT_FOUND = "ERR_4001"
    INVALID_USER_ROLE = "ERR_4002"
    RIDER_APPLICATION_NOT_FOUND = "ERR_4003"

    # External service errors (5xxx)
    IDENTITY_PROVIDER_ERROR = "ERR_5001"
    PAYMENT_PROCESSOR_ERROR = "ERR_5002"
    EXTERNAL_SERVICE_UNAVAILABLE = "ERR_5003"
    EXTERNAL_SERVICE_TIMEOUT = "ERR_5004"


class AppException(Exception):
    """Base exception for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "details": self.details
            }
        }


class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class UnauthenticatedError(AppException):
    """Raised when a request carries no usable credential"""

    def __init__(self, message: str = "Unauthorized access"):
        super().__init__(
            message=message,
            error_code=ErrorCode.UNAUTHORIZED,
            status_code=401
        )


class ForbiddenError(AppException):
    """Raised when the credential was presented but rejected"""

    def __init__(self, message: str = "Forbidden access", details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.FORBIDDEN,
            status_code=403,
            details=details
        )


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class ParcelNotFoundError(NotFoundException):
    def __init__(self, parcel_id: str):
        super().__init__("Parcel", parcel_id, ErrorCode.PARCEL_NOT_FOUND)


class UserNotFoundError(NotFoundException):
    def __init__(self, identifier: str):
        super().__init__("User", identifier, ErrorCode.USER_NOT_FOUND)


class RiderApplicationNotFoundError(NotFoundException):
    def __init__(self, application_id: str):
        super().__init__("Rider application", application_id, ErrorCode.RIDER_APPLICATION_NOT_FOUND)


class ParcelAlreadyPaidError(AppException):
    """Raised when a payment is recorded against a parcel that is already paid"""

    def __init__(self, parcel_id: str):
        super().__init__(
            message="Parcel is already paid",
            error_code=ErrorCode.PARCEL_ALREADY_PAID,
            status_code=409,
            details={"parcel_id": parcel_id}
        )


class PaymentTransactionError(AppException):
    """Raised when the mark-paid + payment-record unit could not commit"""

    def __init__(self, message: str = "Payment save failed", parcel_id: str | None = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.PAYMENT_TRANSACTION_FAILED,
            status_code=500,
            details={"parcel_id": parcel_id} if parcel_id else None
        )


class ExternalServiceException(AppException):
    """Base exception for identity provider and payment processor failures"""

    def __init__(
        self,
        service_name: str,
        message: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=500,
            details=details
        )
        self.details["service"] = service_name


class UpstreamServiceError(ExternalServiceException):
    """Raised when an external collaborator answers with a failure"""

    _CODES = {
        "identity_provider": ErrorCode.IDENTITY_PROVIDER_ERROR,
        "payment_processor": ErrorCode.PAYMENT_PROCESSOR_ERROR,
    }

    def __init__(self, service_name: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            service_name=service_name,
            message=message,
            error_code=self._CODES.get(service_name, ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE),
            details=details
        )


class ServiceTimeoutError(ExternalServiceException):
    """Raised when external service times out"""

    def __init__(self, service_name: str, timeout_seconds: float):
        super().__init__(
            service_name=service_name,
            message=f"{service_name} request timed out after {timeout_seconds}s",
            error_code=ErrorCode.EXTERNAL_SERVICE_TIMEOUT,
            details={"timeout_seconds": timeout_seconds}
        )


class CircuitBreakerOpenError(ExternalServiceException):
    """Raised when circuit breaker is open"""

    def __init__(self, service_name: str, retry_after_seconds: float):
        super().__init__(
            service_name=service_name,
            message=f"{service_name} is temporarily unavailable (circuit breaker open)",
            error_code=ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
            details={"retry_after_seconds": retry_after_seconds}
        )
