from typing import Optional, Any


class OTPDeskError(Exception):
    """
    Base exception for OTPDesk application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ValidationError(OTPDeskError):
    """
    Raised when input validation fails (missing fields, duplicate username...).
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400, details=details)


class AuthenticationError(OTPDeskError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)


class PermissionDeniedError(OTPDeskError):
    """
    Raised when an employee acts on a resource they do not own.
    """
    def __init__(self, message: str = "Permission denied", details: Optional[Any] = None):
        super().__init__(message, code="PERMISSION_DENIED", status_code=403, details=details)


class ResourceNotFoundError(OTPDeskError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class InvalidOrderStateError(OTPDeskError):
    """
    Raised when an operation is not allowed from the order's current status.
    """
    def __init__(self, message: str = "Operation not allowed for this order", details: Optional[Any] = None):
        super().__init__(message, code="INVALID_ORDER_STATE", status_code=400, details=details)


class NoNumbersAvailableError(OTPDeskError):
    """
    Raised when the provider has no inventory. Callers may retry.
    """
    def __init__(self, message: str = "No numbers currently available. Please try again later.", details: Optional[Any] = None):
        super().__init__(message, code="NO_NUMBERS", status_code=404, details=details)


class ProviderRejectedError(OTPDeskError):
    """
    Raised when the provider answers with anything other than an expected response.
    `raw` keeps the provider's text for diagnostics.
    """
    def __init__(self, raw: str, message: Optional[str] = None):
        self.raw = raw
        super().__init__(
            message or f"API Error: {raw}",
            code="PROVIDER_ERROR",
            status_code=400,
            details=raw
        )


class ProviderTransportError(OTPDeskError):
    """
    Raised when the provider cannot be reached (timeout, connection error, HTTP error status).
    """
    def __init__(self, message: str = "Number provider is unreachable", details: Optional[Any] = None):
        super().__init__(message, code="PROVIDER_UNREACHABLE", status_code=500, details=details)
