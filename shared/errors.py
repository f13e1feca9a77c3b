"""
Shared error handling for the Earthdata Search Access Layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class SearchLayerException(Exception):
    """Base exception for Access Layer services."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(SearchLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class RequestParseError(ValidationError):
    """The request body could not be parsed as a JSON object."""

    def __init__(self, message: str = "Request body is not valid JSON", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "REQUEST_PARSE_ERROR"


class AuthenticationError(SearchLayerException):
    """Authentication-related errors."""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details, status_code=401)


class InvalidTokenError(AuthenticationError):
    """Session token failed signature, expiry or payload checks."""

    def __init__(self, message: str = "Invalid session token", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "INVALID_TOKEN"


class ConfigurationError(SearchLayerException):
    """Missing or unusable configuration or secrets."""

    def __init__(self, message: str = "Configuration error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details, status_code=500)


class ExternalServiceError(SearchLayerException):
    """External service errors."""

    def __init__(self, service: str, message: str = "External service error",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details, status_code=502)
        self.service = service

    @property
    def upstream_status(self) -> Optional[int]:
        return self.details.get("status_code")
