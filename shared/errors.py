"""
Shared error handling for the Tenant Billing Rules service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class BillingPlatformException(Exception):
    """Base exception for billing platform services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(BillingPlatformException):
    """Validation-related errors."""

    status_code = 422

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class RuleValidationError(ValidationError):
    """A billing rule payload could not be turned into a typed rule."""

    def __init__(self, message: str = "Invalid billing rule", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "RULE_VALIDATION_ERROR"


class NotFoundError(BillingPlatformException):
    """Requested entity does not exist."""

    status_code = 404


class RuleNotFoundError(NotFoundError):
    """Billing rule lookup failed."""

    def __init__(self, rule_id: str):
        super().__init__("RULE_NOT_FOUND", f"Billing rule '{rule_id}' not found", {"rule_id": rule_id})


class TenantNotFoundError(NotFoundError):
    """Tenant lookup failed."""

    def __init__(self, tenant_id: str):
        super().__init__("TENANT_NOT_FOUND", f"Tenant '{tenant_id}' not found", {"tenant_id": tenant_id})


class ServiceError(BillingPlatformException):
    """Service-related errors."""

    status_code = 500

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_ERROR", message, details)


class BillingCalculationError(BillingPlatformException):
    """Billing calculation could not be completed."""

    status_code = 500

    def __init__(self, message: str = "Billing calculation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("BILLING_CALCULATION_ERROR", message, details)


class ExternalServiceError(BillingPlatformException):
    """External service errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)
        self.service = service


class ActionExecutionError(BillingPlatformException):
    """A rule action handler failed."""

    status_code = 502

    def __init__(self, rule_id: str, action: str, message: str, details: Optional[Dict[str, Any]] = None):
        merged = {"rule_id": rule_id, "action": action}
        merged.update(details or {})
        super().__init__("ACTION_EXECUTION_ERROR", message, merged)
        self.rule_id = rule_id
        self.action = action
