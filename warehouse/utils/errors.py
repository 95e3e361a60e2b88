from typing import Any, Dict, List, Optional, Union


class AppError(Exception):
    """
    Base class for errors that map onto the API error envelope.

    Attributes:
        message: Human readable description
        status_code: HTTP status the error is reported with
        code: Machine readable error code
        details: Optional structured context for the caller
    """

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details


class ValidationError(AppError):
    """Exception raised for malformed input. Never touches the store."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, List[str]]] = None):
        super().__init__(message, details=details or {})


class NotFoundError(AppError):
    """Exception raised when a referenced resource doesn't exist."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Union[int, str, None] = None):
        if identifier is not None:
            message = f"{resource} with identifier '{identifier}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class ConflictError(AppError):
    """Exception raised on uniqueness or ownership conflicts."""

    status_code = 409
    code = "CONFLICT"


class BusinessRuleViolation(AppError):
    """Exception raised when a well-formed request breaks a business rule."""

    status_code = 422
    code = "BUSINESS_RULE_VIOLATION"


class InsufficientStockError(BusinessRuleViolation):
    """Exception raised when a decrease would drive stock below zero."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, available: int, requested: int):
        super().__init__(
            f"Insufficient stock. Available: {available}, Requested: {requested}",
            details={"available": available, "requested": requested},
        )
        self.available = available
        self.requested = requested
