"""
Shared error handling for the Product Catalog Service.
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


class CatalogException(Exception):
    """Base exception for catalog services."""

    status_code: int = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None
    ):
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


class NotFoundError(CatalogException):
    """Referenced entity does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ValidationError(CatalogException):
    """Malformed pagination, range or quantity arguments."""

    status_code = 400

    def __init__(self, message: str = "Invalid argument", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_ARGUMENT", message, details)


class StoreError(CatalogException):
    """Failure reported by the persistence collaborator."""

    status_code = 500

    def __init__(
        self,
        message: str = "Store error",
        details: Optional[Dict[str, Any]] = None,
        code: str = "STORE_ERROR"
    ):
        super().__init__(code, message, details)


class StoreUnavailableError(StoreError):
    """Store could not be reached (connection loss, timeout)."""

    status_code = 503

    def __init__(self, message: str = "Store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="STORE_UNAVAILABLE")


class ConstraintViolationError(StoreError):
    """Store rejected a write because of an integrity constraint."""

    status_code = 409

    def __init__(self, message: str = "Constraint violation", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="CONSTRAINT_VIOLATION")
