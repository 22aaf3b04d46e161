"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. Each carries the HTTP status the
API layer renders it with.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""

    status_code = 400


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""

    status_code = 400


class UnauthorizedException(ApplicationException):
    """Missing, invalid or expired credential."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated", details: Optional[dict] = None):
        super().__init__(message, details)


class ForbiddenException(ApplicationException):
    """Valid credential, insufficient role or ownership."""

    status_code = 403

    def __init__(self, message: str = "Forbidden", details: Optional[dict] = None):
        super().__init__(message, details)


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    status_code = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class InvalidTransitionException(DomainException):
    """Exception raised when a status change violates the workflow."""

    def __init__(
        self,
        from_status: str,
        to_status: str,
        details: Optional[dict] = None
    ):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition from {from_status} to {to_status}",
            details or {"from_status": from_status, "to_status": to_status}
        )


class ConflictException(RepositoryException):
    """Exception raised when a concurrent writer changed the record first."""

    status_code = 409


class UploadException(ApplicationException):
    """Exception raised when an attachment cannot be stored."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    status_code = 502

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class InferenceException(ExternalServiceException):
    """Exception for inference API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Inference API", message, details)
