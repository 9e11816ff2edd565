"""
DisasterHub Backend — Custom Exception Hierarchy
==================================================

What:  Application-specific exceptions for every error scenario of the API.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services, dependencies and middleware; caught by handlers.

Exception Hierarchy:
    DisasterHubError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── ConflictError            → 400 Bad Request (duplicate email, stale status)
    ├── UnauthenticatedError     → 401 Unauthorized
    │   └── AccountDisabledError → 401 Unauthorized
    ├── ForbiddenError           → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── FileStorageError         → 500 Internal Server Error
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, List, Optional


class DisasterHubError(Exception):
    """
    Base exception for all DisasterHub application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, only returned where a handler
                  explicitly exposes it as `details`)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(DisasterHubError):
    """
    Raised when client input fails validation.

    `errors` is the structured list of field errors returned to the client
    as `details.errors`; a single-field error can be raised with `field`.

    Example response:
        {
            "error": "validation_error",
            "message": "Validation failed",
            "details": {"errors": [{"field": "title", "message": "..."}]}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        errors: Optional[List[Dict[str, str]]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        field_errors = list(errors or [])
        if field and not field_errors:
            field_errors.append({"field": field, "message": message})
        if field_errors:
            ctx["errors"] = field_errors
        super().__init__(message=message, context=ctx)
        self.field = field
        self.errors = field_errors


class ConflictError(DisasterHubError):
    """
    Raised when a write collides with existing state.

    When:    Registration with an email that is already taken; a status
             transition that is not allowed from the record's current status,
             or that lost a race against a concurrent update.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UnauthenticatedError(DisasterHubError):
    """
    Raised when the bearer credential is missing, malformed, expired, or
    refers to a user that no longer exists. Also raised for bad login
    credentials.

    HTTP:    401 Unauthorized (with WWW-Authenticate: Bearer)
    """

    def __init__(
        self,
        message: str = "Not authorized, token missing or invalid",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AccountDisabledError(UnauthenticatedError):
    """
    Raised when the credential is valid but the account has been deactivated
    by an admin.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Account is deactivated",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(DisasterHubError):
    """
    Raised when an authenticated caller is not permitted to perform the
    requested operation (wrong role, or not the owner of the record).

    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "Not authorized to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(DisasterHubError):
    """
    Raised when a requested resource does not exist, or exists but is not
    visible to the caller.

    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class FileStorageError(DisasterHubError):
    """
    Raised when file system operations on uploaded images fail.

    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(DisasterHubError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic. Detailed error
    info is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)

