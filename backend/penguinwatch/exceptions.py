"""
PenguinWatch Backend - Custom Exception Hierarchy
===================================================

What:  Application-specific exceptions for the error scenarios of the API.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return JSON error responses with the matching HTTP status code.
Who:   Raised by the validation layer and services; caught by global handlers.

Exception Hierarchy:
    PenguinWatchError (base)
    ├── ValidationError   → 400 Bad Request, body {"error": [field errors]}
    ├── NotFoundError     → 404 Not Found
    ├── FileStorageError  → 500 Internal Server Error
    └── DatabaseError     → 500 Internal Server Error

Field error items have the shape:
    {"path": ["adult_count"], "message": "Adult count must be 0 or greater", "code": "too_small"}
"""

from typing import Any, Dict, List, Optional


class PenguinWatchError(Exception):
    """
    Base exception for all PenguinWatch application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PenguinWatchError):
    """
    Raised when client input fails validation.

    When:    Malformed form fields, out-of-range counts, unknown location,
             unsupported image type, oversized or undecodable image.
    HTTP:    400 Bad Request

    Either pass a full list of field errors (`errors`) or a single message
    with the offending `field`; the latter is turned into a one-item list.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        code: str = "custom",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field
        if errors is None:
            errors = [{
                "path": [field] if field else [],
                "message": message,
                "code": code,
            }]
        self.errors = errors


class NotFoundError(PenguinWatchError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that into
    this exception so the route layer stays free of status-code logic.
    HTTP:    404 Not Found
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class FileStorageError(PenguinWatchError):
    """
    Raised when file system operations fail.

    When:    Disk full, permission denied, upload directory not writable.
    HTTP:    500 Internal Server Error (file paths are never returned)
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(PenguinWatchError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic. Query details
    are logged server-side only.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
