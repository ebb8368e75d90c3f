"""Typed exception hierarchy for BibSonomy-related errors.

This module defines all custom exceptions raised by the BibSonomy client.
All remote errors inherit from BibSonomyError so callers can catch the whole
family, and each class carries a stable ``kind`` string that the error policy
and the CLI use to look up help texts.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for all bibsync errors.

    Use this to catch any application-level error from the sync tool.
    """
    kind = "sync_error"


class BibSonomyError(SyncError):
    """Base exception for all errors reported by the BibSonomy service."""
    kind = "bibsonomy_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingCredentialsError(BibSonomyError):
    """Raised when credentials are missing from the environment."""
    kind = "missing_credentials"

    def __init__(self, missing: list):
        super().__init__(
            f"BibSonomy credentials not set (missing: {', '.join(missing)})"
        )
        self.missing = missing


class UnauthorizedError(BibSonomyError):
    """Raised when the API key is invalid or the authorization header is rejected."""
    kind = "unauthorized"

    def __init__(self, message: str = "Unauthorized access", status_code: Optional[int] = 401):
        super().__init__(message, status_code)


class ForbiddenError(BibSonomyError):
    """Raised when the user may not access the requested resource."""
    kind = "forbidden"


class DuplicateItemError(BibSonomyError):
    """Raised when BibSonomy already holds a post with identical content."""
    kind = "duplicate_item"

    def __init__(self, message: str = "Duplicate item detected", status_code: Optional[int] = 400):
        super().__init__(message, status_code)


class ResourceNotFoundError(BibSonomyError):
    """Raised when a requested resource does not exist."""
    kind = "resource_not_found"


class PostNotFoundError(ResourceNotFoundError):
    """Raised when a post addressed by its intrahash does not exist."""
    kind = "post_not_found"

    def __init__(self, intrahash: str, message: Optional[str] = None):
        super().__init__(message or f"Post {intrahash} not found", 404)
        self.intrahash = intrahash


class BadRequestError(BibSonomyError):
    """Raised when BibSonomy rejects a request as malformed."""
    kind = "bad_request"


class InvalidBibTexError(BadRequestError):
    """Raised when the BibTeX payload is missing fields or cannot be parsed."""
    kind = "invalid_bibtex"


class InvalidModelError(BadRequestError):
    """Raised when the post payload does not match BibSonomy's data model."""
    kind = "invalid_model"


class InvalidRangeError(BadRequestError):
    """Raised when a requested range has start greater than end."""
    kind = "invalid_range"


class UnsupportedMediaTypeError(BibSonomyError):
    """Raised when an uploaded document has a media type BibSonomy refuses."""
    kind = "unsupported_media_type"


class InternalServerError(BibSonomyError):
    """Raised when BibSonomy answers with HTTP 500."""
    kind = "internal_server_error"


class ServiceUnavailableError(BibSonomyError):
    """Raised when BibSonomy is temporarily unavailable or rate limiting."""
    kind = "service_unavailable"


class UnexpectedAPIError(BibSonomyError):
    """Raised for any status code without a dedicated error class."""
    kind = "unexpected_api_error"


class InvalidFormatError(BibSonomyError):
    """Raised when a response body cannot be parsed into the expected shape."""
    kind = "invalid_format"


class APIUnreachableError(BibSonomyError):
    """Raised when the BibSonomy API cannot be reached (timeouts, DNS, refused)."""
    kind = "api_unreachable"

    def __init__(self, endpoint: str):
        super().__init__(f"API is not available at {endpoint}")
        self.endpoint = endpoint
