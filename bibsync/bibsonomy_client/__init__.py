"""BibSonomy client library for bidirectional sync.

This package provides Python abstractions over the BibSonomy REST API,
enabling typed interactions with posts and their documents.
"""

from .errors import (
    SyncError,
    BibSonomyError,
    MissingCredentialsError,
    UnauthorizedError,
    ForbiddenError,
    DuplicateItemError,
    ResourceNotFoundError,
    PostNotFoundError,
    BadRequestError,
    InvalidBibTexError,
    InvalidModelError,
    InvalidRangeError,
    UnsupportedMediaTypeError,
    InternalServerError,
    ServiceUnavailableError,
    UnexpectedAPIError,
    InvalidFormatError,
    APIUnreachableError,
)
from .models import PostResponse, RemoteDocument, RemotePost

__all__ = [
    "SyncError",
    "BibSonomyError",
    "MissingCredentialsError",
    "UnauthorizedError",
    "ForbiddenError",
    "DuplicateItemError",
    "ResourceNotFoundError",
    "PostNotFoundError",
    "BadRequestError",
    "InvalidBibTexError",
    "InvalidModelError",
    "InvalidRangeError",
    "UnsupportedMediaTypeError",
    "InternalServerError",
    "ServiceUnavailableError",
    "UnexpectedAPIError",
    "InvalidFormatError",
    "APIUnreachableError",
    "PostResponse",
    "RemoteDocument",
    "RemotePost",
]
