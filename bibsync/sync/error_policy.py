"""How each error kind is handled and presented to the user.

The engine propagates typed errors; this module is where callers (the CLI,
the change-event router) turn them into user-facing messages and session
side effects. Help texts are keyed by the stable ``kind`` of each error class
so batch error logs can offer a "help" lookup per entry.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from bibsync.bibsonomy_client.errors import (
    APIUnreachableError,
    DuplicateItemError,
    InternalServerError,
    MissingCredentialsError,
    ServiceUnavailableError,
    UnauthorizedError,
    UnexpectedAPIError,
)
from bibsync.sync.models import SessionState

logger = logging.getLogger(__name__)

HELP_TOPICS: Dict[str, str] = {
    "unauthorized": (
        "BibSonomy rejected your credentials. Check BIBSONOMY_USER and "
        "BIBSONOMY_API_KEY (the API key is listed under Settings > API on BibSonomy) "
        "and run 'bibsync check-auth'."
    ),
    "missing_credentials": "Set BIBSONOMY_USER and BIBSONOMY_API_KEY in your environment or .env file.",
    "forbidden": "Your BibSonomy account may not access this post.",
    "duplicate_item": (
        "BibSonomy already holds a post with identical content. Open the existing "
        "post on BibSonomy or change the record before syncing again."
    ),
    "resource_not_found": "The resource no longer exists on BibSonomy.",
    "post_not_found": (
        "The post was deleted on BibSonomy. The record's sync metadata is stale; "
        "remove the metadata note to post the record again."
    ),
    "bad_request": "BibSonomy rejected the request. Retrying will fail the same way.",
    "invalid_bibtex": "BibSonomy could not accept the record's fields. Check title, authors and year.",
    "invalid_model": "The post does not match BibSonomy's data model. Check the entry type and fields.",
    "invalid_range": "An invalid range was requested.",
    "unsupported_media_type": "BibSonomy refused an attachment's file type; that attachment was skipped.",
    "internal_server_error": "BibSonomy reported an internal error. Try again later.",
    "service_unavailable": "BibSonomy is temporarily unavailable or rate limiting. Try again later.",
    "unexpected_api_error": "BibSonomy answered with an unexpected status. Try again later.",
    "invalid_format": "BibSonomy sent a response that could not be parsed.",
    "api_unreachable": "BibSonomy could not be reached. Check your network connection and BIBSONOMY_URL.",
    "conflict": (
        "The record changed locally and on BibSonomy since the last sync. "
        "Conflicts are not resolved automatically; reconcile the record by hand "
        "and sync with --force."
    ),
    "metadata_error": "The record's sync metadata note is damaged. Remove it to post the record again.",
}

GENERIC_HELP = "An unexpected error occurred."


@dataclass
class ErrorHandling:
    """Handling rules for one error kind.

    Attributes:
        kind: Stable error kind
        retryable: Whether trying again later may succeed
        clears_authentication: Whether the session's authenticated flag is cleared
        fatal: Whether a bulk run should stop treating further results as meaningful
        message: Help text for the user
    """
    kind: str
    retryable: bool = False
    clears_authentication: bool = False
    fatal: bool = False
    message: str = GENERIC_HELP


def help_for(kind: str) -> str:
    """Help text for an error kind."""
    return HELP_TOPICS.get(kind, GENERIC_HELP)


def classify_error(error: BaseException) -> ErrorHandling:
    """Look up the handling rules of an error."""
    kind = getattr(error, "kind", "unexpected")
    handling = ErrorHandling(kind=kind, message=help_for(kind))

    if isinstance(error, (UnauthorizedError, MissingCredentialsError)):
        handling.clears_authentication = isinstance(error, UnauthorizedError)
        handling.fatal = True
    elif isinstance(error, (ServiceUnavailableError, InternalServerError,
                            UnexpectedAPIError, APIUnreachableError)):
        handling.retryable = True

    return handling


def apply_error_policy(
    error: BaseException,
    session: Optional[SessionState],
    operation: str = "sync",
    notify_duplicate: bool = True,
) -> Optional[str]:
    """Apply session side effects and build the message to show the user.

    Args:
        error: The error raised by a sync or delete operation
        session: Session state to update (may be None)
        operation: "sync" or "delete"
        notify_duplicate: Whether duplicate errors of a sync are reported

    Returns:
        The message to show, or None when the error is suppressed
    """
    handling = classify_error(error)
    logger.error(f"Error during {operation}: {error}")

    if handling.clears_authentication:
        if session is not None:
            session.authenticated = False
        return handling.message

    if isinstance(error, DuplicateItemError) and operation == "sync":
        if not notify_duplicate:
            logger.info("Duplicate item notification suppressed")
            return None
        return handling.message

    if handling.kind in HELP_TOPICS and handling.kind != "duplicate_item":
        return f"{error} ({handling.message})"

    return f"Unexpected error: {error}"
