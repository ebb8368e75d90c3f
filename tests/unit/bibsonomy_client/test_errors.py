"""Unit tests for bibsonomy_client.errors module."""

import pytest

from bibsync.bibsonomy_client.errors import (
    APIUnreachableError,
    BadRequestError,
    BibSonomyError,
    DuplicateItemError,
    InvalidBibTexError,
    MissingCredentialsError,
    PostNotFoundError,
    ResourceNotFoundError,
    SyncError,
    UnauthorizedError,
)


class TestErrorHierarchy:
    """Test cases for the exception hierarchy."""

    @pytest.mark.parametrize("error", [
        UnauthorizedError(),
        DuplicateItemError(),
        PostNotFoundError("0123456789abcdef0123456789abcdef"),
        InvalidBibTexError("invalid bibtex", 400),
        APIUnreachableError("https://bibsonomy.test"),
    ])
    def test_all_errors_are_sync_errors(self, error):
        """Every remote error can be caught as SyncError and BibSonomyError."""
        assert isinstance(error, SyncError)
        assert isinstance(error, BibSonomyError)

    def test_post_not_found_is_resource_not_found(self):
        """PostNotFoundError specializes ResourceNotFoundError and keeps the hash."""
        error = PostNotFoundError("0123456789abcdef0123456789abcdef")

        assert isinstance(error, ResourceNotFoundError)
        assert error.intrahash == "0123456789abcdef0123456789abcdef"
        assert error.status_code == 404
        assert "0123456789abcdef0123456789abcdef" in str(error)

    def test_invalid_bibtex_is_bad_request(self):
        """InvalidBibTexError specializes BadRequestError."""
        assert issubclass(InvalidBibTexError, BadRequestError)

    def test_kinds_are_distinct(self):
        """Each error class carries its own kind."""
        assert UnauthorizedError.kind == "unauthorized"
        assert PostNotFoundError.kind == "post_not_found"
        assert ResourceNotFoundError.kind == "resource_not_found"
        assert DuplicateItemError.kind == "duplicate_item"


class TestErrorMessages:
    """Test cases for error messages and attributes."""

    def test_missing_credentials_lists_variables(self):
        """MissingCredentialsError names the missing variables."""
        error = MissingCredentialsError(["BIBSONOMY_USER", "BIBSONOMY_API_KEY"])

        assert "BIBSONOMY_USER" in str(error)
        assert "BIBSONOMY_API_KEY" in str(error)
        assert error.missing == ["BIBSONOMY_USER", "BIBSONOMY_API_KEY"]

    def test_api_unreachable_includes_endpoint(self):
        """APIUnreachableError includes the endpoint."""
        error = APIUnreachableError("https://bibsonomy.test")

        assert error.endpoint == "https://bibsonomy.test"
        assert "https://bibsonomy.test" in str(error)

    def test_status_code_is_kept(self):
        """BibSonomyError stores the HTTP status code."""
        error = BadRequestError("nope", 400)
        assert error.status_code == 400
