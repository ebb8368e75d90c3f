"""Unit tests for bibsonomy_client.models module."""

import pytest

from bibsync.bibsonomy_client.errors import InvalidFormatError
from bibsync.bibsonomy_client.models import PostResponse, RemoteDocument, RemotePost
from tests.fixtures.sample_posts import INTERHASH, INTRAHASH, make_document_json, make_post_json


class TestRemotePost:
    """Test cases for RemotePost.from_api."""

    def test_parses_full_post(self):
        """Hashes, dates, tags, groups and documents are extracted."""
        data = make_post_json(documents=[make_document_json("a.pdf"), make_document_json("b.pdf")])["post"]

        post = RemotePost.from_api(data)

        assert post.user == "alice"
        assert post.intrahash == INTRAHASH
        assert post.interhash == INTERHASH
        assert post.groups == ["public"]
        assert post.tags == ["dune", "bibsync"]
        assert post.changedate == "2024-01-15T10:30:00Z"
        assert post.document_filenames == ["a.pdf", "b.pdf"]

    def test_single_document_object(self):
        """A single document may come as an object instead of a list."""
        data = make_post_json()["post"]
        data["documents"] = {"document": make_document_json("a.pdf")}

        assert RemotePost.from_api(data).document_filenames == ["a.pdf"]

    def test_missing_documents_is_empty(self):
        """Posts without documents have an empty document list."""
        assert RemotePost.from_api(make_post_json()["post"]).documents == []

    def test_missing_changedate_is_none(self):
        """changedate is optional."""
        assert RemotePost.from_api(make_post_json(changedate=None)["post"]).changedate is None

    def test_missing_hashes_is_invalid(self):
        """A post without intrahash cannot be used."""
        data = make_post_json()["post"]
        del data["bibtex"]["intrahash"]

        with pytest.raises(InvalidFormatError):
            RemotePost.from_api(data)

    def test_missing_bibtex_is_invalid(self):
        with pytest.raises(InvalidFormatError):
            RemotePost.from_api({"user": {"name": "alice"}})


class TestRemoteDocument:
    """Test cases for RemoteDocument.from_api."""

    def test_parses_document(self):
        doc = RemoteDocument.from_api(make_document_json("a.pdf"))
        assert doc.filename == "a.pdf"
        assert doc.href.endswith("/documents/a.pdf")

    def test_missing_href_is_invalid(self):
        with pytest.raises(InvalidFormatError):
            RemoteDocument.from_api({"filename": "a.pdf"})


class TestPostResponse:
    """Test cases for PostResponse.from_api."""

    def test_parses_resourcehash(self):
        response = PostResponse.from_api({"resourcehash": INTRAHASH, "stat": "ok"})
        assert response.resourcehash == INTRAHASH

    @pytest.mark.parametrize("body", [None, {}, {"stat": "ok"}, ["x"]])
    def test_missing_resourcehash_is_invalid(self, body):
        with pytest.raises(InvalidFormatError):
            PostResponse.from_api(body)
