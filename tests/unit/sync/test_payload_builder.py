"""Unit tests for sync.payload_builder module."""

from bibsync.library.models import Creator, RegularRecord
from bibsync.sync.payload_builder import (
    build_post_payload,
    extract_year,
    generate_bibtex_key,
    normalize_tag,
    share_url,
)


def make_record(**kwargs):
    defaults = dict(
        record_id="R1",
        entry_type="book",
        fields={"title": "Dune Messiah", "year": "1969", "publisher": "Putnam"},
        creators=[Creator("Herbert", "Frank"), Creator("Campbell", "John", creator_type="editor")],
        tags={"science fiction", "classic"},
    )
    defaults.update(kwargs)
    return RegularRecord(**defaults)


class TestBibtexKey:
    """Test cases for citation key generation."""

    def test_generated_key(self):
        assert generate_bibtex_key(make_record()) == "Herbert1969Dune"

    def test_explicit_key_wins(self):
        assert generate_bibtex_key(make_record(citation_key="dune69")) == "dune69"

    def test_accents_are_stripped(self):
        record = make_record(creators=[Creator("Müller")])
        assert generate_bibtex_key(record) == "Muller1969Dune"

    def test_placeholders(self):
        record = RegularRecord(record_id="R1")
        assert generate_bibtex_key(record) == "UnknownAuthorNoYearUntitled"

    def test_year_from_date(self):
        record = make_record(fields={"title": "Dune", "date": "1965-08-01"})
        assert extract_year(record) == "1965"


class TestPayload:
    """Test cases for build_post_payload."""

    def test_structure(self):
        payload = build_post_payload(make_record(), "alice", "public", "bibsync")

        assert payload["user"] == {"name": "alice"}
        assert payload["group"] == [{"name": "public"}]
        bibtex = payload["bibtex"]
        assert bibtex["entrytype"] == "book"
        assert bibtex["title"] == "Dune Messiah"
        assert bibtex["year"] == "1969"
        assert bibtex["publisher"] == "Putnam"
        assert bibtex["author"] == "Herbert, Frank"
        assert bibtex["editor"] == "Campbell, John"
        assert bibtex["bibtexKey"] == "Herbert1969Dune"
        assert bibtex["privnote"] == "bibsync record: R1"

    def test_tags_are_normalized_and_include_post_tag(self):
        payload = build_post_payload(make_record(), "alice", "public", "bibsync")

        assert [t["name"] for t in payload["tag"]] == ["classic", "science_fiction", "bibsync"]

    def test_post_tag_not_duplicated(self):
        payload = build_post_payload(make_record(tags={"bibsync"}), "alice", "public", "bibsync")
        assert [t["name"] for t in payload["tag"]] == ["bibsync"]

    def test_reserved_fields_are_not_copied(self):
        record = make_record(fields={"title": "T", "intrahash": "x", "author": "Someone"})
        bibtex = build_post_payload(record, "alice", "public", "bibsync")["bibtex"]

        assert "intrahash" not in bibtex
        assert bibtex["author"] == "Herbert, Frank"

    def test_multiple_authors_joined(self):
        record = make_record(creators=[Creator("A", "X"), Creator("B", "Y")])
        bibtex = build_post_payload(record, "alice", "public", "bibsync")["bibtex"]
        assert bibtex["author"] == "A, X and B, Y"


class TestHelpers:
    def test_normalize_tag(self):
        assert normalize_tag(" machine learning ") == "machine_learning"

    def test_share_url(self):
        assert share_url("https://bibsonomy.test/", "abc", "alice") == "https://bibsonomy.test/bibtex/abc/alice"
