"""Unit tests for library.yaml_library module."""

import pytest
import yaml

from bibsync.library.errors import LibraryError
from bibsync.library.models import AttachmentRecord, NoteRecord, RegularRecord
from bibsync.library.yaml_library import LIBRARY_FILE, YamlLibrary
from tests.fixtures.sample_posts import SAMPLE_LIBRARY_YAML


@pytest.fixture
def library_dir(tmp_path):
    (tmp_path / LIBRARY_FILE).write_text(SAMPLE_LIBRARY_YAML, encoding="utf-8")
    (tmp_path / "files").mkdir()
    (tmp_path / "files" / "dune.pdf").write_bytes(b"%PDF")
    return tmp_path


class TestLoad:
    """Test cases for loading library.yaml."""

    def test_loads_all_variants(self, library_dir):
        library = YamlLibrary.open(str(library_dir))

        record = library.get_regular_record("R1")
        assert record.title == "Dune"
        assert record.creators[0].display_name == "Herbert, Frank"
        assert record.tags == {"classic", "scifi"}
        assert record.attachment_ids == ["A1"]
        assert record.note_ids == ["N1"]

        attachment = library.get_record("A1")
        assert isinstance(attachment, AttachmentRecord)
        assert attachment.path == str(library_dir / "files" / "dune.pdf")
        assert library.read_attachment(attachment) == b"%PDF"

        assert isinstance(library.get_record("N1"), NoteRecord)

    def test_missing_file_is_empty_library(self, tmp_path):
        library = YamlLibrary.open(str(tmp_path / "new"))
        assert library.list_records() == []

    def test_unknown_parent_is_error(self, tmp_path):
        (tmp_path / LIBRARY_FILE).write_text(
            "records:\n- id: A1\n  type: attachment\n  parent: NOPE\n  filename: a.pdf\n",
            encoding="utf-8",
        )
        with pytest.raises(LibraryError):
            YamlLibrary.open(str(tmp_path))

    def test_invalid_yaml_is_error(self, tmp_path):
        (tmp_path / LIBRARY_FILE).write_text("records: [unclosed", encoding="utf-8")
        with pytest.raises(LibraryError):
            YamlLibrary.open(str(tmp_path))

    def test_unknown_type_is_error(self, tmp_path):
        (tmp_path / LIBRARY_FILE).write_text("records:\n- id: X\n  type: bogus\n", encoding="utf-8")
        with pytest.raises(LibraryError):
            YamlLibrary.open(str(tmp_path))


class TestPersistence:
    """Test cases for writing library.yaml on every mutation."""

    def test_mutations_are_persisted(self, library_dir):
        library = YamlLibrary.open(str(library_dir))

        library.update_fields("R1", title="Dune Messiah")
        note = library.save_note("R1", "<p>metadata</p>")
        library.trash("R1")

        reloaded = YamlLibrary.open(str(library_dir))
        assert reloaded.get_regular_record("R1").title == "Dune Messiah"
        assert reloaded.get_record(note.record_id).content == "<p>metadata</p>"
        assert reloaded.is_trashed("R1")

    def test_attachment_path_stays_relative(self, library_dir):
        library = YamlLibrary.open(str(library_dir))
        library.add_tag("R1", "desert")

        data = yaml.safe_load((library_dir / LIBRARY_FILE).read_text(encoding="utf-8"))
        attachment = next(e for e in data["records"] if e["id"] == "A1")
        assert attachment["path"] == "files/dune.pdf"

    def test_new_record_round_trips(self, tmp_path):
        library = YamlLibrary.open(str(tmp_path))
        library.add_record(RegularRecord(record_id="R7", entry_type="article", fields={"title": "T"}))

        reloaded = YamlLibrary.open(str(tmp_path))
        record = reloaded.get_regular_record("R7")
        assert record.entry_type == "article"
        assert record.title == "T"
