"""Unit tests for sync.models module."""

import pytest

from bibsync.bibsonomy_client.errors import InternalServerError
from bibsync.library.models import RegularRecord
from bibsync.sync.models import (
    AttachmentCase,
    AttachmentPlan,
    AutomationLevel,
    BulkSyncReport,
    SyncFailure,
    SyncMetadata,
)


class TestSyncMetadata:
    """Test cases for SyncMetadata."""

    def test_empty_metadata_is_offline(self):
        assert SyncMetadata().is_online is False

    @pytest.mark.parametrize("interhash,intrahash,online", [
        ("a" * 32, "b" * 32, True),
        ("a" * 32, "", False),
        ("", "b" * 32, False),
    ])
    def test_online_requires_both_hashes(self, interhash, intrahash, online):
        assert SyncMetadata(interhash=interhash, intrahash=intrahash).is_online is online


class TestAutomationLevel:
    """Test cases for AutomationLevel ordering."""

    def test_levels_are_ordered(self):
        assert AutomationLevel.MANUAL.rank < AutomationLevel.SEMI_AUTO.rank < AutomationLevel.AUTO.rank

    def test_auto_allows_everything(self):
        for level in AutomationLevel:
            assert AutomationLevel.AUTO.allows(level)

    def test_semi_auto_does_not_allow_auto(self):
        assert AutomationLevel.SEMI_AUTO.allows(AutomationLevel.MANUAL)
        assert not AutomationLevel.SEMI_AUTO.allows(AutomationLevel.AUTO)

    def test_from_config_value(self):
        assert AutomationLevel("semi-auto") is AutomationLevel.SEMI_AUTO


class TestResults:
    """Test cases for plan, failure and report types."""

    def test_empty_plan(self):
        assert AttachmentPlan(case=AttachmentCase.MATCHED).is_empty

    def test_failure_kind_comes_from_error(self):
        failure = SyncFailure(record=RegularRecord(record_id="R1"), error=InternalServerError("boom", 500))

        assert failure.kind == "internal_server_error"

    def test_failure_kind_of_foreign_error(self):
        failure = SyncFailure(record=RegularRecord(record_id="R1"), error=ValueError("bad"))

        assert failure.kind == "ValueError"

    def test_report_completed(self):
        report = BulkSyncReport(total=5, synced=2, skipped=1, failed=1)

        assert report.completed == 4
