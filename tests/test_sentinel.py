"""Tests for the incomplete-sync warning hand-off."""

from __future__ import annotations

from unittest.mock import MagicMock

from remotesync.models import SyncOutcome
from remotesync.sentinel import INCOMPLETE_KEY, INCOMPLETE_MESSAGE, incomplete_warning, report_incomplete


class TestIncompleteWarning:
    def test_complete_sync(self):
        assert incomplete_warning(SyncOutcome()) is None

    def test_stale_manifest_is_not_incomplete(self):
        assert incomplete_warning(SyncOutcome(manifest_stale=True)) is None

    def test_manifest_failed(self):
        assert incomplete_warning(SyncOutcome(manifest_failed=True)) == INCOMPLETE_MESSAGE

    def test_pipeline_error(self):
        assert incomplete_warning(SyncOutcome(error="boom")) == INCOMPLETE_MESSAGE


class TestReportIncomplete:
    def test_warns_once(self):
        warn = MagicMock()
        assert report_incomplete(SyncOutcome(manifest_failed=True), warn) is True
        warn.assert_called_once_with(INCOMPLETE_KEY, INCOMPLETE_MESSAGE)

    def test_silent_when_complete(self):
        warn = MagicMock()
        assert report_incomplete(SyncOutcome(), warn) is False
        warn.assert_not_called()
