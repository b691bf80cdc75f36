"""Tests for UploadStats and ExportStats."""

import time

from transfer.progress import Severity
from transfer.transfer_stats import ExportStats, UploadStats


class TestUploadStats:
    """Tests for UploadStats."""

    def test_defaults(self):
        stats = UploadStats()

        assert stats.total == 0
        assert stats.completed_count == 0
        assert stats.error_details == []

    def test_summary(self):
        """Test the terminal message format."""
        stats = UploadStats(total=4, succeeded=3, failed=1, total_bytes=3 * 1024 * 1024 // 2)

        assert stats.summary_message == "Batch upload complete. Success: 3, Failed: 1, Total Size: 1.50 MB"
        assert stats.completed_count == 4

    def test_severity(self):
        assert UploadStats(succeeded=2).severity == Severity.SUCCESS
        assert UploadStats(succeeded=2, failed=1).severity == Severity.ERROR

    def test_elapsed(self):
        stats = UploadStats(start_time=time.time() - 10)

        assert 10 <= stats.elapsed_seconds < 20


class TestExportStats:
    """Tests for ExportStats."""

    def test_summary(self):
        stats = ExportStats(total=2, succeeded=2, destination='/tmp/out')

        assert stats.summary_message == "Successfully downloaded 2 images to /tmp/out"
        assert stats.severity == Severity.SUCCESS

    def test_failures(self):
        stats = ExportStats(total=3, succeeded=1, failed=2)

        assert stats.completed_count == 3
        assert stats.severity == Severity.ERROR
