"""
Tests for the periodic throttle cleanup task.

Tests verify that the beat schedule is configured and that the task runs the
sweeper inside the Flask application context.
"""

import datetime
from unittest.mock import patch

from authguard import celery, db, sweeper
from authguard.models import ThrottleRecord
from authguard.tasks.throttle_cleanup import purge_expired_throttles
from authguard.utils.clock import utcnow


class TestThrottleCleanupTask:
    """Test suite for the throttle cleanup task."""

    def test_beat_schedule_registered(self):
        entry = celery.conf.beat_schedule["purge-expired-throttles"]

        assert entry["task"] == "authguard.tasks.throttle_cleanup.purge_expired_throttles"
        assert entry["schedule"] == 600.0

    def test_task_registered(self):
        assert (
            "authguard.tasks.throttle_cleanup.purge_expired_throttles" in celery.tasks
        )

    @patch.object(sweeper, "purge_expired", return_value=7)
    def test_purge_success(self, mock_purge):
        result = purge_expired_throttles.apply().result

        assert result["status"] == "success"
        assert result["purged_count"] == 7
        assert result["message"] == "Purged 7 expired throttle records"
        mock_purge.assert_called_once_with()

    def test_purge_deletes_lapsed_rows(self, app):
        now = utcnow()
        db.session.add_all(
            [
                ThrottleRecord(
                    identifier="+15550100",
                    action="OTP_REQUEST",
                    count=1,
                    window_start=now - datetime.timedelta(hours=2),
                    expires_at=now - datetime.timedelta(hours=1),
                ),
                ThrottleRecord(
                    identifier="203.0.113.7",
                    action="LOGIN_ATTEMPT",
                    count=3,
                    window_start=now,
                    expires_at=now + datetime.timedelta(minutes=15),
                ),
            ]
        )
        db.session.commit()

        result = purge_expired_throttles.apply().result

        assert result["purged_count"] == 1
        assert db.session.query(ThrottleRecord).count() == 1

    @patch("rollbar.report_exc_info")
    @patch.object(sweeper, "purge_expired", side_effect=RuntimeError("db down"))
    def test_purge_failure_is_retried_then_fails(self, mock_purge, mock_rollbar):
        result = purge_expired_throttles.apply()

        assert result.failed()
        assert isinstance(result.result, RuntimeError)
        # First run plus the retries
        assert mock_purge.call_count > 1
        assert mock_rollbar.called
