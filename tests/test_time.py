from datetime import datetime, timezone

from provisioning_app.utils.time import format_comment_timestamp, get_local_timezone


class TestCommentTimestamps:
    """Test format_comment_timestamp()"""

    def test_winter_time(self, app):
        moment = datetime(2024, 3, 5, 14, 2, 11, tzinfo=timezone.utc)
        assert format_comment_timestamp(moment) == "5 March 2024 14:02:11 GMT"

    def test_summer_time(self, app):
        moment = datetime(2024, 7, 21, 8, 30, 0, tzinfo=timezone.utc)
        assert format_comment_timestamp(moment) == "21 July 2024 09:30:00 BST"

    def test_naive_moment_treated_as_utc(self, app):
        assert format_comment_timestamp(datetime(2024, 7, 21, 8, 30, 0)) == "21 July 2024 09:30:00 BST"

    def test_configured_timezone(self, app):
        app.config["PROVISIONING_TIMEZONE"] = "America/New_York"
        moment = datetime(2024, 1, 15, 17, 0, 0, tzinfo=timezone.utc)
        assert format_comment_timestamp(moment) == "15 January 2024 12:00:00 EST"

    def test_unknown_timezone_falls_back_to_utc(self, app, caplog):
        app.config["PROVISIONING_TIMEZONE"] = "Mars/Olympus_Mons"
        assert get_local_timezone() == timezone.utc
        assert "Unknown timezone" in caplog.text

    def test_default_is_now(self, app):
        stamp = format_comment_timestamp()
        assert str(datetime.now(timezone.utc).year) in stamp
