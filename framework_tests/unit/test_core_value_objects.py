"""Tests for the session identity scheme."""

from datetime import datetime, timezone

import pytest

from pgtestbed.core.value_objects import LOG_LINE_PREFIX, SessionId


class TestSessionIdFromBackend:
    """Test encoding a backend's start time and pid."""

    def test_hex_encoding(self) -> None:
        """Test start epoch and pid are lowercase hex joined by a dot."""
        assert SessionId.from_backend(1700000000, 4242).value == "6553f100.1092"

    def test_fractional_start_is_truncated(self) -> None:
        """Test a fractional epoch is truncated, not rounded."""
        assert SessionId.from_backend(255.99, 16).value == "ff.10"

    def test_datetime_start(self) -> None:
        """Test an aware datetime start time is accepted."""
        start = datetime.fromtimestamp(1700000000.7, tz=timezone.utc)
        assert SessionId.from_backend(start, 4242) == SessionId("6553f100.1092")

    def test_client_and_log_line_agree(self) -> None:
        """Test the client-derived id equals the tag the server writes."""
        client_id = SessionId.from_backend(1700000000, 4242)
        line = "[2023-11-14 22:13:20.123 UTC] [4242] [6553f100.1092]: LOG:  statement: SELECT 1"
        assert SessionId.from_log_line(line) == client_id


class TestSessionIdFromLogLine:
    """Test extracting the session tag of a log line."""

    def test_unparsable_line(self) -> None:
        """Test lines without the prefix map to the NONE sentinel."""
        session_id = SessionId.from_log_line("could not bind IPv6 address")
        assert session_id is SessionId.NONE
        assert session_id.is_none

    def test_empty_tag(self) -> None:
        """Test an empty tag maps to the NONE sentinel."""
        assert SessionId.from_log_line("[ts] [1] []: LOG:  x").is_none

    def test_first_tag_wins(self) -> None:
        """Test the session tag is taken from the prefix only."""
        line = "[ts] [1] [aa.1]: LOG:  statement: SELECT '[x] [y] [z]'"
        assert SessionId.from_log_line(line).value == "aa.1"

    def test_prefix_matches_pattern(self) -> None:
        """Test the configured prefix produces lines the pattern understands."""
        line = LOG_LINE_PREFIX.replace("%m", "ts").replace("%p", "7").replace("%c", "a.7")
        assert SessionId.from_log_line(line + "LOG:  hi").value == "a.7"


class TestSessionIdValue:
    """Test SessionId as a value object."""

    def test_empty_rejected(self) -> None:
        """Test an empty id is rejected."""
        with pytest.raises(ValueError):
            SessionId("")

    def test_str_and_hash(self) -> None:
        """Test ids print as their value and work as dict keys."""
        assert str(SessionId("a.1")) == "a.1"
        assert {SessionId("a.1"): 1}[SessionId("a.1")] == 1
