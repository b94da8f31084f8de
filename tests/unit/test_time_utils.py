"""
Unit Tests for Time Utilities
"""
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo
import pytest

from exam_monitor.utils.time_utils import (
    civil_date,
    local_instant,
    minutes_between,
    parse_date,
    parse_time,
    within_window,
    get_zone,
)


class TestParsing:

    def test_parse_date(self):
        assert parse_date('2025-01-10') == date(2025, 1, 10)

    def test_parse_date_rejects_other_formats(self):
        with pytest.raises(ValueError):
            parse_date('10/01/2025')

    def test_parse_time_drops_seconds(self):
        assert parse_time('09:30') == time(9, 30)
        assert parse_time('09:30:45') == time(9, 30)

    def test_parse_time_invalid(self):
        with pytest.raises(ValueError):
            parse_time('25:00')

    def test_minutes_between(self):
        assert minutes_between(time(9, 0), time(11, 0)) == 120
        assert minutes_between(time(11, 0), time(9, 0)) == -120


class TestReferenceTimezone:

    def test_local_instant_uses_zone_offset(self):
        instant = local_instant(date(2025, 1, 10), time(14, 0), 'Asia/Jerusalem')
        assert instant.astimezone(timezone.utc).hour == 12

    def test_local_instant_in_summer_time(self):
        instant = local_instant(date(2025, 7, 10), time(14, 0), 'Asia/Jerusalem')
        assert instant.astimezone(timezone.utc).hour == 11

    def test_civil_date_of_naive_utc(self):
        assert civil_date(datetime(2025, 1, 10, 22, 30), 'Asia/Jerusalem') == date(2025, 1, 11)
        assert civil_date(datetime(2025, 1, 10, 21, 30), 'Asia/Jerusalem') == date(2025, 1, 10)

    def test_within_window_inclusive(self):
        zone = ZoneInfo('Asia/Jerusalem')
        start = datetime(2025, 1, 10, 14, 0, tzinfo=zone)
        assert within_window(start, datetime(2025, 1, 10, 13, 30, tzinfo=zone), 30)
        assert not within_window(start, datetime(2025, 1, 10, 13, 29, tzinfo=zone), 30)

    def test_unknown_zone(self):
        with pytest.raises(ValueError):
            get_zone('Nowhere/Special')
