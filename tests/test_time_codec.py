from __future__ import annotations

import zoneinfo
from datetime import datetime, timezone

import pytest

from shared.time_codec import TimeCodec, format_instant, parse_instant


@pytest.fixture
def utc_codec() -> TimeCodec:
    return TimeCodec(timezone.utc)


def test_to_wall_clock_formats_24h(utc_codec: TimeCodec) -> None:
    assert utc_codec.to_wall_clock("2024-03-04T17:30:00.000Z") == "17:30"
    assert utc_codec.to_wall_clock("2024-03-04T07:05:59.999Z") == "07:05"


def test_to_wall_clock_fails_soft(utc_codec: TimeCodec) -> None:
    assert utc_codec.to_wall_clock(None) == ""
    assert utc_codec.to_wall_clock("") == ""
    assert utc_codec.to_wall_clock("09:15") == "09:15"
    assert utc_codec.to_wall_clock("2024-99-99Tgarbage") == ""


def test_to_wall_clock_uses_codec_zone() -> None:
    codec = TimeCodec(zoneinfo.ZoneInfo("Asia/Nicosia"))
    # UTC+2 in winter
    assert codec.to_wall_clock("2024-01-15T07:00:00.000Z") == "09:00"


def test_to_instant_combines_date_and_time(utc_codec: TimeCodec) -> None:
    assert utc_codec.to_instant("2024-03-04", "09:00") == "2024-03-04T09:00:00.000Z"
    assert utc_codec.to_instant("2024-03-04", "9:05") == "2024-03-04T09:05:00.000Z"


def test_to_instant_local_zone_is_converted_to_utc() -> None:
    codec = TimeCodec(zoneinfo.ZoneInfo("Asia/Nicosia"))
    assert codec.to_instant("2024-01-15", "09:00") == "2024-01-15T07:00:00.000Z"


@pytest.mark.parametrize("value", [None, "", "-", "null"])
def test_to_instant_empty_markers(utc_codec: TimeCodec, value) -> None:
    assert utc_codec.to_instant("2024-03-04", value) is None


def test_to_instant_passes_instants_through(utc_codec: TimeCodec) -> None:
    raw = "2024-03-04T09:00:00.000Z"
    assert utc_codec.to_instant("2024-03-05", raw) == raw


def test_to_instant_rejects_invalid_values(utc_codec: TimeCodec) -> None:
    assert utc_codec.to_instant("2024-03-04", "25:00") is None
    assert utc_codec.to_instant("2024-02-30", "09:00") is None
    assert utc_codec.to_instant("", "09:00") is None
    assert utc_codec.to_instant("2024-03-04", "lunch") is None


def test_to_instant_accepts_sheet_date_instants() -> None:
    codec = TimeCodec(zoneinfo.ZoneInfo("Asia/Nicosia"))
    # Sheets returns the local midnight of 2024-01-15 as a UTC instant
    assert codec.to_instant("2024-01-14T22:00:00.000Z", "09:00") == "2024-01-15T07:00:00.000Z"


@pytest.mark.parametrize("tz_name", ["UTC", "Asia/Nicosia", "America/New_York"])
@pytest.mark.parametrize("instant", [
    "2024-03-04T09:00:00.000Z",
    "2024-06-30T23:59:00.000Z",
    "2024-12-31T00:00:00.000Z",
])
def test_round_trip_through_wall_clock(tz_name: str, instant: str) -> None:
    codec = TimeCodec(zoneinfo.ZoneInfo(tz_name))
    assert codec.to_instant(codec.date_of(instant), codec.to_wall_clock(instant)) == instant


def test_format_and_parse_instant() -> None:
    dt = datetime(2024, 3, 4, 9, 0, 0, 123456, tzinfo=timezone.utc)
    assert format_instant(dt) == "2024-03-04T09:00:00.123Z"
    assert parse_instant("2024-03-04T09:00:00.123Z") == datetime(2024, 3, 4, 9, 0, 0, 123000, tzinfo=timezone.utc)
    assert parse_instant("not a time") is None
    assert parse_instant(None) is None
