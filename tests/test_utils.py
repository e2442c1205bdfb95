from __future__ import annotations

from datetime import datetime, timezone

from calendar_assistant.utils import date_part, is_present, parse_timestamp, to_utc_iso


def test_parse_timestamp_handles_zulu_offsets_and_naive_values():
    assert parse_timestamp("2025-03-04T10:00:00Z") == datetime(2025, 3, 4, 10, tzinfo=timezone.utc)
    assert to_utc_iso(parse_timestamp("2025-03-04T19:00:00+09:00")) == "2025-03-04T10:00:00Z"
    assert parse_timestamp("2025-03-04T10:00:00").tzinfo is not None
    assert parse_timestamp("2025-03-04") == datetime(2025, 3, 4, tzinfo=timezone.utc)


def test_parse_timestamp_rejects_garbage():
    for value in (None, "", "tomorrow", 12345, ["2025-03-04"]):
        assert parse_timestamp(value) is None


def test_date_part():
    assert date_part("2025-03-04") == "2025-03-04"
    assert date_part("2025-03-04T23:30:00Z") == "2025-03-04"


def test_is_present():
    assert not is_present(None)
    assert not is_present("   ")
    assert not is_present([])
    assert is_present(0)
    assert is_present(False)
    assert is_present("E123")
