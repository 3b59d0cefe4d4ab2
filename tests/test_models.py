from datetime import datetime, timedelta, timezone

import pytest

from log_ingest_api.models import (
    LogEntry,
    SearchFilter,
    StatsSnapshot,
    parse_instant,
    parse_window,
    to_json_value,
)


class TestLogEntry:
    def test_from_dict_accepts_aliases(self):
        entry = LogEntry.from_dict({"service": "auth", "user": "bob", "status": 404})
        assert entry.source == "auth"
        assert entry.user_id == "bob"
        assert entry.status_code == 404

    def test_canonical_name_wins_over_alias(self):
        entry = LogEntry.from_dict({"source": "a", "service": "b"})
        assert entry.source == "a"

    def test_unknown_keys_dropped(self):
        entry = LogEntry.from_dict({"message": "hi", "colour": "blue"})
        assert entry.to_dict() == {"message": "hi"}

    def test_document_renames_timestamp(self, sample_payload):
        entry = LogEntry.from_dict(sample_payload)
        document = entry.to_document()
        assert "timestamp" not in document
        assert document["@timestamp"] == "2024-01-15T10:30:00Z"
        assert document["applicationName"] == "Bank"

    def test_document_round_trip(self, sample_payload):
        entry = LogEntry.from_dict(sample_payload)
        assert LogEntry.from_document(entry.to_document()) == entry

    def test_metadata_kept_as_json(self):
        entry = LogEntry.from_dict({"metadata": {"attempt": 2, "tags": ["a", "b"], "ok": True}})
        assert entry.to_document()["metadata"] == {"attempt": 2, "tags": ["a", "b"], "ok": True}


class TestJsonValue:
    def test_normalizes_nested_values(self):
        when = datetime(2024, 1, 15, tzinfo=timezone.utc)
        value = to_json_value({"at": when, "items": (1, 2.5, None), 3: "x"})
        assert value == {"at": "2024-01-15T00:00:00+00:00", "items": [1, 2.5, None], "3": "x"}

    def test_rejects_unsupported(self):
        with pytest.raises(TypeError):
            to_json_value({"bad": object()})


class TestParseInstant:
    def test_zulu_suffix(self):
        assert parse_instant("2024-01-15T10:30:00Z") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_naive_taken_as_utc(self):
        assert parse_instant("2024-01-15T10:30:00").tzinfo == timezone.utc

    def test_garbage(self):
        assert parse_instant("not a date") is None
        assert parse_instant(12345) is None
        assert parse_instant(None) is None


class TestParseWindow:
    @pytest.mark.parametrize("last,expected", [
        ("2d", timedelta(days=2)),
        ("6h", timedelta(hours=6)),
        ("15m", timedelta(minutes=15)),
        ("1D", timedelta(days=1)),
    ])
    def test_valid(self, last, expected):
        assert parse_window(last) == expected

    @pytest.mark.parametrize("last", ["bogus", "2w", "d2", "-1d", "", None, "2.5h"])
    def test_malformed_ignored(self, last):
        assert parse_window(last) is None

    @pytest.mark.parametrize("last", ["99999999999d", "9999999999999999999999m"])
    def test_out_of_range_ignored(self, last):
        assert parse_window(last) is None


class TestSearchFilter:
    def test_from_args(self):
        search = SearchFilter.from_args({"query": " timeout ", "applicationName": "Bank", "last": "2d", "size": "5"})
        assert search == SearchFilter(query="timeout", application_name="Bank", window=timedelta(days=2), size=5)

    def test_defaults_and_lenient_parsing(self):
        search = SearchFilter.from_args({"last": "bogus", "size": "lots"})
        assert search.window is None
        assert search.size == 100
        assert search.query is None

    def test_size_clamped(self):
        assert SearchFilter.from_args({"size": "0"}).size == 1
        assert SearchFilter.from_args({"size": "50000"}, max_size=10000).size == 10000


class TestStatsSnapshot:
    def test_to_dict(self):
        snapshot = StatsSnapshot(100, 10, 5, 10.0, 5.0, 15.0, "alice",
                                 datetime(2024, 1, 15, tzinfo=timezone.utc))
        data = snapshot.to_dict()
        assert data["totalLogs"] == 100
        assert data["totalErrorRate"] == 15.0
        assert data["mostActiveUser"] == "alice"
        assert data["timestamp"] == "2024-01-15T00:00:00+00:00"
