"""Tests for template variables, dates, and file-name sanitising."""

from datetime import timezone

import pytest

from slackvault.templates import (
    apply_template,
    date_folder_path,
    get_tz,
    normalize_path,
    sanitize_file_name,
    template_vars,
    ts_to_datetime,
)

TS = "1700000000.000100"  # 2023-11-14 22:13:20 UTC


class TestTimestamps:
    def test_ts_to_datetime_utc(self):
        dt = ts_to_datetime(TS, timezone.utc)
        assert (dt.year, dt.month, dt.day) == (2023, 11, 14)
        assert (dt.hour, dt.minute, dt.second) == (22, 13, 20)

    def test_ts_to_datetime_zone(self):
        dt = ts_to_datetime(TS, get_tz("Asia/Tokyo"))
        assert (dt.day, dt.hour) == (15, 7)

    def test_local_time_is_aware(self):
        assert ts_to_datetime(TS).tzinfo is not None

    def test_get_tz_empty_is_local(self):
        assert get_tz("") is None
        assert get_tz("utc") is timezone.utc

    def test_get_tz_unknown_falls_back_to_local(self):
        assert get_tz("Mars/Olympus_Mons") is None

    def test_date_folder_path(self):
        assert date_folder_path(ts_to_datetime(TS, timezone.utc)) == "2023/11/14"


class TestTemplateVars:
    def test_all_vars(self):
        v = template_vars(TS, "general", "Alice", timezone.utc)
        assert v == {
            "date": "2023-11-14",
            "datecompact": "20231114",
            "time": "22:13:20",
            "timecompact": "221320",
            "datetime": "20231114221320",
            "ts": "1700000000.000100",
            "channelName": "general",
            "userName": "Alice",
        }

    def test_names_sanitised(self):
        v = template_vars(TS, "dev/ops", "Alice Smith", timezone.utc)
        assert v["channelName"] == "dev_ops"
        assert v["userName"] == "Alice_Smith"

    def test_missing_user(self):
        assert template_vars(TS, "general", None, timezone.utc)["userName"] == "unknown"


class TestApplyTemplate:
    def test_substitutes_known(self):
        assert apply_template("{date}-{channelName}", {"date": "2024-01-02", "channelName": "x"}) == "2024-01-02-x"

    def test_repeated_placeholder(self):
        assert apply_template("{a}/{a}", {"a": "1"}) == "1/1"

    def test_unknown_placeholder_left_literal(self):
        assert apply_template("{date}-{nope}", {"date": "d"}) == "d-{nope}"

    def test_literal_text_passes_through(self):
        assert apply_template("notes: {x} (draft)", {"x": "1"}) == "notes: 1 (draft)"

    def test_values_are_not_rescanned(self):
        assert apply_template("{text} {date}", {"text": "{date}", "date": "D"}) == "{date} D"


class TestSanitize:
    @pytest.mark.parametrize("raw,expected", [
        ('a<b>c:d"e', "a_b_c_d_e"),
        ("a/b\\c|d?e*f", "a_b_c_d_e_f"),
        ("  spaced   out  ", "spaced_out"),
        ("__x__", "x"),
        ("tab\there", "tab_here"),
        ("ctrl\x01char", "ctrl_char"),
    ])
    def test_unsafe_chars(self, raw, expected):
        assert sanitize_file_name(raw) == expected

    def test_truncates(self):
        assert len(sanitize_file_name("a" * 500)) == 200

    def test_normalize_path(self):
        assert normalize_path("/Slack//general/") == "Slack/general"
        assert normalize_path("a\\b") == "a/b"
