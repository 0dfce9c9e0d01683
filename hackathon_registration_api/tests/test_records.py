from datetime import datetime, timezone

import pytest

from hackathon_registration_api.app.storage.base import (
    catalog_entries,
    coerce_max_selections,
    format_display_time,
    normalize_problem_statement,
    problem_view,
    utc_timestamp,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (2, 2),
        (0, 1),
        (-5, 1),
        (3.9, 3),
        ("4", 4),
        ("3 teams", 3),
        ("two", 1),
        (None, 1),
        (True, 1),
        (float("nan"), 1),
        (float("inf"), 1),
        (float("-inf"), 1),
    ],
)
def test_coerce_max_selections(value, expected):
    assert coerce_max_selections(value) == expected


def test_problem_view_availability():
    problem = {"id": "p", "title": "P", "maxSelections": "2"}
    assert problem_view(problem, 1)["is_available"] is True
    full = problem_view(problem, 2)
    assert full["is_available"] is False
    assert full["max_selections"] == 2
    assert full["technologies"] == []


def test_format_display_time_in_ist():
    assert format_display_time("2024-01-15T10:30:00.000Z") == "15/01/2024, 04:00:00 pm IST"
    assert format_display_time("2024-01-15T20:00:05Z") == "16/01/2024, 01:30:05 am IST"


def test_format_display_time_passthrough():
    assert format_display_time(None) == ""
    assert format_display_time("yesterday") == "yesterday"


def test_utc_timestamp_format():
    stamp = utc_timestamp(datetime(2024, 5, 1, 8, 0, 0, 123456, tzinfo=timezone.utc))
    assert stamp == "2024-05-01T08:00:00.123Z"


def test_normalize_problem_statement_accepts_both_spellings():
    assert normalize_problem_statement({"id": "a", "max_selections": 5})["maxSelections"] == 5
    assert normalize_problem_statement({"id": "a", "maxSelections": "0"})["maxSelections"] == 1


def test_catalog_entries_skips_entries_without_id():
    entries = catalog_entries({"problemStatements": [{"id": "a"}, {"title": "no id"}, "junk"]})
    assert [e["id"] for e in entries] == ["a"]
    assert catalog_entries({"problemStatements": "nope"}) is None
