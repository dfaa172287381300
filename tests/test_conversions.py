from datetime import datetime, timezone

import pytest

from pomigrate.models.target import Contact
from pomigrate.services.conversions import (
    derive_task_status,
    hours_to_day_string,
    hours_to_days,
    hours_to_effort_string,
    make_contact,
    map_priority,
    parse_datetime,
    parse_duration_hours,
    percent_string,
    ratio_to_percent,
    to_checkbox,
    to_date_string,
)


class TestPriority:
    @pytest.mark.parametrize("value,label", [
        (0, "Lowest"),
        (142, "Lowest"),
        (143, "Very Low"),
        (286, "Lower"),
        (429, "Medium"),
        (572, "Higher"),
        (715, "Higher"),
        (857, "Higher"),
        (858, "Very High"),
        (928, "Very High"),
        (929, "Highest"),
        (950, "Highest"),
        (1000, "Highest"),
    ])
    def test_bands(self, value, label):
        assert map_priority(value) == label

    def test_out_of_range_clamps(self):
        assert map_priority(-5) == "Lowest"
        assert map_priority(5000) == "Highest"

    def test_total_and_ordered(self):
        order = ["Lowest", "Very Low", "Lower", "Medium", "Higher", "Very High", "Highest"]
        ranks = [order.index(map_priority(v)) for v in range(0, 1001)]
        assert ranks == sorted(ranks)
        assert set(ranks) == set(range(7))


class TestDurations:
    @pytest.mark.parametrize("value,hours", [
        ("PT40H", 40),
        ("P5D", 40),
        ("P1DT4H", 12),
        ("PT480M", 8),
        ("P1W", 40),
        ("5d", 40),
        ("32h", 32),
        ("90m", 1.5),
        (16, 16),
    ])
    def test_parse(self, value, hours):
        assert parse_duration_hours(value) == pytest.approx(hours)

    def test_custom_hours_per_day(self):
        assert parse_duration_hours("P2D", hours_per_day=7.5) == pytest.approx(15)

    def test_empty_is_none(self):
        assert parse_duration_hours(None) is None
        assert parse_duration_hours("") is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_duration_hours("soon")

    def test_day_and_effort_strings(self):
        assert hours_to_day_string(40) == "5d"
        assert hours_to_day_string(4) == "0.5d"
        assert hours_to_day_string(None) is None
        assert hours_to_effort_string(40) == "40h"
        assert hours_to_effort_string(7.5) == "7.5h"
        assert hours_to_days(12) == 1.5


class TestDates:
    def test_naive_is_utc(self):
        parsed = parse_datetime("2024-01-08T08:00:00")
        assert parsed == datetime(2024, 1, 8, 8, tzinfo=timezone.utc)

    def test_offset_converted_to_utc_date(self):
        parsed = parse_datetime("2024-01-08T23:30:00-05:00")
        assert to_date_string(parsed) == "2024-01-09"

    def test_empty_date_sentinel(self):
        assert parse_datetime("0001-01-01T00:00:00") is None

    def test_invalid_raises(self):
        with pytest.raises(ValueError):
            parse_datetime("not a date")


def test_percentages():
    assert ratio_to_percent(1.0) == "100%"
    assert ratio_to_percent(0.5) == "50%"
    assert percent_string(50) == "50%"
    assert percent_string(12.5) == "12.5%"
    assert percent_string(None) is None


def test_task_status():
    assert derive_task_status(0) == "Not Started"
    assert derive_task_status(None) == "Not Started"
    assert derive_task_status(40) == "In Progress"
    assert derive_task_status(100) == "Complete"


def test_contact_falls_back_to_name():
    assert make_contact("Ada", "ada@example.com") == Contact("Ada", "ada@example.com")
    assert make_contact("Ada", None) == Contact("Ada", None)
    assert make_contact(" ", "") is None


def test_checkbox():
    assert to_checkbox("true") is True
    assert to_checkbox("0") is False
    assert to_checkbox(1) is True
