# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from datetime import date

import pytest

from py_trial_facets.dates import (
    DateInput,
    SegmentedDatePicker,
    coerce_date,
    format_date_for_display,
    format_date_for_storage,
    format_date_string_for_display,
    max_day_for_month,
    parse_date_input,
)

pytestmark = pytest.mark.unit

TODAY = date(2024, 6, 15)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("January 5, 2024", date(2024, 1, 5)),
        ("Jan 5, 2024", date(2024, 1, 5)),
        ("1/2/2024", date(2024, 1, 2)),
        ("01/02/2024", date(2024, 1, 2)),
        ("1-2-2024", date(2024, 1, 2)),
        ("2024-01-02", date(2024, 1, 2)),
        ("January 5 2024", date(2024, 1, 5)),
        ("13/2/2024", date(2024, 2, 13)),
        ("13-02-2024", date(2024, 2, 13)),
        ("2024/01/02", date(2024, 1, 2)),
        ("2024.01.02", date(2024, 1, 2)),
        ("1.2.2024", date(2024, 1, 2)),
        ("  March 3, 2023  ", date(2023, 3, 3)),
    ],
)
def test_parse_date_input_formats(text, expected):
    """Tests each accepted format; month-first wins for ambiguous input."""
    assert parse_date_input(text, today=TODAY) == expected


@pytest.mark.parametrize("text", ["02/30/2024", "13/13/2024", "not a date", "", "   ", None, "32", "0"])
def test_parse_date_input_rejects_invalid_input(text):
    """Tests that impossible calendar dates are rejected, not rolled over."""
    assert parse_date_input(text, today=TODAY) is None


def test_yearless_input_uses_current_year():
    assert parse_date_input("March 5", today=TODAY) == date(2024, 3, 5)
    assert parse_date_input("Mar 5", today=TODAY) == date(2024, 3, 5)
    assert parse_date_input("3/5", today=TODAY) == date(2024, 3, 5)


def test_bare_day_uses_current_month():
    assert parse_date_input("5", today=TODAY) == date(2024, 6, 5)
    assert parse_date_input("31", today=TODAY) is None
    assert parse_date_input("31", today=date(2024, 7, 1)) == date(2024, 7, 31)


def test_storage_and_display_formats():
    value = date(2024, 1, 5)
    assert format_date_for_storage(value) == "2024-01-05"
    assert format_date_for_display(value) == "01-05-2024"
    assert parse_date_input(format_date_for_display(value)) == value


@pytest.mark.parametrize(
    "stored, expected",
    [
        ("2024-01-05", "01-05-2024"),
        ("2024-01-05T10:30:00Z", "01-05-2024"),
        ("", "N/A"),
        (None, "N/A"),
        ("garbage", "N/A"),
    ],
)
def test_format_date_string_for_display(stored, expected):
    assert format_date_string_for_display(stored) == expected


@pytest.mark.parametrize(
    "month, year, expected",
    [(2, 2024, 29), (2, 2023, 28), (2, 1900, 28), (2, 2000, 29), (4, 2024, 30), (12, 2024, 31)],
)
def test_max_day_for_month(month, year, expected):
    assert max_day_for_month(month, year) == expected


class TestSegmentedDatePicker:
    def test_loads_stored_value(self):
        picker = SegmentedDatePicker("2024-03-05T00:00:00")
        assert (picker.month, picker.day, picker.year) == ("03", "5", "2024")
        assert picker.value == "2024-03-05"

    def test_partial_selection_emits_nothing(self):
        picker = SegmentedDatePicker()
        assert picker.change_month("02") is None
        assert picker.change_year("2024") is None
        assert picker.change_day("3") is None
        assert picker.change_day("03") == "2024-02-03"

    def test_day_is_clamped_to_month_length(self):
        picker = SegmentedDatePicker()
        picker.change_month("02")
        picker.change_year("2024")
        assert picker.change_day("30") == "2024-02-29"
        assert picker.blur_day() == "2024-02-29"
        assert picker.day == "29"

        picker = SegmentedDatePicker("2023-04-10")
        assert picker.change_day("31") == "2023-04-30"

    def test_changing_month_reclamps_day(self):
        picker = SegmentedDatePicker("2024-01-31")
        assert picker.change_month("02") == "2024-02-29"
        assert picker.change_year("2023") == "2023-02-28"

    def test_day_input_accepts_at_most_two_digits(self):
        picker = SegmentedDatePicker("2024-01-10")
        assert picker.change_day("1a") is None
        assert picker.change_day("123") is None
        assert picker.day == "10"

    def test_blur_raises_zero_day_to_one(self):
        picker = SegmentedDatePicker("2024-01-10")
        picker.change_day("0")
        assert picker.blur_day() == "2024-01-01"

    def test_blur_without_month_caps_at_31(self):
        picker = SegmentedDatePicker()
        picker.change_day("45")
        assert picker.blur_day() is None
        assert picker.day == "31"

    def test_clearing_every_part_emits_empty_string(self):
        picker = SegmentedDatePicker("2024-01-10")
        assert picker.change_month("") is None
        assert picker.change_year("") is None
        assert picker.change_day("") == ""

    def test_year_choices_come_from_settings(self):
        choices = SegmentedDatePicker.year_choices()
        assert choices[0] == 2100
        assert choices[-1] == 1900


class TestDateInput:
    def test_initial_value_is_shown_in_display_format(self):
        field = DateInput("2024-01-05")
        assert field.text == "01-05-2024"
        assert field.selected == date(2024, 1, 5)

    def test_change_emits_on_valid_date_only(self):
        field = DateInput(today=TODAY)
        assert field.change("January 5, 2024") == "2024-01-05"
        assert field.change("Janu") is None
        assert field.selected == date(2024, 1, 5)

    def test_blur_reverts_to_last_valid_date(self):
        field = DateInput(today=TODAY)
        field.change("January 5, 2024")
        field.change("Janu")
        assert field.blur() is None
        assert field.text == "01-05-2024"

    def test_blur_clears_when_nothing_valid_was_entered(self):
        field = DateInput(today=TODAY)
        field.change("Janu")
        assert field.blur() == ""
        assert field.text == ""

    def test_blur_reformats_valid_text(self):
        field = DateInput(today=TODAY)
        field.change("3/5")
        assert field.blur() == "2024-03-05"
        assert field.text == "03-05-2024"

    def test_clearing_text_emits_empty_string(self):
        field = DateInput("2024-01-05")
        assert field.change("") == ""
        assert field.selected is None

    def test_select_from_calendar(self):
        field = DateInput()
        assert field.select(date(2024, 12, 31)) == "2024-12-31"
        assert field.text == "12-31-2024"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-01-05T00:00:00Z", date(2024, 1, 5)),
        ("01/05/2024", date(2024, 1, 5)),
        ("January 5, 2024", date(2024, 1, 5)),
        ("not a date", None),
        (None, None),
    ],
)
def test_coerce_date(value, expected):
    assert coerce_date(value) == expected
