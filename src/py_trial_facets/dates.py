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
"""Parses dates typed in many human formats and re-serializes them.

Dates are stored as ``YYYY-MM-DD`` and shown as ``MM-DD-YYYY``. Parsing walks
an ordered list of ``strptime`` formats and keeps the first valid calendar
date, so US month-first formats win over the European day-first ones for
ambiguous input such as ``1/2/2024``.
"""

import logging
import re
from datetime import date, datetime

from .config import settings
from .formatting import NOT_AVAILABLE

logger = logging.getLogger(__name__)

# Order matters: earlier entries take precedence for ambiguous input.
# strptime's %m/%d accept one or two digits, so "M/d" and "MM/dd" share a format.
DATE_FORMATS: tuple[str, ...] = (
    "%B %d, %Y",  # January 1, 2024
    "%b %d, %Y",  # Jan 1, 2024
    "%m/%d/%Y",  # 1/1/2024, 01/01/2024
    "%m-%d-%Y",  # 1-1-2024, 01-01-2024
    "%Y-%m-%d",  # 2024-01-01
    "%B %d %Y",  # January 1 2024
    "%b %d %Y",  # Jan 1 2024
    "%d/%m/%Y",  # 13/1/2024 (European)
    "%d-%m-%Y",  # 13-01-2024 (European)
    "%Y/%m/%d",  # 2024/01/01
    "%Y.%m.%d",  # 2024.01.01
    "%m.%d.%Y",  # 01.01.2024, 1.1.2024
)

# Formats without a year; the current year is assumed.
YEARLESS_DATE_FORMATS: tuple[str, ...] = (
    "%B %d",  # January 1
    "%b %d",  # Jan 1
    "%m/%d",  # 1/1, 01/01
)

_BARE_DAY = re.compile(r"\d{1,2}")


def parse_date_input(text: str | None, today: date | None = None) -> date | None:
    """
    Parses a free-form date string.

    Args:
        text: The user's input, e.g. "January 5, 2024", "1/5/2024" or "5".
        today: Reference date for inputs without a year or month. Defaults
            to the current local date.

    Returns:
        The parsed date, or None when no format yields a valid calendar date.
        Callers keep their previous value in that case.
    """
    if not text or not text.strip():
        return None
    text = text.strip()
    today = today or date.today()

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    for fmt in YEARLESS_DATE_FORMATS:
        try:
            return datetime.strptime(f"{text} {today.year}", f"{fmt} %Y").date()
        except ValueError:
            continue

    # A bare day number means that day of the current month.
    if _BARE_DAY.fullmatch(text):
        day = int(text)
        if 1 <= day <= 31:
            try:
                return today.replace(day=day)
            except ValueError:
                pass

    logger.debug("Could not parse date input: %r", text)
    return None


def format_date_for_storage(value: date) -> str:
    """Formats a date as ``YYYY-MM-DD`` from its calendar fields."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def format_date_for_display(value: date) -> str:
    """Formats a date as ``MM-DD-YYYY``."""
    return f"{value.month:02d}-{value.day:02d}-{value.year:04d}"


def parse_stored_date(value: str | None) -> date | None:
    """Reads a stored ``YYYY-MM-DD`` string or ISO datetime, else None."""
    if not value or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip().split("T")[0][:10])
    except ValueError:
        return None


def coerce_date(value: str | None) -> date | None:
    """Reads a stored date string, falling back to the free-form parser."""
    return parse_stored_date(value) or parse_date_input(value)


def format_date_string_for_display(value: str | None) -> str:
    """
    Formats a stored date string for display.

    Returns:
        ``MM-DD-YYYY``, or "N/A" when the value is missing or unparseable.
    """
    parsed = parse_stored_date(value)
    if parsed is None:
        return NOT_AVAILABLE
    return format_date_for_display(parsed)


def is_leap_year(year: int) -> bool:
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0


def max_day_for_month(month: int, year: int) -> int:
    """Returns the number of days in ``month`` of ``year``."""
    if month == 2:
        return 29 if is_leap_year(year) else 28
    if month in (4, 6, 9, 11):
        return 30
    return 31


class SegmentedDatePicker:
    """Builds a storage date from independently chosen month, day and year.

    Each change handler returns the value to emit: a ``YYYY-MM-DD`` string
    once all three parts are set, ``""`` once all three are cleared, and
    None while the selection is partial.
    """

    def __init__(self, value: str = "") -> None:
        self.month = ""
        self.day = ""
        self.year = ""
        self.set_value(value)

    @staticmethod
    def year_choices() -> list[int]:
        return settings.year_choices

    def set_value(self, value: str | None) -> None:
        """Loads a stored ``YYYY-MM-DD`` (or ISO datetime) value."""
        if not value:
            self.month = self.day = self.year = ""
            return
        parts = value.split("T")[0].split("-")
        if len(parts) == 3 and all(part.isdigit() for part in parts):
            self.year = parts[0]
            self.month = parts[1]
            self.day = str(int(parts[2]))

    def _emit(self) -> str | None:
        if self.month and self.year and self.day:
            try:
                month, year = int(self.month), int(self.year)
                day = min(int(self.day) or 1, max_day_for_month(month, year))
                return format_date_for_storage(date(year, month, day))
            except ValueError:
                return None
        if not self.month and not self.year and not self.day:
            return ""
        return None

    def change_month(self, month: str) -> str | None:
        self.month = month
        return self._emit()

    def change_year(self, year: str) -> str | None:
        self.year = year
        return self._emit()

    def change_day(self, text: str) -> str | None:
        """Accepts up to two digits; emits when two are typed or the day is cleared."""
        if text and not text.isdigit():
            return None
        if len(text) > 2:
            return None
        self.day = text
        if len(text) == 2 or text == "":
            return self._emit()
        return None

    def blur_day(self) -> str | None:
        """Clamps the typed day into range for the selected month."""
        if not self.day:
            return None
        day = int(self.day)
        if day < 1:
            self.day = "1"
            return self._emit()
        if self.month and self.year:
            try:
                limit = max_day_for_month(int(self.month), int(self.year))
            except ValueError:
                return None
            if day > limit:
                self.day = str(limit)
            return self._emit()
        if day > 31:
            self.day = "31"
        return None

    @property
    def value(self) -> str | None:
        return self._emit()


class DateInput:
    """Free-text date entry that keeps the last valid date.

    ``change`` is called on every keystroke and ``blur`` when the field loses
    focus; both return the storage value to emit, or None to emit nothing.
    """

    def __init__(self, value: str = "", today: date | None = None) -> None:
        self.today = today
        self.text = ""
        self.selected: date | None = None
        if value:
            parsed = parse_date_input(value, today=self.today)
            if parsed:
                self.selected = parsed
                self.text = format_date_for_display(parsed)
            else:
                self.text = value

    def change(self, text: str) -> str | None:
        self.text = text
        parsed = parse_date_input(text, today=self.today)
        if parsed:
            self.selected = parsed
            return format_date_for_storage(parsed)
        if not text.strip():
            self.selected = None
            return ""
        return None

    def select(self, value: date) -> str:
        """Handles a date picked from the calendar."""
        self.selected = value
        self.text = format_date_for_display(value)
        return format_date_for_storage(value)

    def blur(self) -> str | None:
        if not self.text.strip():
            return None
        parsed = parse_date_input(self.text, today=self.today)
        if parsed:
            self.selected = parsed
            self.text = format_date_for_display(parsed)
            return format_date_for_storage(parsed)
        if self.selected:
            self.text = format_date_for_display(self.selected)
            return None
        self.text = ""
        return ""
