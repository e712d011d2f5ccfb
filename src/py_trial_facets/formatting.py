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
"""Turns raw trial attribute values into display labels and comparison keys.

Two independent normal forms live here:

* ``format_display_value`` produces the Title Case label shown in tables and
  dropdowns (``"breast_cancer"`` -> ``"Breast Cancer"``).
* ``normalize_for_comparison`` produces a lower-cased, punctuation-free key
  used to test whether two differently sourced spellings are the same value
  (``"solid_tumor_unspecified"`` vs ``"Solid Tumor, Unspecified"``).

Neither is derivable from the other.
"""

import re

NOT_AVAILABLE = "N/A"

# Medical/oncology acronyms that keep their canonical casing.
KNOWN_ACRONYMS: tuple[str, ...] = (
    "HER2", "HER2+", "HER2-", "HER2−",
    "HR", "HR+", "HR-",
    "ER", "ER+", "ER-",
    "PR", "PR+", "PR-",
    "TNBC", "NOS", "CNS", "CRO", "IO", "PGX",
)

_ACRONYMS_BY_UPPER = {acronym.upper(): acronym for acronym in KNOWN_ACRONYMS}

_DIGIT = re.compile(r"\d")
_PUNCTUATION = re.compile(r"[,/\-–—]")
_WHITESPACE = re.compile(r"\s+")


def _title_case(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def _format_word(word: str) -> str:
    # Acronyms are looked up only in all-lower or all-upper words, so an
    # already formatted "Cns" stays as it is.
    if word in (word.lower(), word.upper()):
        matched = _ACRONYMS_BY_UPPER.get(word.upper())
        if matched:
            return matched
    # All-caps words of two or more letters are treated as acronyms.
    if len(word) >= 2 and word == word.upper() and not _DIGIT.search(word):
        return word
    return _title_case(word)


def format_display_value(value: str | None) -> str:
    """
    Converts snake_case or free-text values to a Title Case display label.

    Null, blank and the literal "N/A" all map to "N/A". Whitespace-delimited
    words found in the acronym table take its canonical casing; the parts of
    a snake_case token are plain Title Case, so "cns_neurology" becomes
    "Cns Neurology" while "cns" becomes "CNS".

    Args:
        value: The raw attribute value.

    Returns:
        The display label. Applying the function twice gives the same result.
    """
    if not value or not value.strip() or value == NOT_AVAILABLE:
        return NOT_AVAILABLE

    words = []
    for token in value.split():
        if "_" in token:
            words.extend(_title_case(part) for part in token.split("_") if part)
        else:
            words.append(_format_word(token))
    return " ".join(words)


def format_display_value_with_fallback(
    value: str | None, fallback: str = NOT_AVAILABLE
) -> str:
    """Formats a value for display, returning ``fallback`` when it is blank."""
    if not value or not value.strip():
        return fallback
    return format_display_value(value)


def normalize_for_comparison(value: str | None) -> str:
    """
    Normalizes a value to a lower-case key for format-agnostic equality.

    Underscores, commas, slashes and dashes become spaces; runs of whitespace
    collapse to one space.

    Args:
        value: The raw attribute or filter value.

    Returns:
        The comparison key, or an empty string for null/blank input.
    """
    if not value or not value.strip():
        return ""

    normalized = value.lower().replace("_", " ")
    normalized = _PUNCTUATION.sub(" ", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()
