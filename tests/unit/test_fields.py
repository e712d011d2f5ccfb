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

import pytest

from py_trial_facets.fields import (
    FieldSelector,
    get_unique_field_values,
    merge_formatting_variants,
    resolve_field_value,
    split_multi_value,
    to_field_selector,
)
from py_trial_facets.models import FieldOption

pytestmark = pytest.mark.unit


def _values(options):
    return [option.value for option in options]


def test_sponsor_values_split_newline_before_comma():
    """
    Tests the delimiter precedence on sponsor data: newline-bearing values are
    split on newlines, comma-only values on commas, arrays element-wise.
    """
    records = [
        {"overview": {"sponsor_collaborators": "Pfizer\nMerck"}},
        {"overview": {"sponsor_collaborators": "Pfizer, Roche"}},
        {"overview": {"sponsor_collaborators": ["Novartis"]}},
    ]
    options = get_unique_field_values(records, "sponsor_collaborators")
    assert _values(options) == ["Merck", "Novartis", "Pfizer", "Roche"]


def test_mixed_delimiters_split_on_newline_only():
    records = [{"overview": {"sponsor_collaborators": "Acme, Inc.\n\nGlobex, Ltd."}}]
    options = get_unique_field_values(records, FieldSelector.SPONSOR_COLLABORATORS)
    assert _values(options) == ["Acme, Inc.", "Globex, Ltd."]


def test_options_have_matching_value_and_label():
    records = [{"overview": {"trial_phase": "Phase II"}}]
    options = get_unique_field_values(records, "trial_phase")
    assert options == [FieldOption(value="Phase II", label="Phase II")]
    assert options[0].model_dump() == {"value": "Phase II", "label": "Phase II"}


def test_values_are_deduplicated_literally_and_sorted_case_sensitively():
    records = [
        {"overview": {"status": " active "}},
        {"overview": {"status": "Active"}},
        {"overview": {"status": "active"}},
        {"overview": {"status": "Closed"}},
    ]
    assert _values(get_unique_field_values(records, "status")) == ["Active", "Closed", "active"]


@pytest.mark.parametrize(
    "record",
    [
        {},
        {"overview": None},
        {"overview": {}},
        {"overview": {"status": None}},
        {"overview": {"status": ""}},
        {"overview": {"status": "   "}},
        {"overview": {"status": []}},
        {"overview": {"status": ["", "  "]}},
        "not a record",
    ],
)
def test_absent_or_blank_values_are_skipped(record):
    assert get_unique_field_values([record], "status") == []


def test_unsupported_selector_yields_empty_result():
    records = [{"overview": {"status": "Active"}}]
    assert get_unique_field_values(records, "no_such_field") == []


def test_list_sections_use_first_element():
    records = [
        {"criteria": [{"sex": "Female"}, {"sex": "Male"}]},
        {"results": [{"trial_outcome": "Completed, Met Endpoints"}]},
    ]
    assert _values(get_unique_field_values(records, "sex")) == ["Female"]
    assert _values(get_unique_field_values(records, "trial_outcome")) == [
        "Completed",
        "Met Endpoints",
    ]


def test_numbers_and_booleans_are_rendered_as_text():
    records = [
        {"outcomes": [{"number_of_arms": 2}]},
        {"outcomes": [{"number_of_arms": 3.0}]},
        {"results": [{"results_available": True}]},
    ]
    assert _values(get_unique_field_values(records, "number_of_arms")) == ["2", "3"]
    assert _values(get_unique_field_values(records, "results_available")) == ["Yes"]


def test_timing_fallback_chain():
    record = {"timing": [{"start_date_actual": None, "start_date_estimated": "2024-03-01"}]}
    assert resolve_field_value(record, FieldSelector.STUDY_START_DATE) == "2024-03-01"
    record["timing"][0]["study_start_date"] = "2024-02-01"
    assert resolve_field_value(record, FieldSelector.STUDY_START_DATE) == "2024-02-01"


def test_aliases_resolve_to_selectors():
    assert to_field_selector("phase") is FieldSelector.TRIAL_PHASE
    assert to_field_selector("regions") is FieldSelector.REGION
    assert to_field_selector("trial_phase") is FieldSelector.TRIAL_PHASE
    assert to_field_selector("bogus") is None


def test_section_given_as_mapping_is_accepted():
    record = {"criteria": {"sex": "Male"}}
    assert resolve_field_value(record, "sex") == "Male"


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, []),
        ("", []),
        ("Single", ["Single"]),
        ("a, b,, c", ["a", "b", "c"]),
        ("a\n\n b, c \n", ["a", "b, c"]),
        (["x ", None, "", "y"], ["x", "y"]),
        (42, ["42"]),
    ],
)
def test_split_multi_value(raw, expected):
    assert split_multi_value(raw) == expected


def test_merge_formatting_variants_prefers_punctuated_spelling():
    values = [
        "Completed Outcome Unknown",
        "Completed — Outcome Unknown",
        "Solid Tumor Unspecified",
        "Solid Tumor, Unspecified",
        "solid_tumor_unspecified",
    ]
    assert merge_formatting_variants(values) == [
        "Completed — Outcome Unknown",
        "Solid Tumor, Unspecified",
    ]


def test_merge_variants_is_opt_in():
    records = [
        {"results": [{"trial_outcome": "Completed Outcome Unknown"}]},
        {"results": [{"trial_outcome": "Completed — Outcome Unknown"}]},
    ]
    assert len(get_unique_field_values(records, "trial_outcome")) == 2
    merged = get_unique_field_values(records, "trial_outcome", merge_variants=True)
    assert _values(merged) == ["Completed — Outcome Unknown"]
