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
"""Resolves trial attributes and harvests dropdown options from them.

Multi-value strings are split with a fixed precedence:
array > newline > comma > scalar. A string holding both newlines and commas
is split on newlines only; sponsor names such as "Acme, Inc." keep their
commas.
"""

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from types import MappingProxyType
from typing import Any

from .models import FieldOption, TrialRecord

logger = logging.getLogger(__name__)


class FieldSelector(str, Enum):
    # Overview
    TRIAL_PHASE = "trial_phase"
    STATUS = "status"
    THERAPEUTIC_AREA = "therapeutic_area"
    DISEASE_TYPE = "disease_type"
    PATIENT_SEGMENT = "patient_segment"
    LINE_OF_THERAPY = "line_of_therapy"
    TRIAL_RECORD_STATUS = "trial_record_status"
    SPONSOR_COLLABORATORS = "sponsor_collaborators"
    SPONSOR_FIELD_ACTIVITY = "sponsor_field_activity"
    ASSOCIATED_CRO = "associated_cro"
    COUNTRIES = "countries"
    REGION = "region"
    PRIMARY_DRUGS = "primary_drugs"
    OTHER_DRUGS = "other_drugs"
    TRIAL_TAGS = "trial_tags"
    TITLE = "title"
    TRIAL_IDENTIFIER = "trial_identifier"
    REFERENCE_LINKS = "reference_links"
    # Eligibility criteria
    SEX = "sex"
    HEALTHY_VOLUNTEERS = "healthy_volunteers"
    SUBJECT_TYPE = "subject_type"
    AGE_FROM = "age_from"
    AGE_TO = "age_to"
    TARGET_NO_VOLUNTEERS = "target_no_volunteers"
    ACTUAL_ENROLLED_VOLUNTEERS = "actual_enrolled_volunteers"
    INCLUSION_CRITERIA = "inclusion_criteria"
    EXCLUSION_CRITERIA = "exclusion_criteria"
    # Outcomes
    PURPOSE_OF_TRIAL = "purpose_of_trial"
    SUMMARY = "summary"
    PRIMARY_OUTCOME_MEASURE = "primary_outcome_measure"
    OTHER_OUTCOME_MEASURE = "other_outcome_measure"
    STUDY_DESIGN_KEYWORDS = "study_design_keywords"
    STUDY_DESIGN = "study_design"
    TREATMENT_REGIMEN = "treatment_regimen"
    NUMBER_OF_ARMS = "number_of_arms"
    # Results
    TRIAL_OUTCOME = "trial_outcome"
    TRIAL_RESULTS = "trial_results"
    ADVERSE_EVENT_REPORTED = "adverse_event_reported"
    ADVERSE_EVENT_TYPE = "adverse_event_type"
    TREATMENT_FOR_ADVERSE_EVENTS = "treatment_for_adverse_events"
    RESULTS_AVAILABLE = "results_available"
    ENDPOINTS_MET = "endpoints_met"
    # Timing
    START_DATE_ESTIMATED = "start_date_estimated"
    START_DATE_ACTUAL = "start_date_actual"
    TRIAL_END_DATE_ESTIMATED = "trial_end_date_estimated"
    TRIAL_END_DATE_ACTUAL = "trial_end_date_actual"
    STUDY_START_DATE = "study_start_date"
    STUDY_END_DATE = "study_end_date"
    # Sites
    TOTAL_SITES = "total_sites"
    SITE_NOTES = "site_notes"
    # Review logs
    INTERNAL_NOTE = "internal_note"
    NEXT_REVIEW_DATE = "next_review_date"


# Each selector resolves to the first present value of its (section, attribute)
# candidates. "overview" is a mapping; every other section is a list whose
# first element is consulted.
FIELD_PATHS: Mapping[FieldSelector, tuple[tuple[str, str], ...]] = MappingProxyType(
    {
        FieldSelector.TRIAL_PHASE: (("overview", "trial_phase"),),
        FieldSelector.STATUS: (("overview", "status"),),
        FieldSelector.THERAPEUTIC_AREA: (("overview", "therapeutic_area"),),
        FieldSelector.DISEASE_TYPE: (("overview", "disease_type"),),
        FieldSelector.PATIENT_SEGMENT: (("overview", "patient_segment"),),
        FieldSelector.LINE_OF_THERAPY: (("overview", "line_of_therapy"),),
        FieldSelector.TRIAL_RECORD_STATUS: (("overview", "trial_record_status"),),
        FieldSelector.SPONSOR_COLLABORATORS: (("overview", "sponsor_collaborators"),),
        FieldSelector.SPONSOR_FIELD_ACTIVITY: (("overview", "sponsor_field_activity"),),
        FieldSelector.ASSOCIATED_CRO: (("overview", "associated_cro"),),
        FieldSelector.COUNTRIES: (("overview", "countries"),),
        FieldSelector.REGION: (("overview", "region"),),
        FieldSelector.PRIMARY_DRUGS: (("overview", "primary_drugs"),),
        FieldSelector.OTHER_DRUGS: (("overview", "other_drugs"),),
        FieldSelector.TRIAL_TAGS: (("overview", "trial_tags"),),
        FieldSelector.TITLE: (("overview", "title"),),
        FieldSelector.TRIAL_IDENTIFIER: (("overview", "trial_identifier"),),
        FieldSelector.REFERENCE_LINKS: (("overview", "reference_links"),),
        FieldSelector.SEX: (("criteria", "sex"),),
        FieldSelector.HEALTHY_VOLUNTEERS: (("criteria", "healthy_volunteers"),),
        FieldSelector.SUBJECT_TYPE: (("criteria", "subject_type"),),
        FieldSelector.AGE_FROM: (("criteria", "age_from"),),
        FieldSelector.AGE_TO: (("criteria", "age_to"),),
        FieldSelector.TARGET_NO_VOLUNTEERS: (("criteria", "target_no_volunteers"),),
        FieldSelector.ACTUAL_ENROLLED_VOLUNTEERS: (("criteria", "actual_enrolled_volunteers"),),
        FieldSelector.INCLUSION_CRITERIA: (("criteria", "inclusion_criteria"),),
        FieldSelector.EXCLUSION_CRITERIA: (("criteria", "exclusion_criteria"),),
        FieldSelector.PURPOSE_OF_TRIAL: (("outcomes", "purpose_of_trial"),),
        FieldSelector.SUMMARY: (("outcomes", "summary"),),
        FieldSelector.PRIMARY_OUTCOME_MEASURE: (("outcomes", "primary_outcome_measure"),),
        FieldSelector.OTHER_OUTCOME_MEASURE: (("outcomes", "other_outcome_measure"),),
        FieldSelector.STUDY_DESIGN_KEYWORDS: (("outcomes", "study_design_keywords"),),
        FieldSelector.STUDY_DESIGN: (("outcomes", "study_design"),),
        FieldSelector.TREATMENT_REGIMEN: (("outcomes", "treatment_regimen"),),
        FieldSelector.NUMBER_OF_ARMS: (("outcomes", "number_of_arms"),),
        FieldSelector.TRIAL_OUTCOME: (("results", "trial_outcome"),),
        FieldSelector.TRIAL_RESULTS: (("results", "trial_results"),),
        FieldSelector.ADVERSE_EVENT_REPORTED: (("results", "adverse_event_reported"),),
        FieldSelector.ADVERSE_EVENT_TYPE: (("results", "adverse_event_type"),),
        FieldSelector.TREATMENT_FOR_ADVERSE_EVENTS: (
            ("results", "treatment_for_adverse_events"),
        ),
        FieldSelector.RESULTS_AVAILABLE: (("results", "results_available"),),
        FieldSelector.ENDPOINTS_MET: (("results", "endpoints_met"),),
        FieldSelector.START_DATE_ESTIMATED: (("timing", "start_date_estimated"),),
        FieldSelector.START_DATE_ACTUAL: (("timing", "start_date_actual"),),
        FieldSelector.TRIAL_END_DATE_ESTIMATED: (("timing", "trial_end_date_estimated"),),
        FieldSelector.TRIAL_END_DATE_ACTUAL: (("timing", "trial_end_date_actual"),),
        FieldSelector.STUDY_START_DATE: (
            ("timing", "study_start_date"),
            ("timing", "start_date_actual"),
            ("timing", "start_date_estimated"),
        ),
        FieldSelector.STUDY_END_DATE: (
            ("timing", "study_end_date"),
            ("timing", "trial_end_date_actual"),
            ("timing", "trial_end_date_estimated"),
        ),
        FieldSelector.TOTAL_SITES: (("sites", "total"),),
        FieldSelector.SITE_NOTES: (("sites", "notes"),),
        FieldSelector.INTERNAL_NOTE: (("logs", "internal_note"),),
        FieldSelector.NEXT_REVIEW_DATE: (("logs", "next_review_date"),),
    }
)

# Alternative names used by the search and filter forms.
FIELD_ALIASES: Mapping[str, FieldSelector] = MappingProxyType(
    {
        "phase": FieldSelector.TRIAL_PHASE,
        "regions": FieldSelector.REGION,
        "target_enrolled_volunteers": FieldSelector.TARGET_NO_VOLUNTEERS,
        "estimated_start_date": FieldSelector.START_DATE_ESTIMATED,
        "actual_start_date": FieldSelector.START_DATE_ACTUAL,
        "estimated_trial_end_date": FieldSelector.TRIAL_END_DATE_ESTIMATED,
        "actual_trial_end_date": FieldSelector.TRIAL_END_DATE_ACTUAL,
        "total_number_of_sites": FieldSelector.TOTAL_SITES,
        "total": FieldSelector.TOTAL_SITES,
        "notes": FieldSelector.SITE_NOTES,
    }
)

_NEWLINES = re.compile(r"\n+")


def to_field_selector(field: str | FieldSelector) -> FieldSelector | None:
    """Looks up a selector by name or alias, returning None if unsupported."""
    if isinstance(field, FieldSelector):
        return field
    try:
        return FieldSelector(field)
    except ValueError:
        return FIELD_ALIASES.get(field)


def _section(record: TrialRecord, name: str) -> Mapping[str, Any] | None:
    if not isinstance(record, Mapping):
        return None
    section = record.get(name)
    if isinstance(section, Mapping):
        return section
    if isinstance(section, Sequence) and not isinstance(section, str) and section:
        first = section[0]
        if isinstance(first, Mapping):
            return first
    return None


def resolve_field_value(record: TrialRecord, field: str | FieldSelector) -> Any:
    """
    Resolves the raw value of a trial attribute.

    Args:
        record: A deserialized trial record.
        field: A ``FieldSelector`` or its name/alias.

    Returns:
        The raw value (scalar, list or None). Unsupported selectors and
        missing sections resolve to None.
    """
    selector = to_field_selector(field)
    if selector is None:
        logger.debug("Unsupported field selector: %r", field)
        return None

    for section_name, attribute in FIELD_PATHS[selector]:
        section = _section(record, section_name)
        if section is None:
            continue
        value = section.get(attribute)
        if value is not None and value != "":
            return value
    return None


def stringify_scalar(value: Any) -> str:
    """Renders a scalar attribute value as text ("" for None)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_number(value: Any) -> float | None:
    """Parses a numeric attribute, returning None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def split_multi_value(value: Any) -> list[str]:
    """
    Splits a possibly multi-valued attribute into trimmed, non-empty parts.

    Precedence is array > newline > comma > scalar; a string containing a
    newline is never split on commas.

    Args:
        value: The raw attribute value.

    Returns:
        The list of parts, empty for absent or blank values.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        parts = [stringify_scalar(item).strip() for item in value if item is not None]
        return [part for part in parts if part]

    text = stringify_scalar(value)
    if not text.strip():
        return []
    if "\n" in text:
        parts = _NEWLINES.split(text)
    elif "," in text:
        parts = text.split(",")
    else:
        parts = [text]
    return [part.strip() for part in parts if part.strip()]


def get_unique_field_values(
    records: Iterable[TrialRecord],
    field: str | FieldSelector,
    merge_variants: bool = False,
) -> list[FieldOption]:
    """
    Extracts the distinct values of a field across records for a dropdown.

    Values are deduplicated on their literal trimmed text and sorted
    case-sensitively.

    Args:
        records: The trial records to scan.
        field: A ``FieldSelector`` or its name/alias. Unsupported selectors
            yield an empty list.
        merge_variants: Also collapse spellings that differ only by
            punctuation (see ``merge_formatting_variants``).

    Returns:
        A sorted list of ``FieldOption`` with ``label == value``.
    """
    if to_field_selector(field) is None:
        logger.debug("No options for unsupported field selector: %r", field)
        return []

    values: set[str] = set()
    for record in records:
        values.update(split_multi_value(resolve_field_value(record, field)))

    result = sorted(values)
    if merge_variants:
        result = merge_formatting_variants(result)
    return [FieldOption(value=value, label=value) for value in result]


_DASH_RUN = re.compile(r"\s*[—–-]\s*")
_COMMA_UNDERSCORE = re.compile(r"[,_]")


def _variant_key(value: str) -> str:
    key = _DASH_RUN.sub(" ", value)
    key = _COMMA_UNDERSCORE.sub(" ", key)
    return " ".join(key.split()).lower()


def _variant_rank(value: str) -> int:
    if "," in value:
        return 3
    if "—" in value:
        return 2
    if "–" in value:
        return 1
    return 0


def merge_formatting_variants(values: Iterable[str]) -> list[str]:
    """
    Collapses labels that differ only by dashes, commas or underscores.

    "Completed Outcome Unknown" and "Completed — Outcome Unknown" merge into
    one entry. The spelling with a comma is preferred, then an em dash, then
    an en dash; ties keep the first value seen in sorted order.

    Returns:
        The surviving labels, sorted.
    """
    kept: dict[str, str] = {}
    for value in sorted(values):
        key = _variant_key(value)
        existing = kept.get(key)
        if existing is None or _variant_rank(value) > _variant_rank(existing):
            kept[key] = value
    return sorted(kept.values())
