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
"""Evaluates the multi-select filter state against trial records.

A record passes when every active dimension matches (AND across dimensions)
and a dimension matches when the record's value equals at least one of the
accepted values (OR within a dimension). Both sides are normalized before
comparison; raw strings are never compared literally.
"""

import logging
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict

from .dates import coerce_date
from .fields import (
    FieldSelector,
    resolve_field_value,
    split_multi_value,
    stringify_scalar,
    to_number,
)
from .formatting import normalize_for_comparison
from .models import SearchCriterion, TherapeuticFilterState, TrialRecord
from .search import evaluate_criteria, matches_search_term
from .vocabulary import format_line_of_therapy, normalize_phase_value

logger = logging.getLogger(__name__)


class MatchKind(str, Enum):
    EXACT = "exact"
    MULTI = "multi"
    PHASE = "phase"
    LINE_OF_THERAPY = "line_of_therapy"
    NUMERIC = "numeric"
    PRESENCE = "presence"
    TEXT = "text"
    DATE = "date"


class FilterDimension(BaseModel):
    """Binds a filter dimension to the record field it tests."""

    model_config = ConfigDict(frozen=True)

    name: str
    field: FieldSelector
    kind: MatchKind = MatchKind.EXACT


def _dimensions(*dimensions: FilterDimension) -> Mapping[str, FilterDimension]:
    return MappingProxyType({dimension.name: dimension for dimension in dimensions})


FILTER_DIMENSIONS = _dimensions(
    # Overview
    FilterDimension(name="therapeuticAreas", field=FieldSelector.THERAPEUTIC_AREA, kind=MatchKind.MULTI),
    FilterDimension(name="statuses", field=FieldSelector.STATUS),
    FilterDimension(name="diseaseTypes", field=FieldSelector.DISEASE_TYPE, kind=MatchKind.MULTI),
    FilterDimension(name="primaryDrugs", field=FieldSelector.PRIMARY_DRUGS, kind=MatchKind.MULTI),
    FilterDimension(name="otherDrugs", field=FieldSelector.OTHER_DRUGS, kind=MatchKind.MULTI),
    FilterDimension(name="trialPhases", field=FieldSelector.TRIAL_PHASE, kind=MatchKind.PHASE),
    FilterDimension(name="patientSegments", field=FieldSelector.PATIENT_SEGMENT, kind=MatchKind.MULTI),
    FilterDimension(
        name="lineOfTherapy", field=FieldSelector.LINE_OF_THERAPY, kind=MatchKind.LINE_OF_THERAPY
    ),
    FilterDimension(name="countries", field=FieldSelector.COUNTRIES, kind=MatchKind.MULTI),
    FilterDimension(
        name="sponsorsCollaborators", field=FieldSelector.SPONSOR_COLLABORATORS, kind=MatchKind.MULTI
    ),
    FilterDimension(
        name="sponsorFieldActivity", field=FieldSelector.SPONSOR_FIELD_ACTIVITY, kind=MatchKind.MULTI
    ),
    FilterDimension(name="associatedCro", field=FieldSelector.ASSOCIATED_CRO, kind=MatchKind.MULTI),
    FilterDimension(name="trialTags", field=FieldSelector.TRIAL_TAGS, kind=MatchKind.MULTI),
    FilterDimension(name="regions", field=FieldSelector.REGION, kind=MatchKind.MULTI),
    FilterDimension(name="trialRecordStatus", field=FieldSelector.TRIAL_RECORD_STATUS),
    # Eligibility criteria
    FilterDimension(name="sex", field=FieldSelector.SEX),
    FilterDimension(name="healthyVolunteers", field=FieldSelector.HEALTHY_VOLUNTEERS),
    FilterDimension(name="subjectType", field=FieldSelector.SUBJECT_TYPE),
    FilterDimension(name="ageFrom", field=FieldSelector.AGE_FROM),
    FilterDimension(name="ageTo", field=FieldSelector.AGE_TO),
    FilterDimension(
        name="targetNoVolunteers", field=FieldSelector.TARGET_NO_VOLUNTEERS, kind=MatchKind.NUMERIC
    ),
    FilterDimension(
        name="actualEnrolledVolunteers",
        field=FieldSelector.ACTUAL_ENROLLED_VOLUNTEERS,
        kind=MatchKind.NUMERIC,
    ),
    FilterDimension(
        name="inclusionCriteria", field=FieldSelector.INCLUSION_CRITERIA, kind=MatchKind.TEXT
    ),
    FilterDimension(
        name="exclusionCriteria", field=FieldSelector.EXCLUSION_CRITERIA, kind=MatchKind.TEXT
    ),
    # Outcomes
    FilterDimension(
        name="purposeOfTrial", field=FieldSelector.PURPOSE_OF_TRIAL, kind=MatchKind.TEXT
    ),
    FilterDimension(name="summary", field=FieldSelector.SUMMARY, kind=MatchKind.TEXT),
    FilterDimension(
        name="primaryOutcomeMeasures",
        field=FieldSelector.PRIMARY_OUTCOME_MEASURE,
        kind=MatchKind.TEXT,
    ),
    FilterDimension(
        name="otherOutcomeMeasures", field=FieldSelector.OTHER_OUTCOME_MEASURE, kind=MatchKind.TEXT
    ),
    FilterDimension(
        name="studyDesignKeywords", field=FieldSelector.STUDY_DESIGN_KEYWORDS, kind=MatchKind.TEXT
    ),
    FilterDimension(name="studyDesign", field=FieldSelector.STUDY_DESIGN, kind=MatchKind.TEXT),
    FilterDimension(
        name="treatmentRegimen", field=FieldSelector.TREATMENT_REGIMEN, kind=MatchKind.TEXT
    ),
    FilterDimension(name="numberOfArms", field=FieldSelector.NUMBER_OF_ARMS, kind=MatchKind.NUMERIC),
    # Results
    FilterDimension(name="trialOutcome", field=FieldSelector.TRIAL_OUTCOME, kind=MatchKind.MULTI),
    FilterDimension(name="adverseEventReported", field=FieldSelector.ADVERSE_EVENT_REPORTED),
    FilterDimension(
        name="adverseEventType", field=FieldSelector.ADVERSE_EVENT_TYPE, kind=MatchKind.MULTI
    ),
    FilterDimension(name="endpointsMet", field=FieldSelector.ENDPOINTS_MET),
    FilterDimension(
        name="resultsAvailable", field=FieldSelector.TRIAL_OUTCOME, kind=MatchKind.PRESENCE
    ),
    FilterDimension(
        name="treatmentForAdverseEvents",
        field=FieldSelector.TREATMENT_FOR_ADVERSE_EVENTS,
        kind=MatchKind.TEXT,
    ),
    # Timing
    FilterDimension(
        name="startDateEstimated", field=FieldSelector.START_DATE_ESTIMATED, kind=MatchKind.DATE
    ),
    FilterDimension(
        name="trialEndDateEstimated",
        field=FieldSelector.TRIAL_END_DATE_ESTIMATED,
        kind=MatchKind.DATE,
    ),
    # Sites
    FilterDimension(name="totalSites", field=FieldSelector.TOTAL_SITES, kind=MatchKind.NUMERIC),
    FilterDimension(name="siteNotes", field=FieldSelector.SITE_NOTES, kind=MatchKind.TEXT),
)


def _phase_key(value: str) -> str:
    return normalize_phase_value(value).lower()


def _line_of_therapy_key(value: str) -> str:
    return normalize_for_comparison(format_line_of_therapy(value))


_KEY_FUNCTIONS: Mapping[MatchKind, Callable[[str], str]] = MappingProxyType(
    {
        MatchKind.EXACT: normalize_for_comparison,
        MatchKind.MULTI: normalize_for_comparison,
        MatchKind.PHASE: _phase_key,
        MatchKind.LINE_OF_THERAPY: _line_of_therapy_key,
    }
)


def _record_values(raw: Any, kind: MatchKind) -> list[str]:
    """Candidate values of a record field for the given match kind."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set, frozenset)):
        return split_multi_value(raw)
    whole = stringify_scalar(raw).strip()
    if not whole:
        return []
    if kind is MatchKind.MULTI:
        return [*split_multi_value(whole), whole]
    return [whole]


_RANGE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)\s*$")
_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def matches_numeric_filter(expression: str, value: float) -> bool:
    """
    Tests a number against one numeric filter expression.

    Supported expressions are an exact number ("25"), an inclusive range
    ("10-50"), a lower bound ("1000+") and strict bounds ("<10", ">10").
    Malformed expressions never match.
    """
    expression = expression.strip()
    range_match = _RANGE.match(expression)
    if range_match:
        low, high = (float(group) for group in range_match.groups())
        return low <= value <= high

    bound = _NUMBER.search(expression)
    if bound is None:
        return False
    limit = float(bound.group())
    if expression.endswith("+"):
        return value >= limit
    if expression.startswith("<"):
        return value < limit
    if expression.startswith(">"):
        return value > limit
    return _NUMBER.fullmatch(expression) is not None and value == limit


def _dates_equal(value: str, expected: str) -> bool:
    left, right = coerce_date(value), coerce_date(expected)
    if left is None or right is None:
        return normalize_for_comparison(value) == normalize_for_comparison(expected) != ""
    return left == right


def _has_results(record: TrialRecord) -> bool:
    return bool(split_multi_value(resolve_field_value(record, FieldSelector.TRIAL_OUTCOME)))


def dimension_matches(
    record: TrialRecord, dimension: FilterDimension, accepted: Sequence[str]
) -> bool:
    """
    Tests one active dimension against a record.

    Args:
        record: The trial record.
        dimension: The dimension binding.
        accepted: The non-empty list of accepted raw values.

    Returns:
        True when the record's value matches at least one accepted value.
        Text dimensions match on a normalized substring and date dimensions
        on the calendar date.
    """
    if dimension.kind is MatchKind.PRESENCE:
        wanted = {normalize_for_comparison(value) for value in accepted}
        has_results = _has_results(record)
        if "yes" in wanted and "no" not in wanted:
            return has_results
        if "no" in wanted and "yes" not in wanted:
            return not has_results
        return True

    raw = resolve_field_value(record, dimension.field)

    if dimension.kind is MatchKind.NUMERIC:
        number = to_number(raw)
        if number is None:
            return False
        return any(matches_numeric_filter(expression, number) for expression in accepted)

    if dimension.kind is MatchKind.TEXT:
        text = normalize_for_comparison(" ".join(_record_values(raw, dimension.kind)))
        wanted = {normalize_for_comparison(value) for value in accepted} - {""}
        return bool(text) and any(value in text for value in wanted)

    if dimension.kind is MatchKind.DATE:
        return any(
            _dates_equal(value, expected)
            for value in _record_values(raw, dimension.kind)
            for expected in accepted
        )

    key = _KEY_FUNCTIONS[dimension.kind]
    accepted_keys = {key(value) for value in accepted} - {""}
    return any(key(value) in accepted_keys for value in _record_values(raw, dimension.kind))


def _as_values(values: Iterable[str] | str | None) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        return [values]
    return list(values)


def _as_filter_state(
    state: TherapeuticFilterState | Mapping[str, Iterable[str]] | None,
) -> TherapeuticFilterState:
    if state is None:
        return TherapeuticFilterState()
    if isinstance(state, TherapeuticFilterState):
        return state
    return TherapeuticFilterState.model_validate(
        {name: _as_values(values) for name, values in state.items()}
    )


def passes_filters(
    record: TrialRecord,
    state: TherapeuticFilterState | Mapping[str, Iterable[str]] | None,
) -> bool:
    """
    Decides whether a record passes every active filter dimension.

    Args:
        record: The trial record.
        state: Accepted values per dimension. Empty dimensions are inactive;
            dimension names this module does not know are ignored.

    Returns:
        True when all active dimensions match.
    """
    for name, accepted in _as_filter_state(state).active_dimensions():
        dimension = FILTER_DIMENSIONS.get(name)
        if dimension is None:
            logger.debug("Ignoring unsupported filter dimension: %s", name)
            continue
        if not dimension_matches(record, dimension, accepted):
            return False
    return True


def filter_trials(
    records: Iterable[TrialRecord],
    state: TherapeuticFilterState | Mapping[str, Iterable[str]] | None = None,
    criteria: Sequence[SearchCriterion] = (),
    search_term: str = "",
) -> list[TrialRecord]:
    """
    Returns the records that pass the search term, the advanced search
    criteria and the filter state, in their original order.
    """
    filter_state = _as_filter_state(state)
    return [
        record
        for record in records
        if matches_search_term(record, search_term)
        and evaluate_criteria(record, criteria)
        and passes_filters(record, filter_state)
    ]
