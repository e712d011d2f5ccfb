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
"""Orders trial records by a table column.

Each column sorts by one kind of key: text compares case-insensitively,
numbers and dates compare by value with missing values as zero (so they come
first in ascending order), and Yes/No columns order Yes before No before
anything else. Sorting is stable, so ties keep their incoming order in
either direction.
"""

import logging
from collections.abc import Iterable, Mapping
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
from .models import TrialRecord

logger = logging.getLogger(__name__)


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    YES_NO = "yes_no"


class SortColumn(BaseModel):
    """Binds a sortable table column to the record field it reads."""

    model_config = ConfigDict(frozen=True)

    name: str
    field: FieldSelector | None = None
    kind: SortKind = SortKind.TEXT


def _columns(*columns: SortColumn) -> Mapping[str, SortColumn]:
    return MappingProxyType({column.name: column for column in columns})


SORT_COLUMNS = _columns(
    # Overview; trialId has no single field and is resolved separately
    SortColumn(name="trialId"),
    SortColumn(name="title", field=FieldSelector.TITLE),
    SortColumn(name="therapeuticArea", field=FieldSelector.THERAPEUTIC_AREA),
    SortColumn(name="diseaseType", field=FieldSelector.DISEASE_TYPE),
    SortColumn(name="primaryDrug", field=FieldSelector.PRIMARY_DRUGS),
    SortColumn(name="trialPhase", field=FieldSelector.TRIAL_PHASE),
    SortColumn(name="patientSegment", field=FieldSelector.PATIENT_SEGMENT),
    SortColumn(name="lineOfTherapy", field=FieldSelector.LINE_OF_THERAPY),
    SortColumn(name="countries", field=FieldSelector.COUNTRIES),
    SortColumn(name="sponsorsCollaborators", field=FieldSelector.SPONSOR_COLLABORATORS),
    SortColumn(name="fieldOfActivity", field=FieldSelector.SPONSOR_FIELD_ACTIVITY),
    SortColumn(name="associatedCro", field=FieldSelector.ASSOCIATED_CRO),
    SortColumn(name="trialTags", field=FieldSelector.TRIAL_TAGS),
    SortColumn(name="otherDrugs", field=FieldSelector.OTHER_DRUGS),
    SortColumn(name="regions", field=FieldSelector.REGION),
    SortColumn(name="trialRecordStatus", field=FieldSelector.TRIAL_RECORD_STATUS),
    SortColumn(name="status", field=FieldSelector.STATUS),
    SortColumn(name="referenceLinks", field=FieldSelector.REFERENCE_LINKS),
    # Eligibility criteria
    SortColumn(name="inclusionCriteria", field=FieldSelector.INCLUSION_CRITERIA),
    SortColumn(name="exclusionCriteria", field=FieldSelector.EXCLUSION_CRITERIA),
    SortColumn(name="ageFrom", field=FieldSelector.AGE_FROM, kind=SortKind.NUMBER),
    SortColumn(name="ageTo", field=FieldSelector.AGE_TO, kind=SortKind.NUMBER),
    SortColumn(name="subjectType", field=FieldSelector.SUBJECT_TYPE),
    SortColumn(name="sex", field=FieldSelector.SEX),
    SortColumn(
        name="healthyVolunteers", field=FieldSelector.HEALTHY_VOLUNTEERS, kind=SortKind.YES_NO
    ),
    SortColumn(
        name="targetNoVolunteers", field=FieldSelector.TARGET_NO_VOLUNTEERS, kind=SortKind.NUMBER
    ),
    SortColumn(
        name="actualEnrolledVolunteers",
        field=FieldSelector.ACTUAL_ENROLLED_VOLUNTEERS,
        kind=SortKind.NUMBER,
    ),
    # Outcomes
    SortColumn(name="purposeOfTrial", field=FieldSelector.PURPOSE_OF_TRIAL),
    SortColumn(name="summary", field=FieldSelector.SUMMARY),
    SortColumn(name="primaryOutcomeMeasures", field=FieldSelector.PRIMARY_OUTCOME_MEASURE),
    SortColumn(name="otherOutcomeMeasures", field=FieldSelector.OTHER_OUTCOME_MEASURE),
    SortColumn(name="studyDesignKeywords", field=FieldSelector.STUDY_DESIGN_KEYWORDS),
    SortColumn(name="studyDesign", field=FieldSelector.STUDY_DESIGN),
    SortColumn(name="treatmentRegimen", field=FieldSelector.TREATMENT_REGIMEN),
    SortColumn(name="numberOfArms", field=FieldSelector.NUMBER_OF_ARMS, kind=SortKind.NUMBER),
    # Timing
    SortColumn(
        name="startDateEstimated", field=FieldSelector.START_DATE_ESTIMATED, kind=SortKind.DATE
    ),
    SortColumn(
        name="trialEndDateEstimated",
        field=FieldSelector.TRIAL_END_DATE_ESTIMATED,
        kind=SortKind.DATE,
    ),
    SortColumn(name="actualStartDate", field=FieldSelector.START_DATE_ACTUAL, kind=SortKind.DATE),
    SortColumn(
        name="actualTrialCompletionDate",
        field=FieldSelector.TRIAL_END_DATE_ACTUAL,
        kind=SortKind.DATE,
    ),
    # Results
    SortColumn(
        name="resultsAvailable", field=FieldSelector.RESULTS_AVAILABLE, kind=SortKind.YES_NO
    ),
    SortColumn(name="endpointsMet", field=FieldSelector.ENDPOINTS_MET, kind=SortKind.YES_NO),
    SortColumn(name="trialOutcome", field=FieldSelector.TRIAL_OUTCOME),
    # Sites
    SortColumn(name="totalSites", field=FieldSelector.TOTAL_SITES, kind=SortKind.NUMBER),
    # Logs
    SortColumn(name="nextReviewDate", field=FieldSelector.NEXT_REVIEW_DATE, kind=SortKind.DATE),
)

_YES_NO_RANK = MappingProxyType({"yes": 1, "no": 2})


def _trial_id(record: TrialRecord) -> str:
    if not isinstance(record, Mapping):
        return ""
    overview = record.get("overview")
    if isinstance(overview, Mapping) and overview.get("trial_id"):
        return stringify_scalar(overview["trial_id"])
    identifiers = split_multi_value(resolve_field_value(record, FieldSelector.TRIAL_IDENTIFIER))
    if identifiers:
        return identifiers[0]
    return stringify_scalar(record.get("trial_id"))


def _text(raw: Any) -> str:
    if isinstance(raw, (list, tuple, set, frozenset)):
        return ", ".join(split_multi_value(raw))
    return stringify_scalar(raw).strip()


def sort_value(record: TrialRecord, column: str) -> str | float | int:
    """
    Computes the raw sort value of one column for a record.

    Args:
        record: The trial record.
        column: A column name from ``SORT_COLUMNS``.

    Returns:
        Lower-cased text for text columns, a number for numeric columns, a
        date ordinal (0 when missing or unparseable) for date columns and a
        rank for Yes/No columns. Unknown columns give an empty string.
    """
    binding = SORT_COLUMNS.get(column)
    if binding is None:
        return ""
    if binding.field is None:
        return _trial_id(record).lower()

    raw = resolve_field_value(record, binding.field)
    if binding.kind is SortKind.NUMBER:
        return to_number(raw) or 0
    if binding.kind is SortKind.DATE:
        parsed = coerce_date(_text(raw))
        return parsed.toordinal() if parsed else 0
    if binding.kind is SortKind.YES_NO:
        if raw is None and column == "resultsAvailable":
            raw = "No"
        if raw is None and column == "endpointsMet":
            raw = resolve_field_value(record, FieldSelector.TRIAL_OUTCOME)
        return _YES_NO_RANK.get(_text(raw).lower(), 3)
    return _text(raw).lower()


def sort_trials(
    records: Iterable[TrialRecord],
    field: str | None,
    direction: SortDirection | str = SortDirection.ASC,
) -> list[TrialRecord]:
    """
    Sorts records by a table column.

    Args:
        records: The trial records, typically the output of ``filter_trials``.
        field: A column name from ``SORT_COLUMNS``. Empty or unknown names
            leave the order unchanged.
        direction: ``"asc"`` or ``"desc"``.

    Returns:
        A new list. Records with equal sort values keep their incoming order.

    Raises:
        ValueError: If ``direction`` is neither ascending nor descending.
    """
    direction = SortDirection(direction)
    records = list(records)
    if not field:
        return records
    if field not in SORT_COLUMNS:
        logger.debug("Ignoring unsupported sort column: %s", field)
        return records

    return sorted(
        records,
        key=lambda record: sort_value(record, field),
        reverse=direction is SortDirection.DESC,
    )
