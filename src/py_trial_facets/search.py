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
"""Evaluates advanced search criteria and the free-text search box.

Criteria are folded strictly left to right: the first criterion seeds the
result, and each later criterion combines its own match with the running
result using its own ``logic``. There is no operator precedence, so
``A OR B AND C`` means ``(A OR B) AND C``.
"""

import logging
from collections.abc import Callable, Mapping, Sequence

from .dates import coerce_date
from .fields import (
    FieldSelector,
    resolve_field_value,
    split_multi_value,
    stringify_scalar,
    to_field_selector,
    to_number,
)
from .formatting import normalize_for_comparison
from .models import Logic, Operator, SearchCriterion, TrialRecord
from .vocabulary import format_line_of_therapy, normalize_phase_value

logger = logging.getLogger(__name__)

# Fields folded into the free-text search box.
SEARCHABLE_FIELDS: tuple[FieldSelector, ...] = (
    FieldSelector.TITLE,
    FieldSelector.THERAPEUTIC_AREA,
    FieldSelector.DISEASE_TYPE,
    FieldSelector.SPONSOR_COLLABORATORS,
    FieldSelector.SPONSOR_FIELD_ACTIVITY,
    FieldSelector.ASSOCIATED_CRO,
    FieldSelector.PRIMARY_DRUGS,
    FieldSelector.OTHER_DRUGS,
    FieldSelector.PATIENT_SEGMENT,
    FieldSelector.LINE_OF_THERAPY,
    FieldSelector.TRIAL_TAGS,
    FieldSelector.COUNTRIES,
    FieldSelector.REGION,
    FieldSelector.TRIAL_RECORD_STATUS,
    FieldSelector.TRIAL_PHASE,
    FieldSelector.STATUS,
    FieldSelector.TRIAL_IDENTIFIER,
    FieldSelector.REFERENCE_LINKS,
    FieldSelector.PURPOSE_OF_TRIAL,
    FieldSelector.SUMMARY,
    FieldSelector.PRIMARY_OUTCOME_MEASURE,
    FieldSelector.OTHER_OUTCOME_MEASURE,
    FieldSelector.STUDY_DESIGN_KEYWORDS,
    FieldSelector.STUDY_DESIGN,
    FieldSelector.TREATMENT_REGIMEN,
    FieldSelector.INCLUSION_CRITERIA,
    FieldSelector.EXCLUSION_CRITERIA,
    FieldSelector.SUBJECT_TYPE,
    FieldSelector.SEX,
    FieldSelector.HEALTHY_VOLUNTEERS,
    FieldSelector.AGE_FROM,
    FieldSelector.AGE_TO,
    FieldSelector.TRIAL_OUTCOME,
    FieldSelector.TRIAL_RESULTS,
    FieldSelector.ADVERSE_EVENT_REPORTED,
    FieldSelector.ADVERSE_EVENT_TYPE,
    FieldSelector.TREATMENT_FOR_ADVERSE_EVENTS,
    FieldSelector.SITE_NOTES,
    FieldSelector.TOTAL_SITES,
)

_ORDERING_OPERATORS = frozenset(
    {
        Operator.GREATER_THAN,
        Operator.GREATER_THAN_EQUAL,
        Operator.LESS_THAN,
        Operator.LESS_THAN_EQUAL,
    }
)


_NEGATED_OPERATORS = frozenset({Operator.IS_NOT, Operator.NOT_EQUALS})

_EQUALITY_OPERATORS = frozenset({Operator.IS, Operator.EQUALS, Operator.IN}) | _NEGATED_OPERATORS


def _is_date_field(selector: FieldSelector) -> bool:
    return "date" in selector.value


def _comparison_key(selector: FieldSelector) -> Callable[[str], str]:
    if selector is FieldSelector.TRIAL_PHASE:
        return lambda value: normalize_for_comparison(normalize_phase_value(value))
    if selector is FieldSelector.LINE_OF_THERAPY:
        return lambda value: normalize_for_comparison(format_line_of_therapy(value))
    return normalize_for_comparison


def _field_text(raw) -> str:
    if isinstance(raw, (list, tuple, set, frozenset)):
        return ", ".join(split_multi_value(raw))
    return stringify_scalar(raw).strip()


def _compare_ordered(operator: Operator, target: str, needle: str) -> bool:
    left, right = to_number(target), to_number(needle)
    if left is None or right is None:
        left, right = coerce_date(target), coerce_date(needle)
        if left is None or right is None:
            return False

    if operator is Operator.GREATER_THAN:
        return left > right
    if operator is Operator.GREATER_THAN_EQUAL:
        return left >= right
    if operator is Operator.LESS_THAN:
        return left < right
    return left <= right


def matches_criterion(record: TrialRecord, criterion: SearchCriterion | Mapping) -> bool:
    """
    Tests a single search criterion against a record.

    Both sides are normalized with ``normalize_for_comparison`` (phase and
    line-of-therapy values go through their vocabulary mapper first). A list
    value matches when any element matches; for ``is_not`` none may match.

    ``is`` compares the whole field value, while ``is_not`` also rejects a
    record when any single part of a multi-valued field equals the value.
    On date fields, equality compares calendar dates when every search value
    parses as a date, so "2024-01-05T00:00:00Z" is "01/05/2024".

    Args:
        record: The trial record.
        criterion: The criterion, or a mapping that validates as one.

    Returns:
        The match result. Unsupported fields and operators never match.
    """
    if not isinstance(criterion, SearchCriterion):
        criterion = SearchCriterion.model_validate(criterion)

    selector = to_field_selector(criterion.field)
    if selector is None:
        logger.debug("Unsupported search field: %r", criterion.field)
        return False
    try:
        operator = Operator(criterion.operator)
    except ValueError:
        logger.debug("Unsupported search operator: %r", criterion.operator)
        return False

    values = criterion.value if isinstance(criterion.value, list) else [criterion.value]
    needles = [value.strip() for value in values if value and value.strip()]
    if not needles:
        return False

    raw = resolve_field_value(record, selector)
    target = _field_text(raw)

    if operator in _ORDERING_OPERATORS:
        return any(_compare_ordered(operator, target, needle) for needle in needles)

    if operator in _EQUALITY_OPERATORS and _is_date_field(selector):
        needle_dates = [coerce_date(needle) for needle in needles]
        if all(needle_dates):
            target_date = coerce_date(target) if target else None
            found = target_date is not None and target_date in needle_dates
            return not found if operator in _NEGATED_OPERATORS else found

    key = _comparison_key(selector)
    target_key = key(target)
    needle_keys = [key(needle) for needle in needles]

    if operator in (Operator.IS, Operator.EQUALS, Operator.IN):
        return target_key in needle_keys
    if operator in _NEGATED_OPERATORS:
        # Excluding a value excludes every record listing it among others.
        part_keys = {key(part) for part in split_multi_value(raw)}
        part_keys.add(target_key)
        return part_keys.isdisjoint(needle_keys)
    if operator is Operator.CONTAINS:
        return any(needle_key in target_key for needle_key in needle_keys)
    if operator is Operator.STARTS_WITH:
        return any(target_key.startswith(needle_key) for needle_key in needle_keys)
    return any(target_key.endswith(needle_key) for needle_key in needle_keys)


def evaluate_criteria(
    record: TrialRecord, criteria: Sequence[SearchCriterion | Mapping]
) -> bool:
    """
    Folds an ordered list of criteria into one decision for a record.

    The first criterion's own match seeds the result and its ``logic`` is
    ignored. Each later criterion is combined with the running result using
    its own ``logic``. An empty list matches every record.
    """
    if not criteria:
        return True

    result = matches_criterion(record, criteria[0])
    for criterion in criteria[1:]:
        if not isinstance(criterion, SearchCriterion):
            criterion = SearchCriterion.model_validate(criterion)
        if criterion.logic is Logic.AND:
            result = result and matches_criterion(record, criterion)
        else:
            result = result or matches_criterion(record, criterion)
    return result


def matches_search_term(record: TrialRecord, term: str | None) -> bool:
    """Case-insensitive substring search over the record's text fields."""
    if not term or not term.strip():
        return True
    needle = term.strip().lower()

    parts = [
        stringify_scalar(record.get("trial_id")) if isinstance(record, Mapping) else "",
    ]
    for selector in SEARCHABLE_FIELDS:
        raw = resolve_field_value(record, selector)
        if isinstance(raw, (list, tuple, set, frozenset)):
            parts.extend(split_multi_value(raw))
        else:
            parts.append(stringify_scalar(raw))

    text = " ".join(part for part in parts if part).lower()
    return needle in text
