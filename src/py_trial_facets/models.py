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
"""Defines the Pydantic data models for the application."""

from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Trial records arrive already deserialized from the data-access layer and are
# kept as plain mappings: an "overview" mapping plus lists of sub-records
# ("criteria", "outcomes", "results", "timing", "sites", "notes", "logs").
TrialRecord = Mapping[str, Any]


class Logic(str, Enum):
    AND = "AND"
    OR = "OR"


class Operator(str, Enum):
    IS = "is"
    EQUALS = "equals"
    IS_NOT = "is_not"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IN = "in"
    GREATER_THAN = "greater_than"
    GREATER_THAN_EQUAL = "greater_than_equal"
    LESS_THAN = "less_than"
    LESS_THAN_EQUAL = "less_than_equal"


class FieldOption(BaseModel):
    """A single dropdown option derived from the values present in the records."""

    value: str
    label: str


class SearchCriterion(BaseModel):
    """One ``{field, operator, value, logic}`` unit of an advanced search.

    ``logic`` states how this criterion's result combines with the result
    accumulated from the criteria before it. The operator is kept as a plain
    string so that operators unknown to this version still validate.
    """

    id: str = ""
    field: str
    operator: str
    value: str | list[str] = ""
    logic: Logic = Logic.AND


class TherapeuticFilterState(BaseModel):
    """Accepted values per filter dimension.

    An empty list means the dimension is not active. Dimensions beyond the
    declared ones are accepted as extra fields.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    therapeutic_areas: list[str] = Field(default_factory=list, alias="therapeuticAreas")
    statuses: list[str] = Field(default_factory=list)
    disease_types: list[str] = Field(default_factory=list, alias="diseaseTypes")
    primary_drugs: list[str] = Field(default_factory=list, alias="primaryDrugs")
    other_drugs: list[str] = Field(default_factory=list, alias="otherDrugs")
    trial_phases: list[str] = Field(default_factory=list, alias="trialPhases")
    patient_segments: list[str] = Field(default_factory=list, alias="patientSegments")
    line_of_therapy: list[str] = Field(default_factory=list, alias="lineOfTherapy")
    countries: list[str] = Field(default_factory=list)
    sponsors_collaborators: list[str] = Field(
        default_factory=list, alias="sponsorsCollaborators"
    )
    sponsor_field_activity: list[str] = Field(
        default_factory=list, alias="sponsorFieldActivity"
    )
    associated_cro: list[str] = Field(default_factory=list, alias="associatedCro")
    trial_tags: list[str] = Field(default_factory=list, alias="trialTags")
    regions: list[str] = Field(default_factory=list)
    trial_record_status: list[str] = Field(default_factory=list, alias="trialRecordStatus")

    def active_dimensions(self) -> Iterator[tuple[str, list[str]]]:
        """Yields ``(dimension, accepted_values)`` for every non-empty dimension.

        Dimension names are reported in their camelCase form.
        """
        for name, values in self.model_dump(by_alias=True).items():
            if isinstance(values, str):
                values = [values]
            if isinstance(values, (list, tuple, set, frozenset)) and values:
                yield name, [str(v) for v in values]
