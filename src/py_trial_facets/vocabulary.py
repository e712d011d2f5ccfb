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
"""Synonym tables for the trial phase and line-of-therapy vocabularies.

Both vocabularies have canonical labels that do not follow the generic
Title Case rule, so they are resolved by table lookup. Lookups never fail:
unknown phases are returned unchanged, unknown therapy lines fall back to
``format_display_value``.
"""

from types import MappingProxyType

from .formatting import NOT_AVAILABLE, format_display_value, normalize_for_comparison

PHASE_LABELS = MappingProxyType(
    {
        # Spaced spellings
        "phase i": "Phase I",
        "phase 1": "Phase I",
        "phase i/ii": "Phase I/II",
        "phase 1/2": "Phase I/II",
        "phase ii": "Phase II",
        "phase 2": "Phase II",
        "phase ii/iii": "Phase II/III",
        "phase 2/3": "Phase II/III",
        "phase iii": "Phase III",
        "phase 3": "Phase III",
        "phase iii/iv": "Phase III/IV",
        "phase 3/4": "Phase III/IV",
        "phase iv": "Phase IV",
        "phase 4": "Phase IV",
        "pre-clinical": "Pre-clinical",
        "preclinical": "Pre-clinical",
        "not applicable": "Not Applicable",
        "n/a": "Not Applicable",
        # Underscore spellings (as stored in the database)
        "phase_i": "Phase I",
        "phase_1": "Phase I",
        "phase_i_ii": "Phase I/II",
        "phase_1_2": "Phase I/II",
        "phase_ii": "Phase II",
        "phase_2": "Phase II",
        "phase_ii_iii": "Phase II/III",
        "phase_2_3": "Phase II/III",
        "phase_iii": "Phase III",
        "phase_3": "Phase III",
        "phase_iii_iv": "Phase III/IV",
        "phase_3_4": "Phase III/IV",
        "phase_iv": "Phase IV",
        "phase_4": "Phase IV",
        "pre_clinical": "Pre-clinical",
        "not_applicable": "Not Applicable",
    }
)

LINE_OF_THERAPY_LABELS = MappingProxyType(
    {
        "first_line": "1 - First Line",
        "second_line": "2 - Second Line",
        "third_line": "3 - Third Line",
        "fourth_line": "4 - Fourth Line",
        "at_least_first_line": "1+ - At least first line",
        "at_least_second_line": "2+ - At least second line",
        "at_least_third_line": "3+ - At least third line",
    }
)

# Display labels keyed by their comparison form, so labels map to themselves.
_LINE_OF_THERAPY_BY_LABEL = MappingProxyType(
    {normalize_for_comparison(label): label for label in LINE_OF_THERAPY_LABELS.values()}
)


def normalize_phase_value(phase: str | None) -> str:
    """
    Maps a trial phase spelling to its canonical label.

    Args:
        phase: A phase value such as "phase_1_2", "Phase 2" or "Phase I/II".

    Returns:
        The canonical label ("Phase I/II"), the input unchanged when it is
        not a known spelling, or an empty string for null input.
    """
    if not phase:
        return ""
    return PHASE_LABELS.get(phase.lower().strip(), phase)


def phases_equal(phase1: str | None, phase2: str | None) -> bool:
    """Checks whether two phase values name the same phase, ignoring case."""
    if not phase1 or not phase2:
        return False
    return normalize_phase_value(phase1).lower() == normalize_phase_value(phase2).lower()


def format_line_of_therapy(text: str | None) -> str:
    """
    Maps a line-of-therapy token to its ranked display label.

    Unknown tokens are formatted with ``format_display_value`` rather than
    returned unchanged, unlike ``normalize_phase_value``.
    """
    if not text or not text.strip():
        return NOT_AVAILABLE

    key = "_".join(text.lower().split())
    label = LINE_OF_THERAPY_LABELS.get(key)
    if label is None:
        label = _LINE_OF_THERAPY_BY_LABEL.get(normalize_for_comparison(text))
    return label or format_display_value(text)
