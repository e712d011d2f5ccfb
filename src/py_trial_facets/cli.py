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
"""Command-line access to the option, filter and date helpers.

The engine itself performs no I/O; this module reads records and filter
configuration from files and prints JSON results.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import typer
import yaml
from pydantic import ValidationError

from .config import settings
from .dates import format_date_for_display, format_date_for_storage, parse_date_input
from .fields import get_unique_field_values, to_field_selector
from .filters import filter_trials
from .models import SearchCriterion, TherapeuticFilterState
from .sorting import SORT_COLUMNS, SortDirection, sort_trials

logger = logging.getLogger(__name__)

app = typer.Typer(help="Trial field normalization and filtering tools.")


@app.callback()
def configure_logging(
    log_level: str = typer.Option(settings.log_level, help="Logging level."),
) -> None:
    """Basic structured logging setup."""
    logging.basicConfig(level=log_level.upper(), format=settings.log_format)


def _read_structured_file(path: Path) -> Any:
    """Reads a JSON or YAML document."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise typer.BadParameter(f"Cannot read {path}: {e}") from e
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise typer.BadParameter(f"Cannot parse {path}: {e}") from e


def load_records(path: Path) -> List[Dict[str, Any]]:
    """Loads trial records from a list or a ``{"trials": [...]}`` document."""
    data = _read_structured_file(path)
    if isinstance(data, dict):
        data = data.get("trials", [])
    if not isinstance(data, list):
        raise typer.BadParameter(f"{path} does not contain a list of trials")
    return [record for record in data if isinstance(record, dict)]


def load_config(config_file: Path | None) -> Dict[str, Any]:
    """Loads the filter state and search criteria from a YAML file."""
    if config_file is None:
        default = Path(settings.default_config_file)
        if not default.exists():
            return {}
        config_file = default
    if not config_file.exists():
        logger.warning("Config file not found: %s", config_file)
        return {}
    config = _read_structured_file(config_file) or {}
    if not isinstance(config, dict):
        raise typer.BadParameter(f"{config_file} must contain a mapping")
    return config


@app.command()
def options(
    records_file: Path = typer.Argument(..., help="JSON or YAML file of trial records."),
    field: str = typer.Option(..., "--field", "-f", help="Field selector, e.g. trial_phase."),
    merge_variants: bool = typer.Option(
        False, help="Collapse labels that differ only by punctuation."
    ),
):
    """Prints the dropdown options for a field as JSON."""
    if to_field_selector(field) is None:
        logger.warning("Unsupported field selector: %s", field)
    records = load_records(records_file)
    found = get_unique_field_values(records, field, merge_variants=merge_variants)
    logger.info("Found %d unique values for %s across %d records.", len(found), field, len(records))
    typer.echo(json.dumps([option.model_dump() for option in found], indent=2))


@app.command("filter")
def filter_command(
    records_file: Path = typer.Argument(..., help="JSON or YAML file of trial records."),
    config_file: Path = typer.Option(
        None, "--config", "-c", help="YAML file with 'filters' and 'criteria'."
    ),
    search: str = typer.Option("", help="Free-text search term."),
    sort: str = typer.Option("", help="Column to sort by, e.g. startDateEstimated."),
    descending: bool = typer.Option(False, help="Sort in descending order."),
):
    """Prints the records passing the configured filters as JSON."""
    config = load_config(config_file)
    try:
        state = TherapeuticFilterState.model_validate(config.get("filters") or {})
        criteria = [
            SearchCriterion.model_validate(item) for item in config.get("criteria") or []
        ]
    except ValidationError as e:
        logger.error("Invalid filter configuration: %s", e)
        raise typer.Exit(code=2) from e

    records = load_records(records_file)
    passing = filter_trials(records, state, criteria=criteria, search_term=search)
    if sort:
        if sort not in SORT_COLUMNS:
            logger.warning("Unsupported sort column: %s", sort)
        direction = SortDirection.DESC if descending else SortDirection.ASC
        passing = sort_trials(passing, sort, direction)
    logger.info("%d of %d records passed the filters.", len(passing), len(records))
    typer.echo(json.dumps(passing, indent=2, default=str))


@app.command("parse-date")
def parse_date_command(
    text: str = typer.Argument(..., help="A date typed in any supported format."),
):
    """Prints the storage and display forms of a typed date."""
    parsed = parse_date_input(text)
    if parsed is None:
        logger.error("Could not parse date: %s", text)
        raise typer.Exit(code=1)
    typer.echo(
        json.dumps(
            {
                "storage": format_date_for_storage(parsed),
                "display": format_date_for_display(parsed),
            }
        )
    )


def main():
    app()


if __name__ == "__main__":
    main()
