import json

import pytest
import yaml
from typer.testing import CliRunner

from py_trial_facets.cli import app, load_config, load_records

pytestmark = pytest.mark.unit

runner = CliRunner()

RECORDS = [
    {
        "trial_id": "T-1",
        "overview": {
            "title": "HER2+ breast cancer study",
            "trial_phase": "phase_1_2",
            "status": "Active",
            "sponsor_collaborators": "Pfizer\nMerck",
        },
    },
    {
        "trial_id": "T-2",
        "overview": {
            "title": "CNS lymphoma study",
            "trial_phase": "Phase II",
            "status": "Closed",
            "sponsor_collaborators": "Pfizer, Roche",
        },
    },
]


@pytest.fixture
def records_file(tmp_path):
    path = tmp_path / "trials.json"
    path.write_text(json.dumps(RECORDS))
    return path


def _invoke(*args):
    return runner.invoke(app, ["--log-level", "WARNING", *[str(arg) for arg in args]])


def test_options_command(records_file):
    """Tests that the options command prints sorted dropdown options."""
    result = _invoke("options", records_file, "--field", "sponsor_collaborators")
    assert result.exit_code == 0, result.output
    options = json.loads(result.stdout)
    assert [option["value"] for option in options] == ["Merck", "Pfizer", "Roche"]
    assert all(option["value"] == option["label"] for option in options)


def test_options_command_unsupported_field(records_file):
    result = _invoke("options", records_file, "-f", "bogus")
    assert result.exit_code == 0
    assert json.loads(result.stdout) == []


def test_filter_command_with_yaml_config(records_file, tmp_path):
    config = tmp_path / "filters.yaml"
    config.write_text(yaml.safe_dump({"filters": {"trialPhases": ["Phase I/II"]}}))

    result = _invoke("filter", records_file, "--config", config)
    assert result.exit_code == 0, result.output
    assert [record["trial_id"] for record in json.loads(result.stdout)] == ["T-1"]


def test_filter_command_with_criteria_and_search(records_file, tmp_path):
    config = tmp_path / "filters.yaml"
    config.write_text(
        yaml.safe_dump(
            {
                "criteria": [
                    {"field": "status", "operator": "is", "value": "Active"},
                    {"field": "status", "operator": "is", "value": "Closed", "logic": "OR"},
                ]
            }
        )
    )

    result = _invoke("filter", records_file, "-c", config)
    assert len(json.loads(result.stdout)) == 2

    result = _invoke("filter", records_file, "-c", config, "--search", "lymphoma")
    assert [record["trial_id"] for record in json.loads(result.stdout)] == ["T-2"]


def test_filter_command_invalid_config(records_file, tmp_path):
    config = tmp_path / "filters.yaml"
    config.write_text(yaml.safe_dump({"filters": {"statuses": "Active"}}))

    result = _invoke("filter", records_file, "-c", config)
    assert result.exit_code == 2


def test_filter_command_sorted(records_file):
    result = _invoke("filter", records_file, "--sort", "title", "--descending")
    assert result.exit_code == 0, result.output
    assert [record["trial_id"] for record in json.loads(result.stdout)] == ["T-1", "T-2"]

    result = _invoke("filter", records_file, "--sort", "title")
    assert [record["trial_id"] for record in json.loads(result.stdout)] == ["T-2", "T-1"]


def test_parse_date_command():
    result = _invoke("parse-date", "January 5, 2024")
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"storage": "2024-01-05", "display": "01-05-2024"}


def test_parse_date_command_invalid():
    result = _invoke("parse-date", "02/30/2024")
    assert result.exit_code == 1


def test_load_records_accepts_wrapped_yaml(tmp_path):
    path = tmp_path / "trials.yaml"
    path.write_text(yaml.safe_dump({"trials": RECORDS + ["not a record"]}))
    assert [record["trial_id"] for record in load_records(path)] == ["T-1", "T-2"]


def test_load_config_missing_file(tmp_path):
    assert load_config(tmp_path / "missing.yaml") == {}


def test_load_config_uses_default_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_config(None) == {}

    (tmp_path / "filters.yaml").write_text("filters:\n  statuses: [Active]\n")
    assert load_config(None) == {"filters": {"statuses": ["Active"]}}
