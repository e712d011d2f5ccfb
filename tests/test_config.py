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

from py_trial_facets.config import Settings


def test_settings_default_values():
    """
    Tests that the Settings model initializes with correct default values.
    """
    settings = Settings()
    assert settings.log_level == "INFO"
    assert settings.min_year == 1900
    assert settings.max_year == 2100
    assert settings.default_config_file == "filters.yaml"


def test_settings_from_environment_variables(monkeypatch):
    """
    Tests that the Settings model correctly loads configuration
    from environment variables.
    """
    monkeypatch.setenv("TRIAL_FACETS_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("TRIAL_FACETS_MIN_YEAR", "2000")
    monkeypatch.setenv("TRIAL_FACETS_MAX_YEAR", "2030")
    monkeypatch.setenv("TRIAL_FACETS_DEFAULT_CONFIG_FILE", "saved_query.yaml")

    settings = Settings()

    assert settings.log_level == "DEBUG"
    assert settings.min_year == 2000
    assert settings.max_year == 2030
    assert settings.default_config_file == "saved_query.yaml"


def test_year_choices_computed_field():
    """
    Tests that the year_choices computed field lists years newest first.
    """
    settings = Settings(min_year=2020, max_year=2024)
    assert settings.year_choices == [2024, 2023, 2022, 2021, 2020]
