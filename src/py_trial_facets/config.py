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
"""Manages the application's configuration using Pydantic."""

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Manages configuration for the application.

    Reads settings from environment variables with the prefix 'TRIAL_FACETS_'.
    """

    model_config = SettingsConfigDict(env_prefix="TRIAL_FACETS_")

    # Logging settings, applied by the CLI only
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Year bounds offered by the segmented date picker
    min_year: int = 1900
    max_year: int = 2100

    # Filter state / search criteria file read by the CLI when none is given
    default_config_file: str = "filters.yaml"

    @computed_field
    @property
    def year_choices(self) -> list[int]:
        """Years offered by the picker, newest first."""
        return list(range(self.max_year, self.min_year - 1, -1))


# Instantiate the settings so it can be imported directly
settings = Settings()
