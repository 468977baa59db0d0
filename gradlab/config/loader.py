# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Config loader: YAML on disk (or a plain dict) in, frozen RunConfig out.

  1. Read the file
  2. Parse as YAML into a plain dict
  3. Validate with pydantic
  4. Return the frozen config

Any failure stops here with a ConfigError. There are no fallbacks: a run with
a half-understood config would train the wrong model.
"""

from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from gradlab.config.exceptions import ConfigLoadError, ConfigValidationError
from gradlab.config.schema import RunConfig


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed mapping.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't a YAML mapping.
    """
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {config_path}")

    if not config_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def parse_config(raw_data: Mapping[str, Any], source: str = "<payload>") -> RunConfig:
    """
    Validate an already-parsed mapping into a RunConfig.

    This is what the worker uses for ``train`` command payloads.

    Raises:
        ConfigValidationError: Schema violations.
    """
    try:
        return RunConfig.model_validate(dict(raw_data))
    except ValidationError as err:
        raise ConfigValidationError(f"Config validation failed for {source}:\n{err}") from err


def load_config(config_path: Path) -> RunConfig:
    """
    Load and validate a YAML run configuration.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations.
    """
    raw_data = _read_yaml_file(config_path)
    return parse_config(raw_data, source=str(config_path))
