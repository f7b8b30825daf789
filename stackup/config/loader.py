# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Config loader: reads YAML from disk and produces a validated, frozen ProvisionConfig.

The loading pipeline is linear:
  1. Read the file
  2. Parse it as YAML into a plain dict
  3. Hand the dict to pydantic for schema validation
  4. Layer CLI overrides on top

A config file is optional. Without one, the schema defaults are used. With
one, anything wrong with it stops the run before we touch the host.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from stackup.config.exceptions import ConfigLoadError, ConfigValidationError
from stackup.config.schema import ProvisionConfig


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed dict.

    An empty file is treated as an empty mapping, i.e. "use all defaults".

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't valid YAML.
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

    if parsed is None:
        return {}

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def load_config(config_path: Path | None = None) -> ProvisionConfig:
    """
    Load and validate the provisioning config.

    Args:
        config_path: Optional path to a YAML file. None means defaults only.

    Returns:
        A frozen ProvisionConfig.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations (unknown keys, wrong types, bad versions).
    """
    raw_data: dict[str, Any] = {}
    if config_path is not None:
        raw_data = _read_yaml_file(config_path)

    try:
        return ProvisionConfig.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Config validation failed for {config_path}:\n{err}"
        ) from err


def apply_overrides(config: ProvisionConfig, **overrides: Any) -> ProvisionConfig:
    """
    Return a copy of `config` with the non-None overrides applied and re-validated.

    model_copy(update=...) alone skips validation, so the merged data goes
    back through model_validate. That way `--python 3` fails the same way a
    bad value in the YAML file would.

    Raises:
        ConfigValidationError: If an override is invalid.
    """
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return config

    merged = config.model_copy(update=updates).model_dump()
    try:
        return ProvisionConfig.model_validate(merged)
    except ValidationError as err:
        raise ConfigValidationError(f"Invalid command-line option:\n{err}") from err
