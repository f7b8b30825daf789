# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Which backend to try first, and whether falling back is allowed.

Precedence, highest first:
  1. --venv / --conda flags (mutually exclusive)
  2. the ENV_MANAGER environment variable: "conda", "venv" or empty
  3. auto-detect: conda if the `conda` command exists, else venv

The result is computed once at startup and never changes. Only a forced
--venv disables fallback; every other source lets the orchestrator try the
other backend once.
"""

import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from stackup.backends.base import BackendKind
from stackup.config.exceptions import ConfigError, InvalidEnvManagerError

ENV_MANAGER_VARIABLE = "ENV_MANAGER"


class EnvironmentPreference(enum.Enum):
    CONDA = "conda"
    VENV = "venv"
    UNSPECIFIED = ""


class PreferenceSource(enum.Enum):
    FORCED_VENV = "forced-venv"
    FORCED_CONDA = "forced-conda"
    HINT = "env-hint"
    AUTO = "auto-detect"


@dataclass(frozen=True)
class ResolvedPreference:
    preference: EnvironmentPreference
    source: PreferenceSource

    @property
    def primary(self) -> BackendKind:
        return BackendKind.CONDA if self.preference is EnvironmentPreference.CONDA else BackendKind.VENV

    @property
    def fallback_allowed(self) -> bool:
        return self.source is not PreferenceSource.FORCED_VENV


def parse_env_hint(value: Optional[str]) -> EnvironmentPreference:
    """
    Interpret the ENV_MANAGER value.

    Raises:
        InvalidEnvManagerError: For anything but "conda", "venv" or empty/unset.
    """
    if value is None:
        return EnvironmentPreference.UNSPECIFIED
    try:
        return EnvironmentPreference(value)
    except ValueError:
        raise InvalidEnvManagerError(
            f"{ENV_MANAGER_VARIABLE} must be 'conda' or 'venv' (got '{value}')."
        ) from None


def resolve_preference(
    force_conda: bool,
    force_venv: bool,
    env_hint: Optional[str],
    conda_discoverable: Callable[[], bool],
) -> ResolvedPreference:
    """
    Work out the primary backend.

    Args:
        force_conda: --conda was given.
        force_venv: --venv was given.
        env_hint: Raw ENV_MANAGER value (None if unset). Only validated when
            no flag was given, so a stray value doesn't break a forced run.
        conda_discoverable: Called only when auto-detecting.

    Raises:
        ConfigError: If both flags were given.
        InvalidEnvManagerError: If the hint is consulted and invalid.
    """
    if force_conda and force_venv:
        raise ConfigError("--conda and --venv are mutually exclusive.")
    if force_venv:
        return ResolvedPreference(EnvironmentPreference.VENV, PreferenceSource.FORCED_VENV)
    if force_conda:
        return ResolvedPreference(EnvironmentPreference.CONDA, PreferenceSource.FORCED_CONDA)

    hinted = parse_env_hint(env_hint)
    if hinted is not EnvironmentPreference.UNSPECIFIED:
        return ResolvedPreference(hinted, PreferenceSource.HINT)

    detected = EnvironmentPreference.CONDA if conda_discoverable() else EnvironmentPreference.VENV
    return ResolvedPreference(detected, PreferenceSource.AUTO)
