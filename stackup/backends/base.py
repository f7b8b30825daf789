# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Common model for the two provisioning backends.

A backend attempt is an ordered list of steps. Each step either completes or
fails, and the first failure ends the attempt. The failure is reported as a
FailureStage value naming the checkpoint where things went wrong, along with
a small numeric code. Nothing a backend does can abort the process: step
failures, OSErrors and subprocess errors are all converted to an
AttemptFailure at the attempt boundary, and the orchestrator decides what
happens next.

Contract for every BackendInstaller subclass:
  - `kind` says which backend this is
  - `is_available()` says whether the backend's prerequisite command exists,
    without side effects
  - `steps()` returns the ordered Step list for one attempt
  - the environment created by a successful attempt is returned in
    AttemptSuccess and is already active in the shared ActivationSlot
"""

import enum
import shlex
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from stackup.logging.logger import get_logger

logger = get_logger(__name__)


class BackendKind(enum.Enum):
    CONDA = "conda"
    VENV = "venv"

    @property
    def other(self) -> "BackendKind":
        return BackendKind.VENV if self is BackendKind.CONDA else BackendKind.CONDA


class FailureStage(enum.Enum):
    """Where inside a backend attempt a failure happened."""

    COMMAND_NOT_FOUND = "command-not-found"
    NOT_INITIALIZED = "not-initialized"
    CREATION_FAILED = "creation-failed"
    ACTIVATION_FAILED = "activation-failed"
    TOOLCHAIN_INSTALL_FAILED = "toolchain-install-failed"
    TOOLCHAIN_VERIFY_FAILED = "toolchain-verify-failed"
    VENV_MODULE_MISSING = "venv-module-missing"


@dataclass(frozen=True)
class ActivatedEnvironment:
    """
    Handle for an environment that subsequent installs should land in.

    `variables` is the overlay on top of the base process environment that
    "activation" amounts to: the environment's bin directory first on PATH
    plus the backend's marker variable (CONDA_PREFIX or VIRTUAL_ENV).
    """

    kind: BackendKind
    name: str
    prefix: Path
    marker: str
    variables: Mapping[str, str] = field(default_factory=dict)

    @property
    def bin_dir(self) -> Path:
        return self.prefix / "bin"

    @property
    def python(self) -> Path:
        return self.bin_dir / "python"

    @property
    def marker_value(self) -> str:
        """What the activation set the marker variable to (empty if unset)."""
        return self.variables.get(self.marker, "")


@dataclass(frozen=True)
class AttemptSuccess:
    environment: ActivatedEnvironment


@dataclass(frozen=True)
class AttemptFailure:
    stage: FailureStage
    code: int
    message: str = ""


BackendAttemptResult = Union[AttemptSuccess, AttemptFailure]


class StepFailure(Exception):
    """Raised by a step to fail the attempt at that step's stage."""


@dataclass(frozen=True)
class Step:
    """
    One checkpoint of an attempt.

    A step with `stage=None` is best effort: if it raises, the error is
    logged and the attempt carries on.
    """

    description: str
    action: Callable[[], None]
    stage: Optional[FailureStage] = None
    code: int = 1


class BackendInstaller(ABC):
    """Base class for the conda and venv backends."""

    kind: BackendKind

    @abstractmethod
    def is_available(self) -> bool:
        """Whether this backend's prerequisite command can be found."""

    @abstractmethod
    def steps(self) -> list[Step]:
        """The ordered steps of one attempt."""

    @abstractmethod
    def _result_environment(self) -> ActivatedEnvironment:
        """The environment a fully successful attempt produced."""

    def attempt(self) -> BackendAttemptResult:
        """
        Run the steps in order and stop at the first failure.

        Returns:
            AttemptSuccess with the activated environment, or AttemptFailure
            naming the stage of the first step that failed.
        """
        for step in self.steps():
            try:
                step.action()
            except (StepFailure, OSError, subprocess.SubprocessError) as err:
                if step.stage is None:
                    logger.warning(
                        f"{step.description} failed (continuing): {err}",
                        extra={"backend": self.kind.value},
                    )
                    continue
                logger.warning(
                    str(err) or f"{step.description} failed.",
                    extra={
                        "backend": self.kind.value,
                        "stage": step.stage.value,
                        "code": step.code,
                    },
                )
                return AttemptFailure(stage=step.stage, code=step.code, message=str(err))

        return AttemptSuccess(environment=self._result_environment())


def prepend_path(directory: Path, environ: Mapping[str, str]) -> str:
    """PATH value with `directory` in front of whatever `environ` had."""
    current = environ.get("PATH", "")
    return f"{directory}:{current}" if current else str(directory)


def parse_exports(script: str) -> dict[str, str]:
    """
    Collect the `export NAME=value` assignments from a POSIX shell snippet.

    Values are unquoted the way the shell would. Other lines (PS1, unset,
    sourced hook scripts) are ignored.

    Raises:
        StepFailure: If an export line can't be parsed.
    """
    exports: dict[str, str] = {}
    for line in script.splitlines():
        line = line.strip()
        if not line.startswith("export ") or "=" not in line:
            continue
        key, _, raw = line[len("export "):].partition("=")
        try:
            exports[key.strip()] = "".join(shlex.split(raw))
        except ValueError as err:
            raise StepFailure(f"Unreadable activation line {line!r}: {err}") from err
    return exports
