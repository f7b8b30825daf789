# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The venv (lightweight) backend.

Creates a `python -m venv` environment with whatever suitable interpreter the
host has. Unlike the conda backend it installs no build tools. It only
verifies that the host's make/gcc/g++/cmake/pkg-config are new enough, and
gives up if they aren't.

It is also lenient about the interpreter version. If the requested X.Y isn't
available, it uses the python3 it found and says so, where conda would pin
the exact version.

Steps, in order (the number is the failure code):
  2. find python<X.Y>, python3 or python      -> command-not-found
  -  note a major.minor mismatch              (never fails)
  3. host toolchain meets the floors          -> toolchain-verify-failed
  4. `import venv` works                      -> venv-module-missing
  5. <python> -m venv <dir>                   -> creation-failed
  6. bin/activate must set VIRTUAL_ENV to     -> activation-failed
     the directory just created

A half-created directory is simply abandoned on failure. Nothing needs to be
torn down.
"""

import shlex
from pathlib import Path
from typing import Optional

from stackup.backends.base import (
    ActivatedEnvironment,
    BackendInstaller,
    BackendKind,
    FailureStage,
    Step,
    StepFailure,
    prepend_path,
)
from stackup.config.schema import ProvisionConfig
from stackup.logging.logger import get_logger
from stackup.provisioning.activation import ActivationError, ActivationSlot
from stackup.runtime.process import CommandRunner
from stackup.toolchain.requirements import default_requirements
from stackup.toolchain.verifier import ToolchainVerifier

logger = get_logger(__name__)

_VERSION_PROBE = "import sys; print('%d.%d' % sys.version_info[:2])"


def interpreter_candidates(python_version: str) -> tuple[str, ...]:
    """Interpreter names to try, most specific first."""
    return (f"python{python_version}", "python3", "python")


class VenvBackend(BackendInstaller):
    """Lightweight backend: interpreter-level virtual environment, toolchain checked only."""

    kind = BackendKind.VENV

    def __init__(
        self,
        config: ProvisionConfig,
        runner: CommandRunner,
        slot: ActivationSlot,
        verifier: Optional[ToolchainVerifier] = None,
        base_dir: Optional[Path] = None,
    ) -> None:
        self._config = config
        self._runner = runner
        self._slot = slot
        self._verifier = verifier or ToolchainVerifier(runner, slot.environ())
        self._env_dir = ((base_dir or Path.cwd()) / config.venv_dir).absolute()
        self._python: Optional[str] = None
        self._environment: Optional[ActivatedEnvironment] = None

    @property
    def env_dir(self) -> Path:
        return self._env_dir

    def find_interpreter(self) -> Optional[str]:
        environ = self._slot.environ()
        for candidate in interpreter_candidates(self._config.python_version):
            found = self._runner.which(candidate, environ)
            if found is not None:
                return found
        return None

    def is_available(self) -> bool:
        return self.find_interpreter() is not None

    def steps(self) -> list[Step]:
        return [
            Step("Locating Python interpreter", self._locate, FailureStage.COMMAND_NOT_FOUND, 2),
            Step("Checking interpreter version", self._note_version_mismatch),
            Step("Verifying build tools", self._verify_toolchain, FailureStage.TOOLCHAIN_VERIFY_FAILED, 3),
            Step("Checking venv module", self._check_venv_module, FailureStage.VENV_MODULE_MISSING, 4),
            Step("Creating virtual environment", self._create, FailureStage.CREATION_FAILED, 5),
            Step("Activating virtual environment", self._activate, FailureStage.ACTIVATION_FAILED, 6),
        ]

    def _result_environment(self) -> ActivatedEnvironment:
        assert self._environment is not None
        return self._environment

    def _locate(self) -> None:
        logger.info("Using Python venv path...", extra={"status": "step"})
        self._python = self.find_interpreter()
        if self._python is None:
            raise StepFailure(
                "No suitable Python interpreter found! "
                f"Please install Python {self._config.python_version}+ and re-run."
            )

    def _note_version_mismatch(self) -> None:
        assert self._python is not None
        result = self._runner.run([self._python, "-c", _VERSION_PROBE], environ=self._slot.environ())
        found = result.stdout.strip() if result.ok else "unknown"
        if found != self._config.python_version:
            logger.info(
                f"Requested Python {self._config.python_version} not found; using python {found} for venv.",
                extra={"status": "note", "interpreter": self._python},
            )

    def _verify_toolchain(self) -> None:
        logger.info(
            "Verifying minimum build tools (no installation will be attempted)...",
            extra={"status": "step"},
        )
        report = self._verifier.verify(default_requirements(self._config.toolchain))
        if not report.overall_pass:
            missing = ", ".join(check.name for check in report.failures)
            raise StepFailure(f"Build tool prerequisites not met: {missing}")

    def _check_venv_module(self) -> None:
        assert self._python is not None
        result = self._runner.run([self._python, "-c", "import venv"], environ=self._slot.environ())
        if not result.ok:
            raise StepFailure(
                "Python 'venv' module is missing. Install your OS package for venv "
                "(e.g., python3-venv) and re-run."
            )

    def _create(self) -> None:
        assert self._python is not None
        logger.info(f"Using interpreter: {self._python}", extra={"status": "step"})
        logger.info(f"Creating venv at '{self._config.venv_dir}'...", extra={"status": "step"})
        result = self._runner.run(
            [self._python, "-m", "venv", str(self._env_dir)], environ=self._slot.environ()
        )
        if not result.ok:
            raise StepFailure(f"Failed to create venv at {self._config.venv_dir}.")
        logger.info("Virtual environment created.", extra={"status": "ok"})
        logger.info(
            f"Activate (bash/zsh): source {self._config.venv_dir}/bin/activate",
            extra={"status": "note"},
        )
        logger.info("Deactivate:          deactivate", extra={"status": "note"})
        logger.info(f"Remove:              rm -rf {self._config.venv_dir}", extra={"status": "note"})

    def _activate(self) -> None:
        bin_dir = self._env_dir / "bin"
        activate_script = bin_dir / "activate"
        if not activate_script.is_file() or not (bin_dir / "python").exists():
            raise StepFailure("Activation seems to have failed (no activate script in venv).")

        environment = ActivatedEnvironment(
            kind=BackendKind.VENV,
            name=self._config.venv_dir,
            prefix=self._env_dir,
            marker="VIRTUAL_ENV",
            variables={
                "VIRTUAL_ENV": read_activate_prefix(activate_script),
                "PATH": prepend_path(bin_dir, self._slot.environ()),
            },
        )
        # The activate script must point back at the directory we created.
        marker = environment.marker_value
        if not marker or Path(marker).resolve() != self._env_dir.resolve():
            raise StepFailure(
                f"Activation seems to have failed (VIRTUAL_ENV is '{marker}', "
                f"expected {self._env_dir})."
            )

        try:
            self._slot.activate(environment)
        except ActivationError as err:
            raise StepFailure(f"Activation failed: {err}") from err

        self._environment = environment
        logger.info("Activated venv.", extra={"status": "ok"})


def read_activate_prefix(activate_script: Path) -> str:
    """
    The environment directory a venv `bin/activate` script sets VIRTUAL_ENV to.

    Returns an empty string if the script never assigns it a literal path.
    """
    for line in activate_script.read_text(encoding="utf-8", errors="replace").splitlines():
        line = line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line.startswith("VIRTUAL_ENV="):
            continue
        raw = line[len("VIRTUAL_ENV="):]
        if raw.startswith("$"):
            # cygpath conversion on Windows shells
            continue
        try:
            return "".join(shlex.split(raw))
        except ValueError as err:
            raise StepFailure(f"Unreadable VIRTUAL_ENV line in {activate_script}: {err}") from err
    return ""
