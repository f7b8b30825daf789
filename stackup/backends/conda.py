# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The conda (managed) backend.

Creates a named conda environment pinned to the requested Python version,
activates it, and installs the build toolchain into it from conda-forge. The
toolchain floors become conda match specs ("make>=4.3"), so the environment
ends up with tools at least as new as the venv path would demand from the host.

Steps, in order (the number is the failure code):
  2. conda is on PATH                          -> command-not-found
  3. conda has an initialized base install     -> not-initialized
  4. conda create -n <name> python=<X.Y>       -> creation-failed
  5. conda shell.posix activate <name>, whose  -> activation-failed
     exported CONDA_PREFIX must name <name>
  -  add conda-forge, strict channel priority  (best effort)
  6. conda install the toolchain               -> toolchain-install-failed

No cleanup happens on failure. A created-but-broken environment is left on
disk for the user to inspect, and any activation is undone by the
orchestrator or the exit finalizer.
"""

import platform
from pathlib import Path
from typing import Optional

from stackup.backends.base import (
    ActivatedEnvironment,
    BackendInstaller,
    BackendKind,
    FailureStage,
    Step,
    StepFailure,
    parse_exports,
)
from stackup.config.schema import ProvisionConfig
from stackup.logging.logger import get_logger
from stackup.provisioning.activation import ActivationError, ActivationSlot
from stackup.runtime.process import CommandRunner

logger = get_logger(__name__)

CONDA_COMMAND = "conda"

# conda-forge cross-compiler packages per machine architecture. Anything not
# listed falls back to the generic `compilers` metapackage.
_COMPILER_PACKAGES: dict[str, tuple[str, str]] = {
    "x86_64": ("gcc_linux-64", "gxx_linux-64"),
    "aarch64": ("gcc_linux-aarch64", "gxx_linux-aarch64"),
}


def toolchain_packages(config: ProvisionConfig, machine: str) -> list[str]:
    """conda match specs for the build toolchain on `machine`."""
    floors = config.toolchain
    packages = [
        f"make>={floors.make}",
        f"cmake>={floors.cmake}",
        f"pkg-config>={floors.pkg_config_upstream}",
    ]
    compilers = _COMPILER_PACKAGES.get(machine)
    if compilers is None:
        packages.append("compilers")
    else:
        gcc, gxx = compilers
        packages.extend([f"{gcc}>={floors.gcc}", f"{gxx}>={floors.gxx}"])
    return packages


class CondaBackend(BackendInstaller):
    """Managed backend: conda environment plus toolchain from conda-forge."""

    kind = BackendKind.CONDA

    def __init__(
        self,
        config: ProvisionConfig,
        runner: CommandRunner,
        slot: ActivationSlot,
        machine: Optional[str] = None,
    ) -> None:
        self._config = config
        self._runner = runner
        self._slot = slot
        self._machine = machine or platform.machine()
        self._conda: Optional[str] = None
        self._environment: Optional[ActivatedEnvironment] = None

    def is_available(self) -> bool:
        return self._runner.which(CONDA_COMMAND, self._slot.environ()) is not None

    def steps(self) -> list[Step]:
        return [
            Step("Locating conda", self._locate, FailureStage.COMMAND_NOT_FOUND, 2),
            Step("Checking conda initialization", self._check_initialized, FailureStage.NOT_INITIALIZED, 3),
            Step("Creating conda environment", self._create, FailureStage.CREATION_FAILED, 4),
            Step("Activating conda environment", self._activate, FailureStage.ACTIVATION_FAILED, 5),
            Step("Configuring conda channels", self._configure_channels),
            Step("Installing build tools", self._install_toolchain, FailureStage.TOOLCHAIN_INSTALL_FAILED, 6),
        ]

    def _result_environment(self) -> ActivatedEnvironment:
        assert self._environment is not None
        return self._environment

    def _conda_cmd(self, *args: str) -> list[str]:
        return [self._conda or CONDA_COMMAND, *args]

    def _locate(self) -> None:
        logger.info("Conda selected.", extra={"status": "step"})
        self._conda = self._runner.which(CONDA_COMMAND, self._slot.environ())
        if self._conda is None:
            raise StepFailure("conda command not found.")

    def _check_initialized(self) -> None:
        result = self._runner.run(self._conda_cmd("info", "--base"), environ=self._slot.environ())
        base = result.stdout.strip() if result.ok else ""
        if not base or not (Path(base) / "etc" / "profile.d" / "conda.sh").is_file():
            raise StepFailure("conda found but not initialized properly.")

    def _create(self) -> None:
        name = self._config.env_name
        logger.info(
            f"Creating conda environment '{name}' with Python {self._config.python_version}...",
            extra={"status": "step"},
        )
        result = self._runner.run(
            self._conda_cmd(
                "create", "-n", name, f"python={self._config.python_version}", "-y", "--quiet"
            ),
            environ=self._slot.environ(),
        )
        if not result.ok:
            raise StepFailure(f"Failed to create conda env (rc={result.returncode}).")
        logger.info("Conda environment created.", extra={"status": "ok"})
        logger.info(f"Activate:   conda activate {name}", extra={"status": "note"})
        logger.info("Deactivate: conda deactivate", extra={"status": "note"})
        logger.info(f"Remove:     conda remove -n {name} --all -y", extra={"status": "note"})

    def _activation_variables(self) -> dict[str, str]:
        """The variables conda's own activation hook would export for our env."""
        name = self._config.env_name
        result = self._runner.run(
            self._conda_cmd("shell.posix", "activate", name), environ=self._slot.environ()
        )
        if not result.ok:
            raise StepFailure(f"Conda activation failed (rc={result.returncode}).")
        return parse_exports(result.stdout)

    def _activate(self) -> None:
        logger.info("Activating env...", extra={"status": "step"})
        name = self._config.env_name
        variables = self._activation_variables()
        environment = ActivatedEnvironment(
            kind=BackendKind.CONDA,
            name=name,
            prefix=Path(variables.get("CONDA_PREFIX", "")),
            marker="CONDA_PREFIX",
            variables=variables,
        )

        # The marker must name *our* environment, not just any environment.
        active_prefix = environment.marker_value
        if not active_prefix or Path(active_prefix).name != name:
            raise StepFailure(
                f"Conda activation failed: CONDA_PREFIX is '{active_prefix}', expected env '{name}'."
            )
        if not environment.prefix.is_dir():
            raise StepFailure(f"Conda activation failed: {environment.prefix} is not a directory.")

        try:
            self._slot.activate(environment)
        except ActivationError as err:
            raise StepFailure(f"Conda activation failed: {err}") from err

        self._environment = environment
        logger.info("Activated conda env.", extra={"status": "ok", "prefix": active_prefix})

    def _configure_channels(self) -> None:
        logger.info(
            f"Installing build tools via {self._config.conda_channel} (with version floors)...",
            extra={"status": "step"},
        )
        environ = self._slot.environ()
        channel = self._config.conda_channel
        for args in (
            ("config", "--add", "channels", channel),
            ("config", "--set", "channel_priority", "strict"),
        ):
            result = self._runner.run(self._conda_cmd(*args), environ=environ)
            if not result.ok:
                logger.warning(
                    f"conda {' '.join(args)} failed (rc={result.returncode}); continuing.",
                    extra={"returncode": result.returncode},
                )

    def _install_toolchain(self) -> None:
        packages = toolchain_packages(self._config, self._machine)
        result = self._runner.run(
            self._conda_cmd(
                "install", "-y", "-n", self._config.env_name, "-c", self._config.conda_channel, *packages
            ),
            environ=self._slot.environ(),
        )
        if not result.ok:
            raise StepFailure(f"Build tool install via conda failed (rc={result.returncode}).")
        logger.info("Build tools installed (conda).", extra={"status": "ok", "packages": packages})
