# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The setup command.

Order of operations:
  1. load config (defaults, optional YAML file, CLI flags on top)
  2. rotate the log and configure logging
  3. refuse non-Linux hosts
  4. resolve the backend preference (flags > ENV_MANAGER > auto-detect)
  5. informational host checks (sudo, disk space)
  6. run the provisioning state machine
  7. on success: install the package stack, print versions and a cheat sheet

Config and platform problems end the run before anything is created. A
failed provisioning run ends with exit code 1 and a pointer to the log.
"""

import argparse
import os
import sys
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Optional

from stackup.backends.base import BackendInstaller, BackendKind
from stackup.backends.conda import CONDA_COMMAND, CondaBackend
from stackup.backends.venv import VenvBackend
from stackup.cli.exit_codes import CONFIG_ERROR, PLATFORM_ERROR, PROVISION_ERROR, SUCCESS
from stackup.config.exceptions import ConfigError
from stackup.config.loader import apply_overrides, load_config
from stackup.config.schema import ProvisionConfig
from stackup.logging.logger import configure_logging, get_logger
from stackup.logging.rotation import rotate_log
from stackup.postprovision.pipeline import PostProvisionPipeline
from stackup.postprovision.report import header, print_cheatsheet, print_summary, print_toolchains
from stackup.provisioning.activation import ActivationSlot, register_finalizer
from stackup.provisioning.orchestrator import Failed, ProvisioningOrchestrator, describe_failure
from stackup.provisioning.preference import ENV_MANAGER_VARIABLE, resolve_preference
from stackup.runtime.environment import (
    UnsupportedPlatformError,
    check_free_space,
    check_sudo,
    ensure_linux,
    get_system_info,
)
from stackup.runtime.process import CommandRunner

logger = get_logger("stackup.cli.setup")


def _load(args: argparse.Namespace) -> ProvisionConfig:
    config_path = Path(args.config) if args.config is not None else None
    config = load_config(config_path)
    return apply_overrides(
        config,
        python_version=args.python_version,
        env_name=args.env_name,
        venv_dir=args.venv_dir,
        log_level=args.log_level,
    )


def build_backends(
    config: ProvisionConfig,
    runner: CommandRunner,
    slot: ActivationSlot,
    base_dir: Optional[Path] = None,
) -> dict[BackendKind, BackendInstaller]:
    return {
        BackendKind.CONDA: CondaBackend(config, runner, slot),
        BackendKind.VENV: VenvBackend(config, runner, slot, base_dir=base_dir),
    }


def _banner(argv: list[str]) -> None:
    info = get_system_info()
    header("stackup")
    logger.info(f"Started: {datetime.now().isoformat(timespec='seconds')}")
    logger.info(f"Arguments: {' '.join(argv)}")
    logger.debug(
        "System info",
        extra={
            "python_version": info.python_version,
            "platform": info.platform,
            "architecture": info.architecture,
        },
    )


def handle_setup(
    args: argparse.Namespace,
    runner: Optional[CommandRunner] = None,
    environ: Optional[Mapping[str, str]] = None,
    workdir: Optional[Path] = None,
) -> int:
    """
    Provision the environment described by `args`.

    `runner`, `environ` and `workdir` default to the real host, the current
    process environment and the current directory.

    Returns:
        The process exit code.
    """
    environ = dict(os.environ if environ is None else environ)
    workdir = workdir or Path.cwd()

    try:
        config = _load(args)
    except ConfigError as err:
        configure_logging()
        logger.error(str(err))
        return CONFIG_ERROR

    log_file = workdir / config.log_file
    rotate_log(log_file)
    configure_logging(config.log_level, log_file)
    _banner(sys.argv[1:])

    try:
        ensure_linux()
    except UnsupportedPlatformError as err:
        logger.error(str(err))
        return PLATFORM_ERROR

    runner = runner or CommandRunner()
    try:
        preference = resolve_preference(
            force_conda=args.force_conda,
            force_venv=args.force_venv,
            env_hint=environ.get(ENV_MANAGER_VARIABLE),
            conda_discoverable=lambda: runner.which(CONDA_COMMAND, environ) is not None,
        )
    except ConfigError as err:
        logger.error(str(err))
        return CONFIG_ERROR

    check_sudo(runner)
    check_free_space(workdir, config.min_free_mb)

    header("Setting up Python (conda/venv) + CPU-only PyTorch + Toolchain (Linux)")
    logger.info(f"(logs will be saved in {config.log_file})")

    slot = ActivationSlot(environ)
    register_finalizer(slot)

    try:
        orchestrator = ProvisioningOrchestrator(
            preference, build_backends(config, runner, slot, workdir), slot, log_file=log_file
        )
        outcome = orchestrator.run()
        if isinstance(outcome, Failed):
            logger.error(f"{describe_failure(outcome)} Check {log_file} for details.")
            return PROVISION_ERROR

        PostProvisionPipeline(config, runner, slot, outcome.environment, workdir).run()
        print_toolchains(runner, slot.environ())
        print_cheatsheet(config)
        print_summary(outcome, config)
        logger.info(f"Finished: {datetime.now().isoformat(timespec='seconds')}")
        return SUCCESS

    except Exception as err:
        logger.error(
            f"Something failed: {err}. Check {log_file} for details.",
            exc_info=True,
        )
        return PROVISION_ERROR
