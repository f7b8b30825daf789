# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Host checks that run before any provisioning.

Only one of them is fatal: stackup supports Linux and nothing else. Low disk
space and a password-prompting sudo are reported and then ignored.
"""

import platform
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple, Optional

from stackup.logging.logger import get_logger
from stackup.runtime.process import CommandRunner

logger = get_logger(__name__)

SUPPORTED_SYSTEM = "Linux"


class UnsupportedPlatformError(Exception):
    """Raised on any host that isn't Linux."""


class SystemInfo(NamedTuple):
    """Snapshot of the current system environment."""

    python_version: str
    platform: str
    architecture: str
    hostname: str


@dataclass(frozen=True)
class EnvironmentCheck:
    """Result of a single environment check."""

    name: str
    passed: bool
    message: str
    value: str


def get_system_info() -> SystemInfo:
    """Collect basic system information for logging and diagnostics."""
    return SystemInfo(
        python_version=platform.python_version(),
        platform=platform.system(),
        architecture=platform.machine(),
        hostname=platform.node(),
    )


def ensure_linux() -> None:
    """
    Refuse to run anywhere but Linux.

    Raises:
        UnsupportedPlatformError: If platform.system() isn't "Linux".
    """
    system = platform.system() or "unknown"
    if system != SUPPORTED_SYSTEM:
        raise UnsupportedPlatformError(
            f"This setup script supports Linux only. Detected: {system}"
        )


def check_free_space(path: Optional[Path] = None, min_free_mb: int = 1500) -> EnvironmentCheck:
    """
    Check available disk space where the environment will be created.

    A failed check only produces a warning. Environments can be smaller than
    our estimate, and the user may know better.
    """
    check_path = path or Path.cwd()
    try:
        usage = shutil.disk_usage(str(check_path))
    except OSError as err:
        logger.warning(f"Cannot check disk space: {err}")
        return EnvironmentCheck(
            name="disk_space",
            passed=False,
            message=f"Cannot check disk space: {err}",
            value="error",
        )

    free_mb = usage.free // (1024 * 1024)
    passed = free_mb >= min_free_mb
    if passed:
        message = f"{free_mb}MB available (>= {min_free_mb}MB recommended)"
        logger.debug(message, extra={"free_mb": free_mb})
    else:
        message = f"Low disk space: {free_mb}MB available, ~{min_free_mb}MB recommended."
        logger.warning(message, extra={"free_mb": free_mb})
    return EnvironmentCheck(name="disk_space", passed=passed, message=message, value=f"{free_mb}MB")


def check_sudo(runner: CommandRunner) -> EnvironmentCheck:
    """
    Tell the user up front if sudo would prompt for a password.

    Nothing stackup runs needs sudo; this only warns about OS-package hints
    the user may act on (e.g. installing python3-venv).
    """
    if runner.which("sudo") is None:
        return EnvironmentCheck(name="sudo", passed=False, message="sudo not available", value="absent")

    if runner.run(["sudo", "-n", "true"]).ok:
        return EnvironmentCheck(name="sudo", passed=True, message="passwordless sudo", value="ok")

    logger.info(
        "sudo may prompt for a password for some operations (conda installs do not require sudo).",
        extra={"status": "note"},
    )
    return EnvironmentCheck(name="sudo", passed=True, message="sudo may prompt", value="prompt")
