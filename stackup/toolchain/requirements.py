# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The fixed set of host tools the venv path needs before it will proceed.

Five entries: make, gcc, g++, cmake, and pkg-config. pkg-config is special
because two different programs answer to that name (see
PackageConfigRequirement), so it carries two floors.
"""

from collections.abc import Callable
from dataclasses import dataclass

from stackup.config.schema import ToolchainFloors
from stackup.toolchain.version import extract_version


@dataclass(frozen=True)
class ToolRequirement:
    """One required host tool and the minimum version we accept."""

    name: str
    command: str
    minimum_version: str
    version_args: tuple[str, ...] = ("--version",)
    version_extractor: Callable[[str | None], str | None] = extract_version


@dataclass(frozen=True)
class PackageConfigRequirement(ToolRequirement):
    """
    pkg-config, which may be provided by either of two implementations.

    Most distros ship pkgconf (reporting 1.x) behind the `pkg-config` name,
    while conda-forge ships the GNU upstream pkg-config (0.29.x). The
    inherited `minimum_version` is the pkgconf floor; `legacy_minimum` is the
    floor for upstream pkg-config.
    """

    legacy_minimum: str = "0.29.2"
    modern_command: str = "pkgconf"


def default_requirements(floors: ToolchainFloors) -> tuple[ToolRequirement, ...]:
    """Build the standard requirement set from the configured floors."""
    return (
        ToolRequirement(name="make", command="make", minimum_version=floors.make),
        ToolRequirement(name="gcc", command="gcc", minimum_version=floors.gcc),
        ToolRequirement(name="g++", command="g++", minimum_version=floors.gxx),
        ToolRequirement(name="cmake", command="cmake", minimum_version=floors.cmake),
        PackageConfigRequirement(
            name="pkg-config",
            command="pkg-config",
            minimum_version=floors.pkgconf,
            legacy_minimum=floors.pkg_config_upstream,
        ),
    )
