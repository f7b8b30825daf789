# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Host toolchain verification for the venv path.

The venv backend doesn't install compilers or build tools, it only checks
that the host already has them at acceptable versions. This module runs each
tool's `--version`, extracts the version, compares it against the floor, and
produces a per-tool report plus an overall verdict. Nothing is ever installed.

pkg-config needs extra care. Two implementations report through the same
`pkg-config` command: pkgconf (1.x and up, what most distros ship) and GNU
upstream pkg-config (0.29.x, what conda-forge ships). Their version numbers
aren't comparable, so we first work out which one we're talking to:

  - a separate `pkgconf` binary on PATH means pkgconf
  - otherwise a reported version >= 1.0.0 means pkgconf
  - otherwise it's upstream pkg-config
  - no readable version at all means we don't know, and we accept the tool
    if it meets either floor
"""

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from stackup.logging.logger import get_logger
from stackup.runtime.process import CommandRunner
from stackup.toolchain.requirements import PackageConfigRequirement, ToolRequirement
from stackup.toolchain.version import is_at_least

logger = get_logger(__name__)

MODERN_PROVIDER_VERSION = "1.0.0"


class PkgConfigProvider(enum.Enum):
    MODERN = "pkgconf"
    LEGACY = "pkg-config"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ToolCheck:
    """Result of checking one tool."""

    name: str
    observed_version: str | None
    passed: bool
    message: str


@dataclass(frozen=True)
class VerificationReport:
    """Aggregate result over all required tools."""

    overall_pass: bool
    per_tool: tuple[ToolCheck, ...]

    @property
    def failures(self) -> tuple[ToolCheck, ...]:
        return tuple(check for check in self.per_tool if not check.passed)


def classify_provider(
    runner: CommandRunner,
    requirement: PackageConfigRequirement,
    observed: str | None,
    environ: Mapping[str, str] | None = None,
) -> PkgConfigProvider:
    """Work out which pkg-config implementation answers to `requirement.command`."""
    if runner.which(requirement.modern_command, environ) is not None:
        return PkgConfigProvider.MODERN
    if observed is None:
        return PkgConfigProvider.UNKNOWN
    if is_at_least(observed, MODERN_PROVIDER_VERSION):
        return PkgConfigProvider.MODERN
    return PkgConfigProvider.LEGACY


class ToolchainVerifier:
    """Checks host tools against their minimum versions without installing anything."""

    def __init__(self, runner: CommandRunner, environ: Mapping[str, str] | None = None) -> None:
        self._runner = runner
        self._environ = environ

    def _observe(self, requirement: ToolRequirement) -> str | None:
        result = self._runner.run(
            [requirement.command, *requirement.version_args], environ=self._environ
        )
        if not result.ok:
            return None
        return requirement.version_extractor(result.stdout or result.stderr)

    def _check_plain(self, requirement: ToolRequirement, observed: str | None) -> ToolCheck:
        if is_at_least(observed, requirement.minimum_version):
            return ToolCheck(
                name=requirement.name,
                observed_version=observed,
                passed=True,
                message=f"{requirement.name} {observed} (>= {requirement.minimum_version})",
            )
        return ToolCheck(
            name=requirement.name,
            observed_version=observed,
            passed=False,
            message=f"{requirement.name} {observed or 'unknown'} (< {requirement.minimum_version})",
        )

    def _check_pkg_config(
        self, requirement: PackageConfigRequirement, observed: str | None
    ) -> ToolCheck:
        provider = classify_provider(self._runner, requirement, observed, self._environ)
        shown = observed or "unknown"

        if provider is PkgConfigProvider.MODERN:
            floor = requirement.minimum_version
            passed = is_at_least(observed, floor)
            label = f"pkgconf (via {requirement.command}) {shown}"
            message = f"{label} ({'>=' if passed else '<'} {floor})"
        elif provider is PkgConfigProvider.LEGACY:
            floor = requirement.legacy_minimum
            passed = is_at_least(observed, floor)
            message = f"{requirement.command} {shown} ({'>=' if passed else '<'} {floor})"
        else:
            passed = is_at_least(observed, requirement.minimum_version) or is_at_least(
                observed, requirement.legacy_minimum
            )
            if passed:
                message = f"{requirement.command} {shown} (meets a known floor)"
            else:
                message = (
                    f"{requirement.command} {shown} not meeting known floors "
                    f"(pkgconf {requirement.minimum_version} or "
                    f"pkg-config {requirement.legacy_minimum})"
                )

        return ToolCheck(
            name=requirement.name,
            observed_version=observed,
            passed=passed,
            message=message,
        )

    def check(self, requirement: ToolRequirement) -> ToolCheck:
        """Check a single tool."""
        if self._runner.which(requirement.command, self._environ) is None:
            return ToolCheck(
                name=requirement.name,
                observed_version=None,
                passed=False,
                message=f"Required tool '{requirement.command}' not found in PATH.",
            )

        observed = self._observe(requirement)
        if isinstance(requirement, PackageConfigRequirement):
            return self._check_pkg_config(requirement, observed)
        return self._check_plain(requirement, observed)

    def verify(self, requirements: Iterable[ToolRequirement]) -> VerificationReport:
        """
        Check every requirement and combine the results.

        Every tool is checked even after a failure, so the user sees the
        complete list of what needs upgrading in one go.
        """
        checks = tuple(self.check(requirement) for requirement in requirements)

        for check in checks:
            if check.passed:
                logger.info(check.message, extra={"status": "ok", "tool": check.name})
            else:
                logger.warning(check.message, extra={"tool": check.name})

        report = VerificationReport(
            overall_pass=all(check.passed for check in checks),
            per_tool=checks,
        )

        if report.overall_pass:
            logger.info("All required build tools meet minimum versions.", extra={"status": "ok"})
        else:
            logger.warning(
                "Build tool prerequisites missing or too old. Please upgrade to meet minimums.",
                extra={"failed_tools": [check.name for check in report.failures]},
            )
        return report
