# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for host toolchain verification, including pkg-config provider detection.
"""

from stackup.config.schema import ToolchainFloors
from stackup.toolchain.requirements import (
    PackageConfigRequirement,
    ToolRequirement,
    default_requirements,
)
from stackup.toolchain.verifier import PkgConfigProvider, ToolchainVerifier, classify_provider

PKG_CONFIG = PackageConfigRequirement(
    name="pkg-config",
    command="pkg-config",
    minimum_version="1.7.0",
    legacy_minimum="0.29.2",
)


class TestDefaultRequirements:
    def test_five_fixed_tools(self) -> None:
        requirements = default_requirements(ToolchainFloors())
        assert [r.name for r in requirements] == ["make", "gcc", "g++", "cmake", "pkg-config"]
        assert isinstance(requirements[-1], PackageConfigRequirement)

    def test_floors_come_from_config(self) -> None:
        requirements = default_requirements(ToolchainFloors(gcc="13.1", pkgconf="2.0"))
        by_name = {r.name: r for r in requirements}
        assert by_name["gcc"].minimum_version == "13.1"
        assert by_name["pkg-config"].minimum_version == "2.0"


class TestPlainTools:
    def test_passing_tool(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        fake_runner.add_executable("make")
        fake_runner.on("make", "--version", stdout="GNU Make 4.4.1\n")
        check = ToolchainVerifier(fake_runner).check(ToolRequirement("make", "make", "4.3"))
        assert check.passed
        assert check.observed_version == "4.4.1"

    def test_too_old_tool_fails(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        fake_runner.add_executable("gcc")
        fake_runner.on("gcc", "--version", stdout="gcc (GCC) 9.9.0\n")
        check = ToolchainVerifier(fake_runner).check(ToolRequirement("gcc", "gcc", "11.5"))
        assert not check.passed
        assert "< 11.5" in check.message

    def test_absent_tool_fails_without_running_it(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        check = ToolchainVerifier(fake_runner).check(ToolRequirement("cmake", "cmake", "3.26"))
        assert not check.passed
        assert check.observed_version is None
        assert fake_runner.calls == []

    def test_unreadable_version_fails(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        fake_runner.add_executable("cmake")
        fake_runner.on("cmake", "--version", stdout="cmake, probably\n")
        check = ToolchainVerifier(fake_runner).check(ToolRequirement("cmake", "cmake", "3.26"))
        assert not check.passed


class TestPkgConfigProvider:
    def test_distinct_pkgconf_binary_means_modern(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        fake_runner.add_executable("pkgconf")
        assert classify_provider(fake_runner, PKG_CONFIG, "0.29.2") is PkgConfigProvider.MODERN

    def test_version_one_or_later_means_modern(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        assert classify_provider(fake_runner, PKG_CONFIG, "1.0.0") is PkgConfigProvider.MODERN

    def test_version_below_one_means_legacy(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        assert classify_provider(fake_runner, PKG_CONFIG, "0.29.2") is PkgConfigProvider.LEGACY

    def test_no_version_means_unknown(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        assert classify_provider(fake_runner, PKG_CONFIG, None) is PkgConfigProvider.UNKNOWN

    def test_modern_floor_applies_when_both_binaries_exist(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        fake_runner.add_executable("pkg-config")
        fake_runner.add_executable("pkgconf")
        fake_runner.on("pkg-config", "--version", stdout="1.2.0\n")
        check = ToolchainVerifier(fake_runner).check(PKG_CONFIG)
        assert not check.passed
        assert check.observed_version == "1.2.0"
        assert "1.7.0" in check.message

    def test_legacy_floor_applies_to_upstream(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        fake_runner.add_executable("pkg-config")
        fake_runner.on("pkg-config", "--version", stdout="0.29.2\n")
        check = ToolchainVerifier(fake_runner).check(PKG_CONFIG)
        assert check.passed

    def test_old_upstream_fails(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        fake_runner.add_executable("pkg-config")
        fake_runner.on("pkg-config", "--version", stdout="0.28\n")
        check = ToolchainVerifier(fake_runner).check(PKG_CONFIG)
        assert not check.passed

    def test_unknown_provider_without_version_fails_both_floors(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        fake_runner.add_executable("pkg-config")
        fake_runner.on("pkg-config", "--version", stdout="no idea\n")
        check = ToolchainVerifier(fake_runner).check(PKG_CONFIG)
        assert not check.passed
        assert "not meeting known floors" in check.message

    def test_absent_pkg_config(self, fake_runner) -> None:  # type: ignore[no-untyped-def]
        fake_runner.add_executable("pkgconf")
        check = ToolchainVerifier(fake_runner).check(PKG_CONFIG)
        assert not check.passed
        assert check.observed_version is None


class TestVerify:
    def test_all_tools_pass(self, fake_runner, healthy_toolchain) -> None:  # type: ignore[no-untyped-def]
        healthy_toolchain(fake_runner)
        report = ToolchainVerifier(fake_runner).verify(default_requirements(ToolchainFloors()))
        assert report.overall_pass
        assert len(report.per_tool) == 5
        assert report.failures == ()

    def test_one_failure_fails_overall_but_all_are_checked(self, fake_runner, healthy_toolchain) -> None:  # type: ignore[no-untyped-def]
        healthy_toolchain(fake_runner)
        del fake_runner.executables["gcc"]
        report = ToolchainVerifier(fake_runner).verify(default_requirements(ToolchainFloors()))
        assert not report.overall_pass
        assert [check.name for check in report.failures] == ["gcc"]
        assert len(report.per_tool) == 5

    def test_never_installs_anything(self, fake_runner, healthy_toolchain) -> None:  # type: ignore[no-untyped-def]
        healthy_toolchain(fake_runner)
        ToolchainVerifier(fake_runner).verify(default_requirements(ToolchainFloors()))
        assert all(call[1:] == ("--version",) for call in fake_runner.calls)
