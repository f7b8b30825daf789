# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for stackup tests.

Nothing in the test suite touches the real host. Commands go through
FakeRunner, which answers `which()` from a table of known executables and
`run()` from scripted responses matched by argv prefix, and records every
call so tests can assert on what would have been executed.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Optional, Union

import pytest

from stackup.config.schema import ProvisionConfig
from stackup.logging.logger import ROOT_LOGGER_NAME
from stackup.runtime.process import CommandResult

Response = Union[CommandResult, Callable[[tuple[str, ...]], CommandResult]]


class FakeRunner:
    """Scripted stand-in for CommandRunner."""

    def __init__(self, executables: Optional[Mapping[str, str]] = None) -> None:
        self.executables: dict[str, str] = dict(executables or {})
        self.calls: list[tuple[str, ...]] = []
        self.environs: list[Optional[dict[str, str]]] = []
        self._responses: list[tuple[tuple[str, ...], Response]] = []

    def add_executable(self, name: str, path: Optional[str] = None) -> None:
        self.executables[name] = path or f"/usr/bin/{name}"

    def on(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        action: Optional[Callable[[tuple[str, ...]], None]] = None,
    ) -> None:
        """Answer any command starting with `prefix`. Later registrations win."""

        def respond(argv: tuple[str, ...]) -> CommandResult:
            if action is not None:
                action(argv)
            return CommandResult(args=argv, returncode=returncode, stdout=stdout, stderr=stderr)

        self._responses.append((tuple(prefix), respond))

    def which(self, name: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
        return self.executables.get(name)

    def run(
        self,
        args: Sequence[str],
        environ: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> CommandResult:
        argv = tuple(str(arg) for arg in args)
        self.calls.append(argv)
        self.environs.append(dict(environ) if environ is not None else None)
        for prefix, response in reversed(self._responses):
            if argv[: len(prefix)] == prefix:
                return response(argv) if callable(response) else response
        return CommandResult(args=argv, returncode=0, stdout="", stderr="")

    def called(self, *prefix: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[: len(prefix)] == prefix]


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def config() -> ProvisionConfig:
    return ProvisionConfig()


@pytest.fixture()
def healthy_toolchain() -> Callable[[FakeRunner], FakeRunner]:
    """Make every required build tool present at a passing version."""

    def install(runner: FakeRunner) -> FakeRunner:
        for tool in ("make", "gcc", "g++", "cmake", "pkg-config", "pkgconf"):
            runner.add_executable(tool)
        runner.on("make", "--version", stdout="GNU Make 4.3\n")
        runner.on("gcc", "--version", stdout="gcc (GCC) 12.2.0\n")
        runner.on("g++", "--version", stdout="g++ (GCC) 12.2.0\n")
        runner.on("cmake", "--version", stdout="cmake version 3.28.1\n")
        runner.on("pkg-config", "--version", stdout="1.8.1\n")
        return runner

    return install


@pytest.fixture(autouse=True)
def _reset_stackup_logger():
    """Drop handlers between tests so one test's log file doesn't leak into the next."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
