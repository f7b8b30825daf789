# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
External command execution.

Everything stackup does to the host goes through CommandRunner: looking up
executables on PATH and running them to completion. Commands run one at a
time and block until they exit. There is no timeout, so a hung conda or pip
hangs the whole run.

Output is captured rather than streamed to the terminal. The captured text
is logged at DEBUG, which lands in the log file and keeps the console quiet.
A missing executable comes back as returncode 127 (what a shell would report)
instead of an exception, so callers only ever need to look at the returncode.
"""

import os
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from stackup.logging.logger import get_logger

logger = get_logger(__name__)

COMMAND_NOT_FOUND_RC = 127


@dataclass(frozen=True)
class CommandResult:
    """What came back from running an external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs host commands synchronously with an explicit process environment."""

    def which(self, name: str, environ: Mapping[str, str] | None = None) -> str | None:
        """Return the full path of `name` on the PATH of `environ`, or None."""
        env = os.environ if environ is None else environ
        return shutil.which(name, path=env.get("PATH"))

    def run(
        self,
        args: Sequence[str],
        environ: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        """
        Run a command to completion and capture its output.

        Args:
            args: The argv list. Never passed through a shell.
            environ: Process environment for the child. Defaults to ours.
            cwd: Working directory for the child.

        Returns:
            CommandResult with the exit status and captured output.
        """
        argv = tuple(str(arg) for arg in args)
        try:
            completed = subprocess.run(
                list(argv),
                capture_output=True,
                text=True,
                env=dict(environ) if environ is not None else None,
                cwd=str(cwd) if cwd is not None else None,
                check=False,
            )
        except FileNotFoundError:
            logger.debug("Command not found", extra={"command": " ".join(argv)})
            return CommandResult(
                args=argv,
                returncode=COMMAND_NOT_FOUND_RC,
                stdout="",
                stderr=f"{argv[0]}: command not found",
            )

        logger.debug(
            "Command finished",
            extra={
                "command": " ".join(argv),
                "returncode": completed.returncode,
                "stdout": completed.stdout,
                "stderr": completed.stderr,
            },
        )
        return CommandResult(
            args=argv,
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
