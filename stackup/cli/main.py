# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for stackup.

One command, no subcommands: running `stackup` provisions the environment.
Flags only adjust how it does that.

Usage:
    stackup
    stackup --conda --python 3.11
    stackup --venv --venv-dir .env
    ENV_MANAGER=venv stackup
"""

import argparse
import sys
from typing import NoReturn, Optional, Sequence

from stackup.cli.commands import handle_setup
from stackup.cli.exit_codes import USER_ERROR

_DESCRIPTION = """\
Creates and configures a Python environment on Linux (conda or venv) and
installs CPU-only PyTorch.

  - Linux only (errors out elsewhere)
  - venv: verifies minimum build tools on the host, installs nothing system-wide
  - conda: installs build tools from conda-forge
  - requirements.txt cannot override the installed torch packages
  - if the first choice fails, the other backend is tried once (except with --venv)
"""

_EPILOG = """\
environment:
  ENV_MANAGER=conda|venv  preference when neither --conda nor --venv is given

minimum tool versions (venv path):
  make >= 4.3, gcc >= 11.5, g++ >= 11.5, cmake >= 3.26
  pkg-config: pkgconf >= 1.7.0 or GNU pkg-config >= 0.29.2

examples:
  stackup
  stackup --conda --python 3.11
  stackup --venv --venv-dir .env
  ENV_MANAGER=venv stackup
"""


class _ArgumentParser(argparse.ArgumentParser):
    """argparse exits with 2 on bad input; we promise 1 and a pointer to --help."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        sys.stderr.write(f"{self.prog}: error: {message}\n")
        sys.stderr.write("Use --help to see available options.\n")
        sys.exit(USER_ERROR)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="stackup",
        description=_DESCRIPTION,
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )

    manager = parser.add_mutually_exclusive_group()
    manager.add_argument(
        "--conda",
        action="store_true",
        default=False,
        dest="force_conda",
        help="Prefer conda (falls back to venv on failure).",
    )
    manager.add_argument(
        "--venv",
        action="store_true",
        default=False,
        dest="force_venv",
        help="Force venv (no conda attempt, no fallback).",
    )
    parser.add_argument(
        "--python",
        type=str,
        default=None,
        dest="python_version",
        metavar="X.Y",
        help="Python version to use (default 3.11).",
    )
    parser.add_argument(
        "--name",
        type=str,
        default=None,
        dest="env_name",
        metavar="ENV_NAME",
        help="Conda environment name.",
    )
    parser.add_argument(
        "--venv-dir",
        type=str,
        default=None,
        dest="venv_dir",
        metavar="PATH",
        help="Venv directory.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Optional YAML file overriding the built-in defaults.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Console verbosity (the log file always gets everything).",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

    Parses the command line, runs the setup, and exits with its return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    sys.exit(handle_setup(args))


if __name__ == "__main__":
    main()
