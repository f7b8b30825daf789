# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
End-of-run output: toolchain versions, a quick-reference cheat sheet, and a
summary of which environment was set up and how.
"""

from collections.abc import Mapping
from typing import Optional

from stackup.backends.base import BackendKind
from stackup.config.schema import ProvisionConfig
from stackup.logging.logger import get_logger
from stackup.provisioning.orchestrator import Succeeded
from stackup.runtime.process import CommandRunner

logger = get_logger(__name__)

REPORTED_TOOLS: tuple[str, ...] = ("make", "gcc", "g++", "cmake", "pkg-config")

RULE = "=" * 44


def header(title: str) -> None:
    logger.info(RULE)
    logger.info(f"  {title}")
    logger.info(RULE)


def print_toolchains(runner: CommandRunner, environ: Optional[Mapping[str, str]] = None) -> dict[str, Optional[str]]:
    """
    Show the first `--version` line of each build tool as seen from the environment.

    Returns a tool -> first line mapping (None for tools that weren't found).
    """
    logger.info("")
    logger.info("Toolchain versions (post-setup):", extra={"status": "step"})
    seen: dict[str, Optional[str]] = {}
    for tool in REPORTED_TOOLS:
        if runner.which(tool, environ) is None:
            logger.warning(f"{tool} not found.")
            seen[tool] = None
            continue
        result = runner.run([tool, "--version"], environ=environ)
        lines = result.stdout.splitlines()
        first = lines[0] if lines else ""
        seen[tool] = first
        logger.info(first)
    return seen


def cheatsheet_lines(config: ProvisionConfig, program: str = "stackup") -> list[str]:
    name = config.env_name
    venv_dir = config.venv_dir
    return [
        "Conda (if selected)",
        f"  Activate:     conda activate {name}",
        "  Deactivate:   conda deactivate",
        "  Add package:  conda install <package>",
        "  List:         conda list",
        f"  Remove env:   conda remove -n {name} --all -y",
        "",
        "Venv (if selected)",
        f"  Activate:     source {venv_dir}/bin/activate",
        "  Deactivate:   deactivate",
        "  Add package:  pip install <package>",
        "  Freeze:       pip freeze > requirements.lock.txt",
        f"  Remove venv:  rm -rf {venv_dir}",
        "",
        "General",
        f"  Re-run setup: {program} [--conda|--venv] [--python {config.python_version}] "
        f"[--name {name}] [--venv-dir {venv_dir}]",
        f"  Help:         {program} --help",
        f"  Logs:         {config.log_file} (previous: {config.log_file}.1)",
    ]


def print_cheatsheet(config: ProvisionConfig) -> None:
    logger.info("")
    header("Quick Reference")
    for line in cheatsheet_lines(config):
        logger.info(line)


def print_summary(outcome: Succeeded, config: ProvisionConfig) -> None:
    """Say which environment we ended up with and how to get back into it."""
    via = " (reached via fallback)" if outcome.fallback_used else ""
    logger.info("")
    logger.info("Setup complete!", extra={"status": "ok"})
    if outcome.backend is BackendKind.CONDA:
        logger.info(f"Environment: conda ({config.env_name}){via}", extra={"status": "note"})
        logger.info(f"Activate with: conda activate {config.env_name}", extra={"status": "note"})
    else:
        logger.info(f"Environment: venv ({config.venv_dir}){via}", extra={"status": "note"})
        logger.info(f"Activate with: source {config.venv_dir}/bin/activate", extra={"status": "note"})
    logger.info(f"(see {config.log_file} for details)")
