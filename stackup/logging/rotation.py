# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Single-generation log rotation.

Each run starts with an empty log. The previous run's log is kept as
`<name>.1`; anything older is gone. Rotating twice in a row therefore always
leaves exactly one `.1` file holding the log from immediately before.
"""

from pathlib import Path


def rotated_path(log_file: Path) -> Path:
    """`install.log` -> `install.log.1`."""
    return log_file.with_name(log_file.name + ".1")


def rotate_log(log_file: Path) -> Path:
    """
    Move the existing log aside and start a fresh, empty one.

    Path.replace overwrites an existing `.1`, so only one generation of
    history survives.

    Args:
        log_file: Path of the log for the new run.

    Returns:
        The path of the (now empty) log file.
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)
    if log_file.exists():
        log_file.replace(rotated_path(log_file))
    log_file.write_text("", encoding="utf-8")
    return log_file
