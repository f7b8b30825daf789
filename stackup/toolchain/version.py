# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Version parsing and minimum-version checks.

Tool versions are compared component by component as integers, so "11.5"
is newer than "9.9" even though it sorts lower as a string. Missing trailing
components count as zero: "11.5" and "11.5.0" are the same version.

The check fails closed. If the observed version can't be parsed (the tool
printed something unexpected, or we got nothing at all) the answer is
"does not meet the minimum", never an exception.
"""

import re

MAX_COMPONENTS = 4

_DOTTED_VERSION = re.compile(r"^[0-9]+(?:\.[0-9]+){0,%d}$" % (MAX_COMPONENTS - 1))

# First version-looking token inside free-form `--version` output.
_VERSION_TOKEN = re.compile(r"[0-9]+(?:\.[0-9]+){1,%d}" % (MAX_COMPONENTS - 1))


def parse_version(text: str | None) -> tuple[int, ...] | None:
    """Turn "1.2.3" into (1, 2, 3). Returns None for anything that isn't a dotted number."""
    if not text:
        return None
    candidate = text.strip()
    if not _DOTTED_VERSION.match(candidate):
        return None
    return tuple(int(part) for part in candidate.split("."))


def _pad(parts: tuple[int, ...], width: int) -> tuple[int, ...]:
    return parts + (0,) * (width - len(parts))


def is_at_least(observed: str | None, minimum: str) -> bool:
    """
    Check whether `observed` is the same as or newer than `minimum`.

    Args:
        observed: Version reported by a tool. May be None or garbage.
        minimum: The required floor. Must be a valid dotted version.

    Returns:
        True if observed >= minimum, False otherwise (including when observed
        can't be parsed).

    Raises:
        ValueError: If `minimum` itself is malformed. That's a bug in the
            caller's constants, not something the host can cause.
    """
    floor = parse_version(minimum)
    if floor is None:
        raise ValueError(f"Invalid minimum version: {minimum!r}")

    actual = parse_version(observed)
    if actual is None:
        return False

    width = max(len(actual), len(floor))
    return _pad(actual, width) >= _pad(floor, width)


def extract_version(output: str | None) -> str | None:
    """
    Pull the first version token out of a tool's `--version` output.

    "GNU Make 4.3" -> "4.3", "gcc (Ubuntu 11.4.0-1ubuntu1~22.04) 11.4.0" -> "11.4.0".
    """
    if not output:
        return None
    match = _VERSION_TOKEN.search(output)
    return match.group(0) if match else None
