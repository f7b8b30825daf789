# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The process-wide "currently active environment".

At most one environment is active at a time. ActivationSlot holds it, and
every command that should land inside the environment runs with
`slot.environ()`, the base process environment overlaid with the active
environment's PATH and marker variable.

Rules:
  - activating while a *different* environment is active is refused, so a
    half-activated conda env from a failed attempt can never be mistaken for
    the fallback's venv. The orchestrator deactivates before falling back.
  - `register_finalizer` installs one atexit handler that clears the slot on
    every way out of the process (normal return, sys.exit, Ctrl-C).
"""

import atexit
import os
from collections.abc import Callable, Mapping
from typing import Optional

from stackup.backends.base import ActivatedEnvironment
from stackup.logging.logger import get_logger

logger = get_logger(__name__)


class ActivationError(Exception):
    """Raised when activation would leave two environments active at once."""


class ActivationSlot:
    """Single slot holding the active environment, if any."""

    def __init__(self, base_environ: Optional[Mapping[str, str]] = None) -> None:
        self._base = dict(os.environ if base_environ is None else base_environ)
        self._active: Optional[ActivatedEnvironment] = None

    @property
    def active(self) -> Optional[ActivatedEnvironment]:
        return self._active

    def activate(self, environment: ActivatedEnvironment) -> None:
        """
        Make `environment` the active one.

        Re-activating the environment that is already active is a no-op.

        Raises:
            ActivationError: If another environment is still active.
        """
        if self._active is not None and self._active != environment:
            raise ActivationError(
                f"Cannot activate {environment.kind.value} environment '{environment.name}' "
                f"while {self._active.kind.value} environment '{self._active.name}' is active"
            )
        self._active = environment
        logger.debug(
            "Environment activated",
            extra={"backend": environment.kind.value, "prefix": str(environment.prefix)},
        )

    def deactivate(self) -> Optional[ActivatedEnvironment]:
        """Clear the slot. Returns whatever was active (None if nothing was)."""
        previous = self._active
        self._active = None
        if previous is not None:
            logger.debug(
                "Environment deactivated",
                extra={"backend": previous.kind.value, "prefix": str(previous.prefix)},
            )
        return previous

    def environ(self) -> dict[str, str]:
        """The process environment commands should run with right now."""
        merged = dict(self._base)
        if self._active is not None:
            merged.update(self._active.variables)
        return merged


def register_finalizer(slot: ActivationSlot) -> Callable[[], None]:
    """
    Register the exit handler that leaves no environment active.

    Returns:
        The handler itself, so callers and tests can run it directly.
    """

    def _finalize() -> None:
        previous = slot.deactivate()
        if previous is not None:
            logger.debug(
                "Deactivated environment on exit",
                extra={"backend": previous.kind.value, "env_name": previous.name},
            )

    atexit.register(_finalize)
    return _finalize
