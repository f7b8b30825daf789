# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The backend selection and fallback state machine.

    INIT -> SELECTING -> ATTEMPTING_PRIMARY -> SUCCEEDED
                                            -> ATTEMPTING_SECONDARY -> SUCCEEDED
                                                                    -> FAILED
                                            -> FAILED

Rules:
  - forced venv never falls back. A venv failure there is final.
  - otherwise the other backend gets exactly one try, and only if its
    prerequisite command exists. If it doesn't, we fail straight away
    instead of making an attempt we know is pointless.
  - never more than two attempts, never the same backend twice.
  - a failed attempt's partial activation is cleared before the fallback
    starts, so the slot never holds the wrong environment.

`run()` produces the outcome once. The outcome is terminal. Calling `run()`
again is a bug and raises.
"""

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from stackup.backends.base import (
    ActivatedEnvironment,
    AttemptFailure,
    AttemptSuccess,
    BackendAttemptResult,
    BackendInstaller,
    BackendKind,
)
from stackup.logging.logger import get_logger
from stackup.provisioning.activation import ActivationSlot
from stackup.provisioning.preference import ResolvedPreference

logger = get_logger(__name__)


class OrchestratorState(enum.Enum):
    INIT = "init"
    SELECTING = "selecting"
    ATTEMPTING_PRIMARY = "attempting-primary"
    ATTEMPTING_SECONDARY = "attempting-secondary"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class AttemptRecord:
    backend: BackendKind
    result: BackendAttemptResult


@dataclass(frozen=True)
class Succeeded:
    backend: BackendKind
    fallback_used: bool
    environment: ActivatedEnvironment
    attempts: tuple[AttemptRecord, ...]


@dataclass(frozen=True)
class Failed:
    last_failure: AttemptFailure
    attempts: tuple[AttemptRecord, ...]


ProvisioningOutcome = Union[Succeeded, Failed]


class ProvisioningOrchestrator:
    """Drives the primary attempt and at most one fallback."""

    def __init__(
        self,
        preference: ResolvedPreference,
        backends: Mapping[BackendKind, BackendInstaller],
        slot: ActivationSlot,
        log_file: Optional[Path] = None,
    ) -> None:
        missing = {BackendKind.CONDA, BackendKind.VENV} - set(backends)
        if missing:
            raise ValueError(f"Missing backends: {sorted(kind.value for kind in missing)}")
        self._preference = preference
        self._backends = dict(backends)
        self._slot = slot
        self._log_hint = f" See {log_file} for details." if log_file is not None else ""
        self._state = OrchestratorState.INIT
        self._history: list[OrchestratorState] = [OrchestratorState.INIT]
        self._attempts: list[AttemptRecord] = []
        self._outcome: Optional[ProvisioningOutcome] = None

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def history(self) -> tuple[OrchestratorState, ...]:
        return tuple(self._history)

    @property
    def attempts(self) -> tuple[AttemptRecord, ...]:
        return tuple(self._attempts)

    def _transition(self, state: OrchestratorState) -> None:
        logger.debug(
            "Orchestrator transition",
            extra={"from_state": self._state.value, "to_state": state.value},
        )
        self._state = state
        self._history.append(state)

    def _attempt(self, kind: BackendKind) -> BackendAttemptResult:
        result = self._backends[kind].attempt()
        self._attempts.append(AttemptRecord(backend=kind, result=result))
        if isinstance(result, AttemptFailure):
            # Whatever the failed attempt left active must not survive into
            # the next attempt or past the end of the run.
            leftover = self._slot.deactivate()
            if leftover is not None:
                logger.debug(
                    "Cleared partial activation after failed attempt",
                    extra={"backend": kind.value, "prefix": str(leftover.prefix)},
                )
            logger.warning(
                f"{kind.value} setup failed at {result.stage.value} (code {result.code}).",
                extra={"backend": kind.value, "stage": result.stage.value, "code": result.code},
            )
        return result

    def _succeed(self, kind: BackendKind, result: AttemptSuccess, fallback_used: bool) -> Succeeded:
        self._transition(OrchestratorState.SUCCEEDED)
        outcome = Succeeded(
            backend=kind,
            fallback_used=fallback_used,
            environment=result.environment,
            attempts=self.attempts,
        )
        self._outcome = outcome
        return outcome

    def _fail(self, failure: AttemptFailure, message: str) -> Failed:
        self._transition(OrchestratorState.FAILED)
        logger.error(message + self._log_hint, extra={"stage": failure.stage.value})
        outcome = Failed(last_failure=failure, attempts=self.attempts)
        self._outcome = outcome
        return outcome

    def run(self) -> ProvisioningOutcome:
        """
        Provision an environment, falling back once if allowed.

        Returns:
            Succeeded (with the active environment and whether fallback was
            needed) or Failed (with the last failure seen).

        Raises:
            RuntimeError: If called a second time.
        """
        if self._outcome is not None or self._state is not OrchestratorState.INIT:
            raise RuntimeError("Provisioning already ran; its outcome is final.")

        self._transition(OrchestratorState.SELECTING)
        primary = self._preference.primary
        secondary = primary.other
        logger.debug(
            "Backend selected",
            extra={
                "primary": primary.value,
                "source": self._preference.source.value,
                "fallback_allowed": self._preference.fallback_allowed,
            },
        )

        self._transition(OrchestratorState.ATTEMPTING_PRIMARY)
        result = self._attempt(primary)
        if isinstance(result, AttemptSuccess):
            return self._succeed(primary, result, fallback_used=False)

        if not self._preference.fallback_allowed:
            return self._fail(result, f"{primary.value} setup failed and fallback is disabled.")

        if not self._backends[secondary].is_available():
            return self._fail(
                result,
                f"{primary.value} setup failed and {secondary.value} is not available for fallback.",
            )

        logger.warning(
            f"{primary.value} setup failed, attempting fallback to {secondary.value}...",
            extra={"primary": primary.value, "secondary": secondary.value},
        )
        self._transition(OrchestratorState.ATTEMPTING_SECONDARY)
        result = self._attempt(secondary)
        if isinstance(result, AttemptSuccess):
            logger.info(f"Fallback to {secondary.value} succeeded.", extra={"status": "ok"})
            return self._succeed(secondary, result, fallback_used=True)

        return self._fail(result, f"Fallback to {secondary.value} also failed.")


def describe_failure(outcome: Failed) -> str:
    """One-line description of where provisioning gave up."""
    stages = ", ".join(
        f"{record.backend.value}: {record.result.stage.value}"
        for record in outcome.attempts
        if isinstance(record.result, AttemptFailure)
    )
    return f"Provisioning failed ({stages or outcome.last_failure.stage.value})."
