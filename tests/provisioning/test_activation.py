# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the single active-environment slot and its exit finalizer.
"""

import atexit
from pathlib import Path
from unittest import mock

import pytest

from stackup.backends.base import ActivatedEnvironment, BackendKind
from stackup.logging.logger import configure_logging
from stackup.provisioning.activation import ActivationError, ActivationSlot, register_finalizer


def _env(kind: BackendKind, name: str) -> ActivatedEnvironment:
    prefix = Path("/envs") / name
    marker = "CONDA_PREFIX" if kind is BackendKind.CONDA else "VIRTUAL_ENV"
    return ActivatedEnvironment(
        kind=kind,
        name=name,
        prefix=prefix,
        marker=marker,
        variables={marker: str(prefix), "PATH": f"{prefix}/bin:/usr/bin"},
    )


class TestActivationSlot:
    def test_starts_empty(self) -> None:
        slot = ActivationSlot({"PATH": "/usr/bin"})
        assert slot.active is None
        assert slot.environ() == {"PATH": "/usr/bin"}

    def test_environ_overlays_active_variables(self) -> None:
        slot = ActivationSlot({"PATH": "/usr/bin", "HOME": "/home/student"})
        slot.activate(_env(BackendKind.VENV, ".venv"))
        environ = slot.environ()
        assert environ["VIRTUAL_ENV"] == "/envs/.venv"
        assert environ["PATH"] == "/envs/.venv/bin:/usr/bin"
        assert environ["HOME"] == "/home/student"

    def test_refuses_second_environment(self) -> None:
        slot = ActivationSlot({})
        slot.activate(_env(BackendKind.CONDA, "stackup_env"))
        with pytest.raises(ActivationError):
            slot.activate(_env(BackendKind.VENV, ".venv"))
        assert slot.active is not None and slot.active.kind is BackendKind.CONDA

    def test_reactivating_same_environment_is_allowed(self) -> None:
        slot = ActivationSlot({})
        env = _env(BackendKind.CONDA, "stackup_env")
        slot.activate(env)
        slot.activate(env)
        assert slot.active == env

    def test_deactivate_returns_previous_and_restores_base(self) -> None:
        slot = ActivationSlot({"PATH": "/usr/bin"})
        env = _env(BackendKind.CONDA, "stackup_env")
        slot.activate(env)
        assert slot.deactivate() == env
        assert slot.active is None
        assert slot.environ() == {"PATH": "/usr/bin"}

    def test_base_environment_is_copied(self) -> None:
        base = {"PATH": "/usr/bin"}
        slot = ActivationSlot(base)
        base["PATH"] = "/changed"
        assert slot.environ()["PATH"] == "/usr/bin"


class TestFinalizer:
    def test_registers_with_atexit(self) -> None:
        slot = ActivationSlot({})
        with mock.patch.object(atexit, "register") as register:
            finalizer = register_finalizer(slot)
        register.assert_called_once_with(finalizer)

    def test_clears_active_environment(self) -> None:
        slot = ActivationSlot({})
        with mock.patch.object(atexit, "register"):
            finalizer = register_finalizer(slot)
        slot.activate(_env(BackendKind.CONDA, "stackup_env"))
        finalizer()
        assert slot.active is None

    def test_is_harmless_when_nothing_active(self) -> None:
        slot = ActivationSlot({})
        with mock.patch.object(atexit, "register"):
            finalizer = register_finalizer(slot)
        finalizer()
        assert slot.active is None

    def test_runs_cleanly_with_logging_configured(self, tmp_path: Path) -> None:
        log_file = tmp_path / "install.log"
        configure_logging("INFO", log_file)
        slot = ActivationSlot({})
        with mock.patch.object(atexit, "register"):
            finalizer = register_finalizer(slot)
        slot.activate(_env(BackendKind.CONDA, "stackup_env"))

        finalizer()

        assert slot.active is None
        text = log_file.read_text(encoding="utf-8")
        assert "Deactivated environment on exit" in text
        assert '"env_name": "stackup_env"' in text
