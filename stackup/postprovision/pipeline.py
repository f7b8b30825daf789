# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Python package setup inside a freshly activated environment.

Runs only after provisioning succeeded. The steps:
  1. upgrade pip
  2. install pip-tools (for pip-compile)
  3. install torch/torchvision/torchaudio from the CPU-only wheel index,
     retrying each package from PyPI if that index fails
  4. write the installed torch versions into a constraints file
  5. if there's a requirements file, compile it with pip-compile (or use it
     raw if that fails) and install it under those constraints, so nothing
     in it can swap out the CPU torch build
  6. import the stack in the environment's interpreter and report versions
     and whether CUDA is (unexpectedly) visible

Every command uses the environment's own interpreter and the activation
slot's process environment. Install failures are logged and the pipeline
carries on: a partially installed environment is still more useful than
none, and the verification step shows what's missing.
"""

import json
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from stackup.backends.base import ActivatedEnvironment
from stackup.config.schema import TORCH_PACKAGES, ProvisionConfig
from stackup.logging.logger import get_logger
from stackup.provisioning.activation import ActivationSlot
from stackup.runtime.process import CommandResult, CommandRunner

logger = get_logger(__name__)

_PIN_SCRIPT = """\
import importlib.metadata as md
for name in %r:
    try:
        print(f"{name}=={md.version(name)}")
    except md.PackageNotFoundError:
        pass
""" % (TORCH_PACKAGES,)

_STACK_SCRIPT = """\
import json, sys
report = {"python": sys.version.split()[0]}
try:
    import torch, numpy
    report["torch"] = torch.__version__
    report["numpy"] = numpy.__version__
    report["cuda_available"] = bool(torch.cuda.is_available())
    report["cuda_version"] = getattr(torch.version, "cuda", None)
    if report["cuda_available"]:
        report["gpu_name"] = torch.cuda.get_device_name(0)
except Exception as exc:
    report["error"] = repr(exc)
print(json.dumps(report))
"""


@dataclass(frozen=True)
class StackReport:
    """What the interpreter-level check saw."""

    python: Optional[str] = None
    torch: Optional[str] = None
    numpy: Optional[str] = None
    cuda_available: bool = False
    cuda_version: Optional[str] = None
    gpu_name: Optional[str] = None
    error: Optional[str] = None

    @property
    def cpu_only(self) -> bool:
        return self.error is None and self.torch is not None and not self.cuda_available


@dataclass(frozen=True)
class PostProvisionReport:
    pinned: tuple[str, ...] = ()
    requirements_installed: bool = False
    stack: StackReport = field(default_factory=StackReport)


class PostProvisionPipeline:
    """Installs and verifies the Python package stack in the active environment."""

    def __init__(
        self,
        config: ProvisionConfig,
        runner: CommandRunner,
        slot: ActivationSlot,
        environment: ActivatedEnvironment,
        workdir: Optional[Path] = None,
    ) -> None:
        self._config = config
        self._runner = runner
        self._slot = slot
        self._environment = environment
        self._workdir = workdir or Path.cwd()

    def _python(self) -> str:
        return str(self._environment.python)

    def _pip(self, *args: str) -> CommandResult:
        return self._runner.run(
            [self._python(), "-m", "pip", *args], environ=self._slot.environ(), cwd=self._workdir
        )

    def upgrade_pip(self) -> bool:
        logger.info("Upgrading pip...", extra={"status": "step"})
        result = self._pip("install", "--upgrade", "pip", "--quiet")
        if result.ok:
            logger.info("pip upgraded.", extra={"status": "ok"})
        else:
            logger.warning(f"pip upgrade failed (rc={result.returncode}).")
        return result.ok

    def install_pip_tools(self) -> bool:
        logger.info("Installing pip-tools...", extra={"status": "step"})
        version = self._config.pip_tools_version
        spec = f"pip-tools=={version}" if version else "pip-tools"
        result = self._pip("install", spec, "--quiet")
        if result.ok:
            logger.info("pip-tools installed.", extra={"status": "ok"})
        else:
            logger.warning(f"pip-tools install failed (rc={result.returncode}).")
        return result.ok

    def install_torch(self) -> bool:
        """
        Install the CPU-only triple from the dedicated index.

        If that fails, each package is retried individually from the default
        index. Returns whether everything ended up installed.
        """
        logger.info("Installing PyTorch (CPU-only wheels)...", extra={"status": "step"})
        specs = self._config.torch.requirement_specs()
        result = self._pip("install", "--index-url", self._config.torch.index_url, *specs, "--quiet")
        if result.ok:
            logger.info("PyTorch (CPU-only) installed.", extra={"status": "ok"})
            return True

        logger.warning("PyTorch CPU install failed from official index. Retrying from PyPI...")
        all_ok = True
        for spec in specs:
            retry = self._pip("install", spec, "--quiet")
            if not retry.ok:
                all_ok = False
                logger.warning(f"Could not install {spec} from PyPI (rc={retry.returncode}).")
        if all_ok:
            logger.info("PyTorch installed from PyPI.", extra={"status": "ok"})
        return all_ok

    def pin_torch(self, constraints_file: Path) -> tuple[str, ...]:
        """Write the installed torch versions to `constraints_file` and return them."""
        result = self._runner.run([self._python(), "-c", _PIN_SCRIPT], environ=self._slot.environ())
        pins = tuple(line.strip() for line in result.stdout.splitlines() if "==" in line) if result.ok else ()
        constraints_file.write_text("".join(f"{pin}\n" for pin in pins), encoding="utf-8")
        logger.info(f"Pinned torch packages: {' '.join(pins) or '(none)'}", extra={"status": "note"})
        return pins

    def install_requirements(self, constraints_file: Path, scratch_dir: Path) -> bool:
        """
        Install the user's requirements file without letting it touch torch.

        Returns False if there was no requirements file or the install failed.
        """
        requirements = self._workdir / self._config.requirements_file
        if not requirements.is_file():
            logger.info(
                f"No {self._config.requirements_file} found, skipping extra Python deps.",
                extra={"status": "note"},
            )
            return False

        logger.info(
            f"Resolving + installing from {self._config.requirements_file} "
            "(will not override torch packages)...",
            extra={"status": "step"},
        )
        locked = scratch_dir / "requirements.lock.txt"
        compile_result = self._runner.run(
            [
                str(self._environment.bin_dir / "pip-compile"),
                str(requirements),
                f"--output-file={locked}",
                "--quiet",
                "--strip-extras",
            ],
            environ=self._slot.environ(),
            cwd=self._workdir,
        )
        if not compile_result.ok or not locked.is_file():
            logger.warning(f"pip-compile failed; falling back to raw {self._config.requirements_file}")
            shutil.copyfile(requirements, locked)

        result = self._pip("install", "-r", str(locked), "--constraint", str(constraints_file), "--quiet")
        if result.ok:
            logger.info("Additional packages installed with torch safeguarded.", extra={"status": "ok"})
        else:
            logger.warning(f"Installing {self._config.requirements_file} failed (rc={result.returncode}).")
        return result.ok

    def verify_stack(self) -> StackReport:
        """Import torch and numpy inside the environment and report what we find."""
        logger.info("Verifying Python stack", extra={"status": "step"})
        result = self._runner.run([self._python(), "-c", _STACK_SCRIPT], environ=self._slot.environ())
        report = parse_stack_report(result.stdout if result.ok else "")
        if report.error is not None:
            logger.warning(f"Verification error (Python stack): {report.error}")
            return report

        logger.info(f"Python: {report.python}")
        logger.info(f"Torch: {report.torch}")
        logger.info(f"CUDA available (should be False): {report.cuda_available}")
        logger.info(f"CUDA version: {report.cuda_version}")
        logger.info(f"Numpy: {report.numpy}")
        if report.cpu_only:
            logger.info("CPU-only PyTorch confirmed.", extra={"status": "ok"})
        elif report.cuda_available:
            logger.warning(f"Unexpected GPU detected: {report.gpu_name}")
        else:
            logger.warning("Torch version not reported by the verification script.")
        return report

    def run(self) -> PostProvisionReport:
        self.upgrade_pip()
        self.install_pip_tools()
        self.install_torch()

        with tempfile.TemporaryDirectory(prefix="stackup_") as scratch:
            scratch_dir = Path(scratch)
            constraints_file = scratch_dir / "constraints.txt"
            pins = self.pin_torch(constraints_file)
            installed = self.install_requirements(constraints_file, scratch_dir)

        stack = self.verify_stack()
        return PostProvisionReport(pinned=pins, requirements_installed=installed, stack=stack)


def parse_stack_report(output: str) -> StackReport:
    """Turn the check script's JSON line into a StackReport."""
    lines = [line for line in output.strip().splitlines() if line.strip()]
    if not lines:
        return StackReport(error="no output from verification script")
    try:
        data: dict[str, Any] = json.loads(lines[-1])
    except json.JSONDecodeError as err:
        return StackReport(error=f"unreadable verification output: {err}")
    if not isinstance(data, dict):
        return StackReport(error="unreadable verification output")
    return StackReport(
        python=data.get("python"),
        torch=data.get("torch"),
        numpy=data.get("numpy"),
        cuda_available=bool(data.get("cuda_available", False)),
        cuda_version=data.get("cuda_version"),
        gpu_name=data.get("gpu_name"),
        error=data.get("error"),
    )
