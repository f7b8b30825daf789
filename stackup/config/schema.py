# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration for stackup.

Every knob that used to be a hard-coded constant lives here: the Python
version to provision, environment names, toolchain floors, and the PyTorch
pins. The defaults are the supported baseline, so most users never write a
config file at all.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

CLI flags are layered on top with `model_copy(update=...)`, which hands back
a new frozen instance instead of mutating the loaded one.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stackup.toolchain.version import parse_version

_FROZEN = ConfigDict(frozen=True, extra="forbid", validate_default=True)

TORCH_PACKAGES: tuple[str, ...] = ("torch", "torchvision", "torchaudio")


class ToolchainFloors(BaseModel):
    """
    Minimum host tool versions.

    The venv path checks these against the host. The conda path turns them
    into `>=` constraints for conda-forge packages.
    """

    model_config = _FROZEN

    make: str = Field(default="4.3")
    gcc: str = Field(default="11.5")
    gxx: str = Field(default="11.5")
    cmake: str = Field(default="3.26")
    pkg_config_upstream: str = Field(
        default="0.29.2",
        description="Floor for GNU upstream pkg-config (what conda-forge ships)",
    )
    pkgconf: str = Field(
        default="1.7.0",
        description="Floor for pkgconf, which most distros install as pkg-config",
    )

    @field_validator("make", "gcc", "gxx", "cmake", "pkg_config_upstream", "pkgconf")
    @classmethod
    def _must_be_dotted_version(cls, value: str) -> str:
        if parse_version(value) is None:
            raise ValueError(f"'{value}' is not a dotted numeric version")
        return value


class TorchConfig(BaseModel):
    """Where the CPU-only PyTorch wheels come from, and optional exact pins."""

    model_config = _FROZEN

    index_url: str = Field(default="https://download.pytorch.org/whl/cpu")
    torch_version: str = Field(default="", description="Empty means latest")
    torchvision_version: str = Field(default="")
    torchaudio_version: str = Field(default="")

    def requirement_specs(self) -> tuple[str, ...]:
        """pip requirement strings for the protected triple, e.g. ("torch==2.3.1", "torchvision", ...)."""
        pins = (self.torch_version, self.torchvision_version, self.torchaudio_version)
        return tuple(
            f"{name}=={version}" if version else name
            for name, version in zip(TORCH_PACKAGES, pins)
        )


class ProvisionConfig(BaseModel):
    """Everything one provisioning run needs to know."""

    model_config = _FROZEN

    python_version: str = Field(default="3.11", pattern=r"^[0-9]+\.[0-9]+$")
    env_name: str = Field(default="stackup_env", min_length=1, description="conda environment name")
    venv_dir: str = Field(default=".venv", min_length=1)
    log_file: str = Field(default="install.log", min_length=1)
    log_level: str = Field(default="INFO")
    min_free_mb: int = Field(default=1500, ge=0)
    pip_tools_version: str = Field(default="", description="Empty means latest")
    requirements_file: str = Field(default="requirements.txt")
    conda_channel: str = Field(default="conda-forge")
    toolchain: ToolchainFloors = Field(default_factory=ToolchainFloors)
    torch: TorchConfig = Field(default_factory=TorchConfig)

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{value}'")
        return upper
