# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Custom exceptions for the configuration system.

We keep these separate so that the CLI can catch configuration failures
without importing the entire config machinery. Everything here ends the run
with exit code 1 before any environment is touched.
"""


class ConfigError(Exception):
    """Base for all configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when a config file cannot be read from disk or parsed as YAML."""


class ConfigValidationError(ConfigError):
    """
    Raised when a config file parses fine but fails schema validation.
    This covers unknown keys, type mismatches and malformed version strings.
    """


class InvalidEnvManagerError(ConfigError):
    """Raised when ENV_MANAGER holds something other than conda, venv or nothing."""
