# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Exceptions for the configuration system.

Kept apart from the loader so the CLI and the worker can catch config
failures without importing yaml or the schema.
"""


class ConfigError(Exception):
    """Base for all configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when a config file cannot be read from disk or parsed as YAML."""


class ConfigValidationError(ConfigError):
    """
    Raised when a config parses fine but fails schema validation.
    Covers missing fields, type mismatches, out-of-range hyper-parameters
    and unknown keys.
    """
