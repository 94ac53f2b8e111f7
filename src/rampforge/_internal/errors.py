"""Custom exception hierarchy for RampForge."""

from __future__ import annotations


class RampForgeError(Exception):
    """Base exception for all RampForge errors.

    Every error the framework raises on purpose derives from this class, so
    the CLI can turn any of them into a clean message and exit code with a
    single except clause.
    """


class ConfigError(RampForgeError):
    """Raised when configuration is invalid or missing.

    Examples:
        - A stage has a non-positive duration or a negative target.
        - A duration string such as ``"3x"`` cannot be parsed.
        - An environment variable has an invalid value.
    """


class ScriptError(RampForgeError):
    """Raised when a load-test script cannot be loaded.

    Examples:
        - The script file does not exist or is not a ``.py`` file.
        - Importing the script raises.
        - The script defines no ``LoadTestConfig``.
    """


class EngineError(RampForgeError):
    """Raised when the engine fails while driving a run."""
