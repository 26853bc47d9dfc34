"""Custom exceptions for secure-terminal.

This module provides a structured exception hierarchy so callers can tell
policy denials, process failures and configuration problems apart.
Command timeouts are not exceptions: they are reported as results with
``timeout=True``.
"""
from __future__ import annotations

__all__ = [
    "SecureTerminalError",
    "PolicyDenied",
    "SpawnError",
    "ConfigValidationError",
    "PersistenceError",
]


class SecureTerminalError(Exception):
    """Base exception for all secure-terminal errors."""
    pass


class PolicyDenied(SecureTerminalError):
    """Raised when a command line fails the security policy.

    The base command may be blocked, missing from the allowed set, or an
    absolute path argument may point outside the allowed directories.
    Denials are reported to the caller as structured failures and are not
    system errors.

    Attributes:
        reason: Human-readable denial reason, e.g. ``"blocked command rm"``
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class SpawnError(SecureTerminalError):
    """Raised when the child process could not be created.

    Distinct from a command that starts and exits non-zero. Typical causes
    are a missing working directory or a permission error.
    """
    pass


class ConfigValidationError(SecureTerminalError):
    """Raised for malformed import payloads or invalid command names.

    Imports are all-or-nothing: this error means no override was changed.

    Example:
        {"allowOverrides": ["ok"], "blockOverrides": ["bad cmd"]}
        fails because "bad cmd" contains a space.
    """
    pass


class PersistenceError(SecureTerminalError):
    """Raised when the policy file could not be written.

    The requested change is not applied, because it would not be durable.
    """
    pass
