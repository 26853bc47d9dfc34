"""Command-line policy check.

Only two things are inspected: the first whitespace-separated token (the
base command) and any later token that starts with a path separator.
Shell syntax is not parsed, so a blocked program reached through ``;``,
``&&``, a pipe, ``$(...)`` or backticks after an allowed base command is
not caught here. Relative paths are assumed to resolve under the working
directory, which is not checked either.
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Iterable, Optional

from ..exceptions import PolicyDenied
from .store import PolicyStore


@dataclass(frozen=True, slots=True)
class PolicyDecision:
    allowed: bool
    reason: Optional[str] = None


def path_allowed(token: str, allowed_dirs: Iterable[str]) -> bool:
    """Check that an argument does not escape the allowed directories.

    Args:
        token: One command-line argument
        allowed_dirs: Canonical roots, each ending in ``os.sep``

    Returns:
        True for relative tokens, or absolute ones that resolve inside a root
    """
    if not token.startswith(os.sep):
        return True
    resolved = os.path.realpath(token)
    # Trailing separator so the root itself counts as inside
    if not resolved.endswith(os.sep):
        resolved += os.sep
    return any(resolved.startswith(root) for root in allowed_dirs)


class CommandValidator:
    """Decides whether a command line may run under the current policy."""

    def __init__(self, store: PolicyStore, allowed_dirs: Iterable[str]):
        self.store = store
        self.allowed_dirs = tuple(allowed_dirs)

    def validate(self, command: str) -> PolicyDecision:
        parts = command.split()
        base = parts[0] if parts else ""

        # Fresh on every call so overrides take effect immediately
        policy = self.store.effective()
        if base in policy.blocked:
            return PolicyDecision(False, f"blocked command {base}")
        if base not in policy.allowed:
            return PolicyDecision(False, f"not allowed {base}")

        for token in parts[1:]:
            if not path_allowed(token, self.allowed_dirs):
                return PolicyDecision(False, f"path {token} not allowed")

        return PolicyDecision(True)

    def enforce(self, command: str) -> None:
        """Raise ``PolicyDenied`` unless ``command`` passes ``validate``."""
        decision = self.validate(command)
        if not decision.allowed:
            raise PolicyDenied(decision.reason or "denied")
