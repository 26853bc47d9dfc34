"""Secure Terminal - policy-checked shell command execution over MCP."""

from .cli import main
from .constants import __version__
from .settings import Settings
from .terminal import SecureTerminal

__all__ = [
    "main",
    "Settings",
    "SecureTerminal",
    "__version__",
]
