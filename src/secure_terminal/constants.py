"""Constants and configuration defaults for secure-terminal.

Environment Variables:
    TIMEOUT_SECONDS: Per-command timeout in seconds (default: 30)
    MAX_OUTPUT_LINES: Line limit applied to stdout and stderr (default: 1000)
    ALLOWED_DIRECTORIES: Comma-separated roots that absolute paths may point
        into (default: ~/Documents,~/Desktop,~/Downloads)
    AUDIT_LOGGING: Append executions and config changes to the audit log
        (default: true)
    DEBUG_PROTOCOL: Echo diagnostic log lines to stderr (default: false)
    SECURE_TERMINAL_HOME: Directory for config.json and the log files
        (default: ~/.secure-terminal)
    KILL_GRACE_SECONDS: Seconds between SIGTERM and SIGKILL for a timed-out
        command, 0 disables escalation (default: 5)

Examples:
    # Give slow builds more time and only allow paths under ~/src:
    $ TIMEOUT_SECONDS=120 ALLOWED_DIRECTORIES=~/src secure-terminal serve

    # Watch what the server is doing while a client talks to it:
    $ DEBUG_PROTOCOL=true secure-terminal serve
"""
from __future__ import annotations
import importlib.metadata
import re

# Package version - try to get from metadata, fallback to hardcoded
try:
    __version__ = importlib.metadata.version("mcp-secure-terminal")
except importlib.metadata.PackageNotFoundError:
    __version__ = "1.0.5"  # Fallback for development

SERVER_NAME = "secure-terminal"


def sdk_version() -> str:
    """Return the installed MCP SDK version, or "unknown"."""
    try:
        return importlib.metadata.version("mcp")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


# Environment variable names
ENV_TIMEOUT = "TIMEOUT_SECONDS"
ENV_MAX_LINES = "MAX_OUTPUT_LINES"
ENV_ALLOWED_DIRS = "ALLOWED_DIRECTORIES"
ENV_AUDIT = "AUDIT_LOGGING"
ENV_DEBUG = "DEBUG_PROTOCOL"
ENV_HOME = "SECURE_TERMINAL_HOME"
ENV_KILL_GRACE = "KILL_GRACE_SECONDS"

# Defaults used when a variable is unset or unusable
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MAX_OUTPUT_LINES = 1000
DEFAULT_ALLOWED_DIRECTORIES = "~/Documents,~/Desktop,~/Downloads"
DEFAULT_HOME = "~/.secure-terminal"
DEFAULT_KILL_GRACE_SECONDS = 5.0
DEFAULT_SEARCH_LIMIT = 20

# File names inside the home directory
CONFIG_FILE = "config.json"
AUDIT_FILE = "command-audit.log"
LOG_FILE = "secure-terminal.log"

# Built-in policy. Overrides are layered on top of these and never edit them.
DEFAULT_ALLOWED: tuple[str, ...] = (
    "ls", "cat", "grep", "find", "wc", "file", "stat", "ps", "top", "df",
    "du", "whoami", "date", "which", "uptime", "echo", "git", "npm", "pip",
    "python3", "node", "curl", "wget", "tar", "zip", "unzip", "jq",
)
DEFAULT_BLOCKED: tuple[str, ...] = (
    "rm", "sudo", "su", "passwd", "shutdown", "reboot", "mkfs", "fdisk", "dd",
)

# Allowing one of these succeeds but carries a warning
DANGEROUS_COMMANDS: frozenset[str] = frozenset(DEFAULT_BLOCKED) | {
    "chmod", "chown", "kill", "killall",
}

COMMAND_NAME_RE = re.compile(r"[A-Za-z0-9_-]+")

TRUNCATION_MARKER = "... (truncated {count} lines)"
