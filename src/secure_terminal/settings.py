"""Startup configuration.

Settings are read from the environment exactly once, when the server or CLI
starts, and are immutable afterwards. See ``constants`` for the variables.
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .constants import (
    AUDIT_FILE,
    CONFIG_FILE,
    DEFAULT_ALLOWED_DIRECTORIES,
    DEFAULT_HOME,
    DEFAULT_KILL_GRACE_SECONDS,
    DEFAULT_MAX_OUTPUT_LINES,
    DEFAULT_TIMEOUT_SECONDS,
    ENV_ALLOWED_DIRS,
    ENV_AUDIT,
    ENV_DEBUG,
    ENV_HOME,
    ENV_KILL_GRACE,
    ENV_MAX_LINES,
    ENV_TIMEOUT,
    LOG_FILE,
)
from .utils import parse_dir_list

_FALSE_VALUES = {"0", "false", "no", "off"}


def _positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw) if raw is not None else 0
    except ValueError:
        return default
    return value if value > 0 else default


def _non_negative_float(raw: Optional[str], default: float) -> float:
    try:
        value = float(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value >= 0 else default


def _flag(raw: Optional[str], default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in _FALSE_VALUES


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved runtime configuration.

    Attributes:
        timeout_seconds: Wall-clock limit per command
        max_output_lines: Line limit applied to stdout and stderr
        allowed_dirs: Canonical roots, each ending in a path separator
        audit_logging: Whether executions and config changes are recorded
        debug: Echo diagnostic logging to stderr
        home: Directory holding the policy file and logs
        kill_grace_seconds: SIGTERM to SIGKILL delay after a timeout
    """
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    max_output_lines: int = DEFAULT_MAX_OUTPUT_LINES
    allowed_dirs: tuple[str, ...] = ()
    audit_logging: bool = True
    debug: bool = False
    home: Path = Path(DEFAULT_HOME).expanduser()
    kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        """Build settings from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (for tests)

        Returns:
            Settings with invalid values replaced by their defaults
        """
        env = os.environ if environ is None else environ
        return cls(
            timeout_seconds=_positive_int(env.get(ENV_TIMEOUT), DEFAULT_TIMEOUT_SECONDS),
            max_output_lines=_positive_int(env.get(ENV_MAX_LINES), DEFAULT_MAX_OUTPUT_LINES),
            allowed_dirs=parse_dir_list(env.get(ENV_ALLOWED_DIRS) or DEFAULT_ALLOWED_DIRECTORIES),
            audit_logging=_flag(env.get(ENV_AUDIT), True),
            debug=_flag(env.get(ENV_DEBUG), False),
            home=Path(env.get(ENV_HOME) or DEFAULT_HOME).expanduser(),
            kill_grace_seconds=_non_negative_float(env.get(ENV_KILL_GRACE), DEFAULT_KILL_GRACE_SECONDS),
        )

    @property
    def timeout_ms(self) -> int:
        return self.timeout_seconds * 1000

    @property
    def config_path(self) -> Path:
        return self.home / CONFIG_FILE

    @property
    def audit_path(self) -> Path:
        return self.home / AUDIT_FILE

    @property
    def log_path(self) -> Path:
        return self.home / LOG_FILE
