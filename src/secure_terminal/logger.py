"""Diagnostic logger with secret scrubbing.

Lines are appended to the diagnostic log file as
``[<iso timestamp>] LEVEL: message {context}``. With debug enabled they are
echoed to stderr as well. Nothing is ever written to stdout, which carries
the MCP protocol when serving over stdio.

Logging is best-effort: a failed write never propagates to the operation
being logged.
"""
from __future__ import annotations
import sys
from pathlib import Path
from typing import Optional

from .privacy import _scrubber, scrub
from .utils import utc_now


class Logger:
    """Logger that automatically scrubs secrets and PII."""

    def __init__(self, path: Optional[Path] = None, echo: bool = False):
        self.path = path
        self.echo = echo

    def configure(self, path: Optional[Path] = None, echo: bool = False) -> None:
        """Point the logger at a log file and set stderr echo."""
        self.path = path
        self.echo = echo

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self._log("INFO", message, **kwargs)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self._log("DEBUG", message, **kwargs)

    def warn(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self._log("WARN", message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        """Log error message."""
        self._log("ERROR", message, **kwargs)

    def _log(self, level: str, message: str, **kwargs) -> None:
        """Internal log method."""
        safe_message = scrub(message)
        safe_kwargs = _scrubber.scrub_dict(kwargs) if kwargs else {}

        line = f"[{utc_now().isoformat()}] {level}: {safe_message}"
        if safe_kwargs:
            line = f"{line} {safe_kwargs}"

        if self.path is not None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                # Nowhere left to report to except stderr
                print(f"[logger] Could not write {self.path}: {e}", file=sys.stderr)

        if self.echo:
            print(line, file=sys.stderr)


# Global logger instance
logger = Logger()
