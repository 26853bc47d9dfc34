"""Shared utility functions for secure-terminal."""
from __future__ import annotations
import json
import os
from datetime import datetime, timezone
from typing import Any, Iterable


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_dir(path: str) -> str:
    """Canonicalize a directory root and give it a trailing separator.

    ``~`` is expanded and symlinks are resolved, so that prefix checks
    against resolved argument paths compare like with like. The trailing
    separator stops ``/home/u/Documents`` from also matching
    ``/home/u/Documents2``.

    Args:
        path: Directory as written in configuration

    Returns:
        Absolute, resolved path ending in ``os.sep``
    """
    resolved = os.path.realpath(os.path.expanduser(path.strip()))
    if not resolved.endswith(os.sep):
        resolved += os.sep
    return resolved


def parse_dir_list(raw: str) -> tuple[str, ...]:
    """Split a comma-separated directory list, dropping blank entries."""
    return tuple(normalize_dir(p) for p in raw.split(",") if p.strip())


def ordered_unique(items: Iterable[str]) -> list[str]:
    """De-duplicate while keeping first-seen order."""
    seen: set[str] = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def to_text(payload: Any) -> str:
    """Render a result payload as the JSON text returned to MCP clients."""
    return json.dumps(payload, indent=2, default=str)
