"""Append-only audit log.

Every command execution and every configuration change is appended as one
JSON line. Nothing is held in memory: records go straight to disk and are
read back on demand for history search. The log is never rewritten,
compacted or rotated by this module.
"""
from __future__ import annotations
from pathlib import Path
from typing import Any, Optional, Union

import anyio
from pydantic import ValidationError

from .constants import DEFAULT_SEARCH_LIMIT
from .logger import logger
from .models import ConfigChangeRecord, ExecutionRecord, audit_record_adapter

__all__ = ["AuditLog"]

Record = Union[ExecutionRecord, ConfigChangeRecord]


class AuditLog:
    """Line-delimited JSON log of executions and config changes.

    Appends are best-effort: a failed write is logged and handed back to
    the caller as a value, never raised, so that a full disk cannot stop
    commands from running.
    """

    def __init__(self, path: Path, enabled: bool = True):
        self.path = Path(path)
        self.enabled = enabled

    async def append(self, record: Record) -> Optional[OSError]:
        """Append one record.

        Args:
            record: Execution or config-change record

        Returns:
            None on success (or when auditing is disabled), otherwise the
            write error
        """
        if not self.enabled:
            return None
        line = record.model_dump_json(by_alias=True, exclude_none=True)
        try:
            await anyio.Path(self.path.parent).mkdir(parents=True, exist_ok=True)
            async with await anyio.open_file(self.path, "a", encoding="utf-8") as f:
                await f.write(line + "\n")
        except OSError as e:
            logger.warn(f"Audit append to {self.path} failed: {e}")
            return e
        return None

    async def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[dict[str, Any]]:
        """Find the most recent records whose raw line contains ``query``.

        This is a plain substring match on the stored JSON text. The last
        ``limit`` matching lines are kept, in file order, before parsing;
        lines that do not parse as records are dropped.

        Args:
            query: Substring to look for
            limit: Maximum number of matching lines to return

        Returns:
            Parsed records as dicts, oldest first
        """
        if limit <= 0:
            return []
        try:
            data = await anyio.Path(self.path).read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warn(f"Could not read audit log {self.path}: {e}")
            return []

        matches = [line for line in data.split("\n") if line and query in line][-limit:]

        records = []
        for line in matches:
            try:
                record = audit_record_adapter.validate_json(line)
            except ValidationError:
                continue
            records.append(record.model_dump(mode="json", by_alias=True, exclude_none=True))
        return records
