"""Administrative operations on the command policy.

Each mutation runs the same sequence: validate the input, update the
policy store (which persists before returning), append a config-change
record to the audit log, and report the new effective list sizes.
Failures come back as ``{"success": False, "error": ...}`` rather than
exceptions, so a transport can hand them to the caller unchanged.
"""
from __future__ import annotations
from typing import Any, Mapping, Union

from .audit import AuditLog
from .constants import DANGEROUS_COMMANDS, DEFAULT_ALLOWED, DEFAULT_BLOCKED
from .exceptions import ConfigValidationError, PersistenceError
from .logger import logger
from .models import ConfigChangeRecord
from .policy import PolicyChange, PolicyStore


class ConfigManager:
    """Allow, block, reset, export and import policy overrides."""

    def __init__(self, store: PolicyStore, audit: AuditLog):
        self.store = store
        self.audit = audit

    def _counts(self) -> dict[str, int]:
        return {
            "allowed_count": len(self.store.effective_allowed()),
            "blocked_count": len(self.store.effective_blocked()),
        }

    async def _record(self, action: str, commands: list[str], change: PolicyChange) -> None:
        record = ConfigChangeRecord(
            action=action,
            commands=commands,
            before=change.before,
            after=change.after,
        )
        _ = await self.audit.append(record)

    @staticmethod
    def _failure(exc: Exception) -> dict[str, Any]:
        if isinstance(exc, PersistenceError):
            logger.error(str(exc))
        return {"success": False, "error": str(exc)}

    async def allow_command(self, command: str) -> dict[str, Any]:
        """Allow a command, warning (but not refusing) if it is dangerous."""
        try:
            change = await self.store.set_allow_override(command)
        except (ConfigValidationError, PersistenceError) as e:
            return self._failure(e)

        await self._record("allow_command", [command], change)
        logger.info(f"Allowed command {command}")
        result = {
            "success": True,
            "message": f"Command '{command}' is now allowed",
            "command": command,
            **self._counts(),
        }
        if command in DANGEROUS_COMMANDS:
            result["warning"] = (
                f"'{command}' is potentially dangerous; allowing it weakens the security policy"
            )
        return result

    async def block_command(self, command: str) -> dict[str, Any]:
        try:
            change = await self.store.set_block_override(command)
        except (ConfigValidationError, PersistenceError) as e:
            return self._failure(e)

        await self._record("block_command", [command], change)
        logger.info(f"Blocked command {command}")
        return {
            "success": True,
            "message": f"Command '{command}' is now blocked",
            "command": command,
            **self._counts(),
        }

    def view_config(self) -> dict[str, Any]:
        """Effective lists with the origin of each entry.

        Returns:
            Dict with ``allowed``/``blocked`` lists of
            ``{"command", "source"}`` where source is ``"default"`` or
            ``"override"``, plus the raw override sets and file details
        """
        allow_overrides = set(self.store.allow_overrides)
        block_overrides = set(self.store.block_overrides)
        last_modified = self.store.last_modified
        return {
            "allowed": [
                {"command": c, "source": "override" if c in allow_overrides else "default"}
                for c in self.store.effective_allowed()
            ],
            "blocked": [
                {"command": c, "source": "override" if c in block_overrides else "default"}
                for c in self.store.effective_blocked()
            ],
            "allow_overrides": list(self.store.allow_overrides),
            "block_overrides": list(self.store.block_overrides),
            "default_allowed_count": len(DEFAULT_ALLOWED),
            "default_blocked_count": len(DEFAULT_BLOCKED),
            "last_modified": last_modified.isoformat() if last_modified else None,
            "config_path": str(self.store.path),
            **self._counts(),
        }

    async def reset_config(self, confirm: bool = False) -> dict[str, Any]:
        if not confirm:
            return {
                "success": False,
                "requires_confirmation": True,
                "message": "This removes every allow and block override. Call again with confirm=true to proceed.",
            }
        try:
            change = await self.store.reset()
        except PersistenceError as e:
            return self._failure(e)

        await self._record("reset_config", [], change)
        logger.info("Policy reset to defaults")
        return {
            "success": True,
            "message": "Configuration reset to defaults",
            "removed_allow_overrides": list(change.before.allow_overrides),
            "removed_block_overrides": list(change.before.block_overrides),
            **self._counts(),
        }

    def export_config(self) -> str:
        return self.store.export()

    async def import_config(self, data: Union[str, bytes, Mapping[str, Any]]) -> dict[str, Any]:
        """Replace the overrides with an exported configuration.

        All-or-nothing: an invalid payload leaves the current policy as it
        was. The audit record carries the pre-import overrides so the
        change can be reversed by hand.
        """
        try:
            change = await self.store.import_overrides(data)
        except ConfigValidationError as e:
            logger.warn(f"Configuration import rejected: {e}")
            return self._failure(e)
        except PersistenceError as e:
            return self._failure(e)

        commands = change.after.allow_overrides + change.after.block_overrides
        await self._record("import_config", commands, change)
        logger.info(
            "Imported configuration",
            allow_overrides=len(change.after.allow_overrides),
            block_overrides=len(change.after.block_overrides),
        )
        return {
            "success": True,
            "message": "Configuration imported",
            "allow_overrides": list(change.after.allow_overrides),
            "block_overrides": list(change.after.block_overrides),
            **self._counts(),
        }
