"""Secure command execution engine.

``SecureTerminal`` wires the policy store, validator, process runner, audit
log and configuration manager together. A command goes through
validate -> run -> audit -> return. Configuration calls go straight to
``terminal.config`` and never touch the validator or the runner.
"""
from __future__ import annotations
import time
from typing import Any, Optional

from .audit import AuditLog
from .constants import DEFAULT_SEARCH_LIMIT, __version__, sdk_version
from .exceptions import PolicyDenied, SpawnError
from .logger import logger
from .manager import ConfigManager
from .models import ExecutionRecord
from .policy import CommandValidator, PolicyStore
from .runner import run_command
from .settings import Settings


class SecureTerminal:
    """Runs shell commands under the allow/block policy.

    Example:
        terminal = SecureTerminal(Settings.from_env())
        result = await terminal.execute("ls -la", "/home/me/Documents")
        await terminal.config.allow_command("make")

    Args:
        settings: Startup configuration
        store: Policy store to use; by default one is loaded from
            ``settings.config_path``
        audit: Audit log to use; by default one at ``settings.audit_path``
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[PolicyStore] = None,
        audit: Optional[AuditLog] = None,
    ):
        self.settings = settings
        if store is None:
            store = PolicyStore(settings.config_path)
            store.load()
        self.store = store
        self.audit = audit or AuditLog(settings.audit_path, enabled=settings.audit_logging)
        self.validator = CommandValidator(self.store, settings.allowed_dirs)
        self.config = ConfigManager(self.store, self.audit)

    async def execute(self, command: str, working_directory: Optional[str] = None) -> dict[str, Any]:
        """Validate and run one command line.

        Args:
            command: Command line as the caller wrote it
            working_directory: Directory to run in; defaults to the
                server's own working directory

        Returns:
            ``success``, ``exit_code``, ``stdout``, ``stderr``, ``timeout``
            for commands that ran, or ``success: False`` with an ``error``
            for denials and spawn failures
        """
        try:
            self.validator.enforce(command)
        except PolicyDenied as e:
            logger.info(f"Denied: {e.reason}", command=command)
            return {"success": False, "error": e.reason}

        logger.debug("Executing", command=command, cwd=working_directory)
        start = time.monotonic()
        try:
            result = await run_command(
                command,
                cwd=working_directory,
                timeout=self.settings.timeout_seconds,
                max_lines=self.settings.max_output_lines,
                kill_grace=self.settings.kill_grace_seconds,
            )
        except SpawnError as e:
            logger.error(str(e), command=command, cwd=working_directory)
            _ = await self.audit.append(ExecutionRecord(
                command=command,
                cwd=working_directory,
                duration_ms=int((time.monotonic() - start) * 1000),
                success=False,
                error=str(e),
            ))
            return {"success": False, "error": str(e)}

        _ = await self.audit.append(ExecutionRecord(
            command=command,
            cwd=working_directory,
            duration_ms=int((time.monotonic() - start) * 1000),
            exit_code=result.exit_code,
            success=result.success,
            timeout=result.timeout,
        ))
        return result.to_dict()

    def list_policy(self) -> dict[str, Any]:
        return {
            "allowed": self.store.effective_allowed(),
            "blocked": self.store.effective_blocked(),
            "allow_overrides": list(self.store.allow_overrides),
            "block_overrides": list(self.store.block_overrides),
        }

    def status(self) -> dict[str, Any]:
        return {
            "version": __version__,
            "sdk_version": sdk_version(),
            "timeout_ms": self.settings.timeout_ms,
            "max_lines": self.settings.max_output_lines,
            "allowed_dirs": list(self.settings.allowed_dirs),
            "audit_logging": self.audit.enabled,
            "allowed_count": len(self.store.effective_allowed()),
            "blocked_count": len(self.store.effective_blocked()),
            "allow_override_count": len(self.store.allow_overrides),
            "block_override_count": len(self.store.block_overrides),
            "config_path": str(self.store.path),
            "audit_path": str(self.audit.path),
        }

    async def search_history(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> dict[str, Any]:
        matches = await self.audit.search(query, limit)
        return {"query": query, "matches": matches}
