"""Persisted command policy.

The store owns the user override sets and derives the effective allow and
block lists from them on every call. Built-in defaults live in
``constants`` and are never edited; overrides are layered on top:

    allowed = (DEFAULT_ALLOWED - block_overrides) | allow_overrides
    blocked = (DEFAULT_BLOCKED - allow_overrides) | block_overrides

Mutations are serialized through one lock and follow compute, persist,
commit: if the policy file cannot be written, the in-memory policy stays
as it was.
"""
from __future__ import annotations
import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Union

import anyio
from pydantic import ValidationError

from ..constants import DEFAULT_ALLOWED, DEFAULT_BLOCKED, __version__
from ..exceptions import ConfigValidationError, PersistenceError
from ..logger import logger
from ..models import OverrideSnapshot, PolicyConfig, is_valid_command_name
from ..utils import utc_now

__all__ = ["PolicyStore", "EffectivePolicy", "PolicyChange", "validate_command_name"]


@dataclass(frozen=True, slots=True)
class EffectivePolicy:
    """Allow and block lists after overrides, defaults first."""
    allowed: tuple[str, ...]
    blocked: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class PolicyChange:
    """Override sets before and after a mutation, for the audit trail."""
    before: OverrideSnapshot
    after: OverrideSnapshot


def validate_command_name(name: Any) -> str:
    """Return ``name`` if it is a valid command token.

    Raises:
        ConfigValidationError: If the name is empty or has characters
            outside ``[A-Za-z0-9_-]``
    """
    if not is_valid_command_name(name):
        raise ConfigValidationError(
            f"Invalid command name {name!r}: use only letters, digits, '_' and '-'"
        )
    return name


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


class PolicyStore:
    """Override sets plus the file they persist to.

    Example:
        store = PolicyStore(Path("~/.secure-terminal/config.json").expanduser())
        store.load()
        await store.set_allow_override("make")
        assert "make" in store.effective_allowed()
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._config = PolicyConfig.empty()
        self._lock = anyio.Lock()

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Read the policy file, falling back to secure defaults.

        A missing, unreadable or invalid file yields empty override sets,
        which are then written out. This never raises.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
            self._config = PolicyConfig.model_validate_json(raw)
            logger.info(
                f"Loaded policy from {self.path}",
                allow_overrides=len(self._config.allow_overrides),
                block_overrides=len(self._config.block_overrides),
            )
            return
        except FileNotFoundError:
            logger.info(f"No policy file at {self.path}, creating defaults")
        except (OSError, ValueError) as e:
            # pydantic.ValidationError is a ValueError
            logger.warn(f"Policy file {self.path} is unreadable or corrupt, resetting to defaults: {e}")

        defaults = PolicyConfig.empty()
        try:
            self._config = self._persist(defaults)
        except PersistenceError as e:
            logger.error(str(e))
            self._config = defaults

    def _persist(self, config: PolicyConfig) -> PolicyConfig:
        """Write ``config`` atomically, stamped with the write time.

        Returns:
            The config as written

        Raises:
            PersistenceError: If the file could not be written
        """
        stamped = config.model_copy(update={"last_modified": utc_now()})
        data = stamped.model_dump_json(by_alias=True, indent=2)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".config-", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data + "\n")
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Could not write policy file {self.path}: {e}") from e
        return stamped

    def _commit(self, config: PolicyConfig) -> PolicyChange:
        before = self._config.snapshot()
        self._config = self._persist(config)
        return PolicyChange(before=before, after=self._config.snapshot())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def allow_overrides(self) -> tuple[str, ...]:
        return tuple(self._config.allow_overrides)

    @property
    def block_overrides(self) -> tuple[str, ...]:
        return tuple(self._config.block_overrides)

    @property
    def last_modified(self):
        return self._config.last_modified

    def snapshot(self) -> OverrideSnapshot:
        return self._config.snapshot()

    def effective_allowed(self) -> list[str]:
        block = set(self._config.block_overrides)
        allowed = [c for c in DEFAULT_ALLOWED if c not in block]
        allowed += [c for c in self._config.allow_overrides if c not in allowed]
        return allowed

    def effective_blocked(self) -> list[str]:
        allow = set(self._config.allow_overrides)
        blocked = [c for c in DEFAULT_BLOCKED if c not in allow]
        blocked += [c for c in self._config.block_overrides if c not in blocked]
        return blocked

    def effective(self) -> EffectivePolicy:
        """Derive the current policy. Not cached, so overrides apply immediately."""
        return EffectivePolicy(
            allowed=tuple(self.effective_allowed()),
            blocked=tuple(self.effective_blocked()),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def set_allow_override(self, command: str) -> PolicyChange:
        """Allow ``command`` regardless of the defaults.

        Removes it from the block overrides. It is only added to the allow
        overrides when it is not already allowed by default.

        Raises:
            ConfigValidationError: Invalid command name
            PersistenceError: Policy file could not be written
        """
        validate_command_name(command)
        async with self._lock:
            allow = list(self._config.allow_overrides)
            block = [c for c in self._config.block_overrides if c != command]
            if command not in DEFAULT_ALLOWED and command not in allow:
                allow.append(command)
            return self._commit(PolicyConfig(allow_overrides=allow, block_overrides=block))

    async def set_block_override(self, command: str) -> PolicyChange:
        """Block ``command`` regardless of the defaults.

        Raises:
            ConfigValidationError: Invalid command name
            PersistenceError: Policy file could not be written
        """
        validate_command_name(command)
        async with self._lock:
            allow = [c for c in self._config.allow_overrides if c != command]
            block = list(self._config.block_overrides)
            if command not in DEFAULT_BLOCKED and command not in block:
                block.append(command)
            return self._commit(PolicyConfig(allow_overrides=allow, block_overrides=block))

    async def reset(self) -> PolicyChange:
        """Drop all overrides. ``before`` on the result holds what was cleared."""
        async with self._lock:
            return self._commit(PolicyConfig.empty())

    def export(self) -> str:
        """Serialize the override sets as JSON text accepted by ``import_overrides``."""
        payload = self._config.model_dump(mode="json", by_alias=True)
        payload["version"] = __version__
        payload["exportedAt"] = utc_now().isoformat()
        return json.dumps(payload, indent=2)

    async def import_overrides(self, data: Union[str, bytes, Mapping[str, Any]]) -> PolicyChange:
        """Replace both override sets with the ones in ``data``.

        The whole payload is validated before anything changes: both
        ``allowOverrides`` and ``blockOverrides`` must be arrays, every
        entry must be a valid command name, and no name may be in both.

        Args:
            data: JSON text or an already-decoded mapping

        Raises:
            ConfigValidationError: Payload rejected, nothing was changed
            PersistenceError: Policy file could not be written
        """
        try:
            if isinstance(data, (str, bytes)):
                config = PolicyConfig.model_validate_json(data)
            else:
                config = PolicyConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {_format_validation_error(e)}") from e

        async with self._lock:
            return self._commit(config)
