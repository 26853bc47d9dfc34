"""Persisted and wire data models.

PolicyConfig is the on-disk policy file and the export/import format.
ExecutionRecord and ConfigChangeRecord share one append-only audit stream,
one JSON object per line, told apart by their ``type`` field.
"""
from __future__ import annotations
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from .constants import COMMAND_NAME_RE
from .utils import ordered_unique, utc_now

__all__ = [
    "PolicyConfig",
    "OverrideSnapshot",
    "ExecutionResult",
    "ExecutionRecord",
    "ConfigChangeRecord",
    "AuditRecord",
    "audit_record_adapter",
    "is_valid_command_name",
]

ConfigAction = Literal["allow_command", "block_command", "reset_config", "import_config"]


def is_valid_command_name(name: Any) -> bool:
    """Check a command token against the ``[A-Za-z0-9_-]+`` pattern."""
    return isinstance(name, str) and COMMAND_NAME_RE.fullmatch(name) is not None


class PolicyConfig(BaseModel):
    """User overrides layered over the built-in allow/block lists.

    Both lists are required so that a payload missing either one is
    rejected as a whole. A command may be in at most one of them.
    """
    model_config = ConfigDict(populate_by_name=True)

    allow_overrides: list[str] = Field(alias="allowOverrides")
    block_overrides: list[str] = Field(alias="blockOverrides")
    last_modified: Optional[datetime] = Field(default=None, alias="lastModified")

    @field_validator("allow_overrides", "block_overrides")
    @classmethod
    def _check_names(cls, names: list[str]) -> list[str]:
        for name in names:
            if not is_valid_command_name(name):
                raise ValueError(
                    f"invalid command name {name!r} (allowed characters: letters, digits, '_' and '-')"
                )
        return ordered_unique(names)

    @model_validator(mode="after")
    def _check_disjoint(self) -> PolicyConfig:
        both = set(self.allow_overrides) & set(self.block_overrides)
        if both:
            raise ValueError(f"commands listed as both allowed and blocked: {', '.join(sorted(both))}")
        return self

    @classmethod
    def empty(cls) -> PolicyConfig:
        return cls(allow_overrides=[], block_overrides=[])

    def snapshot(self) -> OverrideSnapshot:
        return OverrideSnapshot(
            allow_overrides=list(self.allow_overrides),
            block_overrides=list(self.block_overrides),
        )


class OverrideSnapshot(BaseModel):
    """Override sets at one point in time, as stored in audit records."""
    model_config = ConfigDict(populate_by_name=True)

    allow_overrides: list[str] = Field(default_factory=list, alias="allowOverrides")
    block_overrides: list[str] = Field(default_factory=list, alias="blockOverrides")


@dataclass(slots=True)
class ExecutionResult:
    """Outcome of running one command.

    ``exit_code`` is None when the command timed out, in which case stdout
    and stderr hold whatever was captured before termination.
    """
    success: bool
    exit_code: Optional[int]
    stdout: str
    stderr: str
    timeout: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ExecutionRecord(BaseModel):
    type: Literal["execution"] = "execution"
    ts: datetime = Field(default_factory=utc_now)
    command: str
    cwd: Optional[str] = None
    duration_ms: Optional[int] = None
    exit_code: Optional[int] = None
    success: bool
    error: Optional[str] = None
    timeout: Optional[bool] = None


class ConfigChangeRecord(BaseModel):
    type: Literal["config_change"] = "config_change"
    ts: datetime = Field(default_factory=utc_now)
    action: ConfigAction
    commands: list[str] = Field(default_factory=list)
    before: Optional[OverrideSnapshot] = None
    after: Optional[OverrideSnapshot] = None


AuditRecord = Annotated[Union[ExecutionRecord, ConfigChangeRecord], Field(discriminator="type")]

audit_record_adapter: TypeAdapter[Any] = TypeAdapter(AuditRecord)
