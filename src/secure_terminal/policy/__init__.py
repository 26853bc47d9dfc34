"""Command policy: persisted overrides and the validator that applies them."""
from .store import EffectivePolicy, PolicyChange, PolicyStore, validate_command_name
from .validator import CommandValidator, PolicyDecision, path_allowed

__all__ = [
    "PolicyStore",
    "EffectivePolicy",
    "PolicyChange",
    "validate_command_name",
    "CommandValidator",
    "PolicyDecision",
    "path_allowed",
]
