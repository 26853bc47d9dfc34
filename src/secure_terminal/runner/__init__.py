"""Runner module for executing validated shell commands.

This module provides:
- Shell execution with a spawn-anchored timeout
- Process-group termination with optional SIGKILL escalation
- Line-based output truncation
"""
from .process import drain_escalations, run_command, truncate_output

__all__ = ["run_command", "truncate_output", "drain_escalations"]
