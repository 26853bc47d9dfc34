"""Command-line interface for secure-terminal.

This module provides commands:
- serve: Run the MCP server over stdio (default when no command is given)
- run: Execute one command under the policy, as the server would
- policy / status / view: Inspect the effective policy and configuration
- history: Search the audit log
- allow / block / reset: Change the policy overrides
- export / import: Save and restore the overrides as JSON
"""
from __future__ import annotations
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

from .constants import DEFAULT_SEARCH_LIMIT, __version__
from .logger import logger
from .runner import drain_escalations
from .settings import Settings
from .terminal import SecureTerminal


def _emit(result: Any) -> int:
    """Print a result as JSON and map ``success: False`` to exit code 1."""
    print(json.dumps(result, indent=2, default=str))
    if isinstance(result, dict) and result.get("success") is False:
        return 1
    return 0


async def _execute(terminal: SecureTerminal, command: str, cwd: Optional[str]) -> dict[str, Any]:
    result = await terminal.execute(command, cwd)
    # Keep the loop alive until a timed-out child has been killed
    await drain_escalations()
    return result


def _run(terminal: SecureTerminal, command: str, cwd: Optional[str]) -> int:
    return _emit(asyncio.run(_execute(terminal, command, cwd)))


def _history(terminal: SecureTerminal, query: str, limit: int) -> int:
    return _emit(asyncio.run(terminal.search_history(query, limit)))


def _export(terminal: SecureTerminal, out: Optional[str]) -> int:
    data = terminal.config.export_config()
    if out:
        Path(out).write_text(data + "\n", encoding="utf-8")
        print(f"Wrote configuration → {out}", file=sys.stderr)
    else:
        print(data)
    return 0


def _import(terminal: SecureTerminal, file: str) -> int:
    try:
        data = Path(file).read_text(encoding="utf-8")
    except OSError as e:
        print(f"✗ Could not read {file}: {e}", file=sys.stderr)
        return 1
    return _emit(asyncio.run(terminal.config.import_config(data)))


def main(argv: Optional[list[str]] = None) -> None:
    p = argparse.ArgumentParser(prog="secure-terminal", description="Policy-checked shell commands over MCP")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="cmd")

    sub.add_parser("serve", help="Run the MCP server over stdio")

    s_run = sub.add_parser("run", help="Execute a command under the policy")
    s_run.add_argument("command", help="Command line (quote it)")
    s_run.add_argument("--cwd", help="Working directory")

    sub.add_parser("policy", help="List effective allowed/blocked commands")
    sub.add_parser("status", help="Show configuration summary")
    sub.add_parser("view", help="Show the policy with the source of each entry")

    s_history = sub.add_parser("history", help="Search the audit log")
    s_history.add_argument("query", help="Substring to search for")
    s_history.add_argument("--limit", type=int, default=DEFAULT_SEARCH_LIMIT,
                           help=f"Maximum matches (default: {DEFAULT_SEARCH_LIMIT})")

    s_allow = sub.add_parser("allow", help="Allow a command")
    s_allow.add_argument("name", help="Command name")

    s_block = sub.add_parser("block", help="Block a command")
    s_block.add_argument("name", help="Command name")

    s_reset = sub.add_parser("reset", help="Remove all overrides")
    s_reset.add_argument("--yes", action="store_true", help="Confirm the reset")

    s_export = sub.add_parser("export", help="Export overrides as JSON")
    s_export.add_argument("--out", help="Write to this file instead of stdout")

    s_import = sub.add_parser("import", help="Import overrides from a JSON file")
    s_import.add_argument("file", help="File produced by export")

    args = p.parse_args(argv)
    settings = Settings.from_env()

    if args.cmd in (None, "serve"):
        from .server import serve
        serve(settings)
        return

    logger.configure(settings.log_path, echo=settings.debug)
    terminal = SecureTerminal(settings)

    if args.cmd == "run":
        code = _run(terminal, args.command, args.cwd)
    elif args.cmd == "policy":
        code = _emit(terminal.list_policy())
    elif args.cmd == "status":
        code = _emit(terminal.status())
    elif args.cmd == "view":
        code = _emit(terminal.config.view_config())
    elif args.cmd == "history":
        code = _history(terminal, args.query, args.limit)
    elif args.cmd == "allow":
        code = _emit(asyncio.run(terminal.config.allow_command(args.name)))
    elif args.cmd == "block":
        code = _emit(asyncio.run(terminal.config.block_command(args.name)))
    elif args.cmd == "reset":
        code = _emit(asyncio.run(terminal.config.reset_config(confirm=args.yes)))
    elif args.cmd == "export":
        code = _export(terminal, args.out)
    else:
        code = _import(terminal, args.file)

    sys.exit(code)
