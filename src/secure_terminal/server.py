"""MCP server exposing the secure terminal as tools.

The set of tools is closed: ``Operation`` names every one of them and
``build_server`` maps each to its handler through a single table. Handlers
do no work of their own beyond argument passing; they return the engine's
result as JSON text, unmodified.
"""
from __future__ import annotations
from enum import Enum
from typing import Awaitable, Callable, Optional

from mcp.server.fastmcp import FastMCP

from .constants import DEFAULT_SEARCH_LIMIT, SERVER_NAME, __version__, sdk_version
from .logger import logger
from .settings import Settings
from .terminal import SecureTerminal
from .utils import to_text

__all__ = ["Operation", "build_server", "serve"]


class Operation(str, Enum):
    EXECUTE_COMMAND = "execute_command"
    LIST_ALLOWED_COMMANDS = "list_allowed_commands"
    GET_TERMINAL_STATUS = "get_terminal_status"
    SEARCH_COMMAND_HISTORY = "search_command_history"
    ALLOW_COMMAND = "allow_command"
    BLOCK_COMMAND = "block_command"
    VIEW_CONFIG = "view_config"
    RESET_CONFIG = "reset_config"
    EXPORT_CONFIG = "export_config"
    IMPORT_CONFIG = "import_config"


Handler = Callable[..., Awaitable[str]]


def build_server(terminal: SecureTerminal, *, log_level: str = "WARNING") -> FastMCP:
    """Create a FastMCP server whose tools call into ``terminal``.

    Args:
        terminal: Engine instance shared by all tools
        log_level: Log level for the MCP SDK's own logging

    Returns:
        Configured server, not yet running
    """

    async def execute_command(command: str, working_directory: Optional[str] = None) -> str:
        return to_text(await terminal.execute(command, working_directory))

    async def list_allowed_commands() -> str:
        return to_text(terminal.list_policy())

    async def get_terminal_status() -> str:
        return to_text(terminal.status())

    async def search_command_history(query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> str:
        return to_text(await terminal.search_history(query, limit))

    async def allow_command(command: str) -> str:
        return to_text(await terminal.config.allow_command(command))

    async def block_command(command: str) -> str:
        return to_text(await terminal.config.block_command(command))

    async def view_config() -> str:
        return to_text(terminal.config.view_config())

    async def reset_config(confirm: bool = False) -> str:
        return to_text(await terminal.config.reset_config(confirm))

    async def export_config() -> str:
        return terminal.config.export_config()

    async def import_config(config: str) -> str:
        return to_text(await terminal.config.import_config(config))

    handlers: dict[Operation, tuple[Handler, str]] = {
        Operation.EXECUTE_COMMAND: (
            execute_command,
            "Execute a terminal command under the allow/block policy, with a timeout and output limit",
        ),
        Operation.LIST_ALLOWED_COMMANDS: (
            list_allowed_commands,
            "List the effective allowed and blocked commands and the user overrides",
        ),
        Operation.GET_TERMINAL_STATUS: (
            get_terminal_status,
            "Return version, timeout, output limit, allowed directories and policy counts",
        ),
        Operation.SEARCH_COMMAND_HISTORY: (
            search_command_history,
            "Search the audit log for executions and configuration changes containing a substring",
        ),
        Operation.ALLOW_COMMAND: (
            allow_command,
            "Allow a command, overriding the default lists; dangerous commands get a warning",
        ),
        Operation.BLOCK_COMMAND: (
            block_command,
            "Block a command, overriding the default lists",
        ),
        Operation.VIEW_CONFIG: (
            view_config,
            "Show the effective policy with the source (default or override) of each command",
        ),
        Operation.RESET_CONFIG: (
            reset_config,
            "Remove all overrides and return to the default lists; requires confirm=true",
        ),
        Operation.EXPORT_CONFIG: (
            export_config,
            "Export the override configuration as JSON",
        ),
        Operation.IMPORT_CONFIG: (
            import_config,
            "Replace the overrides with a previously exported JSON configuration",
        ),
    }

    server = FastMCP(SERVER_NAME, log_level=log_level)
    for operation, (handler, description) in handlers.items():
        server.add_tool(handler, name=operation.value, description=description)
    return server


def serve(settings: Settings) -> None:
    """Run the server over stdio until the client disconnects."""
    logger.configure(settings.log_path, echo=settings.debug)
    logger.info(f"Booting Secure Terminal {__version__} (SDK {sdk_version()})")

    terminal = SecureTerminal(settings)
    server = build_server(terminal, log_level="DEBUG" if settings.debug else "WARNING")
    try:
        server.run(transport="stdio")
    finally:
        logger.info("Shutdown")
