"""Shell command execution with a timeout and line-limited output.

Commands run through the system shell so that pipes and redirections work
for allowed programs. Each child gets its own session, which lets a
timeout signal reach everything the shell started.

The timeout clock starts once the child has been spawned, so process
creation latency is not charged against the caller's budget. Whichever
comes first wins: the child closing its output and exiting, or the
timeout. On timeout the process group gets SIGTERM and the partial output
is returned at once, without waiting for the child to die. If it is still
alive ``kill_grace`` seconds later it gets SIGKILL.
"""
from __future__ import annotations
import asyncio
import os
import signal
from typing import Optional

import anyio

from ..constants import TRUNCATION_MARKER
from ..exceptions import SpawnError
from ..logger import logger
from ..models import ExecutionResult

__all__ = ["run_command", "truncate_output", "drain_escalations"]

_READ_CHUNK = 64 * 1024

# Escalation and reap tasks outlive the call that started them; keep
# references so they are not garbage collected mid-sleep.
_background: set[asyncio.Task] = set()


def truncate_output(text: str, max_lines: int) -> str:
    """Keep the first ``max_lines`` lines and note how many were dropped.

    Args:
        text: Captured output
        max_lines: Number of lines to keep

    Returns:
        ``text`` unchanged if it fits, else the kept lines plus a
        ``"... (truncated <k> lines)"`` marker line
    """
    lines = text.split("\n")
    if len(lines) <= max_lines:
        return text
    omitted = len(lines) - max_lines
    return "\n".join(lines[:max_lines]) + "\n" + TRUNCATION_MARKER.format(count=omitted)


async def _drain(stream: Optional[asyncio.StreamReader], chunks: list[bytes]) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        chunks.append(chunk)


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    """Send ``sig`` to the child's process group (or just the child off POSIX)."""
    try:
        if os.name == "posix":
            os.killpg(proc.pid, sig)
        else:
            proc.send_signal(sig)
    except ProcessLookupError:
        pass


async def _escalate(proc: asyncio.subprocess.Process, grace: float) -> None:
    with anyio.move_on_after(grace):
        await proc.wait()
        return
    logger.warn(f"Process {proc.pid} ignored SIGTERM for {grace}s, sending SIGKILL")
    _signal_group(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
    await proc.wait()


def _terminate(proc: asyncio.subprocess.Process, readers: list[asyncio.Future], kill_grace: float) -> None:
    """Stop reading, SIGTERM the group and leave a task behind to finish it off.

    With ``kill_grace`` 0 the task only reaps the child, so its transport
    is closed once it exits.
    """
    for reader in readers:
        reader.cancel()
    _signal_group(proc, signal.SIGTERM)
    if kill_grace > 0:
        task = asyncio.ensure_future(_escalate(proc, kill_grace))
    else:
        task = asyncio.ensure_future(proc.wait())
    _background.add(task)
    task.add_done_callback(_background.discard)


async def drain_escalations() -> None:
    """Wait for the escalation and reap tasks started on this loop to finish.

    A short-lived event loop (the ``run`` CLI command) must call this
    before it exits, otherwise the loop cancels the escalation and a child
    that ignores SIGTERM outlives it.
    """
    loop = asyncio.get_running_loop()
    while True:
        pending = [t for t in _background if t.get_loop() is loop and not t.done()]
        if not pending:
            return
        await asyncio.gather(*pending, return_exceptions=True)


async def run_command(
    command: str,
    *,
    cwd: Optional[str] = None,
    timeout: float = 30,
    max_lines: int = 1000,
    kill_grace: float = 5.0,
) -> ExecutionResult:
    """Run ``command`` through the shell and capture its output.

    If the awaiting task is cancelled, the child is terminated the same
    way as on timeout before the cancellation propagates.

    Args:
        command: Full command line, passed to the shell as-is
        cwd: Working directory, or None to inherit the server's
        timeout: Seconds allowed from spawn to exit
        max_lines: Line limit for stdout and stderr each
        kill_grace: Seconds between SIGTERM and SIGKILL after a timeout;
            0 disables SIGKILL

    Returns:
        ExecutionResult; ``timeout=True`` with ``exit_code=None`` if the
        command ran out of time

    Raises:
        SpawnError: If the shell process could not be created
    """
    try:
        proc = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            start_new_session=(os.name == "posix"),
        )
    except OSError as e:
        raise SpawnError(f"Failed to start command: {e}") from e

    out_chunks: list[bytes] = []
    err_chunks: list[bytes] = []
    readers = [
        asyncio.ensure_future(_drain(proc.stdout, out_chunks)),
        asyncio.ensure_future(_drain(proc.stderr, err_chunks)),
    ]

    try:
        with anyio.move_on_after(timeout) as scope:
            await asyncio.gather(*readers)
            await proc.wait()
    except BaseException:
        if proc.returncode is None:
            _terminate(proc, readers, kill_grace)
            logger.warn("Command cancelled, sent SIGTERM", command=command, pid=proc.pid)
        raise

    if scope.cancelled_caught:
        _terminate(proc, readers, kill_grace)
        logger.warn(f"Command timed out after {timeout}s, sent SIGTERM", command=command, pid=proc.pid)
        return ExecutionResult(
            success=False,
            exit_code=None,
            stdout=truncate_output(_decode(out_chunks), max_lines),
            stderr=truncate_output(_decode(err_chunks), max_lines),
            timeout=True,
        )

    exit_code = proc.returncode
    return ExecutionResult(
        success=exit_code == 0,
        exit_code=exit_code,
        stdout=truncate_output(_decode(out_chunks), max_lines),
        stderr=truncate_output(_decode(err_chunks), max_lines),
        timeout=False,
    )
