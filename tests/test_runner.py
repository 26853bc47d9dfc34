"""Tests for the shell process runner."""
import asyncio
import os
import time

import anyio
import pytest

from secure_terminal.exceptions import SpawnError
from secure_terminal.runner import drain_escalations, process, run_command, truncate_output

pytestmark = pytest.mark.skipif(os.name != "posix", reason="needs a POSIX shell")


class TestTruncate:
    def test_under_limit_unchanged(self):
        assert truncate_output("a\nb", 2) == "a\nb"
        assert truncate_output("", 1) == ""

    def test_over_limit(self):
        assert truncate_output("a\nb\nc", 2) == "a\nb\n... (truncated 1 lines)"

    def test_keeps_exactly_n_lines(self):
        text = "\n".join(str(i) for i in range(100))
        out = truncate_output(text, 10).split("\n")
        assert out[:10] == [str(i) for i in range(10)]
        assert out[10] == "... (truncated 90 lines)"
        assert len(out) == 11


@pytest.mark.integration
class TestRunCommand:
    @pytest.mark.asyncio
    async def test_echo(self):
        result = await run_command("echo hello")
        assert result.success
        assert result.exit_code == 0
        assert result.stdout == "hello\n"
        assert result.stderr == ""
        assert result.timeout is False

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        result = await run_command("echo oops >&2; exit 3")
        assert not result.success
        assert result.exit_code == 3
        assert result.stderr == "oops\n"

    @pytest.mark.asyncio
    async def test_cwd(self, work_dir):
        result = await run_command("ls", cwd=str(work_dir))
        assert "notes.txt" in result.stdout

    @pytest.mark.asyncio
    async def test_stdin_is_closed(self):
        # Would hang on an inherited stdin
        result = await run_command("cat", timeout=5)
        assert result.success
        assert result.stdout == ""

    @pytest.mark.asyncio
    async def test_output_is_truncated(self):
        result = await run_command("seq 1 100", max_lines=10)
        lines = result.stdout.split("\n")
        assert lines[:10] == [str(i) for i in range(1, 11)]
        assert lines[-1].startswith("... (truncated ")

    @pytest.mark.asyncio
    async def test_timeout(self):
        start = time.monotonic()
        result = await run_command("sleep 10", timeout=0.5, kill_grace=0.5)
        assert time.monotonic() - start < 5
        assert result.timeout is True
        assert result.success is False
        assert result.exit_code is None

    @pytest.mark.asyncio
    async def test_timeout_keeps_partial_output(self):
        result = await run_command("echo partial; sleep 10", timeout=1, kill_grace=0)
        assert result.timeout is True
        assert "partial" in result.stdout

    @pytest.mark.asyncio
    async def test_missing_cwd_is_spawn_error(self, tmp_path):
        with pytest.raises(SpawnError):
            await run_command("echo hi", cwd=str(tmp_path / "missing"))


async def _read_pid(path, within=5.0):
    deadline = time.monotonic() + within
    while time.monotonic() < deadline:
        text = path.read_text().strip() if path.exists() else ""
        if text:
            return int(text)
        await asyncio.sleep(0.05)
    raise AssertionError(f"{path} was never written")


async def _wait_gone(group_alive, pgid, within=5.0):
    deadline = time.monotonic() + within
    while group_alive(pgid) and time.monotonic() < deadline:
        await asyncio.sleep(0.05)
    return not group_alive(pgid)


@pytest.mark.integration
class TestCleanup:
    @pytest.mark.asyncio
    async def test_cancelled_call_terminates_process_group(self, tmp_path, group_alive):
        pid_file = tmp_path / "pid"
        task = asyncio.ensure_future(
            run_command(f"echo $$ > {pid_file}; exec sleep 30", timeout=20, kill_grace=1)
        )
        pgid = await _read_pid(pid_file)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await _wait_gone(group_alive, pgid)
        await drain_escalations()

    @pytest.mark.asyncio
    async def test_sigterm_ignoring_child_is_killed_after_grace(self, tmp_path, group_alive):
        pid_file = tmp_path / "pid"
        result = await run_command(
            f"echo $$ > {pid_file}; trap '' TERM; while :; do sleep 0.1; done",
            timeout=1,
            kill_grace=0.5,
        )
        pgid = await _read_pid(pid_file)
        assert result.timeout is True

        with anyio.fail_after(5):
            await drain_escalations()
        assert await _wait_gone(group_alive, pgid)

    @pytest.mark.asyncio
    async def test_timed_out_child_is_reaped_without_escalation(self):
        before = set(process._background)
        result = await run_command("sleep 10", timeout=0.5, kill_grace=0)
        assert result.timeout is True
        reapers = process._background - before
        assert reapers

        with anyio.fail_after(5):
            await drain_escalations()
        assert all(task.done() for task in reapers)
