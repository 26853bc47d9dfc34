"""Pytest configuration for secure-terminal tests."""
import os
import sys
from pathlib import Path

import pytest

# Add src directory to path so we can import secure_terminal
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from secure_terminal.audit import AuditLog
from secure_terminal.policy import PolicyStore
from secure_terminal.settings import Settings
from secure_terminal.terminal import SecureTerminal
from secure_terminal.utils import normalize_dir


# ============================================================================
# Shared Fixtures
# ============================================================================

@pytest.fixture
def home_dir(tmp_path):
    """Directory standing in for SECURE_TERMINAL_HOME."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def work_dir(tmp_path):
    """An allowed directory with a file in it."""
    work = tmp_path / "work"
    work.mkdir()
    (work / "notes.txt").write_text("alpha\nbeta\n", encoding="utf-8")
    return work


@pytest.fixture
def settings(home_dir, work_dir):
    """Settings with short limits, rooted in temporary directories."""
    return Settings(
        timeout_seconds=5,
        max_output_lines=50,
        allowed_dirs=(normalize_dir(str(work_dir)),),
        audit_logging=True,
        home=home_dir,
        kill_grace_seconds=0.5,
    )


@pytest.fixture
def store(settings):
    """A loaded policy store backed by a temporary config file."""
    s = PolicyStore(settings.config_path)
    s.load()
    return s


@pytest.fixture
def audit(settings):
    return AuditLog(settings.audit_path)


@pytest.fixture
def terminal(settings, store, audit):
    return SecureTerminal(settings, store=store, audit=audit)


@pytest.fixture
def group_alive():
    """Return a check for whether any live (non-zombie) process is in a group."""
    def check(pgid: int) -> bool:
        proc_root = Path("/proc")
        if not proc_root.is_dir():
            try:
                os.killpg(pgid, 0)
            except ProcessLookupError:
                return False
            return True
        for stat in proc_root.glob("[0-9]*/stat"):
            try:
                # state, ppid, pgrp follow the parenthesised command name
                fields = stat.read_text().rsplit(")", 1)[1].split()
            except (OSError, IndexError):
                continue
            if int(fields[2]) == pgid and fields[0] != "Z":
                return True
        return False
    return check


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as an integration test that spawns real processes"
    )
    config.addinivalue_line(
        "markers",
        "unit: mark test as a unit test with no external dependencies"
    )
