"""Tests for command-line policy checks."""
import os

import pytest

from secure_terminal.exceptions import PolicyDenied
from secure_terminal.policy import CommandValidator, path_allowed
from secure_terminal.utils import normalize_dir


@pytest.fixture
def validator(store, work_dir):
    return CommandValidator(store, [normalize_dir(str(work_dir))])


class TestBaseCommand:
    def test_allowed_command_passes(self, validator):
        decision = validator.validate("ls -la")
        assert decision.allowed
        assert decision.reason is None

    def test_blocked_command(self, validator):
        decision = validator.validate("rm -rf /")
        assert not decision.allowed
        assert decision.reason == "blocked command rm"

    def test_unknown_command(self, validator):
        decision = validator.validate("make all")
        assert decision.reason == "not allowed make"

    def test_empty_command(self, validator):
        decision = validator.validate("   ")
        assert not decision.allowed
        assert decision.reason == "not allowed "

    def test_block_checked_before_paths(self, validator):
        assert validator.validate("sudo /etc/shadow").reason == "blocked command sudo"

    @pytest.mark.asyncio
    async def test_overrides_apply_immediately(self, store, validator):
        assert validator.validate("make").reason == "not allowed make"
        await store.set_allow_override("make")
        assert validator.validate("make").allowed
        await store.set_block_override("echo")
        assert validator.validate("echo hi").reason == "blocked command echo"

    def test_enforce_raises_with_reason(self, validator):
        with pytest.raises(PolicyDenied) as exc:
            validator.enforce("dd if=/dev/zero")
        assert exc.value.reason == "blocked command dd"

    def test_enforce_passes_allowed(self, validator):
        validator.enforce("echo hello")


class TestPaths:
    def test_path_outside_allowed_dirs(self, store):
        v = CommandValidator(store, ["/home/user/Documents/"])
        decision = v.validate("ls /etc/shadow")
        assert not decision.allowed
        assert decision.reason == "path /etc/shadow not allowed"

    def test_path_inside_allowed_dir(self, validator, work_dir):
        assert validator.validate(f"cat {work_dir / 'notes.txt'}").allowed

    def test_allowed_root_itself(self, validator, work_dir):
        assert validator.validate(f"ls {work_dir}").allowed
        assert validator.validate(f"ls {work_dir}/").allowed

    def test_sibling_with_shared_prefix(self, validator, work_dir):
        sibling = f"{work_dir}2"
        assert validator.validate(f"ls {sibling}").reason == f"path {sibling} not allowed"

    def test_dotdot_escape(self, validator, work_dir):
        token = f"{work_dir}/../../etc"
        assert not validator.validate(f"ls {token}").allowed

    @pytest.mark.skipif(os.name != "posix", reason="symlinks")
    def test_symlink_escape(self, validator, work_dir, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        link = work_dir / "link"
        link.symlink_to(outside)
        assert not validator.validate(f"ls {link}").allowed

    def test_relative_tokens_not_checked(self, validator):
        assert validator.validate("cat ../../etc/passwd").allowed
        assert validator.validate("grep -r needle .").allowed

    def test_path_allowed_helper(self, work_dir):
        roots = [normalize_dir(str(work_dir))]
        assert path_allowed("relative/file", roots)
        assert path_allowed(str(work_dir / "x"), roots)
        assert not path_allowed("/", roots)


class TestKnownBypass:
    def test_chained_command_is_not_parsed(self, validator):
        # Only the first word is checked
        assert validator.validate("echo ok; rm -rf x").allowed
