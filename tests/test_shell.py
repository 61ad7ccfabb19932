"""Tests for shell command utilities."""

import sys

import pytest

from adopr.utils.files import atomic_write_bytes, atomic_write_text
from adopr.utils.shell import ShellError, ShellResult, check_command_exists, run_command


class TestRunCommand:
    """Test run_command."""

    def test_success(self, tmp_path):
        result = run_command([sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path)

        assert result.success
        assert result.stdout.strip() == str(tmp_path.resolve())
        assert result.cwd == tmp_path

    def test_failure_without_check(self):
        """Test a failing command returns its result."""
        result = run_command([sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"])

        assert not result.success
        assert result.returncode == 3
        assert result.stderr == "boom"

    def test_failure_with_check(self):
        with pytest.raises(ShellError) as exc_info:
            run_command([sys.executable, "-c", "import sys; sys.exit(2)"], check=True)

        assert exc_info.value.returncode == 2

    def test_command_not_found(self):
        with pytest.raises(ShellError, match="Command not found"):
            run_command(["definitely-not-a-real-command-adopr"])

    def test_timeout(self):
        """Test a slow command is killed at the timeout."""
        with pytest.raises(ShellError, match="Command timed out"):
            run_command([sys.executable, "-c", "import time; time.sleep(5)"], timeout=0.2)

    def test_raw_bytes_output(self):
        """Test text=False keeps stdout undecoded."""
        script = "import sys; sys.stdout.buffer.write(b'caf\\xe9')"
        result = run_command([sys.executable, "-c", script], text=False)

        assert result.stdout == b"caf\xe9"
        assert result.stderr == ""

    def test_undecodable_text_output(self):
        """Test invalid UTF-8 is replaced instead of failing in text mode."""
        script = "import sys; sys.stdout.buffer.write(b'caf\\xe9')"
        result = run_command([sys.executable, "-c", script])

        assert result.stdout == "caf\ufffd"

    def test_string_command(self):
        result = run_command(f'"{sys.executable}" -c "print(42)"')
        assert result.stdout.strip() == "42"


class TestShellResult:
    """Test ShellResult."""

    def test_check_returns_self(self):
        result = ShellResult(0, "out", "", "true")
        assert result.check() is result

    def test_check_raises(self):
        with pytest.raises(ShellError, match="Command failed: false") as exc_info:
            ShellResult(1, "", "bad", "false").check()

        assert exc_info.value.stderr == "bad"
        assert exc_info.value.detail == "bad"

    def test_detail_falls_back_to_message(self):
        assert ShellError("Command timed out: git fetch", -1).detail == "Command timed out: git fetch"


def test_check_command_exists():
    assert check_command_exists(sys.executable)
    assert not check_command_exists("definitely-not-a-real-command-adopr")


class TestAtomicWrite:
    """Test atomic_write_text."""

    def test_writes_content(self, tmp_path):
        path = tmp_path / "metadata.md"
        atomic_write_text(path, "hello\n")

        assert path.read_text(encoding="utf-8") == "hello\n"
        assert list(tmp_path.iterdir()) == [path]

    def test_replaces_existing(self, tmp_path):
        path = tmp_path / "diff.patch"
        path.write_text("old")

        atomic_write_text(path, "new")

        assert path.read_text(encoding="utf-8") == "new"

    def test_writes_bytes_verbatim(self, tmp_path):
        path = tmp_path / "diff.patch"
        atomic_write_bytes(path, b"+caf\xe9\r\n")

        assert path.read_bytes() == b"+caf\xe9\r\n"
