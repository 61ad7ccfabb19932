"""Shell command execution utilities."""

import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from adopr.utils.logger import get_logger

logger = get_logger(__name__)


class ShellError(Exception):
    """A command could not be run, timed out, or exited non-zero."""

    def __init__(self, message: str, returncode: int, stdout: Union[str, bytes] = "", stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    @property
    def detail(self) -> str:
        """The command's stderr, or the error message when stderr is empty."""
        return self.stderr.strip() or str(self)


@dataclass
class ShellResult:
    """Captured outcome of a finished command.

    ``stdout`` is bytes when the command ran with ``text=False``; ``stderr``
    is always decoded.
    """

    returncode: int
    stdout: Union[str, bytes]
    stderr: str
    command: str
    cwd: Optional[Path] = None

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def check(self) -> "ShellResult":
        """Return self, or raise ShellError if the command failed."""
        if not self.success:
            raise ShellError(f"Command failed: {self.command}", self.returncode, self.stdout, self.stderr)
        return self


def run_command(
    command: Union[str, List[str]],
    cwd: Optional[Union[str, Path]] = None,
    env: Optional[Dict[str, str]] = None,
    check: bool = False,
    timeout: Optional[float] = None,
    text: bool = True,
) -> ShellResult:
    """Run a command synchronously and capture its output.

    Args:
        command: Command to execute, as a list or a shell-quoted string
        cwd: Working directory
        env: Environment variables
        check: Raise exception on failure
        timeout: Command timeout in seconds, None waits forever
        text: Decode stdout as UTF-8; False keeps the raw bytes

    Returns:
        Command result

    Raises:
        ShellError: If the command cannot be started, times out, or fails and check=True
    """
    if isinstance(command, str):
        command_str = command
        command_list = shlex.split(command)
    else:
        command_list = [str(part) for part in command]
        command_str = shlex.join(command_list)

    cwd_path = Path(cwd) if cwd else None

    logger.debug(f"Running command: {command_str} (cwd: {cwd_path})")

    try:
        result = subprocess.run(command_list, cwd=cwd_path, env=env, capture_output=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {timeout}s: {command_str}")
        raise ShellError(f"Command timed out: {command_str}", -1, "", str(e))
    except FileNotFoundError as e:
        logger.error(f"Command not found: {command_str}")
        raise ShellError(f"Command not found: {command_str}", -1, "", str(e))

    stdout = result.stdout or b""
    stderr = (result.stderr or b"").decode("utf-8", errors="replace")

    shell_result = ShellResult(
        returncode=result.returncode,
        stdout=stdout.decode("utf-8", errors="replace") if text else stdout,
        stderr=stderr,
        command=command_str,
        cwd=cwd_path,
    )

    if shell_result.success:
        logger.debug(f"Command succeeded: {command_str}")
    else:
        logger.debug(f"Command failed with code {result.returncode}: {command_str}")
        if stderr:
            logger.debug(f"stderr: {stderr.strip()}")

    if check:
        shell_result.check()

    return shell_result


def check_command_exists(command: str) -> bool:
    """Check if a command exists in PATH."""
    return shutil.which(command) is not None
