"""Executor protocol and the local implementation."""
from __future__ import annotations

import shlex
import subprocess
from typing import Protocol, runtime_checkable

# Exit codes reported for commands that never produced one of their own,
# following the coreutils timeout(1) and shell conventions.
EXIT_TIMEOUT = 124
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


class ExecutorError(Exception):
    """Raised when a command exits with a non-zero status."""
    def __init__(self, cmd: list[str], returncode: int, stderr: str, stdout: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        super().__init__(
            f"Command {shlex.join(cmd)!r} exited {returncode}: {stderr.strip()}"
        )


@runtime_checkable
class Executor(Protocol):
    def run(self, cmd: list[str]) -> str:
        """Run a command, return stdout. Raise ExecutorError on failure."""
        raise NotImplementedError


class LocalExecutor:
    """Run commands on the local machine, never through a shell.

    ``timeout`` bounds every command in seconds; ``None`` waits forever.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    def run(self, cmd: list[str]) -> str:
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ExecutorError(
                cmd, EXIT_TIMEOUT,
                f"timed out after {self.timeout}s",
                stdout=_as_text(e.stdout),
            ) from e
        except FileNotFoundError as e:
            raise ExecutorError(cmd, EXIT_NOT_FOUND, str(e)) from e
        except OSError as e:
            # present but not runnable: permission denied, bad format, a directory
            raise ExecutorError(cmd, EXIT_NOT_EXECUTABLE, str(e)) from e
        if result.returncode != 0:
            raise ExecutorError(cmd, result.returncode, result.stderr, stdout=result.stdout)
        return result.stdout


def _as_text(output) -> str:
    # TimeoutExpired carries bytes even when text=True was requested
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output
