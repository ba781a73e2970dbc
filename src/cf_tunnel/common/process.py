"""Execution of external commands (cloudflared, docker, systemctl)."""

import shlex
import subprocess
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import BinaryNotFoundError, ProcessError
from .logging import get_logger

logger = get_logger(__name__)


class CommandResult(BaseModel):
    """Outcome of a finished external command."""

    model_config = ConfigDict(frozen=True)

    args: tuple[str, ...] = Field(description="Command line that was executed")
    returncode: int = Field(description="Process exit status")
    stdout: str = Field(default="", description="Captured standard output")
    stderr: str = Field(default="", description="Captured standard error")

    @property
    def ok(self) -> bool:
        """True when the command exited with status 0."""
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class CommandRunner:
    """Runs external commands and reports their outcome.

    Commands are never run through a shell. A non-zero exit status is reported
    in the returned CommandResult and left for the caller to judge.
    """

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize CommandRunner.

        Args:
            timeout: Optional timeout in seconds applied to captured commands
        """
        self.timeout = timeout

    def run(
        self,
        args: Sequence[str],
        *,
        capture: bool = True,
        interactive: bool = False,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            args: Program and arguments
            capture: Capture stdout/stderr instead of passing them through
            interactive: Attach the command to the operator's terminal
                (no capture, no timeout), e.g. for browser-based login

        Returns:
            CommandResult with exit status and captured output

        Raises:
            BinaryNotFoundError: If the program does not exist
            ProcessError: If the program cannot be started or times out
        """
        argv = [str(arg) for arg in args]
        capture = capture and not interactive
        logger.debug("Running command", command=shlex.join(argv))

        try:
            completed = subprocess.run(
                argv,
                capture_output=capture,
                text=True,
                check=False,
                timeout=None if interactive else self.timeout,
            )
        except FileNotFoundError as e:
            logger.error("Command not found", program=argv[0])
            raise BinaryNotFoundError(f"Command not found: {argv[0]}") from e
        except subprocess.TimeoutExpired as e:
            logger.error("Command timed out", command=shlex.join(argv), timeout=self.timeout)
            raise ProcessError(f"Command timed out after {self.timeout}s: {shlex.join(argv)}") from e
        except OSError as e:
            logger.error("Failed to execute command", command=shlex.join(argv), error=str(e))
            raise ProcessError(f"Failed to execute {argv[0]}: {e}") from e

        result = CommandResult(
            args=tuple(argv),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if not result.ok:
            logger.debug(
                "Command exited with non-zero status",
                command=shlex.join(argv),
                returncode=result.returncode,
            )
        return result
