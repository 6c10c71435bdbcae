"""Asynchronous command execution for firewall-cmd.

Provides:
- A narrow runner protocol so the reconciler can be tested with fakes
- Subprocess execution with full stdout/stderr capture
- Cancellation that kills and reaps the child process
"""

import asyncio
import shlex
from dataclasses import dataclass
from typing import Optional, Protocol

from fwr.core.cancellation import CancellationToken
from fwr.core.context import ExecutionContext
from fwr.core.exceptions import OperationCancelledError, PrerequisiteError, ValidationError


@dataclass
class CommandResult:
    """Result of a command execution."""
    command: str
    return_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.return_code == 0


class CommandRunner(Protocol):
    """Anything that can run one firewall-cmd invocation."""

    async def run(self, args: str, token: CancellationToken) -> CommandResult:
        """Run the control executable with a single argument string."""
        ...


class CommandExecutor:
    """Runs the firewall control executable.

    The argument string is split with shell rules, so a quoted rich rule
    arrives as one argv element. Non-zero exit codes are returned, never
    raised; only a failure to start the process is exceptional.
    """

    def __init__(self, ctx: ExecutionContext, executable: Optional[str] = None) -> None:
        """Initialize executor with context.

        Args:
            ctx: Execution context
            executable: Program to run (defaults to the configured firewall-cmd)
        """
        self.ctx = ctx
        self.executable = executable or ctx.config.firewalld.executable

    async def run(self, args: str, token: CancellationToken) -> CommandResult:
        """Execute the control command and capture its output.

        Args:
            args: Argument string, e.g. "--list-ports --zone=public"
            token: Cancellation token

        Returns:
            CommandResult with exit code, stdout and stderr

        Raises:
            PrerequisiteError: If the executable cannot be started
            OperationCancelledError: If cancelled before or while running
            ValidationError: If the argument string has unbalanced quotes
        """
        token.raise_if_cancelled()

        try:
            argv = [self.executable, *shlex.split(args)]
        except ValueError as e:
            raise ValidationError(
                f"Cannot parse command arguments: {args}",
                details=[str(e)],
            ) from e

        cmd_display = shlex.join(argv)
        self.ctx.console.debug(f"Running: {cmd_display}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PrerequisiteError(
                f"Could not run {self.executable}",
                hint="Install firewalld or set firewalld.executable in the config",
                details=[str(e)],
            ) from e

        communicate = asyncio.ensure_future(process.communicate())
        cancelled = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {communicate, cancelled},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            await self._abandon(process, communicate)
            raise
        finally:
            cancelled.cancel()

        if communicate not in done:
            await self._abandon(process, communicate)
            error = cancelled.exception()
            if error is not None:
                raise error
            raise OperationCancelledError(
                token.reason or f"Cancelled while running: {cmd_display}",
            )

        stdout, stderr = communicate.result()
        result = CommandResult(
            command=cmd_display,
            return_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        self.ctx.console.debug(f"Exit code {result.return_code}: {cmd_display}")
        return result

    @staticmethod
    async def _abandon(
        process: asyncio.subprocess.Process,
        communicate: "asyncio.Future[tuple[bytes, bytes]]",
    ) -> None:
        """Kill the child, drop its pending output and reap it."""
        communicate.cancel()
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
