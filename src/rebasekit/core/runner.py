"""Subprocess execution on top of invoke."""

import contextlib
import io
import os
import platform
from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from rebasekit.core.log import logger


class Runner(Context):
    """invoke.Context with a single execute() entry point.

    All git traffic goes through here so that output capture,
    timeouts and logging behave the same for every command.
    """

    def kill(self) -> None:
        """Kill the running subprocess.

        invoke sends signal.SIGKILL, which does not exist on Windows.
        os.kill() there takes any integer and hands it to
        TerminateProcess(), so the numeric value is used instead.
        """
        if platform.system() == "Windows":
            pid = self.pid if self.using_pty else self.process.pid
            with contextlib.suppress(ProcessLookupError):
                os.kill(pid, 9)
            return
        super().kill()

    def execute(
        self,
        command: str,
        cwd: Path | None = None,
        timeout: int | None = None,
        stdin: str | None = None,
        log_level: str | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
    ) -> Result:
        """Run a command and return its captured result.

        Args:
            command: Shell command string
            cwd: Working directory
            timeout: Seconds before the command is killed; a timeout
                is reported as exit code -1 instead of raising
            stdin: Text fed to the command's stdin
            log_level: If set, echo every output line at this level
            check: Raise invoke.UnexpectedExit on non-zero exit
            env: Variables added on top of os.environ

        Returns:
            invoke.Result with stdout, stderr and exited
        """
        kwargs = {
            "hide": True,
            "warn": not check,
            "in_stream": False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if stdin:
            kwargs["in_stream"] = io.StringIO(stdin)
        if env:
            kwargs["env"] = env

        logger.spew("Executing command", command=command, cwd=str(cwd))

        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            logger.warn(
                f"Command timed out after {timeout}s",
                command=command,
            )
            result = e.result
            result.exited = -1

        if log_level:
            for line in (result.stdout + result.stderr).splitlines():
                logger.log(log_level, line.rstrip())

        return result
