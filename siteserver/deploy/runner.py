"""
Shell Command Runner

Runs shell commands for the deploy tool and reports progress to the log.

Usage:
    from siteserver.deploy.runner import run_command

    result = await run_command("git pull")
    print(result.stdout)
"""

import time
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..core.errors import CommandError


logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """
    Outcome of a finished shell command.

    Attributes:
        command: The command line that was run
        returncode: Exit status
        stdout: Captured standard output
        stderr: Captured standard error
        duration_ms: Wall time in milliseconds
    """
    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0


# run_command and test doubles share this signature
CommandRunner = Callable[..., Awaitable[CommandResult]]


def format_duration(duration_ms: int) -> str:
    """
    Format a duration as milliseconds below one second, else seconds.

    Examples:
        format_duration(250) -> "250ms"
        format_duration(1549) -> "1.5s"
        format_duration(2000) -> "2s"
    """
    if duration_ms < 1000:
        return f"{duration_ms}ms"

    tenths = int(duration_ms / 100 + 0.5)
    whole, fraction = divmod(tenths, 10)

    return f"{whole}s" if fraction == 0 else f"{whole}.{fraction}s"


def pad_lines(text: str, padding: int = 2) -> str:
    """Indent every line of text."""
    pad = " " * max(padding, 0)
    return "\n".join(f"{pad}{line}" for line in text.split("\n"))


async def run_command(
    command: str,
    silent: bool = False,
    verbose: bool = False
) -> CommandResult:
    """
    Run a shell command and capture its output.

    Args:
        command: Command line, run through the shell
        silent: Do not log progress
        verbose: Also log the captured stdout/stderr

    Returns:
        CommandResult of the finished command

    Raises:
        CommandError: If the command exits with a non-zero status
    """
    start_time = time.monotonic()
    log_extra = {"command": command}

    if not silent:
        logger.info(f"> {command}...", extra=log_extra)

    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    stdout_bytes, stderr_bytes = await process.communicate()

    result = CommandResult(
        command=command,
        returncode=process.returncode,
        stdout=stdout_bytes.decode("utf-8", errors="replace"),
        stderr=stderr_bytes.decode("utf-8", errors="replace"),
        duration_ms=int((time.monotonic() - start_time) * 1000)
    )

    if result.returncode != 0:
        error = CommandError(
            command,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr
        )
        if not silent:
            logger.error(
                f"> {command} failed in {format_duration(result.duration_ms)} - {error}",
                extra=log_extra
            )
        raise error

    if not silent:
        logger.info(
            f"> {command} done in {format_duration(result.duration_ms)}",
            extra=log_extra
        )

        if verbose:
            if result.stdout:
                logger.info("\n" + pad_lines(result.stdout.rstrip("\n")), extra=log_extra)
            if result.stderr:
                logger.warning("\n" + pad_lines(result.stderr.rstrip("\n")), extra=log_extra)

    return result
