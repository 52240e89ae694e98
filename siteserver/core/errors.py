"""
Error Types Module

This module provides the exception classes raised by the server and the
deploy tool. Request-level failures (missing files, bad credentials) are
answered with HTTP responses directly and never raise one of these.

Available Exception Classes:
    - ConfigurationError: Malformed or out-of-range environment values
    - StartupError: Server could not start (TLS files, manifest)
    - CommandError: A deploy shell command exited with non-zero status

Usage:
    from siteserver.core.errors import CommandError

    raise CommandError("git pull", returncode=1, stderr="fatal: not a git repository")
"""

from typing import Optional


class ConfigurationError(Exception):
    """
    Raised when there is a configuration error.

    This typically indicates a malformed environment variable that
    prevents the server from starting correctly.

    Attributes:
        variable: Name of the offending environment variable (optional)
    """

    def __init__(self, message: str, variable: Optional[str] = None):
        self.variable = variable

        if variable:
            message = f"{variable}: {message}"

        super().__init__(f"Configuration error: {message}")


class StartupError(Exception):
    """
    Raised when the server cannot start.

    Covers unreadable TLS certificate/key files and an unreadable
    package manifest.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path

        if path:
            message = f"{message} ({path})"

        super().__init__(message)


class CommandError(Exception):
    """
    Raised when a shell command exits with a non-zero status.

    Attributes:
        command: The command line that was run
        returncode: Exit status of the command
        stdout: Captured standard output
        stderr: Captured standard error
    """

    def __init__(
        self,
        command: str,
        returncode: int,
        stdout: str = "",
        stderr: str = ""
    ):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

        message = f"Command '{command}' failed with exit code {returncode}"
        if stderr.strip():
            message += f": {stderr.strip()}"

        super().__init__(message)
