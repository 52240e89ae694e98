"""
Deploy Pipeline Module

Runs the pull -> install -> build -> restart sequence as an explicit ordered
list of steps. Every step returns a StepResult; the pipeline stops at the
first failed step and at a pull that brought no changes (unless forced).

Steps:
    1. pull: Fetch the latest source (git pull)
    2. install: Install dependencies
    3. build: Build the project
    4. restart: Restart every online pm2 process, one at a time

Usage:
    pipeline = DeployPipeline(DeployOptions(force=True))
    result = await pipeline.run()

    if not result.success:
        print(result.failed_step.message)
"""

import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple

from ..core.errors import CommandError
from .process_manager import restart_online_pm2_processes
from .runner import CommandRunner, run_command


logger = logging.getLogger(__name__)


# git has printed both spellings over the years
UP_TO_DATE_MARKERS = ("Already up-to-date", "Already up to date")

DEFAULT_PULL_COMMAND = "git pull"
DEFAULT_INSTALL_COMMAND = "pip install -e ."
DEFAULT_BUILD_COMMAND = "python -m compileall -q siteserver"


class DeployStatus(str, Enum):
    """Final state of a deploy run."""
    COMPLETE = "complete"
    UP_TO_DATE = "up_to_date"
    FAILED = "failed"


@dataclass
class StepResult:
    """
    Result of a single pipeline step.

    Attributes:
        name: Step name (pull, install, build, restart)
        success: Whether the step finished without error
        message: Human-readable outcome or error
        duration_ms: Wall time in milliseconds
        stdout: Captured output of the step's command
        stderr: Captured error output of the step's command
        halt: Stop the pipeline after this step even though it succeeded
    """
    name: str
    success: bool
    message: str = ""
    duration_ms: int = 0
    stdout: str = ""
    stderr: str = ""
    halt: bool = False


@dataclass
class DeployResult:
    """
    Result of a deploy run.

    Attributes:
        status: complete, up_to_date or failed
        steps: Results of the steps that ran, in order
        duration_ms: Total wall time in milliseconds
    """
    status: DeployStatus
    steps: List[StepResult] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.status != DeployStatus.FAILED

    @property
    def failed_step(self) -> Optional[StepResult]:
        return next((step for step in self.steps if not step.success), None)


@dataclass
class DeployOptions:
    """
    Deploy settings.

    Attributes:
        force: Run every step even when the pull brought no changes
        verbose: Log command output
        pull_command: Command that fetches the latest source
        install_command: Command that installs dependencies
        build_command: Command that builds the project
    """
    force: bool = False
    verbose: bool = False
    pull_command: str = DEFAULT_PULL_COMMAND
    install_command: str = DEFAULT_INSTALL_COMMAND
    build_command: str = DEFAULT_BUILD_COMMAND


def is_up_to_date(pull_output: str) -> bool:
    """Check whether git pull reported that nothing changed."""
    return any(marker in pull_output for marker in UP_TO_DATE_MARKERS)


class DeployPipeline:
    """
    Sequential pull-build-restart pipeline.

    Attributes:
        options: Deploy settings
        runner: Runs shell commands (run_command, or a double in tests)
    """

    def __init__(
        self,
        options: Optional[DeployOptions] = None,
        runner: CommandRunner = run_command,
        clock: Callable[[], float] = time.monotonic
    ):
        self.options = options or DeployOptions()
        self.runner = runner
        self._clock = clock

    @property
    def steps(self) -> List[Tuple[str, Callable[[], Awaitable[StepResult]]]]:
        return [
            ("pull", self._pull),
            ("install", self._install),
            ("build", self._build),
            ("restart", self._restart),
        ]

    async def run(self) -> DeployResult:
        """
        Run the steps in order.

        Returns:
            DeployResult; status is FAILED at the first failing step,
            UP_TO_DATE when the pull halts the run, COMPLETE otherwise
        """
        start_time = self._clock()
        results: List[StepResult] = []
        status = DeployStatus.COMPLETE

        for name, step in self.steps:
            step_start = self._clock()
            result = await step()
            result.duration_ms = self._elapsed_ms(step_start)
            results.append(result)

            if not result.success:
                logger.error(f"Step '{name}' failed: {result.message}")
                status = DeployStatus.FAILED
                break

            if result.halt:
                status = DeployStatus.UP_TO_DATE
                break

        return DeployResult(
            status=status,
            steps=results,
            duration_ms=self._elapsed_ms(start_time)
        )

    def _elapsed_ms(self, since: float) -> int:
        return int((self._clock() - since) * 1000)

    async def _run_step(self, name: str, command: str) -> StepResult:
        try:
            result = await self.runner(command, verbose=self.options.verbose)
        except CommandError as e:
            return StepResult(
                name=name,
                success=False,
                message=str(e),
                stdout=e.stdout,
                stderr=e.stderr
            )
        except OSError as e:
            return StepResult(name=name, success=False, message=str(e))

        return StepResult(
            name=name,
            success=True,
            message=f"{command} done",
            stdout=result.stdout,
            stderr=result.stderr
        )

    async def _pull(self) -> StepResult:
        result = await self._run_step("pull", self.options.pull_command)

        if result.success and not self.options.force and is_up_to_date(result.stdout):
            result.halt = True
            result.message = "already up to date"

        return result

    async def _install(self) -> StepResult:
        return await self._run_step("install", self.options.install_command)

    async def _build(self) -> StepResult:
        return await self._run_step("build", self.options.build_command)

    async def _restart(self) -> StepResult:
        try:
            restarted = await restart_online_pm2_processes(
                self.runner, verbose=self.options.verbose)
        except CommandError as e:
            return StepResult(
                name="restart",
                success=False,
                message=str(e),
                stdout=e.stdout,
                stderr=e.stderr
            )
        except (ValueError, KeyError) as e:
            return StepResult(
                name="restart",
                success=False,
                message=f"Could not read pm2 process list: {e}"
            )

        if restarted:
            message = f"restarted {', '.join(restarted)}"
        else:
            message = "no online pm2 processes"

        return StepResult(name="restart", success=True, message=message)
