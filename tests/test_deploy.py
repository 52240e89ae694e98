"""Tests for the deploy tool: runner, pm2 helpers, pipeline and CLI."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from siteserver.core.errors import CommandError
from siteserver.deploy.cli import main, parse_args
from siteserver.deploy.pipeline import (
    DeployOptions,
    DeployPipeline,
    DeployResult,
    DeployStatus,
    StepResult,
    is_up_to_date,
)
from siteserver.deploy.process_manager import (
    Pm2Status,
    get_pm2_processes,
    parse_pm2_list,
    restart_online_pm2_processes,
)
from siteserver.deploy.runner import CommandResult, format_duration, pad_lines, run_command


PM2_LIST = json.dumps([
    {"name": "site", "pid": 1201, "pm2_env": {"status": "online"}},
    {"name": "worker", "pid": 0, "pm2_env": {"status": "stopped"}},
    {"name": "api", "pid": 1305, "pm2_env": {"status": "online"}},
    {"name": "broken", "pid": 0, "pm2_env": {"status": "errored"}},
])


class FakeRunner:
    """Records commands and answers with canned output.

    outputs maps a command to its stdout; failures maps a command to the
    exit code it should fail with.
    """

    def __init__(self, outputs=None, failures=None):
        self.outputs = outputs or {}
        self.failures = failures or {}
        self.commands = []

    async def __call__(self, command, silent=False, verbose=False):
        self.commands.append(command)

        if command in self.failures:
            raise CommandError(command, returncode=self.failures[command], stderr="boom")

        return CommandResult(command=command, returncode=0, stdout=self.outputs.get(command, ""))


def _run(pipeline):
    return asyncio.run(pipeline.run())


class TestFormatDuration:
    """Tests for format_duration."""

    @pytest.mark.parametrize("ms,expected", [
        (0, "0ms"),
        (250, "250ms"),
        (999, "999ms"),
        (1000, "1s"),
        (1549, "1.5s"),
        (1550, "1.6s"),
        (12340, "12.3s"),
        (60000, "60s"),
    ])
    def test_formats(self, ms, expected):
        assert format_duration(ms) == expected

    def test_pad_lines(self):
        assert pad_lines("a\nb") == "  a\n  b"
        assert pad_lines("a", padding=4) == "    a"
        assert pad_lines("a", padding=0) == "a"


class TestRunCommand:
    """Tests for run_command against a real shell."""

    def test_captures_stdout(self):
        result = asyncio.run(run_command("echo hello", silent=True))

        assert result.returncode == 0
        assert result.stdout.strip() == "hello"
        assert result.duration_ms >= 0

    def test_captures_stderr(self):
        result = asyncio.run(run_command("echo oops >&2", silent=True))
        assert "oops" in result.stderr

    def test_non_zero_exit_raises(self):
        with pytest.raises(CommandError) as exc_info:
            asyncio.run(run_command("echo partial; echo bad >&2; exit 3"))

        error = exc_info.value
        assert error.returncode == 3
        assert error.command == "echo partial; echo bad >&2; exit 3"
        assert "partial" in error.stdout
        assert "bad" in error.stderr

    def test_verbose_logs_output(self, caplog):
        with caplog.at_level("INFO"):
            asyncio.run(run_command("echo shown", verbose=True))

        assert "> echo shown..." in caplog.text
        assert "  shown" in caplog.text


class TestPm2:
    """Tests for the pm2 helpers."""

    def test_parse_list(self):
        processes = parse_pm2_list(PM2_LIST)

        assert [p.name for p in processes] == ["site", "worker", "api", "broken"]
        assert processes[0].pid == 1201
        assert processes[0].status == Pm2Status.ONLINE
        assert processes[1].status == Pm2Status.STOPPED
        assert processes[3].status == Pm2Status.ERRORED

    def test_unknown_status(self):
        processes = parse_pm2_list(json.dumps([
            {"name": "x", "pid": None, "pm2_env": {"status": "sleeping"}},
            {"name": "y", "pid": 5},
        ]))

        assert processes[0].status == Pm2Status.UNKNOWN
        assert processes[0].pid == 0
        assert processes[1].status == Pm2Status.UNKNOWN

    def test_parse_rejects_non_list(self):
        with pytest.raises(ValueError):
            parse_pm2_list('{"name": "site"}')

    def test_null_pm2_env_is_unknown(self):
        processes = parse_pm2_list('[{"name": "web", "pid": 1, "pm2_env": null}]')
        assert processes[0].status == Pm2Status.UNKNOWN

    @pytest.mark.parametrize("output", [
        '["web"]',
        '[null]',
        '[{"name": "web", "pm2_env": "online"}]',
    ])
    def test_parse_rejects_malformed_entries(self, output):
        with pytest.raises(ValueError):
            parse_pm2_list(output)

    def test_get_processes_runs_jlist(self):
        runner = FakeRunner(outputs={"pm2 jlist": PM2_LIST})

        processes = asyncio.run(get_pm2_processes(runner))

        assert runner.commands == ["pm2 jlist"]
        assert len(processes) == 4

    def test_restarts_only_online_in_order(self):
        runner = FakeRunner(outputs={"pm2 jlist": PM2_LIST})

        restarted = asyncio.run(restart_online_pm2_processes(runner))

        assert restarted == ["site", "api"]
        assert runner.commands == ["pm2 jlist", "pm2 restart site", "pm2 restart api"]

    def test_restart_failure_stops_sequence(self):
        runner = FakeRunner(
            outputs={"pm2 jlist": PM2_LIST},
            failures={"pm2 restart site": 1}
        )

        with pytest.raises(CommandError):
            asyncio.run(restart_online_pm2_processes(runner))

        assert "pm2 restart api" not in runner.commands


class TestIsUpToDate:
    """Tests for is_up_to_date."""

    @pytest.mark.parametrize("output", [
        "Already up-to-date.\n",
        "Already up to date.\n",
        "From github.com:org/site\nAlready up to date.",
    ])
    def test_detects_both_spellings(self, output):
        assert is_up_to_date(output) is True

    def test_changes_pulled(self):
        output = "Updating 1a2b3c..4d5e6f\nFast-forward\n index.html | 2 +-\n"
        assert is_up_to_date(output) is False


class TestDeployPipeline:
    """Tests for DeployPipeline."""

    def test_up_to_date_stops_after_pull(self):
        """No build or restart commands when nothing was pulled."""
        runner = FakeRunner(outputs={"git pull": "Already up-to-date.\n"})

        result = _run(DeployPipeline(DeployOptions(), runner=runner))

        assert result.status == DeployStatus.UP_TO_DATE
        assert result.success is True
        assert runner.commands == ["git pull"]
        assert [step.name for step in result.steps] == ["pull"]

    def test_force_runs_everything_when_up_to_date(self):
        """--force runs every step regardless of the pull output."""
        runner = FakeRunner(outputs={
            "git pull": "Already up-to-date.\n",
            "pm2 jlist": PM2_LIST,
        })

        result = _run(DeployPipeline(DeployOptions(force=True), runner=runner))

        assert result.status == DeployStatus.COMPLETE
        assert runner.commands == [
            "git pull",
            "pip install -e .",
            "python -m compileall -q siteserver",
            "pm2 jlist",
            "pm2 restart site",
            "pm2 restart api",
        ]

    def test_changes_run_full_pipeline(self):
        runner = FakeRunner(outputs={
            "git pull": "Fast-forward\n",
            "pm2 jlist": PM2_LIST,
        })

        result = _run(DeployPipeline(runner=runner))

        assert result.status == DeployStatus.COMPLETE
        assert [step.name for step in result.steps] == ["pull", "install", "build", "restart"]
        assert all(step.success for step in result.steps)
        assert result.steps[-1].message == "restarted site, api"

    def test_custom_commands(self):
        runner = FakeRunner(outputs={"pm2 jlist": "[]"})
        options = DeployOptions(
            pull_command="git pull --ff-only",
            install_command="yarn install",
            build_command="yarn build"
        )

        result = _run(DeployPipeline(options, runner=runner))

        assert runner.commands == ["git pull --ff-only", "yarn install", "yarn build", "pm2 jlist"]
        assert result.steps[-1].message == "no online pm2 processes"

    def test_failure_short_circuits(self):
        """A failing step stops the pipeline and is reported."""
        runner = FakeRunner(
            outputs={"git pull": "Fast-forward\n"},
            failures={"pip install -e .": 1}
        )

        result = _run(DeployPipeline(runner=runner))

        assert result.status == DeployStatus.FAILED
        assert result.success is False
        assert runner.commands == ["git pull", "pip install -e ."]
        assert result.failed_step.name == "install"
        assert "exit code 1" in result.failed_step.message
        assert result.failed_step.stderr == "boom"

    def test_pull_failure_stops_immediately(self):
        runner = FakeRunner(failures={"git pull": 128})

        result = _run(DeployPipeline(DeployOptions(force=True), runner=runner))

        assert result.failed_step.name == "pull"
        assert runner.commands == ["git pull"]

    def test_bad_pm2_output_fails_restart(self):
        runner = FakeRunner(outputs={"git pull": "Fast-forward\n", "pm2 jlist": "not json"})

        result = _run(DeployPipeline(runner=runner))

        assert result.status == DeployStatus.FAILED
        assert result.failed_step.name == "restart"
        assert "pm2 process list" in result.failed_step.message

    @pytest.mark.parametrize("jlist", ['[1, 2]', '[{"pid": 1}]', '[{"name": "web", "pm2_env": []}]'])
    def test_malformed_pm2_entries_fail_restart(self, jlist):
        """Unexpected pm2 JSON shapes end as a failed step, not an exception."""
        runner = FakeRunner(outputs={"git pull": "Fast-forward\n", "pm2 jlist": jlist})

        result = _run(DeployPipeline(runner=runner))

        assert result.status == DeployStatus.FAILED
        assert result.failed_step.name == "restart"
        assert runner.commands[-1] == "pm2 jlist"

    def test_null_pm2_env_does_not_crash(self):
        runner = FakeRunner(outputs={
            "git pull": "Fast-forward\n",
            "pm2 jlist": '[{"name": "web", "pid": 1, "pm2_env": null}]',
        })

        result = _run(DeployPipeline(runner=runner))

        assert result.status == DeployStatus.COMPLETE
        assert result.steps[-1].message == "no online pm2 processes"

    def test_durations_recorded(self):
        ticks = iter([0.0, 0.0, 1.5, 10.0])
        runner = FakeRunner(outputs={"git pull": "Already up to date."})

        result = _run(DeployPipeline(runner=runner, clock=lambda: next(ticks)))

        assert result.steps[0].duration_ms == 1500
        assert result.duration_ms == 10000


class TestCli:
    """Tests for the deploy command line."""

    def test_parse_flags(self):
        args = parse_args(["-f", "-v"])
        assert args.force is True
        assert args.verbose is True

        args = parse_args(["--force"])
        assert args.force is True
        assert args.verbose is False

    def test_defaults(self):
        args = parse_args([])
        assert args.force is False
        assert args.pull_command == "git pull"

    @pytest.mark.parametrize("flag", ["-h", "--help"])
    def test_help_has_no_side_effects(self, flag, capsys):
        """Help prints usage and exits without running anything."""
        with patch("siteserver.deploy.cli.DeployPipeline") as pipeline_cls:
            with pytest.raises(SystemExit) as exc_info:
                main([flag])

        assert exc_info.value.code == 0
        pipeline_cls.assert_not_called()
        output = capsys.readouterr().out
        assert "--force" in output
        assert "force all steps even if up to date" in output

    @pytest.mark.parametrize("status,exit_code", [
        (DeployStatus.COMPLETE, 0),
        (DeployStatus.UP_TO_DATE, 0),
    ])
    def test_exit_code_success(self, status, exit_code):
        result = DeployResult(status=status, steps=[StepResult("pull", True)])

        with patch("siteserver.deploy.cli.setup_logging"), \
                patch("siteserver.deploy.cli.DeployPipeline") as pipeline_cls:
            pipeline_cls.return_value.run = AsyncMock(return_value=result)
            assert main([]) == exit_code

    def test_exit_code_failure(self):
        result = DeployResult(
            status=DeployStatus.FAILED,
            steps=[StepResult("pull", False, message="fatal")]
        )

        with patch("siteserver.deploy.cli.setup_logging"), \
                patch("siteserver.deploy.cli.DeployPipeline") as pipeline_cls:
            pipeline_cls.return_value.run = AsyncMock(return_value=result)
            assert main([]) == 1

    def test_force_flag_passed_to_pipeline(self):
        result = DeployResult(status=DeployStatus.COMPLETE)

        with patch("siteserver.deploy.cli.setup_logging"), \
                patch("siteserver.deploy.cli.DeployPipeline") as pipeline_cls:
            pipeline_cls.return_value.run = AsyncMock(return_value=result)
            main(["--force", "--build-command", "make site"])

        options = pipeline_cls.call_args.args[0]
        assert options.force is True
        assert options.build_command == "make site"
