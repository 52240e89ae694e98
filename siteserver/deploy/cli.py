"""
Deploy Command Line Interface

Pulls the latest source, reinstalls, rebuilds and restarts the online pm2
processes. Meant to be run periodically, e.g. from cron:

    * * * * * cd ~/www && siteserver-deploy

Monitoring:
    - `pm2 logs --lines 200` to show pm2 logs
"""

import sys
import asyncio
import argparse
import logging

from ..core.logging_server import setup_logging
from .pipeline import (
    DEFAULT_BUILD_COMMAND,
    DEFAULT_INSTALL_COMMAND,
    DEFAULT_PULL_COMMAND,
    DeployOptions,
    DeployPipeline,
    DeployResult,
    DeployStatus,
)
from .runner import format_duration


logger = logging.getLogger("deploy")


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="siteserver-deploy",
        description="Pull, build and restart the site"
    )
    parser.add_argument(
        '-f', '--force',
        action='store_true',
        help='force all steps even if up to date'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='show command output'
    )
    parser.add_argument(
        '--pull-command',
        default=DEFAULT_PULL_COMMAND,
        help=f'command that fetches changes (default: {DEFAULT_PULL_COMMAND})'
    )
    parser.add_argument(
        '--install-command',
        default=DEFAULT_INSTALL_COMMAND,
        help=f'command that installs dependencies (default: {DEFAULT_INSTALL_COMMAND})'
    )
    parser.add_argument(
        '--build-command',
        default=DEFAULT_BUILD_COMMAND,
        help=f'command that builds the project (default: {DEFAULT_BUILD_COMMAND})'
    )
    return parser.parse_args(argv)


def report(result: DeployResult) -> None:
    """Log the outcome of a deploy run."""
    if result.status == DeployStatus.UP_TO_DATE:
        logger.info("ALREADY UP TO DATE")
    elif result.status == DeployStatus.COMPLETE:
        logger.info(f"DEPLOY COMPLETE in {format_duration(result.duration_ms)}")
    else:
        failed = result.failed_step
        logger.error(
            f"DEPLOY FAILED at step '{failed.name}' after "
            f"{format_duration(result.duration_ms)}: {failed.message}"
        )


def main(argv=None) -> int:
    """
    Run one deploy pass.

    Returns:
        Exit status: 0 when complete or up to date, 1 on failure
    """
    args = parse_args(argv)
    setup_logging(log_level=logging.DEBUG if args.verbose else logging.INFO)

    options = DeployOptions(
        force=args.force,
        verbose=args.verbose,
        pull_command=args.pull_command,
        install_command=args.install_command,
        build_command=args.build_command
    )

    result = asyncio.run(DeployPipeline(options).run())
    report(result)

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
