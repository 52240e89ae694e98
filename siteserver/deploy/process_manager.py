"""
PM2 Process Manager Module

Lists the processes tracked by pm2 and restarts the ones that are online.
"""

import json
import shlex
import logging
from enum import Enum
from dataclasses import dataclass
from typing import List, Optional

from .runner import CommandRunner, run_command


logger = logging.getLogger(__name__)


class Pm2Status(str, Enum):
    """Process states reported by pm2."""
    ONLINE = "online"
    STOPPING = "stopping"
    STOPPED = "stopped"
    LAUNCHING = "launching"
    ERRORED = "errored"
    ONE_LAUNCH_STATUS = "one-launch-status"
    WAITING_RESTART = "waiting restart"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Pm2Status":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Pm2Process:
    """
    A process registered with pm2.

    Attributes:
        name: pm2 application name
        pid: Operating system process id (0 when not running)
        status: Current pm2 status
    """
    name: str
    pid: int
    status: Pm2Status


def parse_pm2_list(output: str) -> List[Pm2Process]:
    """
    Parse the JSON printed by `pm2 jlist`.

    Raises:
        ValueError: If the output is not a JSON list of process objects
    """
    items = json.loads(output)

    if not isinstance(items, list):
        raise ValueError("pm2 jlist did not return a list")

    return [_parse_pm2_item(item) for item in items]


def _parse_pm2_item(item) -> Pm2Process:
    if not isinstance(item, dict):
        raise ValueError(f"pm2 jlist entry is not an object: {item!r}")

    if not isinstance(item.get("name"), str):
        raise ValueError(f"pm2 jlist entry has no name: {item!r}")

    pm2_env = item.get("pm2_env") or {}
    if not isinstance(pm2_env, dict):
        raise ValueError(f"pm2_env of '{item.get('name')}' is not an object")

    return Pm2Process(
        name=item["name"],
        pid=item.get("pid") or 0,
        status=Pm2Status.parse(pm2_env.get("status"))
    )


async def get_pm2_processes(runner: CommandRunner = run_command) -> List[Pm2Process]:
    """Return the processes registered with pm2."""
    result = await runner("pm2 jlist", silent=True)
    return parse_pm2_list(result.stdout)


async def restart_online_pm2_processes(
    runner: CommandRunner = run_command,
    verbose: bool = False
) -> List[str]:
    """
    Restart every online pm2 process, one at a time.

    Returns:
        Names of the restarted processes

    Raises:
        CommandError: If listing or restarting fails
    """
    processes = await get_pm2_processes(runner)
    online = [p for p in processes if p.status == Pm2Status.ONLINE]

    logger.debug(
        f"pm2 processes: {len(processes)} total, {len(online)} online")

    for process in online:
        await runner(f"pm2 restart {shlex.quote(process.name)}", verbose=verbose)

    return [p.name for p in online]
