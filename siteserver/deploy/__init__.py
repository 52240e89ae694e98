# Deploy tool: pull, install, build and restart pm2 processes
#
# Example:
#   from siteserver.deploy.pipeline import DeployPipeline, DeployOptions

from .pipeline import DeployOptions, DeployPipeline, DeployResult, DeployStatus, StepResult
from .runner import CommandResult, format_duration, run_command
