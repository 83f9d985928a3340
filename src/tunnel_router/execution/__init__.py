"""
Execution package.

Command runners turn an argument list into a CommandResult.
"""

from tunnel_router.execution.base import CommandRunner, RunnerConfig
from tunnel_router.execution.mock import RecordingRunner
from tunnel_router.execution.subprocess_runner import SubprocessRunner

__all__ = ["CommandRunner", "RecordingRunner", "RunnerConfig", "SubprocessRunner"]
