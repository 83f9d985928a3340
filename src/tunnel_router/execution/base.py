"""
Execution interfaces.

Goal
Define a stable interface for running OS network commands without binding
the reconciler to subprocess.

Design notes
A runner never raises for a failed command. It returns a CommandResult with
ok False and the captured output, and the reconciler decides what a failure
means for the operation in progress.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from tunnel_router.core.types import CommandResult


@dataclass(frozen=True)
class RunnerConfig:
    """
    Runner configuration.

    timeout_seconds
    Upper bound for a single command. A command that runs longer is killed
    and reported as failed.
    """

    timeout_seconds: float = 30.0


class CommandRunner(Protocol):
    """
    Command execution interface expected by the reconciler.

    run
    Execute argv, argv[0] being the program, and return combined output
    plus success or failure.
    """

    def run(self, argv: list[str]) -> CommandResult:
        """Run one command and return its result."""
