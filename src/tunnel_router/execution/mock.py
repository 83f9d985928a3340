"""
In memory runner.

This runner is used for tests and dry runs.
It never touches the host.

Features
- Records every argv in call order
- Injects failures for chosen commands, matched on the exact argv
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tunnel_router.core.types import CommandResult
from tunnel_router.execution.base import CommandRunner


@dataclass
class RecordingRunner(CommandRunner):
    """
    Recording runner.

    failures
    Mapping of space joined argv to the output reported for that failure.
    A failing command is still recorded in calls.
    """

    failures: dict[str, str] = field(default_factory=dict)
    calls: list[list[str]] = field(default_factory=list)

    def fail(self, argv: list[str], output: str = "RTNETLINK answers: Operation not permitted") -> None:
        """Make every later run of argv fail with output."""
        self.failures[" ".join(argv)] = output

    def run(self, argv: list[str]) -> CommandResult:
        self.calls.append(list(argv))
        key = " ".join(argv)
        if key in self.failures:
            return CommandResult(argv=list(argv), ok=False, output=self.failures[key], returncode=2)
        return CommandResult(argv=list(argv), ok=True, output="", returncode=0)
