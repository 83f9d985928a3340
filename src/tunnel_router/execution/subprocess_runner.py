"""
Subprocess runner.

Runs commands as child processes with stderr folded into stdout, the same
shape ip and iptables diagnostics are usually read in.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass

from tunnel_router.core.types import CommandResult
from tunnel_router.execution.base import CommandRunner, RunnerConfig


@dataclass
class SubprocessRunner(CommandRunner):
    """Run commands with subprocess.run and a bounded timeout."""

    config: RunnerConfig = RunnerConfig()

    def run(self, argv: list[str]) -> CommandResult:
        if not argv:
            raise ValueError("argv must name a program")

        try:
            proc = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.config.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            output = _decode(exc.output)
            return CommandResult(
                argv=list(argv),
                ok=False,
                output=f"{output}timed out after {self.config.timeout_seconds}s",
            )
        except OSError as exc:
            return CommandResult(argv=list(argv), ok=False, output=str(exc))

        return CommandResult(
            argv=list(argv),
            ok=proc.returncode == 0,
            output=proc.stdout or "",
            returncode=proc.returncode,
        )


def _decode(raw: bytes | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if raw and not raw.endswith("\n"):
        raw += "\n"
    return raw
