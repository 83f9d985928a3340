"""
Resolver takeover.

Purpose
Replace the system resolver file with one pointing at the tunnel DNS servers,
and put the original back later.

Rollback path
Before the first replacement the original contents are written to a backup
file next to it. The backup exists on disk for as long as the takeover is
installed, so a crashed process still leaves a way back. Restore writes the
backup over the resolver file and deletes it.

If there was no resolver file before takeover, restore removes the generated
one instead.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from tunnel_router.config import ResolverConfig
from tunnel_router.core.errors import ResolverError
from tunnel_router.core.types import NameServer
from tunnel_router.execution.base import CommandRunner
from tunnel_router.planner import commands

HEADER = (
    "# resolv.conf(5) file generated by tunnel-router\n"
    "# DO NOT EDIT THIS FILE BY HAND -- CHANGES WILL BE OVERWRITTEN\n"
)

# Written to the backup when no resolver file existed before takeover.
ABSENT_MARKER = b"# tunnel-router: no resolver file before takeover\n"


class FileReplacer(Protocol):
    """
    File replacement primitive.

    read returns None when the file does not exist.
    replace must leave either the old or the new contents, never a mix.
    remove is a no-op for a missing file.
    """

    def read(self, path: Path) -> bytes | None:
        """Return file contents or None."""

    def replace(self, path: Path, data: bytes) -> None:
        """Replace path with data."""

    def remove(self, path: Path) -> None:
        """Delete path if present."""


class AtomicFileReplacer(FileReplacer):
    """Write to a temp file in the same directory, then rename over the target."""

    def read(self, path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def replace(self, path: Path, data: bytes) -> None:
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, 0o644)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def remove(self, path: Path) -> None:
        path.unlink(missing_ok=True)


def render_resolv_conf(servers: list[NameServer], search_domains: list[str]) -> str:
    """Render resolver file contents for servers and search domains."""

    lines = [HEADER]
    for server in servers:
        lines.append(f"nameserver {server}\n")
    if search_domains:
        lines.append(f"search {' '.join(search_domains)}\n")
    return "".join(lines)


@dataclass
class ResolverManager:
    """
    Install and restore the system resolver file.

    installed
    True between a successful install and a restore.
    """

    config: ResolverConfig
    runner: CommandRunner
    logger: logging.Logger
    files: FileReplacer = AtomicFileReplacer()
    installed: bool = False

    def install(self, servers: list[NameServer], search_domains: list[str]) -> None:
        """
        Take over the resolver file.

        The backup is taken only on the first install, so repeated installs
        with new servers keep the true original.
        """

        path = self.config.path
        backup = self.config.backup_path

        try:
            if not self.installed:
                original = self.files.read(path)
                self.files.replace(backup, ABSENT_MARKER if original is None else original)
            self.files.replace(path, render_resolv_conf(servers, search_domains).encode("utf-8"))
        except OSError as exc:
            raise ResolverError(f"replacing {path} failed: {exc}") from exc

        self.installed = True
        self.logger.info("resolver takeover installed: %d servers, %d search domains",
                         len(servers), len(search_domains))

    def restore(self) -> None:
        """Put the original resolver file back. A no-op when nothing is installed."""

        if not self.installed:
            return

        path = self.config.path
        backup = self.config.backup_path

        try:
            original = self.files.read(backup)
            if original is None:
                raise ResolverError(f"resolver backup {backup} is missing, cannot restore {path}")
            if original == ABSENT_MARKER:
                self.files.remove(path)
            else:
                self.files.replace(path, original)
            self.files.remove(backup)
        except OSError as exc:
            raise ResolverError(f"restoring {path} failed: {exc}") from exc
        finally:
            self.installed = False

        self.logger.info("resolver file %s restored", path)

    def restart_resolver_service(self) -> None:
        """Restart the resolver service. Failures are logged, never raised."""

        argv = commands.service_restart(self.config.service_name)
        result = self.runner.run(argv)
        if not result.ok:
            self.logger.warning("%s failed: %s", " ".join(argv), result.output.strip())
        elif result.output:
            self.logger.info("%s: %s", " ".join(argv), result.output.strip())
