"""
Router facade.

Purpose
The object the VPN engine holds for one tunnel interface. It wires the
reconciler, the resolver manager, the command runner and the logger, and
exposes up, set_routes and close.

This is the composition layer of the package.
Reconciler holds the logic, the facade only delegates.

Usage

  with Router(device, RouterConfig(outbound_interface="eth0")) as router:
      router.set_routes(settings)

Entering the context calls up, leaving it calls close. If up raises after
the link is already up, close runs before the error propagates.
"""

from __future__ import annotations

import logging
from typing import Protocol

from tunnel_router.config import RouterConfig
from tunnel_router.core.errors import RouterError
from tunnel_router.core.types import AppliedState, LifecycleState, RouteSettings
from tunnel_router.dns.resolver import AtomicFileReplacer, FileReplacer, ResolverManager
from tunnel_router.execution.base import CommandRunner
from tunnel_router.execution.subprocess_runner import SubprocessRunner
from tunnel_router.reconcile.reconciler import Reconciler


class TunnelDevice(Protocol):
    """The tunnel device only has to report its OS interface name."""

    def name(self) -> str:
        """Return the interface name, for example wg0."""


class Router:
    """
    Lifecycle facade over Reconciler and ResolverManager.

    runner
    Defaults to a SubprocessRunner with the configured timeout.

    logger
    Injected into every component. Defaults to the tunnel_router logger.
    """

    def __init__(
        self,
        device: TunnelDevice,
        config: RouterConfig,
        runner: CommandRunner | None = None,
        logger: logging.Logger | None = None,
        files: FileReplacer | None = None,
    ) -> None:
        self._config = config
        self._logger = logger or logging.getLogger("tunnel_router")
        self._runner = runner or SubprocessRunner(config=config.runner_config())

        self._resolver = ResolverManager(
            config=config.resolver,
            runner=self._runner,
            logger=self._logger,
            files=files or AtomicFileReplacer(),
        )
        self._reconciler = Reconciler(
            iface=device.name(),
            config=config,
            runner=self._runner,
            resolver=self._resolver,
            logger=self._logger,
        )

    @property
    def iface(self) -> str:
        return self._reconciler.iface

    @property
    def state(self) -> LifecycleState:
        return self._reconciler.state

    @property
    def applied(self) -> AppliedState:
        return self._reconciler.applied

    def up(self) -> None:
        self._reconciler.up()

    def set_routes(self, settings: RouteSettings) -> None:
        self._reconciler.set_routes(settings)

    def close(self) -> None:
        self._reconciler.close()

    def __enter__(self) -> Router:
        try:
            self.up()
        except RouterError:
            # __exit__ does not run when __enter__ raises.
            if self.state == LifecycleState.active:
                try:
                    self.close()
                except RouterError as err:
                    self._logger.error("close after failed up raised: %s", err)
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        if self.state == LifecycleState.active:
            self.close()
