"""
Reconciler.

This is the stateful core that keeps one tunnel interface in line with the
desired state handed down by the control plane.

Lifecycle
uninitialized -> up -> active -> set_routes* -> active -> close -> closed

Every operation checks the lifecycle on entry and raises
InvalidLifecycleTransition when called out of order.

Failure handling
up
  A link up failure raises InterfaceUpFailed and leaves the reconciler
  uninitialized. Firewall failures follow FirewallPolicy.

set_routes
  Best effort forward progress. Every command is attempted, every failure is
  logged as it happens, and the first one is raised once all work is done
  and the applied state is updated.

close
  Optional teardown of tracked resources, then resolver restore and service
  restart. The reconciler is closed afterwards even when close raises.

Ordering
The address swap always runs before any route command, so a route is never
installed via a gateway address the interface does not have yet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tunnel_router.config import FirewallPolicy, RouterConfig, StateTracking
from tunnel_router.core.errors import (
    CommandFailed,
    FirewallSetupFailed,
    InterfaceUpFailed,
    InvalidLifecycleTransition,
    ResolverError,
    RouterError,
)
from tunnel_router.core.types import Address, AppliedState, LifecycleState, RouteSettings
from tunnel_router.dns.resolver import ResolverManager
from tunnel_router.execution.base import CommandRunner
from tunnel_router.planner import commands
from tunnel_router.planner.diff import RoutePlan, plan_routes


@dataclass(frozen=True)
class InstalledResource:
    """
    A host mutation made by this reconciler.

    teardown is the argv that undoes it.
    route is set for route entries, so their delete can be rebuilt against
    the address the interface holds at release time.
    """

    description: str
    teardown: list[str]
    route: Address | None = None


_RELEASE_ORDER = ("route", "addr", "rule")


class ResourceLedger:
    """
    Installed resources in installation order.

    Keys identify a resource so a later removal can drop its entry.
    Release takes routes first, then addresses, then firewall rules, each
    group most recent first. A route never outlives its gateway address.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], InstalledResource] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def track(self, key: tuple[str, str], resource: InstalledResource) -> None:
        self._entries.pop(key, None)
        self._entries[key] = resource

    def forget(self, key: tuple[str, str]) -> None:
        self._entries.pop(key, None)

    def drain(self) -> list[InstalledResource]:
        """Remove and return all entries in release order."""
        newest_first = list(reversed(self._entries.items()))
        self._entries.clear()
        return [
            resource
            for kind in _RELEASE_ORDER
            for (entry_kind, _), resource in newest_first
            if entry_kind == kind
        ]


class _FirstError:
    """Keep the first error of a best effort pass."""

    def __init__(self) -> None:
        self.error: RouterError | None = None

    def record(self, err: RouterError) -> None:
        if self.error is None:
            self.error = err


class Reconciler:
    """
    Keeps address, routes and firewall rules of one interface in sync.

    Callers must serialize all calls. Applied state is not locked.
    """

    def __init__(
        self,
        iface: str,
        config: RouterConfig,
        runner: CommandRunner,
        resolver: ResolverManager,
        logger: logging.Logger,
    ) -> None:
        self._iface = iface
        self._config = config
        self._runner = runner
        self._resolver = resolver
        self._log = logger

        self._state = LifecycleState.uninitialized
        self._applied = AppliedState()
        self._ledger = ResourceLedger()

    @property
    def iface(self) -> str:
        return self._iface

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def applied(self) -> AppliedState:
        return self._applied

    @property
    def ledger(self) -> ResourceLedger:
        return self._ledger

    def _require(self, operation: str, expected: LifecycleState) -> None:
        if self._state != expected:
            raise InvalidLifecycleTransition(operation, self._state)

    def _run(self, argv: list[str], what: str) -> CommandFailed | None:
        """Run argv. Log and return the failure, or None on success."""

        result = self._runner.run(argv)
        if result.ok:
            return None
        self._log.error("%s failed: %s: %s", what, " ".join(argv), result.output.strip())
        return CommandFailed.from_result(result)

    def up(self) -> None:
        """
        Bring the interface up and install forwarding and NAT rules.

        Link up comes first and is the only step that always raises.
        """

        self._require("up", LifecycleState.uninitialized)

        link = commands.link_up(self._iface)
        result = self._runner.run(link)
        if not result.ok:
            self._log.error("ip link set %s up failed: %s", self._iface, result.output.strip())
            raise InterfaceUpFailed.from_result(result)

        first = _FirstError()
        rules = [
            (
                "forward",
                "iptables forward",
                commands.forward_accept(self._iface),
                commands.forward_accept_delete(self._iface),
            ),
            (
                "nat",
                "iptables nat",
                commands.nat_masquerade(self._config.outbound_interface),
                commands.nat_masquerade_delete(self._config.outbound_interface),
            ),
        ]
        for key, what, install, teardown in rules:
            result = self._runner.run(install)
            if result.ok:
                self._ledger.track(("rule", key), InstalledResource(what, teardown))
                continue
            self._log.warning("%s failed: %s", what, result.output.strip())
            first.record(FirewallSetupFailed.from_result(result))

        # The link is up either way, so a strict failure still leaves us active.
        self._state = LifecycleState.active
        if first.error is not None and self._config.firewall_policy == FirewallPolicy.strict:
            raise first.error

        self._log.info("interface %s is up", self._iface)

    def set_routes(self, settings: RouteSettings) -> None:
        """
        Move the interface from the applied state to settings.

        Raises the first CommandFailed or ResolverError of the pass, after every
        step has been attempted and the applied state updated.
        """

        self._require("set_routes", LifecycleState.active)

        plan = plan_routes(self._applied, settings)
        first = _FirstError()

        local_addr = self._apply_address(plan, first)
        routes = self._apply_routes(plan, settings.local_addr, first)

        if self._config.state_tracking == StateTracking.confirmed:
            self._applied = AppliedState(local_addr=local_addr, routes=frozenset(routes))
        else:
            self._applied = AppliedState(local_addr=settings.local_addr, routes=plan.routes)

        if self._config.manage_dns:
            try:
                self._resolver.install(settings.dns, settings.dns_domains)
            except ResolverError as err:
                self._log.error("replacing resolver file failed: %s", err)
                first.record(err)
            self._resolver.restart_resolver_service()

        if not plan.empty:
            self._log.info(
                "routes reconciled on %s: -%d +%d, %d total",
                self._iface,
                len(plan.to_remove),
                len(plan.to_add),
                len(plan.routes),
            )

        if first.error is not None:
            raise first.error

    def _apply_address(self, plan: RoutePlan, first: _FirstError) -> Address | None:
        """Swap the interface address. Returns the address confirmed on the interface."""

        confirmed = self._applied.local_addr
        change = plan.address
        if change is None:
            return confirmed

        if change.old is not None:
            err = self._run(commands.addr_del(change.old, self._iface), "addr del")
            if err is None:
                self._ledger.forget(("addr", str(change.old)))
                confirmed = None
            else:
                first.record(err)

        if change.new is not None:
            err = self._run(commands.addr_add(change.new, self._iface), "addr add")
            if err is None:
                self._ledger.track(
                    ("addr", str(change.new)),
                    InstalledResource(f"address {change.new}", commands.addr_del(change.new, self._iface)),
                )
                confirmed = change.new
            else:
                first.record(err)

        return confirmed

    def _apply_routes(
        self,
        plan: RoutePlan,
        new_addr: Address | None,
        first: _FirstError,
    ) -> set[Address]:
        """
        Delete stale routes via the old address and add new ones via the new address.

        Returns the routes confirmed on the host.
        """

        confirmed = set(self._applied.routes)
        old_addr = self._applied.local_addr

        for route in plan.to_remove:
            gateway = old_addr if old_addr is not None else new_addr
            if gateway is None:
                self._log.error("route del %s skipped: no gateway address", route)
                first.record(CommandFailed(["ip", "route", "del", str(route.network)], "no gateway address"))
                continue
            err = self._run(commands.route_del(route, gateway, self._iface), "route del")
            if err is None:
                self._ledger.forget(("route", str(route)))
                confirmed.discard(route)
            else:
                first.record(err)

        for route in plan.to_add:
            if new_addr is None:
                self._log.error("route add %s skipped: no local address", route)
                first.record(CommandFailed(["ip", "route", "add", str(route.network)], "no local address"))
                continue
            err = self._run(commands.route_add(route, new_addr, self._iface), "route add")
            if err is None:
                self._ledger.track(
                    ("route", str(route)),
                    InstalledResource(
                        f"route {route.network}",
                        commands.route_del(route, new_addr, self._iface),
                        route=route,
                    ),
                )
                confirmed.add(route)
            else:
                first.record(err)

        return confirmed

    def close(self) -> None:
        """
        Release tracked resources when configured, then restore the resolver.

        Rules, addresses and routes stay on the host unless teardown_on_close is set.
        """

        self._require("close", LifecycleState.active)
        self._state = LifecycleState.closed

        first = _FirstError()

        if self._config.teardown_on_close:
            gateway = self._applied.local_addr
            for resource in self._ledger.drain():
                argv = resource.teardown
                if resource.route is not None and gateway is not None:
                    argv = commands.route_del(resource.route, gateway, self._iface)
                err = self._run(argv, f"teardown of {resource.description}")
                if err is not None:
                    first.record(err)
        elif len(self._ledger):
            self._log.info("leaving %d installed resources on %s", len(self._ledger), self._iface)

        try:
            self._resolver.restore()
        except ResolverError as err:
            self._log.error("failed to restore system resolver file: %s", err)
            first.record(err)
        self._resolver.restart_resolver_service()

        if first.error is not None:
            raise first.error
