"""
Core types.

This file defines the shared data structures used across the reconciler.

Important design choice
Addresses and routes are ipaddress interface objects, not strings.
The local address keeps its host bits, so two addresses are equal only
when address and prefix both match. Routes are keyed on their network
address, the same destination the OS route table holds.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from enum import StrEnum

Address = ipaddress.IPv4Interface | ipaddress.IPv6Interface
NameServer = ipaddress.IPv4Address | ipaddress.IPv6Address


class LifecycleState(StrEnum):
    """
    Reconciler lifecycle.

    uninitialized
      Constructed, interface not yet up.

    active
      up succeeded, set_routes may be called any number of times.

    closed
      close was called, every operation is rejected.
    """

    uninitialized = "uninitialized"
    active = "active"
    closed = "closed"


def route_network(cidr: Address) -> str:
    """Return the destination as network address and prefix, e.g. 10.0.0.0/24."""
    return str(cidr.network)


def route_key(cidr: Address) -> Address:
    """Drop host bits, so 10.0.0.1/24 and 10.0.0.0/24 are the same route."""
    return ipaddress.ip_interface(str(cidr.network))


@dataclass(frozen=True)
class Peer:
    """
    A VPN peer as seen by the reconciler.

    Only allowed_ips matters for routing. public_key is kept for log lines.
    """

    public_key: str
    allowed_ips: list[Address] = field(default_factory=list)


@dataclass(frozen=True)
class RouteSettings:
    """
    Desired state computed by the control plane for one set_routes call.

    local_addr
    Target address of the tunnel interface. None means no address.

    peers
    Every peer with its allowed IP CIDRs. The route set is their union.

    dns and dns_domains
    Resolver servers and search domains, used only when DNS is managed.
    """

    local_addr: Address | None
    peers: list[Peer] = field(default_factory=list)
    dns: list[NameServer] = field(default_factory=list)
    dns_domains: list[str] = field(default_factory=list)

    def route_set(self) -> frozenset[Address]:
        """Union of allowed IPs, keyed on the network each one routes to."""
        routes: set[Address] = set()
        for peer in self.peers:
            routes.update(route_key(cidr) for cidr in peer.allowed_ips)
        return frozenset(routes)


@dataclass(frozen=True)
class AppliedState:
    """What the reconciler believes the OS currently has."""

    local_addr: Address | None = None
    routes: frozenset[Address] = frozenset()


@dataclass(frozen=True)
class CommandResult:
    """
    Outcome of one OS command.

    output is stdout and stderr combined.
    returncode is None when the command never ran to completion,
    for example on timeout or when the executable is missing.
    """

    argv: list[str]
    ok: bool
    output: str = ""
    returncode: int | None = None
