"""
Command builders.

Every OS mutation the reconciler issues is built here, so the exact argument
lists live in one place. Each installing command has an inverse used when
tracked resources are released.
"""

from __future__ import annotations

from tunnel_router.core.types import Address, route_network


def link_up(iface: str) -> list[str]:
    return ["ip", "link", "set", iface, "up"]


def forward_accept(iface: str) -> list[str]:
    return ["iptables", "-A", "FORWARD", "-i", iface, "-j", "ACCEPT"]


def forward_accept_delete(iface: str) -> list[str]:
    return ["iptables", "-D", "FORWARD", "-i", iface, "-j", "ACCEPT"]


def nat_masquerade(outbound_iface: str) -> list[str]:
    return ["iptables", "-t", "nat", "-A", "POSTROUTING", "-o", outbound_iface, "-j", "MASQUERADE"]


def nat_masquerade_delete(outbound_iface: str) -> list[str]:
    return ["iptables", "-t", "nat", "-D", "POSTROUTING", "-o", outbound_iface, "-j", "MASQUERADE"]


def addr_add(cidr: Address, iface: str) -> list[str]:
    return ["ip", "addr", "add", str(cidr), "dev", iface]


def addr_del(cidr: Address, iface: str) -> list[str]:
    return ["ip", "addr", "del", str(cidr), "dev", iface]


def route_add(route: Address, gateway: Address, iface: str) -> list[str]:
    """Route the network of route via the address part of gateway."""
    return ["ip", "route", "add", route_network(route), "via", str(gateway.ip), "dev", iface]


def route_del(route: Address, gateway: Address, iface: str) -> list[str]:
    return ["ip", "route", "del", route_network(route), "via", str(gateway.ip), "dev", iface]


def service_restart(service: str) -> list[str]:
    return ["service", service, "restart"]
