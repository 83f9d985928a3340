"""
Route diffing.

Purpose
Compare the applied state with a desired state and describe the minimal set
of mutations that moves one to the other.

Rules
The address changes only when target and applied differ by value.
Routes present in both sets are never touched.
to_remove and to_add are sorted so command order is deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass

from tunnel_router.core.types import Address, AppliedState, RouteSettings


@dataclass(frozen=True)
class AddressChange:
    """
    Address swap on the interface.

    old is None when nothing was assigned before, so no delete is issued.
    new is None when the desired state carries no address.
    """

    old: Address | None
    new: Address | None


@dataclass(frozen=True)
class RoutePlan:
    """
    Output of plan_routes.

    address
    The address change, or None when the address is unchanged.

    to_remove, to_add
    Route CIDRs to delete and to install.

    routes
    The complete desired route set, the baseline for the next diff.
    """

    address: AddressChange | None
    to_remove: list[Address]
    to_add: list[Address]
    routes: frozenset[Address]

    @property
    def empty(self) -> bool:
        return self.address is None and not self.to_remove and not self.to_add


def _sort_key(cidr: Address) -> tuple[int, int, int]:
    return (cidr.version, int(cidr.ip), cidr.network.prefixlen)


def plan_routes(applied: AppliedState, desired: RouteSettings) -> RoutePlan:
    """Build the RoutePlan that moves applied to desired."""

    address = None
    if desired.local_addr != applied.local_addr:
        address = AddressChange(old=applied.local_addr, new=desired.local_addr)

    routes = desired.route_set()
    to_remove = sorted(applied.routes - routes, key=_sort_key)
    to_add = sorted(routes - applied.routes, key=_sort_key)

    return RoutePlan(address=address, to_remove=to_remove, to_add=to_add, routes=routes)
