import ipaddress

from tunnel_router.core.types import AppliedState, Peer, RouteSettings
from tunnel_router.planner.diff import plan_routes


def cidrs(*values: str) -> frozenset:  # type: ignore[type-arg]
    return frozenset(ipaddress.ip_interface(v) for v in values)


def test_plan_routes_scenario():
    applied = AppliedState(
        local_addr=ipaddress.ip_interface("100.64.0.1/32"),
        routes=cidrs("10.0.0.0/24", "10.0.1.0/24"),
    )
    desired = RouteSettings(
        local_addr=ipaddress.ip_interface("100.64.0.1/32"),
        peers=[
            Peer("a", [ipaddress.ip_interface("10.0.1.0/24")]),
            Peer("b", [ipaddress.ip_interface("10.0.2.0/24")]),
        ],
    )

    plan = plan_routes(applied, desired)

    assert plan.address is None
    assert plan.to_remove == [ipaddress.ip_interface("10.0.0.0/24")]
    assert plan.to_add == [ipaddress.ip_interface("10.0.2.0/24")]
    assert plan.routes == cidrs("10.0.1.0/24", "10.0.2.0/24")


def test_plan_routes_address_compares_by_value():
    applied = AppliedState(local_addr=ipaddress.ip_interface("100.64.0.1/32"))

    same = plan_routes(applied, RouteSettings(local_addr=ipaddress.ip_interface("100.64.0.1/32")))
    wider = plan_routes(applied, RouteSettings(local_addr=ipaddress.ip_interface("100.64.0.1/10")))

    assert same.empty
    assert wider.address is not None
    assert wider.address.old == ipaddress.ip_interface("100.64.0.1/32")


def test_plan_routes_from_empty_state_has_no_old_address():
    plan = plan_routes(AppliedState(), RouteSettings(local_addr=ipaddress.ip_interface("100.64.0.1/32")))

    assert plan.address is not None
    assert plan.address.old is None


def test_plan_routes_collapses_duplicate_allowed_ips_and_sorts():
    desired = RouteSettings(
        local_addr=None,
        peers=[
            Peer("a", [ipaddress.ip_interface("10.0.2.0/24"), ipaddress.ip_interface("10.0.1.0/24")]),
            Peer("b", [ipaddress.ip_interface("10.0.1.0/24")]),
        ],
    )

    plan = plan_routes(AppliedState(), desired)

    assert plan.to_add == [ipaddress.ip_interface("10.0.1.0/24"), ipaddress.ip_interface("10.0.2.0/24")]
