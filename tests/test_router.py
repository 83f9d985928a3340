import ipaddress
import logging

import pytest

from tunnel_router import Router, RouterConfig
from tunnel_router.config import FirewallPolicy, ResolverConfig
from tunnel_router.core.errors import FirewallSetupFailed, InterfaceUpFailed
from tunnel_router.core.types import LifecycleState, Peer, RouteSettings
from tunnel_router.execution.mock import RecordingRunner


class FakeDevice:
    """A tunnel device that only knows its name."""

    def __init__(self, name: str = "tailscale0") -> None:
        self._name = name

    def name(self) -> str:
        return self._name


def make_config(tmp_path) -> RouterConfig:  # type: ignore[no-untyped-def]
    return RouterConfig(
        outbound_interface="eth0",
        resolver=ResolverConfig(path=tmp_path / "resolv.conf", backup_path=tmp_path / "resolv.bak"),
    )


def test_router_binds_device_name_and_delegates(tmp_path):
    runner = RecordingRunner()
    router = Router(FakeDevice(), make_config(tmp_path), runner=runner)

    router.up()
    router.set_routes(
        RouteSettings(
            local_addr=ipaddress.ip_interface("100.64.0.7/32"),
            peers=[Peer("peer0", [ipaddress.ip_interface("100.64.0.0/10")])],
        )
    )
    router.close()

    assert router.iface == "tailscale0"
    assert router.applied.local_addr == ipaddress.ip_interface("100.64.0.7/32")
    assert runner.calls == [
        ["ip", "link", "set", "tailscale0", "up"],
        ["iptables", "-A", "FORWARD", "-i", "tailscale0", "-j", "ACCEPT"],
        ["iptables", "-t", "nat", "-A", "POSTROUTING", "-o", "eth0", "-j", "MASQUERADE"],
        ["ip", "addr", "add", "100.64.0.7/32", "dev", "tailscale0"],
        ["ip", "route", "add", "100.64.0.0/10", "via", "100.64.0.7", "dev", "tailscale0"],
        ["service", "systemd-resolved", "restart"],
    ]
    assert router.state == LifecycleState.closed


def test_router_context_manager_runs_up_and_close(tmp_path):
    runner = RecordingRunner()

    with Router(FakeDevice("wg0"), make_config(tmp_path), runner=runner) as router:
        assert router.state == LifecycleState.active

    assert router.state == LifecycleState.closed
    assert runner.calls[0] == ["ip", "link", "set", "wg0", "up"]
    assert runner.calls[-1] == ["service", "systemd-resolved", "restart"]


def test_router_context_manager_propagates_up_failure(tmp_path):
    runner = RecordingRunner()
    runner.fail(["ip", "link", "set", "wg0", "up"])

    with pytest.raises(InterfaceUpFailed):
        with Router(FakeDevice("wg0"), make_config(tmp_path), runner=runner):
            pass

    assert runner.calls == [["ip", "link", "set", "wg0", "up"]]


def test_router_logs_through_injected_logger(tmp_path, caplog):
    runner = RecordingRunner()
    runner.fail(["iptables", "-A", "FORWARD", "-i", "wg0", "-j", "ACCEPT"])
    logger = logging.getLogger("custom.router")
    router = Router(FakeDevice("wg0"), make_config(tmp_path), runner=runner, logger=logger)

    with caplog.at_level(logging.INFO, logger="custom.router"):
        router.up()

    assert {r.name for r in caplog.records} == {"custom.router"}
    assert "iptables forward failed" in caplog.text


def test_router_context_manager_tears_down_when_strict_up_fails(tmp_path):
    runner = RecordingRunner()
    nat = ["iptables", "-t", "nat", "-A", "POSTROUTING", "-o", "eth0", "-j", "MASQUERADE"]
    runner.fail(nat)
    config = RouterConfig(
        outbound_interface="eth0",
        firewall_policy=FirewallPolicy.strict,
        teardown_on_close=True,
        resolver=ResolverConfig(path=tmp_path / "resolv.conf", backup_path=tmp_path / "resolv.bak"),
    )
    router = Router(FakeDevice("wg0"), config, runner=runner)

    with pytest.raises(FirewallSetupFailed):
        with router:
            pass

    assert router.state == LifecycleState.closed
    assert runner.calls[-2:] == [
        ["iptables", "-D", "FORWARD", "-i", "wg0", "-j", "ACCEPT"],
        ["service", "systemd-resolved", "restart"],
    ]
