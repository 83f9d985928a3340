"""
Router configuration.

Configuration is a set of frozen dataclasses with safe defaults, so a caller
can build one in code. load_router_config reads the same shape from YAML.

Example file

  outbound_interface: eth0
  firewall_policy: best_effort
  state_tracking: attempted
  manage_dns: false
  teardown_on_close: false
  command_timeout_seconds: 30
  resolver:
    path: /etc/resolv.conf
    backup_path: /etc/resolv.pre-tunnel-router.conf
    service_name: systemd-resolved
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml

from tunnel_router.core.errors import ConfigError
from tunnel_router.execution.base import RunnerConfig


class FirewallPolicy(StrEnum):
    """
    What up does when a forwarding or NAT rule fails.

    best_effort
    Log the failure and keep going. The tunnel still works as a non
    forwarding client.

    strict
    Attempt both rules, then raise the first failure.
    """

    best_effort = "best_effort"
    strict = "strict"


class StateTracking(StrEnum):
    """
    What set_routes records as applied after a failed command.

    attempted
    The desired state becomes the baseline regardless of failures.
    A failed add or delete is not retried while the desired state is unchanged.

    confirmed
    Only successful mutations are recorded, so the next pass retries the
    failed ones.
    """

    attempted = "attempted"
    confirmed = "confirmed"


@dataclass(frozen=True)
class ResolverConfig:
    """
    Resolver takeover configuration.

    path
    The system resolver file.

    backup_path
    Where the pre takeover contents are kept until restore.

    service_name
    Service restarted after the file changes.
    """

    path: Path = Path("/etc/resolv.conf")
    backup_path: Path = Path("/etc/resolv.pre-tunnel-router.conf")
    service_name: str = "systemd-resolved"


@dataclass(frozen=True)
class RouterConfig:
    """
    Router configuration.

    outbound_interface
    Host interface that forwarded traffic leaves through. NAT masquerade is
    installed on it.

    manage_dns
    When True, set_routes takes over the system resolver file.

    teardown_on_close
    When True, close removes every rule, address and route this router
    installed. When False they stay on the host after close.
    """

    outbound_interface: str
    firewall_policy: FirewallPolicy = FirewallPolicy.best_effort
    state_tracking: StateTracking = StateTracking.attempted
    manage_dns: bool = False
    teardown_on_close: bool = False
    command_timeout_seconds: float = 30.0
    resolver: ResolverConfig = field(default_factory=ResolverConfig)

    def runner_config(self) -> RunnerConfig:
        return RunnerConfig(timeout_seconds=self.command_timeout_seconds)


def _known_keys(cls: type) -> set[str]:
    return {f.name for f in fields(cls)}


def _check_keys(raw: dict[str, Any], cls: type, where: str) -> None:
    unknown = sorted(set(raw) - _known_keys(cls))
    if unknown:
        raise ConfigError(f"{where}: unknown keys {', '.join(unknown)}")


def _parse_enum(enum_cls: type[StrEnum], value: Any, key: str) -> Any:
    try:
        return enum_cls(str(value))
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"{key} must be one of {allowed}, got {value!r}") from None


def _parse_bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false")
    return value


def _parse_resolver(raw: Any) -> ResolverConfig:
    if raw is None:
        return ResolverConfig()
    if not isinstance(raw, dict):
        raise ConfigError("resolver must be a mapping")
    _check_keys(raw, ResolverConfig, "resolver")

    defaults = ResolverConfig()
    return ResolverConfig(
        path=Path(raw.get("path", defaults.path)),
        backup_path=Path(raw.get("backup_path", defaults.backup_path)),
        service_name=str(raw.get("service_name", defaults.service_name)),
    )


def router_config_from_dict(raw: dict[str, Any]) -> RouterConfig:
    """Build a RouterConfig from a parsed mapping, validating every key."""

    if not isinstance(raw, dict):
        raise ConfigError("router config must be a mapping")
    _check_keys(raw, RouterConfig, "router config")

    outbound = raw.get("outbound_interface")
    if not isinstance(outbound, str) or not outbound:
        raise ConfigError("outbound_interface is required")

    timeout = raw.get("command_timeout_seconds", 30.0)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError("command_timeout_seconds must be a positive number")

    return RouterConfig(
        outbound_interface=outbound,
        firewall_policy=_parse_enum(
            FirewallPolicy, raw.get("firewall_policy", FirewallPolicy.best_effort), "firewall_policy"
        ),
        state_tracking=_parse_enum(
            StateTracking, raw.get("state_tracking", StateTracking.attempted), "state_tracking"
        ),
        manage_dns=_parse_bool(raw.get("manage_dns", False), "manage_dns"),
        teardown_on_close=_parse_bool(raw.get("teardown_on_close", False), "teardown_on_close"),
        command_timeout_seconds=float(timeout),
        resolver=_parse_resolver(raw.get("resolver")),
    )


def load_router_config(path: Path | str) -> RouterConfig:
    """Read a RouterConfig from a YAML file."""

    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc

    return router_config_from_dict(raw or {})
