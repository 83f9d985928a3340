"""
Error taxonomy.

We separate error types so callers can react correctly.
Example:
InterfaceUpFailed should stop startup, the tunnel is useless without a link.
CommandFailed from set_routes is the first failure of a best effort pass.
InvalidLifecycleTransition means the caller broke the up, set_routes, close order.
"""

from __future__ import annotations

from tunnel_router.core.types import CommandResult, LifecycleState


class RouterError(Exception):
    """Base class for all router exceptions."""


class CommandFailed(RouterError):
    """Raised when an OS network command exits unsuccessfully."""

    def __init__(self, argv: list[str], output: str = "", returncode: int | None = None) -> None:
        self.argv = list(argv)
        self.output = output
        self.returncode = returncode
        super().__init__(f"{' '.join(self.argv)} failed: {output.strip() or 'no output'}")

    @classmethod
    def from_result(cls, result: CommandResult) -> CommandFailed:
        return cls(result.argv, result.output, result.returncode)


class InterfaceUpFailed(CommandFailed):
    """Raised when the tunnel interface cannot be set administratively up."""


class FirewallSetupFailed(CommandFailed):
    """Raised when a forwarding or NAT rule fails under the strict firewall policy."""


class InvalidLifecycleTransition(RouterError):
    """Raised when an operation is called out of lifecycle order."""

    def __init__(self, operation: str, state: LifecycleState) -> None:
        self.operation = operation
        self.state = state
        super().__init__(f"invalid lifecycle transition: {operation} while {state.value}")


class ResolverError(RouterError):
    """Raised when the resolver configuration cannot be installed or restored."""


class ConfigError(RouterError):
    """Raised when a router configuration file is malformed."""
