"""
tunnel_router

Host side network state reconciler for a mesh VPN tunnel interface.

We keep modules small and well separated:
core contains shared data structures and errors
execution contains command runners
planner contains command builders and route diffing
reconcile contains the stateful reconciler
dns contains resolver file takeover and restore
router contains the lifecycle facade used by the VPN engine
"""

from tunnel_router.config import RouterConfig, load_router_config
from tunnel_router.router import Router, TunnelDevice

__all__ = ["Router", "RouterConfig", "TunnelDevice", "load_router_config"]
