"""
Planner package.

This makes the planner folder an explicit package so both Python and mypy
resolve modules consistently.
"""

from tunnel_router.planner.diff import AddressChange, RoutePlan, plan_routes

__all__ = ["AddressChange", "RoutePlan", "plan_routes"]
