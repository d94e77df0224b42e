"""Kind-specific policy tables consulted by the resolver, planner and providers."""

from .models import KindPolicy
from .registry import DEFAULT_POLICIES, PolicyTable, build_policy_table, get_policy

__all__ = [
    "KindPolicy",
    "DEFAULT_POLICIES",
    "PolicyTable",
    "build_policy_table",
    "get_policy",
]
