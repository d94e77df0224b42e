"""stackforge - Dependency-ordered, idempotent provisioning engine for declared cloud resources."""

import threading
from typing import Optional, Tuple
from .ingest.models import DeclaredStack
from .graph.references import resolve_references
from .graph.dependency_graph import DependencyGraph
from .planning.builder import build_plan, refresh_state
from .execution.executor import Executor, DEFAULT_MAX_CONCURRENCY
from .contracts.plan import Plan
from .contracts.execution import ExecutionReport
from .policy.registry import PolicyTable, build_policy_table
from .provider.base import ProviderAdapter
from .state.store import StateStore
from .utils.logging import setup_logging, get_logger
from .utils.errors import StackForgeError

__version__ = "0.1.0"

__all__ = ["resolve_stack", "plan_stack", "apply_stack"]

setup_logging()
logger = get_logger("engine")


def resolve_stack(stack: DeclaredStack, policies: Optional[PolicyTable] = None) -> DependencyGraph:
    """
    Resolve references and build the validated dependency graph.

    Raises:
        UnresolvedReferenceError: A reference names an undeclared resource
        CycleError: The declared dependencies form a cycle
    """
    if policies is None:
        policies = build_policy_table()
    edges = resolve_references(stack.resources, policies)
    return DependencyGraph.build(stack.resources, edges)


def plan_stack(
    stack: DeclaredStack,
    state_store: StateStore,
    policies: Optional[PolicyTable] = None,
    provider: Optional[ProviderAdapter] = None,
    refresh: bool = False
) -> Tuple[DependencyGraph, Plan]:
    """
    Plan the changes that drive remote state to the declared stack.

    Structural errors surface here, before any remote mutation.
    """
    if policies is None:
        policies = build_policy_table()

    graph = resolve_stack(stack, policies)
    entries = state_store.load()

    missing = set()
    if refresh:
        if provider is None:
            raise StackForgeError("Refresh requested but no provider was given")
        missing = refresh_state(entries, provider)

    return graph, build_plan(graph, entries, policies, missing)


def apply_stack(
    stack: DeclaredStack,
    provider: ProviderAdapter,
    state_store: StateStore,
    policies: Optional[PolicyTable] = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    refresh: bool = False,
    cancel_event: Optional[threading.Event] = None
) -> Tuple[Plan, ExecutionReport]:
    """Plan and execute in one call; returns the plan and its execution report."""
    _, plan = plan_stack(stack, state_store, policies, provider=provider, refresh=refresh)
    logger.info(f"Applying plan with {len(plan.actions)} action(s)")
    report = Executor(provider, state_store, max_concurrency=max_concurrency).execute(plan, cancel_event)
    return plan, report
