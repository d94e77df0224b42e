"""Diff the desired resource set against state and produce an ordered plan."""

from typing import Dict, Iterable, List, Optional, Set, Tuple
import networkx as nx
from ..contracts.plan import ActionVerb, PlannedAction, Plan
from ..graph.dependency_graph import DependencyGraph
from ..ingest.models import ResourceRef
from ..policy.registry import PolicyTable, build_policy_table, get_policy
from ..provider.base import ProviderAdapter
from ..state.models import StateEntry
from ..utils.errors import GraphConstructionError, NotFoundError
from ..utils.logging import get_logger
from .fingerprint import fingerprint_attributes, changed_fields

logger = get_logger("planning.builder")

_Decision = Tuple[str, str, List[str]]


def refresh_state(entries: Iterable[StateEntry], provider: ProviderAdapter) -> Set[str]:
    """
    Read every recorded resource from the provider.

    Returns:
        Ref keys whose remote object no longer exists (drift)

    Raises:
        ProviderError: If a read fails for any reason other than not-found
    """
    missing = set()
    for entry in entries:
        try:
            provider.read(entry.ref.kind, entry.remote_id)
        except NotFoundError:
            logger.warning(f"Drift: {entry.ref.key} ({entry.remote_id}) no longer exists remotely")
            missing.add(entry.ref.key)
    return missing


def build_plan(
    graph: DependencyGraph,
    state_entries: Iterable[StateEntry],
    policies: Optional[PolicyTable] = None,
    missing_remote: Optional[Set[str]] = None
) -> Plan:
    """
    Produce the ordered plan for driving remote state to the declared graph.

    Destroys come first, in reverse dependency order (dependents before their
    dependencies); creates, updates and no-ops follow in topological order.
    A destroy also waits for the update of any still-declared resource that
    referenced the doomed one when it was last applied, so nothing points at
    a resource while it is being removed.
    Given the same graph and state the output is always identical.

    Args:
        graph: Validated dependency graph of the desired resources
        state_entries: State snapshot
        policies: Kind policy table (defaults when None)
        missing_remote: Ref keys found missing by refresh_state()
    """
    if policies is None:
        policies = build_policy_table()
    missing_remote = missing_remote or set()
    state = {entry.ref.key: entry for entry in state_entries}

    order = graph.topological_order()
    decisions = _decide(graph, order, state, policies, missing_remote)

    replaced = [ref for ref in order if decisions[ref.key][0] == ActionVerb.REPLACE.value]
    orphans = sorted(key for key in state if ResourceRef.parse(key) not in graph)
    destroy_order = _destroy_order(graph, state, replaced, orphans)
    destroy_keys = {ref.key for ref in destroy_order}

    actions: List[PlannedAction] = []
    dependencies: Dict[str, List[str]] = {}

    for ref in destroy_order:
        if ref.key in decisions:
            _, reason, changed = decisions[ref.key]
            action = PlannedAction(
                ref=ref, verb=ActionVerb.DESTROY, reason=reason,
                changed_fields=changed, replacement=True
            )
        else:
            reason = "no longer declared"
            if ref.key in missing_remote:
                reason += " (remote object already missing)"
            action = PlannedAction(ref=ref, verb=ActionVerb.DESTROY, reason=reason)
        actions.append(action)
        dependencies[action.key] = [
            f"{ActionVerb.DESTROY.value}:{dependent}"
            for dependent in _recorded_dependents(ref, graph, state, destroy_keys)
        ] + [
            f"{ActionVerb.UPDATE.value}:{dependent}"
            for dependent in _updated_dependents(ref, state, decisions)
        ]

    for ref in order:
        verb, reason, changed = decisions[ref.key]
        replacement = verb == ActionVerb.REPLACE.value
        action = PlannedAction(
            ref=ref,
            verb=ActionVerb.CREATE if replacement else verb,
            reason=reason,
            changed_fields=changed,
            replacement=replacement,
            attributes=graph.get_resource(ref).attributes,
            depends_on=graph.dependencies_of(ref),
        )
        actions.append(action)
        prerequisites = [
            _apply_key(dependency, decisions) for dependency in graph.dependencies_of(ref)
        ]
        if replacement:
            prerequisites.append(f"{ActionVerb.DESTROY.value}:{ref.key}")
        dependencies[action.key] = prerequisites

    plan = Plan(actions=actions, dependencies=dependencies)
    counts = plan.summary()
    logger.info(
        "Plan: " + ", ".join(f"{count} {verb}" for verb, count in counts.items() if count)
        if plan.actions else "Plan: nothing declared and nothing in state"
    )
    return plan


def _decide(
    graph: DependencyGraph,
    order: List[ResourceRef],
    state: Dict[str, StateEntry],
    policies: PolicyTable,
    missing_remote: Set[str]
) -> Dict[str, _Decision]:
    """Per-resource verb, reason and changed fields, with replacement cascading to dependents."""
    decisions: Dict[str, _Decision] = {}

    for ref in order:
        resource = graph.get_resource(ref)
        entry = state.get(ref.key)

        if entry is None:
            decisions[ref.key] = (ActionVerb.CREATE.value, "not in state", [])
            continue

        if ref.key in missing_remote:
            decisions[ref.key] = (ActionVerb.CREATE.value, "remote object missing (drift)", [])
            continue

        stale = _stale_dependency(entry, state)
        if stale is None and entry.attribute_fingerprint == fingerprint_attributes(resource.attributes):
            decisions[ref.key] = (ActionVerb.NO_OP.value, "attributes unchanged", [])
            continue

        changed = changed_fields(entry.attributes, resource.attributes)
        policy = get_policy(policies, resource.kind)
        if stale is not None:
            decisions[ref.key] = (
                ActionVerb.REPLACE.value,
                f"dependency {stale} was re-created since the last apply",
                changed,
            )
        elif policy.requires_replacement(changed):
            forcing = policy.replacement_fields(changed)
            decisions[ref.key] = (
                ActionVerb.REPLACE.value,
                f"{', '.join(forcing)} cannot be updated in place",
                changed,
            )
        else:
            decisions[ref.key] = (
                ActionVerb.UPDATE.value,
                f"in-place update of {', '.join(changed)}",
                changed,
            )

    # Replaced or drift-recreated resources get a new remote identity; everything built on them follows.
    renewed: Dict[str, str] = {}
    for ref in order:
        verb, reason, changed = decisions[ref.key]
        if verb == ActionVerb.REPLACE.value:
            renewed[ref.key] = "is being replaced"
            continue
        if verb == ActionVerb.CREATE.value and ref.key in state:
            renewed[ref.key] = "is being re-created"
            continue
        if verb not in (ActionVerb.NO_OP.value, ActionVerb.UPDATE.value):
            continue
        renewed_dependency = next(
            (dependency for dependency in graph.dependencies_of(ref) if dependency.key in renewed),
            None
        )
        if renewed_dependency is not None:
            decisions[ref.key] = (
                ActionVerb.REPLACE.value,
                f"dependency {renewed_dependency.key} {renewed[renewed_dependency.key]}",
                changed,
            )
            renewed[ref.key] = "is being replaced"

    return decisions


def _stale_dependency(entry: StateEntry, state: Dict[str, StateEntry]) -> Optional[str]:
    """First dependency whose remote id differs from the one this entry was applied against."""
    for key in sorted(entry.dependency_ids):
        current = state.get(key)
        if current is not None and current.remote_id != entry.dependency_ids[key]:
            return key
    return None


def _destroy_order(
    graph: DependencyGraph,
    state: Dict[str, StateEntry],
    replaced: List[ResourceRef],
    orphans: List[str]
) -> List[ResourceRef]:
    """Reverse topological order over everything being destroyed."""
    position: Dict[str, int] = {}
    for ref in replaced:
        position[ref.key] = graph.declaration_index(ref)
    offset = len(graph.get_all_resources())
    for index, key in enumerate(orphans):
        position[key] = offset + index

    forward = nx.DiGraph()
    forward.add_nodes_from(position)
    for key in position:
        ref = ResourceRef.parse(key)
        for dependency in _recorded_dependencies(ref, graph, state):
            if dependency in position:
                forward.add_edge(dependency, key)

    try:
        ordered = list(nx.lexicographical_topological_sort(forward, key=lambda node: position[node]))
    except nx.NetworkXUnfeasible as e:
        raise GraphConstructionError(f"Recorded state dependencies form a cycle: {e}") from e
    return [ResourceRef.parse(key) for key in reversed(ordered)]


def _recorded_dependencies(ref: ResourceRef, graph: DependencyGraph, state: Dict[str, StateEntry]) -> Set[str]:
    """Dependencies of the live instance: what state recorded plus what is declared now."""
    keys = set()
    entry = state.get(ref.key)
    if entry is not None:
        keys.update(dependency.key for dependency in entry.dependencies)
    keys.update(dependency.key for dependency in graph.dependencies_of(ref))
    return keys


def _recorded_dependents(
    ref: ResourceRef,
    graph: DependencyGraph,
    state: Dict[str, StateEntry],
    destroy_keys: Set[str]
) -> List[str]:
    """Destroy-set members that depend on ref, sorted for a stable plan."""
    return sorted(
        key for key in destroy_keys
        if key != ref.key and ref.key in _recorded_dependencies(ResourceRef.parse(key), graph, state)
    )


def _updated_dependents(
    ref: ResourceRef,
    state: Dict[str, StateEntry],
    decisions: Dict[str, _Decision]
) -> List[str]:
    """Declared resources being updated in place whose last apply still referenced ref."""
    return sorted(
        key for key, (verb, _, _) in decisions.items()
        if verb == ActionVerb.UPDATE.value
        and any(dependency.key == ref.key for dependency in state[key].dependencies)
    )


def _apply_key(ref: ResourceRef, decisions: Dict[str, _Decision]) -> str:
    verb = decisions[ref.key][0]
    if verb == ActionVerb.REPLACE.value:
        verb = ActionVerb.CREATE.value
    return f"{verb}:{ref.key}"
