"""Build directed dependency graph from declared resources and resolved edges."""

import networkx as nx
from typing import List, Dict, Set, Optional
from ..ingest.models import Resource, ResourceRef
from .references import DependencyEdge
from ..utils.errors import CycleError, GraphConstructionError, UnresolvedReferenceError, StackForgeError
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")

_IN_PROGRESS = 1
_DONE = 2


class DependencyGraph:
    """
    Directed dependency graph keyed by '<kind>.<name>' strings.

    Edges point from a dependency to its dependent, so every graph edge
    (A -> B) means A must be applied before B.
    """

    def __init__(self):
        self.graph = nx.DiGraph()
        self._resource_map: Dict[str, Resource] = {}
        self._order: Dict[str, int] = {}
        self._edges: List[DependencyEdge] = []

    @classmethod
    def build(cls, resources: List[Resource], edges: List[DependencyEdge]) -> "DependencyGraph":
        """
        Build and validate the graph.

        Raises:
            UnresolvedReferenceError: If an edge points at an undeclared resource
            CycleError: If the edges form a cycle
        """
        graph = cls()
        try:
            for resource in resources:
                graph.add_resource(resource)
            for edge in edges:
                graph.add_edge(edge)
        except StackForgeError:
            raise
        except Exception as e:
            raise GraphConstructionError(f"Failed to build dependency graph: {e}") from e

        graph.check_acyclic()
        logger.info(
            f"Built dependency graph with {graph.graph.number_of_nodes()} nodes "
            f"and {graph.graph.number_of_edges()} edges"
        )
        return graph

    def add_resource(self, resource: Resource) -> None:
        """Add a resource node, remembering its declaration position."""
        node_id = resource.ref.key
        if node_id in self._resource_map:
            raise GraphConstructionError(f"Resource declared twice: {node_id}")
        self.graph.add_node(node_id, ref=resource.ref)
        self._resource_map[node_id] = resource
        self._order[node_id] = len(self._order)

    def add_edge(self, edge: DependencyEdge) -> None:
        """Add a dependency edge; both ends must already be declared."""
        for endpoint in (edge.from_ref, edge.to_ref):
            if endpoint.key not in self._resource_map:
                raise UnresolvedReferenceError(edge.from_ref.key, edge.field or "depends_on", endpoint.key)
        self.graph.add_edge(edge.to_ref.key, edge.from_ref.key, origin=edge.origin, field=edge.field)
        self._edges.append(edge)

    def check_acyclic(self) -> None:
        """
        Depth-first traversal with an in-progress marker per node.

        Reaching a node that is still in progress closes a cycle; the error
        carries the cycle path in dependency direction, first ref repeated last.
        """
        marks: Dict[str, int] = {}
        for start in self._sorted(self.graph.nodes):
            if start in marks:
                continue
            marks[start] = _IN_PROGRESS
            path = [start]
            stack = [iter(self._sorted(self.graph.predecessors(start)))]
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    marks[path.pop()] = _DONE
                    stack.pop()
                    continue
                mark = marks.get(nxt)
                if mark == _IN_PROGRESS:
                    cycle = path[path.index(nxt):] + [nxt]
                    raise CycleError([ResourceRef.parse(key) for key in cycle])
                if mark is None:
                    marks[nxt] = _IN_PROGRESS
                    path.append(nxt)
                    stack.append(iter(self._sorted(self.graph.predecessors(nxt))))

    def topological_order(self) -> List[ResourceRef]:
        """Dependencies first; ties broken by declaration order."""
        ordered = nx.lexicographical_topological_sort(self.graph, key=lambda node: self._order[node])
        return [ResourceRef.parse(node) for node in ordered]

    def parallelizable_layers(self) -> List[List[ResourceRef]]:
        """Layers whose dependencies are all satisfied by earlier layers."""
        return [
            [ResourceRef.parse(node) for node in self._sorted(generation)]
            for generation in nx.topological_generations(self.graph)
        ]

    def dependencies_of(self, ref: ResourceRef) -> List[ResourceRef]:
        """Direct dependencies of a resource, in declaration order."""
        if ref.key not in self.graph:
            return []
        return [ResourceRef.parse(node) for node in self._sorted(self.graph.predecessors(ref.key))]

    def dependents_of(self, ref: ResourceRef) -> List[ResourceRef]:
        """Resources that directly depend on ref, in declaration order."""
        if ref.key not in self.graph:
            return []
        return [ResourceRef.parse(node) for node in self._sorted(self.graph.successors(ref.key))]

    def transitive_dependents(self, ref: ResourceRef) -> Set[ResourceRef]:
        """Everything that depends on ref directly or indirectly."""
        if ref.key not in self.graph:
            return set()
        return {ResourceRef.parse(node) for node in nx.descendants(self.graph, ref.key)}

    def declaration_index(self, ref: ResourceRef) -> Optional[int]:
        return self._order.get(ref.key)

    def get_resource(self, ref: ResourceRef) -> Optional[Resource]:
        """Get the declared resource for a ref."""
        return self._resource_map.get(ref.key)

    def get_all_resources(self) -> List[Resource]:
        """All declared resources in declaration order."""
        return list(self._resource_map.values())

    @property
    def edges(self) -> List[DependencyEdge]:
        return list(self._edges)

    def __contains__(self, ref: ResourceRef) -> bool:
        return ref.key in self._resource_map

    def _sorted(self, nodes) -> List[str]:
        return sorted(nodes, key=lambda node: self._order[node])
