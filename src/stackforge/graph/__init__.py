"""Reference resolution and dependency graph."""

from .references import DependencyEdge, EdgeOrigin, Placeholder, find_placeholders, resolve_references
from .dependency_graph import DependencyGraph

__all__ = [
    "DependencyEdge",
    "EdgeOrigin",
    "Placeholder",
    "find_placeholders",
    "resolve_references",
    "DependencyGraph",
]
