"""Resolve explicit and implicit cross-resource references into dependency edges."""

import re
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple
from pydantic import BaseModel, Field
from ..ingest.models import NAME_CHARS, Resource, ResourceRef
from ..policy.registry import PolicyTable, build_policy_table, get_policy
from ..utils.errors import UnresolvedReferenceError
from ..utils.logging import get_logger

logger = get_logger("graph.references")

# ${kind.name} or ${kind.name.output}
PLACEHOLDER_PATTERN = re.compile(r"\$\{([a-z0-9_]+)\.(" + NAME_CHARS + r")(?:\.([A-Za-z0-9_]+))?\}")


class EdgeOrigin(str, Enum):
    """Where a dependency edge came from."""
    EXPLICIT = "explicit"
    IMPLICIT_ATTRIBUTE = "implicit-attribute"


class DependencyEdge(BaseModel):
    """from_ref depends on to_ref."""
    from_ref: ResourceRef = Field(..., description="Dependent resource (holds the reference)")
    to_ref: ResourceRef = Field(..., description="Resource being depended on")
    origin: EdgeOrigin = Field(..., description="explicit depends_on or implicit attribute reference")
    field: Optional[str] = Field(None, description="Attribute path that produced the edge")

    class Config:
        """Pydantic config."""
        use_enum_values = True
        frozen = True


class Placeholder(BaseModel):
    """A parsed ${kind.name[.output]} reference."""
    kind: str
    name: str
    output: Optional[str] = None
    text: str

    class Config:
        frozen = True

    @property
    def target_key(self) -> str:
        return f"{self.kind}.{self.name}"


def find_placeholders(text: str) -> List[Placeholder]:
    """Return every placeholder embedded in a string, in order of appearance."""
    found = []
    for match in PLACEHOLDER_PATTERN.finditer(text):
        kind, name, output = match.group(1), match.group(2), match.group(3)
        found.append(Placeholder(
            kind=kind,
            name=name,
            output=output,
            text=match.group(0),
        ))
    return found


def iter_string_values(value: Any, path: str) -> Iterator[Tuple[str, str]]:
    """Yield (attribute path, string) for every string nested in an attribute value."""
    if isinstance(value, str):
        yield path, value
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from iter_string_values(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from iter_string_values(item, f"{path}[{index}]")


def build_identity_index(resources: List[Resource], policies: PolicyTable) -> Dict[str, List[ResourceRef]]:
    """
    Map every exposed identity value to the resources exposing it.

    Each resource exposes the string values of its kind's identity fields
    (an IAM role's name, a bucket's bucket name, ...). Values that still
    contain placeholders are not known until apply time and are not indexed.
    """
    index: Dict[str, List[ResourceRef]] = {}
    for resource in resources:
        policy = get_policy(policies, resource.kind)
        for field in policy.identity_fields:
            value = resource.attributes.get(field)
            if not isinstance(value, str) or not value or "${" in value:
                continue
            index.setdefault(value, []).append(resource.ref)
    return index


def resolve_references(
    resources: List[Resource],
    policies: Optional[PolicyTable] = None
) -> List[DependencyEdge]:
    """
    Produce the complete set of dependency edges for the declared resources.

    Explicit depends_on entries are always emitted. Implicit edges come from
    ${kind.name[.output]} placeholders and from attribute values equal to
    another resource's exposed identity value.

    Raises:
        UnresolvedReferenceError: If depends_on or a placeholder names an undeclared resource
    """
    if policies is None:
        policies = build_policy_table()

    declared = {resource.ref.key for resource in resources}
    identity_index = build_identity_index(resources, policies)
    edges: Dict[Tuple[str, str], DependencyEdge] = {}

    def add(edge: DependencyEdge) -> None:
        key = (edge.from_ref.key, edge.to_ref.key)
        existing = edges.get(key)
        if existing is None or (
            existing.origin != EdgeOrigin.EXPLICIT.value and edge.origin == EdgeOrigin.EXPLICIT.value
        ):
            edges[key] = edge
            logger.debug(f"Edge {edge.from_ref.key} -> {edge.to_ref.key} ({edge.origin}, {edge.field})")

    for resource in resources:
        ref = resource.ref

        for dependency in resource.depends_on:
            if dependency.key not in declared:
                raise UnresolvedReferenceError(ref.key, "depends_on", dependency.key)
            add(DependencyEdge(from_ref=ref, to_ref=dependency, origin=EdgeOrigin.EXPLICIT, field="depends_on"))

        policy = get_policy(policies, resource.kind)
        skipped = set(policy.identity_fields) | set(policy.scan_exclude)

        for field, value in resource.attributes.items():
            if field in skipped:
                continue
            for path, text in iter_string_values(value, field):
                placeholders = find_placeholders(text)
                for placeholder in placeholders:
                    target_key = placeholder.target_key
                    if target_key not in declared:
                        raise UnresolvedReferenceError(ref.key, path, target_key)
                    add(DependencyEdge(
                        from_ref=ref,
                        to_ref=ResourceRef.parse(target_key),
                        origin=EdgeOrigin.IMPLICIT_ATTRIBUTE,
                        field=path,
                    ))
                if placeholders:
                    continue

                for target in _identity_matches(ref, field, text, identity_index, policy.reference_fields):
                    add(DependencyEdge(
                        from_ref=ref,
                        to_ref=target,
                        origin=EdgeOrigin.IMPLICIT_ATTRIBUTE,
                        field=path,
                    ))

    result = list(edges.values())
    logger.info(f"Resolved {len(result)} dependency edges across {len(resources)} resources")
    return result


def _identity_matches(
    ref: ResourceRef,
    field: str,
    value: str,
    identity_index: Dict[str, List[ResourceRef]],
    reference_fields: Dict[str, List[str]]
) -> List[ResourceRef]:
    """Resources whose exposed identity equals value, narrowed by the field's kind hint."""
    candidates = [candidate for candidate in identity_index.get(value, []) if candidate != ref]
    hinted_kinds = reference_fields.get(field)

    if hinted_kinds:
        candidates = [candidate for candidate in candidates if candidate.kind in hinted_kinds]
        if not candidates:
            logger.debug(f"{ref.key}.{field} = '{value}' matches no declared {hinted_kinds}; treating as external")

    if len(candidates) > 1:
        logger.warning(
            f"{ref.key}.{field} = '{value}' matches several resources "
            f"({', '.join(c.key for c in candidates)}); depending on all of them"
        )
    return candidates
