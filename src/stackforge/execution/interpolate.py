"""Substitute ${kind.name[.output]} placeholders with applied outputs."""

from typing import Any, Callable, Dict
from ..graph.references import PLACEHOLDER_PATTERN, Placeholder, find_placeholders
from ..ingest.models import ResourceRef
from ..state.store import StateStore
from ..utils.errors import OutputNotAvailableError

Resolver = Callable[[Placeholder], Any]


def interpolate_attributes(attributes: Dict[str, Any], resolve: Resolver) -> Dict[str, Any]:
    """Return a copy of attributes with every placeholder replaced."""
    return {key: _interpolate(value, resolve) for key, value in attributes.items()}


def _interpolate(value: Any, resolve: Resolver) -> Any:
    if isinstance(value, str):
        placeholders = find_placeholders(value)
        if not placeholders:
            return value
        # A value that is exactly one placeholder keeps the output's own type.
        if len(placeholders) == 1 and PLACEHOLDER_PATTERN.fullmatch(value):
            return resolve(placeholders[0])
        result = value
        for placeholder in placeholders:
            result = result.replace(placeholder.text, str(resolve(placeholder)))
        return result
    if isinstance(value, dict):
        return {key: _interpolate(item, resolve) for key, item in value.items()}
    if isinstance(value, list):
        return [_interpolate(item, resolve) for item in value]
    return value


def state_resolver(state_store: StateStore) -> Resolver:
    """
    Resolve placeholders from outputs recorded in the state store.

    ${kind.name} yields the remote id; ${kind.name.output} yields that output.
    """
    def resolve(placeholder: Placeholder) -> Any:
        entry = state_store.get(ResourceRef.parse(placeholder.target_key))
        if entry is None:
            raise OutputNotAvailableError(
                f"{placeholder.text}: {placeholder.target_key} has not been applied"
            )
        if placeholder.output is None or placeholder.output == "id":
            return entry.remote_id
        if placeholder.output not in entry.outputs:
            raise OutputNotAvailableError(
                f"{placeholder.text}: {placeholder.target_key} has no output '{placeholder.output}'"
            )
        return entry.outputs[placeholder.output]

    return resolve
