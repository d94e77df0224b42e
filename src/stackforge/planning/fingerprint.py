"""Stable attribute fingerprints and field-level diffs."""

import hashlib
import json
from typing import Any, Dict, List


def canonical_json(value: Any) -> str:
    """Serialize with sorted keys and no whitespace so equal values encode identically."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def fingerprint_attributes(attributes: Dict[str, Any]) -> str:
    """sha256 over the canonical JSON of the declared attributes."""
    digest = hashlib.sha256(canonical_json(attributes).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


def changed_fields(previous: Dict[str, Any], desired: Dict[str, Any]) -> List[str]:
    """Top-level keys added, removed or changed between two attribute sets, sorted."""
    keys = set(previous) | set(desired)
    return sorted(
        key for key in keys
        if key not in previous
        or key not in desired
        or canonical_json(previous[key]) != canonical_json(desired[key])
    )
