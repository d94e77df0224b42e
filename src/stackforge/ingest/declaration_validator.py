"""Validate the structure of a declared resource document."""

from typing import Dict, Any, List
from ..utils.errors import DeclarationError
from ..utils.logging import get_logger

logger = get_logger("ingest.declaration_validator")


def validate_declaration_structure(document: Any) -> None:
    """
    Validate top-level declaration document structure.

    Args:
        document: Parsed YAML/JSON document

    Raises:
        DeclarationError: If the document structure is invalid
    """
    if not isinstance(document, dict):
        raise DeclarationError(
            "Declaration must be a mapping with a 'resources' list. "
            "Please check the document format."
        )

    if "resources" not in document:
        raise DeclarationError(
            "Declaration missing required 'resources' key. "
            "Declare resources as: resources: [{kind: ..., name: ..., attributes: {...}}]"
        )

    resources = document["resources"]
    if resources is None:
        document["resources"] = []
        return

    if not isinstance(resources, list):
        raise DeclarationError("Declaration 'resources' must be a list")

    problems = []
    for index, entry in enumerate(resources):
        for warning in validate_resource_entry(entry):
            problems.append(f"resources[{index}]: {warning}")

    if problems:
        raise DeclarationError("Invalid resource declarations:\n  " + "\n  ".join(problems))

    logger.debug("Declaration structure validation passed")


def validate_resource_entry(entry: Any) -> List[str]:
    """
    Validate a single resource entry.

    Returns:
        List of problems (empty if valid)
    """
    problems = []

    if not isinstance(entry, dict):
        return ["resource entry must be a mapping"]

    missing = [field for field in ("kind", "name") if field not in entry]
    if missing:
        problems.append(f"missing required fields: {', '.join(missing)}")

    attributes = entry.get("attributes", {})
    if attributes is not None and not isinstance(attributes, dict):
        problems.append("'attributes' must be a mapping")

    depends_on = entry.get("depends_on", [])
    if depends_on is not None and not isinstance(depends_on, list):
        problems.append("'depends_on' must be a list of '<kind>.<name>' references")

    return problems


def find_duplicate_identities(entries: List[Dict[str, Any]]) -> List[str]:
    """Return '<kind>.<name>' keys declared more than once, in first-seen order."""
    seen = set()
    duplicates = []
    for entry in entries:
        key = f"{entry.get('kind')}.{entry.get('name')}"
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    return duplicates
