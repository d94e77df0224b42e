"""Load and validate a declared resource document (YAML or JSON)."""

from pathlib import Path
from typing import Dict, Any
import yaml
from pydantic import ValidationError
from .models import DeclaredStack, Resource
from .declaration_validator import validate_declaration_structure, find_duplicate_identities
from ..utils.errors import DeclarationError
from ..utils.logging import get_logger

logger = get_logger("ingest.declaration_loader")


def load_declaration(declaration_path: str) -> DeclaredStack:
    """
    Load a declared resource document from disk.

    Args:
        declaration_path: Path to YAML or JSON declaration file

    Returns:
        DeclaredStack with resources in declaration order

    Raises:
        DeclarationError: If the file cannot be loaded or is invalid
    """
    path = Path(declaration_path)

    if not path.exists():
        raise DeclarationError(
            f"Declaration file not found: {declaration_path}. "
            "Please check the file path and ensure the file exists."
        )

    if not path.is_file():
        raise DeclarationError(
            f"Path is not a file: {declaration_path}. "
            "Please provide a YAML or JSON resource declaration."
        )

    try:
        with open(path, 'r', encoding='utf-8') as f:
            document = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DeclarationError(f"Invalid YAML/JSON in declaration file: {e}")
    except OSError as e:
        raise DeclarationError(
            f"Error reading declaration file: {e}. "
            "Please check file permissions and try again."
        )

    stack = parse_declaration(document)
    logger.info(f"Loaded {len(stack.resources)} declared resources from {declaration_path}")
    return stack


def parse_declaration(document: Dict[str, Any]) -> DeclaredStack:
    """
    Build a DeclaredStack from an already-parsed document.

    Identical documents always yield identical stacks: declaration order is kept
    as-is and nothing is sorted or de-duplicated silently.
    """
    validate_declaration_structure(document)

    entries = document["resources"]
    duplicates = find_duplicate_identities(entries)
    if duplicates:
        raise DeclarationError(f"Duplicate resource declarations: {', '.join(duplicates)}")

    resources = []
    for index, entry in enumerate(entries):
        try:
            resources.append(Resource(
                kind=entry["kind"],
                name=entry["name"],
                attributes=entry.get("attributes") or {},
                depends_on=entry.get("depends_on") or [],
            ))
        except ValidationError as e:
            raise DeclarationError(
                f"Invalid resource at index {index} ({entry.get('kind')}.{entry.get('name')}): {e}"
            )

    return DeclaredStack(resources=resources)
