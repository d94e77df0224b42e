"""Kind policy models - per-kind replace/update and reference rules."""

from typing import List, Dict, Iterable
from pydantic import BaseModel, Field


class KindPolicy(BaseModel):
    """Rules the planner and resolver apply to one resource kind."""

    identity_fields: List[str] = Field(
        default_factory=list,
        description="Attributes whose values identify the resource to others (e.g. an IAM role name)"
    )
    replace_fields: List[str] = Field(
        default_factory=list,
        description="Attributes that cannot be changed in place; a change forces replacement"
    )
    replace_on_any_change: bool = Field(
        default=False,
        description="Kind has no in-place update; every change forces replacement"
    )
    reference_fields: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Attribute -> kinds its literal values may refer to"
    )
    scan_exclude: List[str] = Field(
        default_factory=lambda: ["tags"],
        description="Attributes never scanned for implicit references"
    )
    outputs: List[str] = Field(
        default_factory=lambda: ["id", "arn"],
        description="Computed outputs the provider reports after create/update"
    )

    def requires_replacement(self, changed_fields: Iterable[str]) -> bool:
        """True when any changed field cannot be updated in place."""
        changed = list(changed_fields)
        if not changed:
            return False
        if self.replace_on_any_change:
            return True
        return any(field in self.replace_fields for field in changed)

    def replacement_fields(self, changed_fields: Iterable[str]) -> List[str]:
        """Changed fields that force replacement, in the given order."""
        changed = list(changed_fields)
        if self.replace_on_any_change:
            return changed
        return [field for field in changed if field in self.replace_fields]
