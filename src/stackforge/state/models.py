"""Pydantic models for persisted state."""

from datetime import datetime, timezone
from typing import Dict, Any, List
from pydantic import BaseModel, Field
from ..ingest.models import ResourceRef

STATE_FORMAT_VERSION = 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StateEntry(BaseModel):
    """Last-known record of one provisioned resource."""
    ref: ResourceRef = Field(..., description="Identity of the resource")
    remote_id: str = Field(..., description="Identifier assigned by the provider")
    attribute_fingerprint: str = Field(..., description="Fingerprint of the declared attributes last applied")
    last_applied_at: datetime = Field(default_factory=utc_now, description="When the last create/update finished")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Declared attributes last applied")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Effective attributes reported by the provider")
    dependencies: List[ResourceRef] = Field(default_factory=list, description="Dependencies at the time of apply")
    dependency_ids: Dict[str, str] = Field(
        default_factory=dict,
        description="Remote id of each dependency (by ref key) this resource was applied against"
    )


class StateDocument(BaseModel):
    """On-disk state document."""
    version: int = Field(default=STATE_FORMAT_VERSION, description="State format version")
    serial: int = Field(default=0, ge=0, description="Incremented on every write")
    resources: List[StateEntry] = Field(default_factory=list, description="State entries sorted by ref key")
