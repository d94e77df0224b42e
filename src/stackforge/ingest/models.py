"""Pydantic models for declared resources."""

import re
from enum import Enum
from typing import List, Dict, Any
from pydantic import BaseModel, Field, field_validator


class KindCategory(str, Enum):
    """Broad family a resource kind belongs to."""
    NETWORK = "network"
    STORAGE = "storage"
    COMPUTE = "compute"
    DATABASE = "database"
    IDENTITY = "identity"


class ResourceKind(str, Enum):
    """Resource kinds the engine knows how to plan and apply."""
    VPC = "vpc"
    SUBNET = "subnet"
    INTERNET_GATEWAY = "internet_gateway"
    ROUTE_TABLE = "route_table"
    SECURITY_GROUP = "security_group"
    S3_BUCKET = "s3_bucket"
    EFS_FILE_SYSTEM = "efs_file_system"
    EFS_MOUNT_TARGET = "efs_mount_target"
    INSTANCE = "instance"
    LAMBDA_FUNCTION = "lambda_function"
    DB_SUBNET_GROUP = "db_subnet_group"
    DB_INSTANCE = "db_instance"
    DYNAMODB_TABLE = "dynamodb_table"
    IAM_ROLE = "iam_role"
    IAM_POLICY = "iam_policy"
    IAM_ROLE_POLICY_ATTACHMENT = "iam_role_policy_attachment"
    IAM_INSTANCE_PROFILE = "iam_instance_profile"


KIND_CATEGORIES: Dict[str, KindCategory] = {
    ResourceKind.VPC.value: KindCategory.NETWORK,
    ResourceKind.SUBNET.value: KindCategory.NETWORK,
    ResourceKind.INTERNET_GATEWAY.value: KindCategory.NETWORK,
    ResourceKind.ROUTE_TABLE.value: KindCategory.NETWORK,
    ResourceKind.SECURITY_GROUP.value: KindCategory.NETWORK,
    ResourceKind.S3_BUCKET.value: KindCategory.STORAGE,
    ResourceKind.EFS_FILE_SYSTEM.value: KindCategory.STORAGE,
    ResourceKind.EFS_MOUNT_TARGET.value: KindCategory.STORAGE,
    ResourceKind.INSTANCE.value: KindCategory.COMPUTE,
    ResourceKind.LAMBDA_FUNCTION.value: KindCategory.COMPUTE,
    ResourceKind.DB_SUBNET_GROUP.value: KindCategory.DATABASE,
    ResourceKind.DB_INSTANCE.value: KindCategory.DATABASE,
    ResourceKind.DYNAMODB_TABLE.value: KindCategory.DATABASE,
    ResourceKind.IAM_ROLE.value: KindCategory.IDENTITY,
    ResourceKind.IAM_POLICY.value: KindCategory.IDENTITY,
    ResourceKind.IAM_ROLE_POLICY_ATTACHMENT.value: KindCategory.IDENTITY,
    ResourceKind.IAM_INSTANCE_PROFILE.value: KindCategory.IDENTITY,
}


# Characters a resource name may use; placeholders and ref strings rely on it.
NAME_CHARS = r"[A-Za-z0-9_\-]+"
_NAME_PATTERN = re.compile(NAME_CHARS)


def _check_name(value: str) -> str:
    if not _NAME_PATTERN.fullmatch(value):
        raise ValueError(f"resource name may only contain letters, digits, '_' and '-': {value}")
    return value


class ResourceRef(BaseModel):
    """Pointer to a declared resource by (kind, name). Never an ownership relation."""
    kind: ResourceKind = Field(..., description="Resource kind")
    name: str = Field(..., min_length=1, description="Resource name, unique within its kind")

    class Config:
        """Pydantic config."""
        use_enum_values = True
        frozen = True

    @field_validator("name")
    @classmethod
    def name_is_valid(cls, value: str) -> str:
        return _check_name(value)

    @property
    def key(self) -> str:
        """Stable string key used for graph nodes and state records."""
        return f"{self.kind}.{self.name}"

    @classmethod
    def parse(cls, key: str) -> "ResourceRef":
        """Parse a '<kind>.<name>' key back into a ResourceRef."""
        kind, sep, name = key.partition(".")
        if not sep or not name:
            raise ValueError(f"Invalid resource reference '{key}', expected '<kind>.<name>'")
        return cls(kind=kind, name=name)

    def __str__(self) -> str:
        return self.key


class Resource(BaseModel):
    """A declared resource: kind, unique name, desired attributes and explicit dependencies."""
    kind: ResourceKind = Field(..., description="Resource kind")
    name: str = Field(..., min_length=1, description="Resource name, unique within its kind")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Desired attributes")
    depends_on: List[ResourceRef] = Field(default_factory=list, description="Explicit ordering dependencies")

    class Config:
        """Pydantic config."""
        use_enum_values = True

    @field_validator("name")
    @classmethod
    def name_is_valid(cls, value: str) -> str:
        return _check_name(value)

    @field_validator("depends_on", mode="before")
    @classmethod
    def parse_ref_strings(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [ResourceRef.parse(item) if isinstance(item, str) else item for item in value]

    @property
    def ref(self) -> ResourceRef:
        """Identity of this resource."""
        return ResourceRef(kind=self.kind, name=self.name)

    @property
    def category(self) -> KindCategory:
        return KIND_CATEGORIES[self.kind]


class DeclaredStack(BaseModel):
    """Ordered collection of declared resources - the engine's sole input document."""
    resources: List[Resource] = Field(default_factory=list, description="Declared resources in declaration order")

    def refs(self) -> List[ResourceRef]:
        """Refs in declaration order."""
        return [resource.ref for resource in self.resources]
