"""Declarative policy table: resource kind -> KindPolicy."""

from typing import Dict, Any, Optional
from pydantic import ValidationError
from .models import KindPolicy
from ..ingest.models import ResourceKind
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("policy.registry")

PolicyTable = Dict[str, KindPolicy]

DEFAULT_POLICIES: Dict[str, Dict[str, Any]] = {
    # network
    "vpc": {
        "replace_fields": ["cidr_block", "instance_tenancy"],
    },
    "subnet": {
        "replace_fields": ["vpc_id", "cidr_block", "availability_zone"],
        "reference_fields": {"vpc_id": ["vpc"]},
    },
    "internet_gateway": {
        "reference_fields": {"vpc_id": ["vpc"]},
    },
    "route_table": {
        "replace_fields": ["vpc_id"],
        "reference_fields": {"vpc_id": ["vpc"], "gateway_id": ["internet_gateway"], "subnet_ids": ["subnet"]},
    },
    "security_group": {
        "identity_fields": ["name"],
        "replace_fields": ["name", "vpc_id", "description"],
        "reference_fields": {"vpc_id": ["vpc"]},
    },
    # storage
    "s3_bucket": {
        "identity_fields": ["bucket"],
        "replace_fields": ["bucket"],
        "outputs": ["id", "arn", "bucket_domain_name"],
    },
    "efs_file_system": {
        "identity_fields": ["creation_token"],
        "replace_fields": ["creation_token", "encrypted", "performance_mode"],
        "outputs": ["id", "arn", "dns_name"],
    },
    "efs_mount_target": {
        "replace_fields": ["file_system_id", "subnet_id"],
        "reference_fields": {
            "file_system_id": ["efs_file_system"],
            "subnet_id": ["subnet"],
            "security_groups": ["security_group"],
        },
        "outputs": ["id", "ip_address"],
    },
    # compute
    "instance": {
        "replace_fields": ["ami", "subnet_id", "availability_zone", "key_name"],
        "reference_fields": {
            "subnet_id": ["subnet"],
            "vpc_security_group_ids": ["security_group"],
            "iam_instance_profile": ["iam_instance_profile"],
        },
        "outputs": ["id", "arn", "private_ip"],
    },
    "lambda_function": {
        "identity_fields": ["function_name"],
        "replace_fields": ["function_name"],
        "reference_fields": {"role": ["iam_role"]},
        "outputs": ["id", "arn", "invoke_arn"],
    },
    # database
    "db_subnet_group": {
        "identity_fields": ["name"],
        "replace_fields": ["name"],
        "reference_fields": {"subnet_ids": ["subnet"]},
    },
    "db_instance": {
        "identity_fields": ["identifier"],
        "replace_fields": ["identifier", "engine", "db_subnet_group_name", "storage_encrypted"],
        "reference_fields": {
            "db_subnet_group_name": ["db_subnet_group"],
            "vpc_security_group_ids": ["security_group"],
        },
        "outputs": ["id", "arn", "endpoint"],
    },
    "dynamodb_table": {
        "identity_fields": ["name"],
        "replace_fields": ["name", "hash_key", "range_key"],
        "outputs": ["id", "arn", "stream_arn"],
    },
    # identity
    "iam_role": {
        "identity_fields": ["name"],
        "replace_fields": ["name", "path"],
        "outputs": ["id", "arn", "unique_id"],
    },
    "iam_policy": {
        "identity_fields": ["name"],
        "replace_fields": ["name", "path"],
    },
    "iam_role_policy_attachment": {
        "replace_on_any_change": True,
        "reference_fields": {"role": ["iam_role"], "policy_arn": ["iam_policy"]},
        "outputs": ["id"],
    },
    "iam_instance_profile": {
        "identity_fields": ["name"],
        "replace_fields": ["name", "path"],
        "reference_fields": {"role": ["iam_role"]},
    },
}


def build_policy_table(overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> PolicyTable:
    """
    Build the kind -> KindPolicy table, applying configuration overrides.

    Args:
        overrides: Mapping of kind -> partial policy fields (from config 'policies')

    Returns:
        Policy table covering every ResourceKind

    Raises:
        ConfigError: If an override names an unknown kind or has invalid fields
    """
    overrides = overrides or {}
    known_kinds = {kind.value for kind in ResourceKind}

    unknown = sorted(set(overrides) - known_kinds)
    if unknown:
        raise ConfigError(f"Policy overrides for unknown resource kinds: {', '.join(unknown)}")

    table: PolicyTable = {}
    for kind in ResourceKind:
        fields = dict(DEFAULT_POLICIES.get(kind.value, {}))
        override = overrides.get(kind.value) or {}
        if not isinstance(override, dict):
            raise ConfigError(f"Policy override for '{kind.value}' must be a mapping")
        fields.update(override)
        try:
            table[kind.value] = KindPolicy(**fields)
        except ValidationError as e:
            raise ConfigError(f"Invalid policy for '{kind.value}': {e}")

    if overrides:
        logger.info(f"Applied policy overrides for: {', '.join(sorted(overrides))}")
    return table


def get_policy(table: PolicyTable, kind: str) -> KindPolicy:
    """Look up the policy for a kind, falling back to an empty policy."""
    policy = table.get(kind)
    if policy is None:
        logger.debug(f"No policy registered for kind '{kind}', using defaults")
        return KindPolicy()
    return policy
