"""Shared fixtures: the IAM stack, providers and stores used across the suite."""

import copy
import pytest
from stackforge.ingest.declaration_loader import parse_declaration
from stackforge.provider.local import LocalProvider
from stackforge.state.store import MemoryStateStore
from stackforge.utils.errors import ProviderError


IAM_STACK_DOCUMENT = {
    "resources": [
        {
            "kind": "iam_role",
            "name": "app_role",
            "attributes": {
                "name": "app-role",
                "path": "/",
                "assume_role_policy": '{"Statement":[{"Effect":"Allow","Principal":{"Service":"ec2.amazonaws.com"}}]}',
            },
        },
        {
            "kind": "iam_role_policy_attachment",
            "name": "app_role_s3",
            "attributes": {
                "role": "app-role",
                "policy_arn": "arn:aws:iam::aws:policy/AmazonS3ReadOnlyAccess",
            },
        },
        {
            "kind": "iam_instance_profile",
            "name": "app_profile",
            "attributes": {"name": "app-profile", "role": "app-role"},
            # The policy must be attached before anything boots with this profile.
            "depends_on": ["iam_role_policy_attachment.app_role_s3"],
        },
        {
            "kind": "instance",
            "name": "app_server",
            "attributes": {
                "ami": "ami-0abcdef1234567890",
                "instance_type": "t3.micro",
                "iam_instance_profile": "app-profile",
                "tags": {"Name": "app-role"},
            },
        },
    ]
}


class FailingProvider(LocalProvider):
    """LocalProvider whose create/update fail for the given kinds."""

    def __init__(self, fail_kinds=(), **kwargs):
        super().__init__(**kwargs)
        self.fail_kinds = set(fail_kinds)
        self.calls = []

    def create(self, kind, attributes):
        self.calls.append(("create", kind))
        if kind in self.fail_kinds:
            raise ProviderError(f"simulated create failure for {kind}")
        return super().create(kind, attributes)

    def update(self, kind, remote_id, attributes):
        self.calls.append(("update", kind))
        if kind in self.fail_kinds:
            raise ProviderError(f"simulated update failure for {kind}")
        return super().update(kind, remote_id, attributes)

    def destroy(self, kind, remote_id):
        self.calls.append(("destroy", kind))
        return super().destroy(kind, remote_id)


def stack_from(document):
    """Parse a deep copy so tests can mutate documents freely."""
    return parse_declaration(copy.deepcopy(document))


@pytest.fixture
def iam_document():
    """Role, policy attachment, instance profile and instance."""
    return copy.deepcopy(IAM_STACK_DOCUMENT)


@pytest.fixture
def iam_stack(iam_document):
    return parse_declaration(iam_document)


@pytest.fixture
def provider():
    """In-memory local provider."""
    return LocalProvider()


@pytest.fixture
def state_store():
    """Empty in-memory state store."""
    return MemoryStateStore()
