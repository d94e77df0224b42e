"""Tests for dependency graph."""

import random
import pytest
from stackforge import resolve_stack
from stackforge.graph.dependency_graph import DependencyGraph
from stackforge.graph.references import DependencyEdge, EdgeOrigin, resolve_references
from stackforge.ingest.declaration_loader import parse_declaration
from stackforge.ingest.models import ResourceRef
from stackforge.utils.errors import CycleError, UnresolvedReferenceError


def _chain_document(edges, count):
    """Buckets b0..b{count-1}; edges are (dependent, dependency) index pairs."""
    resources = [{"kind": "s3_bucket", "name": f"b{i}", "depends_on": []} for i in range(count)]
    for dependent, dependency in edges:
        resources[dependent]["depends_on"].append(f"s3_bucket.b{dependency}")
    return {"resources": resources}


def _build(document):
    stack = parse_declaration(document)
    return DependencyGraph.build(stack.resources, resolve_references(stack.resources))


class TestDependencyGraph:
    """Test dependency graph construction."""

    def test_build_iam_graph(self, iam_stack):
        """Test nodes and edges of the IAM stack."""
        graph = resolve_stack(iam_stack)

        assert graph.graph.number_of_nodes() == 4
        assert graph.graph.number_of_edges() == 4
        profile = ResourceRef.parse("iam_instance_profile.app_profile")
        assert [r.key for r in graph.dependencies_of(profile)] == [
            "iam_role.app_role", "iam_role_policy_attachment.app_role_s3"
        ]
        assert [r.key for r in graph.dependents_of(profile)] == ["instance.app_server"]

    def test_topological_order_iam(self, iam_stack):
        """Test Role precedes PolicyAttachment and InstanceProfile, which precede Instance."""
        order = [r.key for r in resolve_stack(iam_stack).topological_order()]

        assert order == [
            "iam_role.app_role",
            "iam_role_policy_attachment.app_role_s3",
            "iam_instance_profile.app_profile",
            "instance.app_server",
        ]

    def test_layers_iam(self, iam_stack):
        layers = resolve_stack(iam_stack).parallelizable_layers()
        assert [[r.key for r in layer] for layer in layers] == [
            ["iam_role.app_role"],
            ["iam_role_policy_attachment.app_role_s3"],
            ["iam_instance_profile.app_profile"],
            ["instance.app_server"],
        ]

    def test_layers_group_independent_resources(self):
        graph = _build(_chain_document([(2, 0), (3, 1)], 4))
        assert [[r.name for r in layer] for layer in graph.parallelizable_layers()] == [["b0", "b1"], ["b2", "b3"]]

    def test_ties_follow_declaration_order(self):
        """Test independent resources keep declaration order."""
        graph = _build({"resources": [
            {"kind": "s3_bucket", "name": "zeta"},
            {"kind": "s3_bucket", "name": "alpha"},
            {"kind": "s3_bucket", "name": "mid"},
        ]})
        assert [r.name for r in graph.topological_order()] == ["zeta", "alpha", "mid"]

    @pytest.mark.parametrize("seed", range(10))
    def test_random_acyclic_order_respects_every_edge(self, seed):
        """Test for random DAGs every dependency precedes its dependent."""
        rng = random.Random(seed)
        count = 12
        edges = [
            (dependent, dependency)
            for dependent in range(count)
            for dependency in range(dependent)
            if rng.random() < 0.25
        ]
        # Shuffle declaration order so order is not trivially the index order.
        document = _chain_document(edges, count)
        rng.shuffle(document["resources"])
        graph = _build(document)

        position = {ref.name: index for index, ref in enumerate(graph.topological_order())}
        assert len(position) == count
        for dependent, dependency in edges:
            assert position[f"b{dependency}"] < position[f"b{dependent}"]

    def test_transitive_dependents(self, iam_stack):
        graph = resolve_stack(iam_stack)
        dependents = graph.transitive_dependents(ResourceRef.parse("iam_role.app_role"))
        assert {r.key for r in dependents} == {
            "iam_role_policy_attachment.app_role_s3",
            "iam_instance_profile.app_profile",
            "instance.app_server",
        }

    def test_edge_to_undeclared_resource(self):
        stack = parse_declaration({"resources": [{"kind": "vpc", "name": "main"}]})
        edge = DependencyEdge(
            from_ref=ResourceRef.parse("vpc.main"),
            to_ref=ResourceRef.parse("vpc.other"),
            origin=EdgeOrigin.EXPLICIT,
            field="depends_on",
        )
        with pytest.raises(UnresolvedReferenceError):
            DependencyGraph.build(stack.resources, [edge])


class TestCycleDetection:
    """Test cycles are rejected with a usable path."""

    def _assert_is_cycle(self, document, path):
        declared = {
            f"{entry['kind']}.{entry['name']}": set(entry.get("depends_on", []))
            for entry in document["resources"]
        }
        keys = [ref.key for ref in path]
        assert keys[0] == keys[-1]
        assert len(keys) >= 2
        for dependent, dependency in zip(keys, keys[1:]):
            assert dependency in declared[dependent]

    def test_two_node_cycle(self):
        document = _chain_document([(0, 1), (1, 0)], 2)
        with pytest.raises(CycleError) as exc_info:
            _build(document)
        self._assert_is_cycle(document, exc_info.value.path)
        assert "Dependency cycle detected" in str(exc_info.value)

    def test_self_dependency(self):
        document = _chain_document([(0, 0)], 1)
        with pytest.raises(CycleError) as exc_info:
            _build(document)
        assert [r.key for r in exc_info.value.path] == ["s3_bucket.b0", "s3_bucket.b0"]

    @pytest.mark.parametrize("seed", range(10))
    def test_random_cycle_path_is_a_cycle(self, seed):
        """Test a back edge added to a random DAG is reported as a real cycle."""
        rng = random.Random(seed)
        count = 8
        edges = [(i + 1, i) for i in range(count - 1)]
        edges += [
            (dependent, dependency)
            for dependent in range(count)
            for dependency in range(dependent)
            if rng.random() < 0.2 and (dependent, dependency) not in edges
        ]
        low = rng.randrange(0, count - 1)
        high = rng.randrange(low + 1, count)
        edges.append((low, high))
        document = _chain_document(edges, count)

        with pytest.raises(CycleError) as exc_info:
            _build(document)
        self._assert_is_cycle(document, exc_info.value.path)

    def test_implicit_cycle(self):
        """Test cycles through attribute references are caught too."""
        document = {"resources": [
            {"kind": "vpc", "name": "a", "attributes": {"peer": "${vpc.b}"}},
            {"kind": "vpc", "name": "b", "attributes": {"peer": "${vpc.a}"}},
        ]}
        with pytest.raises(CycleError):
            _build(document)
