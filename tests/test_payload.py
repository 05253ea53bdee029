"""Tests for converting an architecture analysis into a graph payload."""

import pytest

from repograph.analysis.architecture import ArchitectureModelBuilder, build_architecture_graph
from repograph.analysis.architecture.payload import (
    edge_kind_for,
    format_relationship_label,
    node_kind_for,
    take_evidence_descriptions,
)
from repograph.schemas.architecture import ComponentKind, DetectionEvidence, RelationshipKind
from repograph.schemas.graph import EdgeKind, GraphMode, NodeKind
from repograph.workspace.context import WorkspaceContext, WorkspaceFolder


@pytest.fixture
def context():
    return WorkspaceContext([WorkspaceFolder(name="app", path="/srv/app")], case_sensitive=True)


@pytest.fixture
def result():
    builder = ArchitectureModelBuilder()
    builder.ensure_component(
        "application:/srv/app",
        kind=ComponentKind.APPLICATION,
        label="app",
        confidence=0.4,
        tags=["workspace"],
        metadata={"workspaceFolder": "/srv/app"},
    )
    builder.ensure_component(
        "backend:express:/srv/app",
        kind=ComponentKind.BACKEND,
        label="Express.js Backend",
        confidence=0.8,
        evidence=[
            DetectionEvidence(description="Dependency on express", resource="/srv/app/package.json", confidence=0.8)
        ],
    )
    builder.ensure_component(
        "externalService:api.stripe.com",
        kind=ComponentKind.EXTERNAL_SERVICE,
        label="External API (api.stripe.com)",
        confidence=0.55,
    )
    builder.ensure_component(
        "dataset:application:/srv/app:model:user",
        kind=ComponentKind.DATASET,
        label="User Model",
        confidence=0.45,
        metadata={"datasetType": "model"},
    )
    builder.ensure_relationship(
        "hosts:application:/srv/app->backend:express:/srv/app",
        source="application:/srv/app",
        target="backend:express:/srv/app",
        kind=RelationshipKind.HOSTS,
        confidence=0.8,
    )
    builder.ensure_relationship(
        "calls:POST:https://api.stripe.com:backend:express:/srv/app->externalService:api.stripe.com",
        source="backend:express:/srv/app",
        target="externalService:api.stripe.com",
        kind=RelationshipKind.CALLS,
        confidence=0.55,
        description="HTTP POST https://api.stripe.com",
    )
    builder.ensure_relationship(
        "connects:backend:express:/srv/app->database:missing",
        source="backend:express:/srv/app",
        target="database:missing",
        kind=RelationshipKind.CONNECTS_TO,
        confidence=0.6,
    )
    builder.add_warning("No document symbol providers registered; architecture detection may miss services.")
    builder.add_summary("Detected Express.js backend in app")
    return builder.finalize(1_700_000_000_000)


class TestBuildArchitectureGraph:
    """Test build_architecture_graph."""

    def test_nodes_and_kinds(self, result, context):
        payload = build_architecture_graph(result, context)
        nodes = {node.label: node for node in payload.nodes}
        assert payload.mode == GraphMode.ARCHITECTURE
        assert nodes["app"].kind == NodeKind.ROOT
        assert nodes["Express.js Backend"].kind == NodeKind.RELATIVE
        assert nodes["External API (api.stripe.com)"].kind == NodeKind.EXTERNAL
        assert nodes["Express.js Backend"].category == "backend"

    def test_node_paths_and_openable(self, result, context):
        nodes = {node.label: node for node in build_architecture_graph(result, context).nodes}
        backend = nodes["Express.js Backend"]
        assert backend.path == "/srv/app/package.json"
        assert backend.openable is True
        assert backend.evidence == ["Dependency on express"]
        assert nodes["app"].path == "/srv/app"
        external = nodes["External API (api.stripe.com)"]
        assert external.path == "arch://externalService:api.stripe.com"
        assert external.openable is False
        assert external.metadata["key"] == "externalService:api.stripe.com"

    def test_edges_reference_node_ids_and_drop_dangling(self, result, context):
        payload = build_architecture_graph(result, context)
        node_ids = {node.id for node in payload.nodes}
        assert len(payload.edges) == 2
        assert all(edge.source in node_ids and edge.target in node_ids for edge in payload.edges)
        calls = next(edge for edge in payload.edges if edge.category == "calls")
        assert calls.kind == EdgeKind.EXTERNAL
        assert calls.label == "HTTP POST https://api.stripe.com"
        assert calls.specifier == "architecture:calls"
        hosts = next(edge for edge in payload.edges if edge.category == "hosts")
        assert hosts.kind == EdgeKind.RELATIVE
        assert hosts.label == "hosts"

    def test_weights_and_fan(self, result, context):
        nodes = {node.label: node for node in build_architecture_graph(result, context).nodes}
        backend = nodes["Express.js Backend"]
        assert backend.fan_in == 1
        assert backend.fan_out == 1
        assert backend.weight == 4
        assert nodes["app"].fan_out == 1
        assert nodes["app"].weight == 2

    def test_metadata(self, result, context):
        payload = build_architecture_graph(result, context)
        assert payload.metadata["categoryCounts"] == {
            "application": 1,
            "backend": 1,
            "externalService": 1,
            "dataset": 1,
        }
        assert payload.metadata["relationshipCounts"] == {"hosts": 1, "calls": 1}
        assert [d["label"] for d in payload.metadata["datasets"]] == ["User Model"]
        assert payload.generated_at == 1_700_000_000_000
        assert payload.summary == ["Detected Express.js backend in app"]
        assert len(payload.warnings) == 1

    def test_serialized_keys_are_camel_case(self, result, context):
        data = build_architecture_graph(result, context).to_dict()
        assert data["mode"] == "architecture"
        assert "generatedAt" in data
        assert "fanIn" in data["nodes"][0]


class TestPayloadHelpers:
    """Test kind mappings and labels."""

    def test_relationship_label(self):
        assert format_relationship_label(RelationshipKind.CONNECTS_TO) == "connects To"
        assert format_relationship_label(RelationshipKind.HOSTS) == "hosts"

    def test_kind_mapping(self):
        assert node_kind_for(ComponentKind.INFRASTRUCTURE) == NodeKind.ROOT
        assert node_kind_for(ComponentKind.DATABASE) == NodeKind.RELATIVE
        assert edge_kind_for(RelationshipKind.CONSUMES) == EdgeKind.EXTERNAL
        assert edge_kind_for(RelationshipKind.STORES) == EdgeKind.RELATIVE

    def test_evidence_limit(self):
        evidence = [DetectionEvidence(description=f"e{i}", confidence=0.5) for i in range(6)]
        assert take_evidence_descriptions(evidence) == ["e0", "e1", "e2", "e3"]
