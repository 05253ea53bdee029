"""Conversion of an architecture analysis result into a drawable graph payload."""

import logging
import math
import re
from typing import Any, Optional

from repograph.schemas.architecture import (
    ArchitectureAnalysisResult,
    ArchitectureComponent,
    ArchitectureRelationship,
    ComponentKind,
    DetectionEvidence,
    RelationshipKind,
)
from repograph.schemas.graph import EdgeKind, GraphEdge, GraphMode, GraphNode, GraphPayload, NodeKind
from repograph.workspace.context import WorkspaceContext

logger = logging.getLogger(__name__)

MAX_EVIDENCE_DESCRIPTIONS = 4

ROOT_COMPONENT_KINDS = {ComponentKind.APPLICATION, ComponentKind.INFRASTRUCTURE, ComponentKind.CONFIGURATION}
EXTERNAL_RELATIONSHIP_KINDS = {RelationshipKind.CALLS, RelationshipKind.PUBLISHES, RelationshipKind.CONSUMES}


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def take_evidence_descriptions(evidence: list[DetectionEvidence], limit: int = MAX_EVIDENCE_DESCRIPTIONS) -> list[str]:
    return [entry.description for entry in evidence if entry.description][:limit]


def format_relationship_label(kind: RelationshipKind) -> str:
    """``connectsTo`` -> ``connects To``."""
    return re.sub(r"([a-z])([A-Z])", r"\1 \2", kind.value)


def node_kind_for(kind: ComponentKind) -> NodeKind:
    if kind in ROOT_COMPONENT_KINDS:
        return NodeKind.ROOT
    if kind == ComponentKind.EXTERNAL_SERVICE:
        return NodeKind.EXTERNAL
    return NodeKind.RELATIVE


def edge_kind_for(kind: RelationshipKind) -> EdgeKind:
    return EdgeKind.EXTERNAL if kind in EXTERNAL_RELATIONSHIP_KINDS else EdgeKind.RELATIVE


def _primary_resource(component: ArchitectureComponent) -> Optional[str]:
    for entry in component.evidence:
        if entry.resource:
            return entry.resource
    folder = component.metadata.get("workspaceFolder")
    return folder if isinstance(folder, str) and folder else None


def create_architecture_node(component: ArchitectureComponent, context: WorkspaceContext) -> GraphNode:
    resource = _primary_resource(component)
    metadata: dict[str, Any] = {**component.metadata, "key": component.key}
    if component.tags:
        metadata["tags"] = list(component.tags)
    return GraphNode(
        id=component.id,
        label=component.label,
        path=resource or f"arch://{component.key}",
        kind=node_kind_for(component.kind),
        weight=max(1, _round_half_up(component.confidence * 4)),
        openable=bool(resource) and context.is_within_workspace(resource),
        category=component.kind.value,
        confidence=component.confidence,
        tags=list(component.tags),
        metadata=metadata,
        description=component.description,
        evidence=take_evidence_descriptions(component.evidence),
    )


def create_architecture_edge(relationship: ArchitectureRelationship, source_id: str, target_id: str) -> GraphEdge:
    descriptions = take_evidence_descriptions(relationship.evidence)
    return GraphEdge(
        id=relationship.id,
        source=source_id,
        target=target_id,
        label=relationship.description or format_relationship_label(relationship.kind),
        specifier=f"architecture:{relationship.kind.value}",
        kind=edge_kind_for(relationship.kind),
        symbols=descriptions,
        category=relationship.kind.value,
        confidence=relationship.confidence,
        metadata={**relationship.metadata, "kind": relationship.kind.value},
        evidence=descriptions,
    )


def build_architecture_metadata(nodes: list[GraphNode], edges: list[GraphEdge]) -> dict[str, Any]:
    category_counts: dict[str, int] = {}
    datasets = []
    for node in nodes:
        category = node.category or ComponentKind.UNKNOWN.value
        category_counts[category] = category_counts.get(category, 0) + 1
        if category == ComponentKind.DATASET.value:
            datasets.append({"id": node.id, "label": node.label, "metadata": node.metadata})

    relationship_counts: dict[str, int] = {}
    for edge in edges:
        category = edge.category or edge.kind.value
        relationship_counts[category] = relationship_counts.get(category, 0) + 1

    return {
        "categoryCounts": category_counts,
        "relationshipCounts": relationship_counts,
        "datasets": datasets,
    }


def build_architecture_graph(result: ArchitectureAnalysisResult, context: WorkspaceContext) -> GraphPayload:
    """
    Render an analysis result as an architecture-mode graph payload.

    Relationships reference components by key; edges reference nodes by id.
    Relationships whose source or target component is unknown are dropped.

    Args:
        result: Finalized analysis result
        context: Workspace used to decide whether node paths are openable

    Returns:
        GraphPayload in architecture mode
    """
    nodes: dict[str, GraphNode] = {}
    ids_by_key: dict[str, str] = {}
    for component in result.components:
        node = create_architecture_node(component, context)
        nodes[node.id] = node
        ids_by_key[component.key] = node.id

    edges = []
    for relationship in result.relationships:
        source_id = ids_by_key.get(relationship.source)
        target_id = ids_by_key.get(relationship.target)
        if source_id is None or target_id is None:
            logger.debug("Dropping relationship %s with unknown endpoint", relationship.key)
            continue
        edges.append(create_architecture_edge(relationship, source_id, target_id))
        source = nodes[source_id]
        source.fan_out += 1
        source.weight = max(source.weight, source.fan_in + source.fan_out)
        target = nodes[target_id]
        target.fan_in += 1
        target.weight = max(target.weight, target.fan_in + target.fan_out)

    for node in nodes.values():
        node.weight = max(node.weight, max(1, _round_half_up((node.confidence or 0.5) * 5)))

    node_list = list(nodes.values())
    return GraphPayload(
        nodes=node_list,
        edges=edges,
        mode=GraphMode.ARCHITECTURE,
        summary=list(result.summary),
        warnings=list(result.warnings),
        generated_at=result.generated_at,
        metadata=build_architecture_metadata(node_list, edges),
    )
