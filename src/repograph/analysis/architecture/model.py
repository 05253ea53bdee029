"""Merge-by-key accumulator for architecture components and relationships."""

import logging
from typing import Any, Callable, Optional

from repograph.analysis.constants import to_node_id
from repograph.schemas.architecture import (
    ArchitectureAnalysisResult,
    ArchitectureComponent,
    ArchitectureRelationship,
    ComponentKind,
    DetectionEvidence,
    RelationshipKind,
)

logger = logging.getLogger(__name__)

# Share of an evidence item's confidence added to its component's confidence.
EVIDENCE_CONFIDENCE_NUDGE = 0.1


def deep_merge(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """
    Merge source into target in place.

    Nested dicts are merged recursively and scalar conflicts are won by source.
    Lists are never replaced: items of the incoming list that are not already
    present are appended.
    """
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            deep_merge(existing, value)
        elif isinstance(existing, list) and isinstance(value, list):
            existing.extend(item for item in value if item not in existing)
        else:
            target[key] = value
    return target


def _unique(items) -> list:
    return list(dict.fromkeys(items))


class ArchitectureModelBuilder:
    """
    Collects components and relationships from many detection passes.

    Every component and relationship is keyed by a deterministic string.
    Registering an existing key merges the new observation into the stored
    one instead of creating a duplicate.
    """

    def __init__(self):
        self._components: dict[str, ArchitectureComponent] = {}
        self._relationships: dict[str, ArchitectureRelationship] = {}
        self._warnings: dict[str, None] = {}
        self._summary: dict[str, None] = {}

    def has_component(self, key: str) -> bool:
        return key in self._components

    def get_component(self, key: str) -> Optional[ArchitectureComponent]:
        return self._components.get(key)

    def ensure_component(
        self,
        key: str,
        *,
        kind: ComponentKind,
        label: str,
        confidence: float,
        language: Optional[str] = None,
        technology: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[list[str]] = None,
        location: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        evidence: Optional[list[DetectionEvidence]] = None,
    ) -> ArchitectureComponent:
        """
        Create the component for key, or merge into the existing one.

        On merge the higher confidence is kept, the first non-empty language,
        technology and description stay, tags are unioned, metadata is deep
        merged and evidence is appended.
        """
        existing = self._components.get(key)
        if existing is None:
            component = ArchitectureComponent(
                id=to_node_id(key),
                key=key,
                kind=kind,
                label=label,
                confidence=min(1.0, confidence),
                language=language,
                technology=technology,
                description=description,
                tags=_unique(tags or []),
                location=location,
                metadata=dict(metadata or {}),
                evidence=list(evidence or []),
            )
            self._components[key] = component
            return component

        existing.confidence = min(1.0, max(existing.confidence, confidence))
        existing.tags = _unique([*existing.tags, *(tags or [])])
        existing.language = existing.language or language
        existing.technology = existing.technology or technology
        existing.description = existing.description or description
        existing.location = existing.location or location
        if metadata:
            deep_merge(existing.metadata, metadata)
        existing.evidence.extend(evidence or [])
        return existing

    def augment_component(
        self, key: str, updater: Callable[[ArchitectureComponent], None]
    ) -> Optional[ArchitectureComponent]:
        """Apply updater to the component for key, if it exists."""
        component = self._components.get(key)
        if component is not None:
            updater(component)
        return component

    def _has_evidence(self, component: ArchitectureComponent, evidence: DetectionEvidence) -> bool:
        return any(
            entry.description == evidence.description and entry.resource == evidence.resource
            for entry in component.evidence
        )

    def add_evidence(self, key: str, evidence: DetectionEvidence) -> bool:
        """
        Attach evidence to an existing component and raise its confidence.

        Evidence with the same description and resource is only recorded once.

        Returns:
            True if the evidence was added
        """
        component = self._components.get(key)
        if component is None or self._has_evidence(component, evidence):
            return False
        component.evidence.append(evidence)
        component.confidence = min(1.0, component.confidence + evidence.confidence * EVIDENCE_CONFIDENCE_NUDGE)
        return True

    def merge_evidence(self, key: str, evidence: DetectionEvidence) -> bool:
        """
        Attach evidence without nudging confidence.

        Used for supplementary signals: the component keeps the higher of its
        own confidence and the evidence's.
        """
        component = self._components.get(key)
        if component is None or self._has_evidence(component, evidence):
            return False
        component.evidence.append(evidence)
        component.confidence = min(1.0, max(component.confidence, evidence.confidence))
        return True

    def append_metadata(self, key: Optional[str], name: str, entry: Any) -> None:
        """Append entry to the list stored under metadata[name] of a component."""
        if not key:
            return
        component = self._components.get(key)
        if component is None:
            return
        values = component.metadata.get(name)
        if isinstance(values, list):
            values.append(entry)
        else:
            component.metadata[name] = [entry]

    def ensure_relationship(
        self,
        key: str,
        *,
        source: str,
        target: str,
        kind: RelationshipKind,
        confidence: float,
        description: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        evidence: Optional[list[DetectionEvidence]] = None,
    ) -> ArchitectureRelationship:
        """Create the relationship for key, or merge into the existing one."""
        existing = self._relationships.get(key)
        if existing is None:
            relationship = ArchitectureRelationship(
                id=to_node_id(f"rel:{key}"),
                key=key,
                source=source,
                target=target,
                kind=kind,
                confidence=min(1.0, confidence),
                description=description,
                metadata=dict(metadata or {}),
                evidence=list(evidence or []),
            )
            self._relationships[key] = relationship
            return relationship

        existing.confidence = min(1.0, max(existing.confidence, confidence))
        existing.description = existing.description or description
        if metadata:
            deep_merge(existing.metadata, metadata)
        existing.evidence.extend(evidence or [])
        return existing

    def add_warning(self, message: str) -> None:
        self._warnings[message] = None

    def add_summary(self, entry: str) -> None:
        self._summary[entry] = None

    @property
    def warnings(self) -> list[str]:
        return list(self._warnings)

    def finalize(self, generated_at: int) -> ArchitectureAnalysisResult:
        """
        Produce the analysis result.

        Evidence lists are sorted by confidence, highest first; equal
        confidences keep their insertion order.
        """
        components = []
        for component in self._components.values():
            components.append(
                component.model_copy(
                    update={"evidence": sorted(component.evidence, key=lambda e: -e.confidence)}, deep=True
                )
            )
        relationships = []
        for relationship in self._relationships.values():
            relationships.append(
                relationship.model_copy(
                    update={"evidence": sorted(relationship.evidence, key=lambda e: -e.confidence)}, deep=True
                )
            )
        logger.debug("Finalized %d components and %d relationships", len(components), len(relationships))
        return ArchitectureAnalysisResult(
            components=components,
            relationships=relationships,
            warnings=list(self._warnings),
            summary=list(self._summary),
            generated_at=generated_at,
        )
