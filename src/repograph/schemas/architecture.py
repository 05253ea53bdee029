"""Schemas for inferred architecture components and relationships."""

from enum import Enum
from typing import Any, Optional

from pydantic import Field

from repograph.schemas.base import PayloadModel


class ComponentKind(str, Enum):
    """Kind of an inferred architectural unit."""

    APPLICATION = "application"
    FRONTEND = "frontend"
    BACKEND = "backend"
    DATABASE = "database"
    CACHE = "cache"
    QUEUE = "queue"
    MESSAGE_BUS = "messageBus"
    EXTERNAL_SERVICE = "externalService"
    INFRASTRUCTURE = "infrastructure"
    CONFIGURATION = "configuration"
    SUPPORTING_SERVICE = "supportingService"
    DATASET = "dataset"
    UNKNOWN = "unknown"


class RelationshipKind(str, Enum):
    """Kind of an inferred relationship."""

    HOSTS = "hosts"
    DEPENDS_ON = "dependsOn"
    CONNECTS_TO = "connectsTo"
    CALLS = "calls"
    PUBLISHES = "publishes"
    CONSUMES = "consumes"
    STORES = "stores"
    QUERIES = "queries"


class DetectionEvidence(PayloadModel):
    """A confidence-weighted justification for a detection."""

    description: str
    resource: Optional[str] = Field(default=None, description="File the evidence was found in")
    snippet: Optional[str] = None
    confidence: float


class ArchitectureComponent(PayloadModel):
    """An inferred system part, merged by key across detection passes."""

    id: str
    key: str = Field(description="Deduplication key, e.g. backend:express:/srv/app")
    kind: ComponentKind
    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    language: Optional[str] = None
    technology: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    location: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    evidence: list[DetectionEvidence] = Field(default_factory=list)


class ArchitectureRelationship(PayloadModel):
    """An inferred edge between two components, referenced by component key."""

    id: str
    key: str
    source: str
    target: str
    kind: RelationshipKind
    confidence: float = Field(ge=0.0, le=1.0)
    description: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    evidence: list[DetectionEvidence] = Field(default_factory=list)


class ArchitectureAnalysisResult(PayloadModel):
    """Outcome of one architecture analysis run."""

    components: list[ArchitectureComponent] = Field(default_factory=list)
    relationships: list[ArchitectureRelationship] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    summary: list[str] = Field(default_factory=list)
    generated_at: int = Field(description="Epoch milliseconds")
