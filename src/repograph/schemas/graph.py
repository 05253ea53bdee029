"""Schemas for drawable graph payloads and extracted import descriptors."""

from enum import Enum
from typing import Any, Optional

from pydantic import Field

from repograph.schemas.base import PayloadModel
from repograph.schemas.heatmap import HeatmapPayload


class NodeKind(str, Enum):
    """Role of a node in the requested scope."""

    ROOT = "root"
    RELATIVE = "relative"
    EXTERNAL = "external"


class EdgeKind(str, Enum):
    """Classification of an edge."""

    RELATIVE = "relative"
    EXTERNAL = "external"
    SIDE_EFFECT = "sideEffect"


class GraphMode(str, Enum):
    """Which kind of graph a payload holds."""

    FILE = "file"
    FOLDER = "folder"
    WORKSPACE = "workspace"
    ARCHITECTURE = "architecture"
    GIT_HEATMAP = "gitHeatmap"


class GraphNode(PayloadModel):
    """A drawable vertex."""

    id: str = Field(description="Stable id derived from the node's path or specifier")
    label: str
    path: str = Field(description="Absolute resource path or external module specifier")
    kind: NodeKind
    weight: int = Field(default=1, description="Visual sizing signal, at least 1")
    fan_in: int = 0
    fan_out: int = 0
    openable: bool = True
    description: Optional[str] = None
    category: Optional[str] = None
    confidence: Optional[float] = None
    tags: Optional[list[str]] = None
    metadata: Optional[dict[str, Any]] = None
    evidence: Optional[list[str]] = None


class GraphEdge(PayloadModel):
    """A drawable relationship. Import edges point from the imported module to the importer."""

    id: str
    source: str
    target: str
    label: str = ""
    specifier: str
    kind: EdgeKind
    source_path: Optional[str] = None
    target_path: Optional[str] = None
    symbols: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    confidence: Optional[float] = None
    metadata: Optional[dict[str, Any]] = None
    evidence: Optional[list[str]] = None


class GraphPayload(PayloadModel):
    """Serializable graph handed to the rendering layer."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    mode: Optional[GraphMode] = None
    summary: Optional[list[str]] = None
    warnings: Optional[list[str]] = None
    generated_at: Optional[int] = Field(default=None, description="Epoch milliseconds")
    metadata: Optional[dict[str, Any]] = None
    heatmap: Optional[HeatmapPayload] = None


class ImportBinding(PayloadModel):
    """A default or namespace binding of an import statement."""

    name: str
    is_type_only: bool = False


class NamedImport(PayloadModel):
    """One entry of a brace list. ``name`` is the local alias, ``property_name`` the exported name when renamed."""

    name: str
    property_name: Optional[str] = None
    is_type_only: bool = False


class ImportDescriptor(PayloadModel):
    """An extracted import statement."""

    specifier: str
    default_import: Optional[ImportBinding] = None
    namespace_import: Optional[ImportBinding] = None
    named_imports: list[NamedImport] = Field(default_factory=list)
    is_side_effect_only: bool = False
