"""Architecture inference: components, relationships and their graph rendering."""

from repograph.analysis.architecture.analyzer import ArchitectureAnalyzer
from repograph.analysis.architecture.model import ArchitectureModelBuilder
from repograph.analysis.architecture.payload import build_architecture_graph

__all__ = ["ArchitectureAnalyzer", "ArchitectureModelBuilder", "build_architecture_graph"]
