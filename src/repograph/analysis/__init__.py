"""Import graph, architecture and Git co-change analysis."""

from repograph.analysis.graph_builder import ImportGraphBuilder
from repograph.analysis.heatmap import GitHeatmapBuilder
from repograph.analysis.imports import extract_import_descriptors

__all__ = ["ImportGraphBuilder", "GitHeatmapBuilder", "extract_import_descriptors"]
