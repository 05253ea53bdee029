"""Module-level import graph for a file, a folder or the whole workspace."""

import logging
import threading
from collections import deque
from typing import Optional

from repograph.analysis.constants import (
    GRAPH_DEFAULT_EXCLUDE_GLOBS,
    GRAPH_FILE_EXTENSIONS,
    GRAPH_IGNORED_IMPORT_SPECIFIERS,
    GRAPH_INDEX_FILENAMES,
    get_import_base,
    is_excluded_path,
    to_node_id,
)
from repograph.analysis.imports import describe_symbols, extract_import_descriptors, symbol_names
from repograph.core.errors import GraphBuildError, OperationCancelledError
from repograph.schemas.graph import (
    EdgeKind,
    GraphEdge,
    GraphMode,
    GraphNode,
    GraphPayload,
    ImportDescriptor,
    NodeKind,
)
from repograph.workspace.context import WorkspaceContext
from repograph.workspace.protocols import FileQuery, FileReader, FileSearch

logger = logging.getLogger(__name__)

SIDE_EFFECT_LABEL = "[side-effect]"
SCOPE_LIMIT_WARNING = "File search limit reached; graph may be incomplete."


class _EdgeEntry:
    """An edge under construction with its accumulated label parts and symbol names."""

    def __init__(self, edge: GraphEdge):
        self.edge = edge
        self.label_parts: dict[str, None] = {}
        self.symbol_names: dict[str, None] = {}


def compose_edge_label(label_parts, kind: EdgeKind) -> str:
    if kind == EdgeKind.SIDE_EFFECT:
        return SIDE_EFFECT_LABEL
    return ", ".join(sorted(label_parts, key=lambda part: (part.lower(), part)))


class ImportGraphBuilder:
    """
    Builds import graphs by breadth-first traversal from a set of start files.

    Edges point from the imported module to the importing file. Relative
    imports that resolve to files inside the workspace are traversed in turn;
    everything else becomes an external module node.
    """

    def __init__(
        self,
        context: WorkspaceContext,
        file_reader: FileReader,
        file_search: FileSearch,
        cancel_event: Optional[threading.Event] = None,
        max_scope_files: int = 5000,
    ):
        """
        Initialize import graph builder.

        Args:
            context: Workspace folders and path helpers
            file_reader: Reads source files and checks candidate existence
            file_search: Enumerates files for folder and workspace scopes
            cancel_event: When set, the running build stops with OperationCancelledError
            max_scope_files: Maximum number of files collected for a scope
        """
        self.context = context
        self.file_reader = file_reader
        self.file_search = file_search
        self.cancel_event = cancel_event
        self.max_scope_files = max_scope_files
        self._last_scope_limit_hit = False

    def build_graph_for_file(self, path: str) -> GraphPayload:
        """
        Build the graph reachable from one source file.

        Raises:
            GraphBuildError: If the file does not exist
        """
        if not self.file_reader.exists(path):
            raise GraphBuildError(f"File not found: {path}")
        payload = self._build_from_files([path], {self.context.key(path)}, GraphMode.FILE)
        return payload

    def build_graph_for_scope(self, folders: list[str], mode: GraphMode) -> GraphPayload:
        """
        Build the graph of every source file under the given folders.

        In workspace mode no node is marked as root.
        """
        files = self.collect_files_in_scope(folders)
        payload = self._build_from_files(files, {self.context.key(f) for f in files}, mode)
        if self._last_scope_limit_hit:
            payload.warnings = [SCOPE_LIMIT_WARNING]
        return payload

    def collect_files_in_scope(self, folders: list[str]) -> list[str]:
        """Source files under folders, excluding build and vendor directories."""
        self._last_scope_limit_hit = False
        if not folders:
            return []
        result = self.file_search.file_search(
            FileQuery(
                folders=list(folders),
                exclude_globs=GRAPH_DEFAULT_EXCLUDE_GLOBS,
                max_results=self.max_scope_files,
            )
        )
        if result.limit_hit:
            self._last_scope_limit_hit = True
            logger.warning("File search limit reached; graph may be incomplete.")
        files = []
        for path in result.results:
            if self.is_excluded(path):
                continue
            if not path.lower().endswith(GRAPH_FILE_EXTENSIONS):
                continue
            files.append(path)
        return files

    def is_excluded(self, path: str) -> bool:
        """Exclusion check on the workspace-relative part of path; the workspace location itself never matches."""
        folder = self.context.folder_for(path)
        relative = self.context.relative_path(folder.path, path) if folder else None
        return is_excluded_path(relative if relative is not None else path)

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise OperationCancelledError("Import graph build cancelled")

    def _build_from_files(self, initial_files: list[str], scope_roots: set[str], mode: GraphMode) -> GraphPayload:
        nodes: dict[str, GraphNode] = {}
        edges: dict[str, _EdgeEntry] = {}
        processed: set[str] = set()
        queue = deque(initial_files)
        descriptor_cache: dict[str, list[ImportDescriptor]] = {}
        resolution_cache: dict[str, Optional[str]] = {}

        def ensure_file_node(path: str) -> GraphNode:
            node_id = to_node_id(path)
            is_root = mode != GraphMode.WORKSPACE and self.context.key(path) in scope_roots
            openable = self.context.is_within_workspace(path) and not self.is_excluded(path)
            node = nodes.get(node_id)
            if node is None:
                node = GraphNode(
                    id=node_id,
                    label=self.context.basename(path),
                    path=path,
                    kind=NodeKind.ROOT if is_root else NodeKind.RELATIVE,
                    openable=openable,
                )
                nodes[node_id] = node
            elif is_root and node.kind != NodeKind.ROOT:
                node.kind = NodeKind.ROOT
            node.openable = node.openable and openable
            return node

        def ensure_external_node(specifier: str, resolved: Optional[str]) -> GraphNode:
            node_id = to_node_id(f"module:{specifier}")
            node = nodes.get(node_id)
            if node is None:
                label = specifier
                if resolved:
                    label = self.context.basename(resolved)
                else:
                    last_part = specifier.replace("\\", "/").split("/")[-1]
                    if last_part and "." in last_part:
                        label = last_part
                node = GraphNode(id=node_id, label=label, path=specifier, kind=NodeKind.EXTERNAL, openable=False)
                nodes[node_id] = node
            return node

        while queue:
            self._check_cancelled()
            file_path = queue.popleft()
            file_key = self.context.key(file_path)
            if file_key in processed:
                continue
            processed.add(file_key)

            importer = ensure_file_node(file_path)
            try:
                descriptors = self._get_descriptors(file_path, descriptor_cache)
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Failed to parse imports in %s: %s", file_path, e)
                continue

            for descriptor in descriptors:
                resolved = self._resolve_cached(file_path, descriptor.specifier, resolution_cache)
                if self.should_ignore_import(descriptor.specifier, resolved):
                    continue

                if resolved and self.context.is_within_workspace(resolved) and not self.is_excluded(resolved):
                    queue.append(resolved)
                    imported = ensure_file_node(resolved)
                    edge_kind = EdgeKind.SIDE_EFFECT if descriptor.is_side_effect_only else EdgeKind.RELATIVE
                else:
                    imported = ensure_external_node(descriptor.specifier, resolved)
                    edge_kind = EdgeKind.SIDE_EFFECT if descriptor.is_side_effect_only else EdgeKind.EXTERNAL

                edge_key = f"{imported.id}->{importer.id}"
                entry = edges.get(edge_key)
                if entry is None:
                    entry = _EdgeEntry(
                        GraphEdge(
                            id=to_node_id(f"edge:{edge_key}"),
                            source=imported.id,
                            target=importer.id,
                            specifier=descriptor.specifier,
                            kind=edge_kind,
                            source_path=imported.path,
                            target_path=importer.path,
                        )
                    )
                    edges[edge_key] = entry

                for part in describe_symbols(descriptor):
                    entry.label_parts[part] = None
                for name in symbol_names(descriptor):
                    entry.symbol_names[name] = None

                # side-effect classification is sticky
                if descriptor.is_side_effect_only:
                    entry.edge.kind = EdgeKind.SIDE_EFFECT
                elif entry.edge.kind != EdgeKind.SIDE_EFFECT:
                    entry.edge.kind = edge_kind

                imported.fan_out += 1
                importer.fan_in += 1
                importer.weight = max(importer.weight, importer.fan_in + importer.fan_out)
                imported.weight = max(imported.weight, imported.fan_in + imported.fan_out)
                entry.edge.label = compose_edge_label(entry.label_parts, entry.edge.kind)
                entry.edge.symbols = list(entry.symbol_names)

        for node in nodes.values():
            if node.weight <= 1:
                node.weight = max(1, node.fan_in + node.fan_out)

        logger.debug(
            "Built %s graph: %d files processed, %d nodes, %d edges",
            mode.value,
            len(processed),
            len(nodes),
            len(edges),
        )
        return GraphPayload(
            nodes=list(nodes.values()),
            edges=[entry.edge for entry in edges.values()],
            mode=mode,
        )

    def _get_descriptors(self, path: str, cache: dict[str, list[ImportDescriptor]]) -> list[ImportDescriptor]:
        key = self.context.key(path)
        if key not in cache:
            content = self.file_reader.read_file(path).decode("utf-8")
            cache[key] = extract_import_descriptors(content)
        return cache[key]

    def _resolve_cached(self, source: str, specifier: str, cache: dict[str, Optional[str]]) -> Optional[str]:
        cache_key = f"{self.context.key(source)}::{specifier}"
        if cache_key not in cache:
            cache[cache_key] = self.resolve_import_target(source, specifier)
        return cache[cache_key]

    def resolve_import_target(self, source: str, specifier: str) -> Optional[str]:
        """
        Resolve a specifier to an existing file.

        Relative specifiers resolve against the importing file's directory and
        '/'-prefixed ones against the first workspace folder. Package imports
        are never resolved.
        """
        if not specifier:
            return None
        if specifier.startswith("."):
            base = self.context.resolve(self.context.dirname(source), specifier)
        elif specifier.startswith("/"):
            root = self.context.default_root()
            if root is None:
                return None
            base = self.context.resolve(root.path, specifier.lstrip("/"))
        else:
            return None

        for candidate in self.expand_import_candidates(base):
            try:
                if self.file_reader.exists(candidate):
                    return candidate
            except OSError as e:
                logger.debug("Error checking candidate %s: %s", candidate, e)
        return None

    def expand_import_candidates(self, base: str) -> list[str]:
        """Files an extensionless import may refer to, in lookup order."""
        extension = self.context.extname(base).lower()
        if extension and extension in GRAPH_FILE_EXTENSIONS:
            return [base]

        directory = self.context.dirname(base)
        name = self.context.basename(base)
        candidates: dict[str, None] = {}
        for ext in GRAPH_FILE_EXTENSIONS:
            candidates[self.context.join(directory, f"{name}{ext}")] = None
        if name and name != "index":
            for index_name in GRAPH_INDEX_FILENAMES:
                candidates[self.context.join(base, index_name)] = None
        return list(candidates)

    def should_ignore_import(self, specifier: str, resolved: Optional[str]) -> bool:
        """True for framework packages and anything resolved into node_modules."""
        if get_import_base(specifier) in GRAPH_IGNORED_IMPORT_SPECIFIERS:
            return True
        if resolved:
            lowered = resolved.lower()
            if "/node_modules/" in lowered or "\\node_modules\\" in lowered:
                return True
        return False
