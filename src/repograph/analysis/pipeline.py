"""Graph pipeline orchestrator."""

import time
from pathlib import Path
from typing import Callable, Optional, Sequence

from repograph.analysis.architecture import ArchitectureAnalyzer, build_architecture_graph
from repograph.analysis.graph_builder import ImportGraphBuilder
from repograph.analysis.heatmap import GitHeatmapBuilder
from repograph.core.cache import ResultCache
from repograph.core.config import Config
from repograph.core.errors import GraphBuildError
from repograph.core.logging import StructuredLogger, get_logger
from repograph.core.progress import ProgressIndicator
from repograph.schemas.graph import GraphMode, GraphPayload
from repograph.schemas.heatmap import HeatmapGranularity
from repograph.workspace.context import WorkspaceContext, to_posix
from repograph.workspace.git import SubprocessGitLogReader
from repograph.workspace.local import LocalFileSystem
from repograph.workspace.protocols import GitLogReader, SymbolIndex
from repograph.workspace.symbols import RegexSymbolIndex


class GraphPipeline:
    """Wires the workspace collaborators to the graph builders and runs one build per call."""

    def __init__(
        self,
        root_paths: Sequence[str | Path],
        config: Optional[Config] = None,
        verbose: bool = False,
        file_system: Optional[LocalFileSystem] = None,
        git_reader: Optional[GitLogReader] = None,
        symbol_index: Optional[SymbolIndex] = None,
        use_symbols: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize graph pipeline.

        Args:
            root_paths: Workspace folders; the first one is the default root
            config: Loaded configuration (defaults when None)
            verbose: Whether to show progress
            file_system: File reader and search collaborator
            git_reader: Git collaborator for the heatmap
            symbol_index: Workspace symbol provider; a regex index is used when None
            use_symbols: Set False to run the architecture analysis without a symbol provider
            clock: Returns the current time in seconds
        """
        self.config = config or Config()
        self.verbose = verbose
        self.clock = clock
        self.context = WorkspaceContext.from_paths(root_paths)
        self.file_system = file_system or LocalFileSystem()
        self.git_reader = git_reader or SubprocessGitLogReader(clock=clock)
        if symbol_index is None and use_symbols:
            symbol_index = RegexSymbolIndex(self.context, self.file_system)
        self.symbol_index = symbol_index if use_symbols else None

        self.logger: StructuredLogger = get_logger()
        self.progress = ProgressIndicator(enabled=verbose)

        self.graph_builder = ImportGraphBuilder(
            self.context,
            self.file_system,
            self.file_system,
            max_scope_files=self.config.max_scope_files,
        )
        self.architecture_analyzer = ArchitectureAnalyzer(
            self.context,
            self.file_system,
            self.file_system,
            symbol_index=self.symbol_index,
            cache=ResultCache(ttl_seconds=self.config.cache_ttl_seconds, clock=clock),
            clock=clock,
            dataset_limit_per_app=self.config.dataset_limit_per_app,
        )
        self.architecture_analyzer.add_progress_listener(self.progress.update)
        self.heatmap_builder = GitHeatmapBuilder(self.context, self.git_reader, clock=clock)

    def _run(self, pass_name: str, description: str, build: Callable[[], GraphPayload]) -> GraphPayload:
        with self.logger.analysis_pass(pass_name) as fields, self.progress.stage(description):
            payload = build()
            fields.update(
                nodes=len(payload.nodes),
                edges=len(payload.edges),
                warnings=len(payload.warnings or []),
            )
            self.progress.done(f"{len(payload.nodes)} nodes, {len(payload.edges)} edges", payload.warnings or [])
        return payload

    def file_graph(self, path: str | Path) -> GraphPayload:
        """Import graph reachable from one file."""
        resource = to_posix(path)
        return self._run(
            "import_graph",
            f"Building import graph for {self.context.format_label(resource)}",
            lambda: self.graph_builder.build_graph_for_file(resource),
        )

    def folder_graph(self, path: str | Path) -> GraphPayload:
        """Import graph of every source file under a folder."""
        resource = to_posix(path)
        if not Path(resource).is_dir():
            raise GraphBuildError(f"Folder not found: {resource}")
        return self._run(
            "import_graph",
            f"Building import graph for {self.context.format_label(resource)}",
            lambda: self.graph_builder.build_graph_for_scope([resource], GraphMode.FOLDER),
        )

    def workspace_graph(self) -> GraphPayload:
        """Import graph of every workspace folder."""
        folders = [folder.path for folder in self.context.folders]
        if not folders:
            raise GraphBuildError("No workspace folder to graph.")
        return self._run(
            "import_graph",
            "Building workspace import graph",
            lambda: self.graph_builder.build_graph_for_scope(folders, GraphMode.WORKSPACE),
        )

    def architecture_graph(self, force: bool = False) -> GraphPayload:
        """Architecture graph of the workspace, served from cache unless force is set."""

        def build() -> GraphPayload:
            result = self.architecture_analyzer.analyze(
                force=force, max_workspace_symbols=self.config.max_workspace_symbols
            )
            return build_architecture_graph(result, self.context)

        return self._run("architecture", "Analyzing workspace architecture", build)

    def git_heatmap(
        self,
        window_days: Optional[int] = None,
        granularity: Optional[HeatmapGranularity | str] = None,
    ) -> GraphPayload:
        """Git co-change heatmap of the first workspace folder."""
        days = window_days if window_days is not None else self.config.heatmap_window_days
        chosen = HeatmapGranularity(granularity or self.config.heatmap_granularity)
        return self._run(
            "git_heatmap",
            f"Building Git co-change heatmap ({days} days)",
            lambda: self.heatmap_builder.build_git_heatmap(days, chosen),
        )
