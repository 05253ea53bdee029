"""
Architecture analyzer.

Infers applications, frontends, backends, datastores, external services and
datasets from manifests, schema files and source text, using an ordered
sequence of best-effort detection passes. Every pass merges into one
ArchitectureModelBuilder, so later passes see and enrich what earlier passes
found.
"""

import logging
import re
import threading
import time
from typing import Callable, Optional

from repograph.analysis.architecture import catalog
from repograph.analysis.architecture.extractors import (
    extract_host,
    is_local_host,
    is_relative_url,
    parse_graphql_operations,
    parse_http_snippet,
    parse_prisma_models,
    parse_sql_table_name,
    parse_sql_tables,
)
from repograph.analysis.architecture.manifests import (
    parse_compose_images,
    parse_go_mod,
    parse_package_manifest,
    parse_pyproject,
    parse_requirements,
)
from repograph.analysis.architecture.model import ArchitectureModelBuilder
from repograph.analysis.constants import GRAPH_DEFAULT_EXCLUDE_GLOBS
from repograph.core.cache import ResultCache
from repograph.core.errors import ManifestParseError, OperationCancelledError
from repograph.schemas.architecture import (
    ArchitectureAnalysisResult,
    ArchitectureComponent,
    ComponentKind,
    DetectionEvidence,
    RelationshipKind,
)
from repograph.workspace.context import WorkspaceContext, WorkspaceFolder
from repograph.workspace.protocols import (
    FileMatch,
    FileQuery,
    FileReader,
    FileSearch,
    SymbolIndex,
    TextQuery,
    WorkspaceSymbol,
)

logger = logging.getLogger(__name__)

CACHE_KEY = "architecture"
DEFAULT_CACHE_TTL_SECONDS = 300.0

NO_SYMBOL_PROVIDER_WARNING = "No document symbol providers registered; architecture detection may miss services."
HTTP_LIMIT_WARNING = "HTTP client detection reached the search result limit; some external API calls may be omitted."
GRAPHQL_LIMIT_WARNING = "GraphQL detection reached the search limit; some operations may be omitted."
SQL_LIMIT_WARNING = "SQL query detection reached the search limit; some query edges may be omitted."
MISSING_BACKEND_WARNING = "Detected datasets without an identified backend service to link."

FRONTEND_PATH_PATTERN = re.compile(r"client|frontend|\.(tsx|jsx|vue|svelte)$")
BACKEND_PATH_PATTERN = re.compile(r"server|backend|api|functions?|lambda|\.(ts|js|go|py)$")
BACKEND_SYMBOL_PATTERN = re.compile(r"controller|service|repository|handler|resolver")
BACKEND_SYMBOL_PATH_PATTERN = re.compile(r"api|server|routes")
FRONTEND_SYMBOL_PATTERN = re.compile(r"component|view|page|widget")
FRONTEND_SYMBOL_PATH_PATTERN = re.compile(r"client|ui|frontend|pages")


def application_key(folder: WorkspaceFolder) -> str:
    return f"application:{folder.path}"


def dataset_key(app_key: str, category: str, name: str) -> str:
    normalized = re.sub(r"\s+", "_", name).lower()
    return f"dataset:{app_key}:{category}:{normalized}"


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def detect_node_backends(dependencies: dict[str, str], scripts: dict[str, str]) -> list[catalog.TechnologyRule]:
    """Backend frameworks of a package.json, with the Node service and ORM fallbacks."""
    backends = [rule for rule in catalog.NODE_BACKEND_FRAMEWORKS if rule.dependency in dependencies]
    if "ts-node-dev" in dependencies or any(
        re.search(catalog.NODE_SERVICE_SCRIPT_PATTERN, script) for script in scripts.values()
    ):
        backends.append(catalog.NODE_SERVICE_FALLBACK)
    if not backends:
        for fallback in catalog.NODE_ORM_SERVICE_FALLBACKS:
            if fallback.dependency in dependencies:
                backends.append(fallback)
                break
    return backends


class _AnalysisRun:
    """State of one analyze() call: the model builder and the component registries."""

    def __init__(self):
        self.builder = ArchitectureModelBuilder()
        self.backends_by_app: dict[str, list[str]] = {}
        self.frontends_by_app: dict[str, list[str]] = {}
        self.component_to_app: dict[str, str] = {}
        self.component_labels: dict[str, str] = {}
        self.dataset_counts: dict[str, int] = {}
        self.dataset_keys: set[str] = set()
        self.dataset_limit_warned: set[str] = set()
        self.missing_backend_warned: set[str] = set()
        self.text_cache: dict[str, Optional[str]] = {}

    def register(self, registry: dict[str, list[str]], app_key: str, component_key: str, label: str) -> None:
        self.component_to_app[component_key] = app_key
        self.component_labels[component_key] = label
        members = registry.setdefault(app_key, [])
        if component_key not in members:
            members.append(component_key)

    def register_backend(self, app_key: str, component_key: str, label: str) -> None:
        self.register(self.backends_by_app, app_key, component_key, label)

    def register_frontend(self, app_key: str, component_key: str, label: str) -> None:
        self.register(self.frontends_by_app, app_key, component_key, label)

    def register_dataset(self, app_key: str, component_key: str, label: str) -> None:
        self.component_to_app[component_key] = app_key
        self.component_labels[component_key] = label


class ArchitectureAnalyzer:
    """
    Infers a component/relationship model of the workspace.

    Results are cached for ``cache.ttl_seconds`` unless ``force`` is passed to
    analyze(). Each pass is isolated: an unexpected error inside one pass is
    recorded as a warning and the remaining passes still run.
    """

    def __init__(
        self,
        context: WorkspaceContext,
        file_reader: FileReader,
        file_search: FileSearch,
        symbol_index: Optional[SymbolIndex] = None,
        cache: Optional[ResultCache] = None,
        clock: Callable[[], float] = time.time,
        dataset_limit_per_app: int = 150,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize architecture analyzer.

        Args:
            context: Workspace folders and path helpers
            file_reader: Reads manifests, schema files and sources
            file_search: Glob and full-text search over the workspace
            symbol_index: Optional workspace symbol provider
            cache: Result cache; defaults to a five-minute TTL cache on clock
            clock: Returns the current time in seconds
            dataset_limit_per_app: Maximum number of dataset components per application
            cancel_event: When set, the running analysis stops with OperationCancelledError
        """
        self.context = context
        self.file_reader = file_reader
        self.file_search = file_search
        self.symbol_index = symbol_index
        self.clock = clock
        self.cache = cache or ResultCache(ttl_seconds=DEFAULT_CACHE_TTL_SECONDS, clock=clock)
        self.dataset_limit_per_app = dataset_limit_per_app
        self.cancel_event = cancel_event
        self._progress_listeners: list[Callable[[str], None]] = []

    def add_progress_listener(self, listener: Callable[[str], None]) -> None:
        """Register a callback receiving one progress message per detection pass."""
        self._progress_listeners.append(listener)

    def _emit_progress(self, message: str) -> None:
        for listener in self._progress_listeners:
            listener(message)

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise OperationCancelledError("Architecture analysis cancelled")

    def analyze(self, force: bool = False, max_workspace_symbols: int = 120) -> ArchitectureAnalysisResult:
        """
        Run every detection pass and return the merged model.

        Args:
            force: Ignore a cached result
            max_workspace_symbols: Maximum symbols taken per workspace symbol query

        Returns:
            ArchitectureAnalysisResult; the cached instance when still fresh

        Raises:
            OperationCancelledError: If the cancel event is set during the run
        """
        if not force:
            cached = self.cache.get(CACHE_KEY)
            if cached is not None:
                logger.debug("Returning cached architecture analysis")
                return cached

        run = _AnalysisRun()
        passes = [
            ("Collecting workspace structure…", "Workspace structure detection", self._detect_baseline_applications),
            ("Analyzing JavaScript / TypeScript dependencies…", "Node.js dependency detection", self._detect_node_ecosystem),
            ("Analyzing Python dependencies…", "Python dependency detection", self._detect_python_ecosystem),
            ("Analyzing Go modules…", "Go module detection", self._detect_go_ecosystem),
            ("Analyzing Rust crates…", "Rust crate detection", self._detect_rust_ecosystem),
            ("Inspecting container orchestration configs…", "Docker Compose detection", self._detect_docker_compose),
            ("Collecting database schema definitions…", "Database schema detection", self._detect_database_schemas),
            ("Scanning GraphQL operations…", "GraphQL detection", self._detect_graphql_operations),
            (
                "Collecting language server symbols…",
                "Workspace symbol detection",
                lambda r: self._detect_workspace_symbols(r, max_workspace_symbols),
            ),
            ("Scanning HTTP and RPC clients…", "HTTP client detection", self._detect_http_clients),
            ("Scanning SQL queries…", "SQL query detection", self._detect_sql_queries),
        ]
        for message, label, detector in passes:
            self._check_cancelled()
            self._emit_progress(message)
            started = time.perf_counter()
            try:
                detector(run)
            except OperationCancelledError:
                raise
            except Exception as e:
                logger.warning("%s failed: %s", label, e, exc_info=True)
                run.builder.add_warning(f"{label} failed: {e}")
            logger.debug("%s finished in %.1f ms", label, (time.perf_counter() - started) * 1000)

        result = run.builder.finalize(int(self.clock() * 1000))
        dataset_count = sum(1 for c in result.components if c.kind == ComponentKind.DATASET)
        data_flow_count = sum(1 for r in result.relationships if r.kind == RelationshipKind.QUERIES)
        logger.info(
            "Architecture analysis: components=%d datasets=%d relationships=%d dataFlows=%d warnings=%d",
            len(result.components),
            dataset_count,
            len(result.relationships),
            data_flow_count,
            len(result.warnings),
        )
        self.cache.set(CACHE_KEY, result)
        return result

    # file access

    def _read_text(self, path: str) -> Optional[str]:
        """File content, or None when the file is missing or unreadable."""
        try:
            if not self.file_reader.exists(path):
                return None
            return self.file_reader.read_file(path).decode("utf-8", errors="replace")
        except OSError as e:
            logger.debug("Could not read %s: %s", path, e)
            return None

    def _cached_text(self, run: _AnalysisRun, path: str) -> Optional[str]:
        if path not in run.text_cache:
            run.text_cache[path] = self._read_text(path)
        return run.text_cache[path]

    def _search_text(self, query: TextQuery) -> tuple[list[tuple[str, str]], bool]:
        """Run a text search and return (resource, preview) pairs and the limit flag."""
        matches: list[tuple[str, str]] = []

        def collect(file_match: FileMatch) -> None:
            self._check_cancelled()
            for preview in file_match.previews:
                matches.append((file_match.resource, preview.preview_text))

        complete = self.file_search.text_search(query, collect)
        return matches, complete.limit_hit

    def _folder_paths(self) -> list[str]:
        return [folder.path for folder in self.context.folders]

    # resource ownership

    def _application_for(self, resource: str) -> Optional[str]:
        folder = self.context.folder_for(resource)
        return application_key(folder) if folder else None

    def _relative_lower(self, resource: str) -> str:
        folder = self.context.folder_for(resource)
        relative = self.context.relative_path(folder.path, resource) if folder else None
        return (relative if relative is not None else resource).lower()

    def _resolve_role(self, run: _AnalysisRun, app_key: str, role: Optional[ComponentKind]) -> str:
        if role == ComponentKind.FRONTEND:
            candidates = run.frontends_by_app.get(app_key, [])
        elif role == ComponentKind.BACKEND:
            candidates = run.backends_by_app.get(app_key, [])
        else:
            candidates = []
        return candidates[0] if candidates else app_key

    def _infer_component_for_resource(self, run: _AnalysisRun, resource: str) -> Optional[str]:
        """Registered frontend or backend owning a file, falling back to its application."""
        app_key = self._application_for(resource)
        if app_key is None:
            return None
        path = self._relative_lower(resource)
        if FRONTEND_PATH_PATTERN.search(path):
            return self._resolve_role(run, app_key, ComponentKind.FRONTEND)
        if BACKEND_PATH_PATTERN.search(path):
            return self._resolve_role(run, app_key, ComponentKind.BACKEND)
        return app_key

    def _infer_component_for_symbol(self, run: _AnalysisRun, symbol: WorkspaceSymbol, resource: str) -> Optional[str]:
        app_key = self._application_for(resource)
        if app_key is None:
            return None
        name = symbol.name.lower()
        path = self._relative_lower(resource)
        if BACKEND_SYMBOL_PATTERN.search(name) or BACKEND_SYMBOL_PATH_PATTERN.search(path):
            return self._resolve_role(run, app_key, ComponentKind.BACKEND)
        if FRONTEND_SYMBOL_PATTERN.search(name) or FRONTEND_SYMBOL_PATH_PATTERN.search(path):
            return self._resolve_role(run, app_key, ComponentKind.FRONTEND)
        return app_key

    def _application_label(self, app_key: str) -> str:
        for folder in self.context.folders:
            if application_key(folder) == app_key:
                return folder.name
        return app_key

    # passes

    def _detect_baseline_applications(self, run: _AnalysisRun) -> None:
        for folder in self.context.folders:
            run.builder.ensure_component(
                application_key(folder),
                kind=ComponentKind.APPLICATION,
                label=folder.name or self.context.basename(folder.path),
                confidence=0.3,
                tags=["workspace"],
                metadata={"workspaceFolder": folder.path},
            )

    def _dependency_evidence(
        self, rule: catalog.TechnologyRule, dependencies: dict[str, str], resource: str
    ) -> DetectionEvidence:
        return DetectionEvidence(
            description=f"Dependency on {rule.dependency}",
            resource=resource,
            confidence=rule.confidence,
            snippet=f'"{rule.dependency}": "{dependencies[rule.dependency]}"',
        )

    def _detect_node_ecosystem(self, run: _AnalysisRun) -> None:
        builder = run.builder
        for folder in self.context.folders:
            package_path = self.context.join(folder.path, "package.json")
            text = self._read_text(package_path)
            if text is None:
                continue
            try:
                manifest = parse_package_manifest(text, package_path)
            except ManifestParseError as e:
                logger.warning("Failed to parse package.json %s: %s", package_path, e.reason)
                builder.add_warning(f"Failed to parse package.json in {folder.name}")
                continue

            dependencies = manifest.merged_dependencies()
            scripts = manifest.scripts
            has_typescript = any(dep in dependencies for dep in catalog.TYPESCRIPT_DEPENDENCIES) or any(
                re.search(catalog.TYPESCRIPT_SCRIPT_PATTERN, script) for script in scripts.values()
            )
            language = "TypeScript" if has_typescript else "JavaScript"
            app_key = application_key(folder)

            def set_node_runtime(component: ArchitectureComponent) -> None:
                component.language = component.language or language
                component.metadata["runtime"] = "Node.js"

            builder.augment_component(app_key, set_node_runtime)
            folder_metadata = {"workspaceFolder": folder.path, "package": package_path}

            for rule in catalog.NODE_FRONTEND_FRAMEWORKS:
                if rule.dependency not in dependencies:
                    continue
                frontend_key = f"frontend:{rule.id}:{folder.path}"
                label = f"{rule.label} Frontend"
                builder.ensure_component(
                    frontend_key,
                    kind=ComponentKind.FRONTEND,
                    label=label,
                    confidence=rule.confidence,
                    language=language,
                    technology=rule.label,
                    tags=["frontend", "web"],
                    metadata=dict(folder_metadata),
                    evidence=[self._dependency_evidence(rule, dependencies, package_path)],
                )
                run.register_frontend(app_key, frontend_key, label)
                builder.ensure_relationship(
                    f"hosts:{app_key}->{frontend_key}",
                    source=app_key,
                    target=frontend_key,
                    kind=RelationshipKind.HOSTS,
                    confidence=rule.confidence,
                    description=f"{rule.label} frontend inside {folder.name}",
                )
                builder.add_summary(f"Detected {rule.label} frontend in {folder.name}")

            backends = detect_node_backends(dependencies, scripts)
            backend_keys = []
            for rule in backends:
                backend_key = f"backend:{rule.id}:{folder.path}"
                backend_keys.append((backend_key, rule))
                label = f"{rule.label} Backend"
                version = dependencies.get(rule.dependency)
                evidence = DetectionEvidence(
                    description=(
                        f"Dependency on {rule.dependency}"
                        if version
                        else "Backend service inferred from project configuration"
                    ),
                    resource=package_path,
                    confidence=rule.confidence,
                    snippet=f'"{rule.dependency}": "{version}"' if version else None,
                )
                builder.ensure_component(
                    backend_key,
                    kind=ComponentKind.BACKEND,
                    label=label,
                    confidence=rule.confidence,
                    language=language,
                    technology=rule.label,
                    tags=["backend", "server"],
                    metadata=dict(folder_metadata),
                    evidence=[evidence],
                )
                run.register_backend(app_key, backend_key, label)
                builder.ensure_relationship(
                    f"hosts:{app_key}->{backend_key}",
                    source=app_key,
                    target=backend_key,
                    kind=RelationshipKind.HOSTS,
                    confidence=rule.confidence,
                    description=f"{rule.label} backend inside {folder.name}",
                )
                builder.add_summary(f"Detected {rule.label} backend in {folder.name}")

            for rule in catalog.NODE_DATABASE_CLIENTS:
                if rule.dependency not in dependencies:
                    continue
                database_key = f"database:{rule.id}"
                builder.ensure_component(
                    database_key,
                    kind=ComponentKind.DATABASE,
                    label=rule.label,
                    confidence=rule.confidence,
                    technology=rule.label,
                    tags=["database"],
                    metadata={"suggestedTechnology": rule.label},
                    evidence=[self._dependency_evidence(rule, dependencies, package_path)],
                )
                for backend_key, backend in backend_keys:
                    builder.ensure_relationship(
                        f"connects:{backend_key}->{database_key}",
                        source=backend_key,
                        target=database_key,
                        kind=RelationshipKind.CONNECTS_TO,
                        confidence=min(1.0, (backend.confidence + rule.confidence) / 2),
                        description=f"{backend.label} likely connects to {rule.label}",
                    )
                builder.add_summary(f"Detected {rule.label} dependency")

            for rule in catalog.NODE_CACHE_CLIENTS:
                if rule.dependency not in dependencies:
                    continue
                cache_key = f"cache:{rule.id}"
                builder.ensure_component(
                    cache_key,
                    kind=ComponentKind.CACHE,
                    label=rule.label,
                    confidence=rule.confidence,
                    technology=rule.label,
                    tags=["cache"],
                    evidence=[self._dependency_evidence(rule, dependencies, package_path)],
                )
                for backend_key, backend in backend_keys:
                    builder.ensure_relationship(
                        f"connects:{backend_key}->{cache_key}",
                        source=backend_key,
                        target=cache_key,
                        kind=RelationshipKind.CONNECTS_TO,
                        confidence=min(1.0, (backend.confidence + rule.confidence) / 2),
                        description=f"{backend.label} likely uses {rule.label}",
                    )
                builder.add_summary(f"Detected {rule.label} cache dependency")

            for rule in catalog.NODE_MESSAGING_CLIENTS:
                if rule.dependency not in dependencies:
                    continue
                queue_key = f"queue:{rule.id}"
                builder.ensure_component(
                    queue_key,
                    kind=rule.kind,
                    label=rule.label,
                    confidence=rule.confidence,
                    technology=rule.label,
                    tags=["queue"],
                    evidence=[self._dependency_evidence(rule, dependencies, package_path)],
                )
                relationship_kind = (
                    RelationshipKind.PUBLISHES if rule.kind == ComponentKind.MESSAGE_BUS else RelationshipKind.CONSUMES
                )
                for backend_key, backend in backend_keys:
                    builder.ensure_relationship(
                        f"connects:{backend_key}->{queue_key}",
                        source=backend_key,
                        target=queue_key,
                        kind=relationship_kind,
                        confidence=rule.confidence,
                        description=f"{backend.label} integrates with {rule.label}",
                    )
                builder.add_summary(f"Detected {rule.label} integration")

    def _detect_python_ecosystem(self, run: _AnalysisRun) -> None:
        builder = run.builder
        for folder in self.context.folders:
            packages: set[str] = set()
            manifest_path = None

            requirements_path = self.context.join(folder.path, "requirements.txt")
            requirements = self._read_text(requirements_path)
            if requirements is not None:
                packages |= parse_requirements(requirements)
                manifest_path = requirements_path

            pyproject_path = self.context.join(folder.path, "pyproject.toml")
            pyproject = self._read_text(pyproject_path)
            if pyproject is not None:
                try:
                    packages |= parse_pyproject(pyproject, pyproject_path)
                except ManifestParseError as e:
                    logger.warning("Failed to parse pyproject.toml %s: %s", pyproject_path, e.reason)
                    builder.add_warning(f"Failed to parse pyproject.toml in {folder.name}")
                manifest_path = manifest_path or pyproject_path

            if not packages:
                continue

            app_key = application_key(folder)

            def set_python_runtime(component: ArchitectureComponent) -> None:
                component.language = component.language or "Python"
                component.metadata.setdefault("runtime", "Python")

            builder.augment_component(app_key, set_python_runtime)

            backends = []
            for rule in catalog.PYTHON_BACKEND_FRAMEWORKS:
                if rule.dependency not in packages:
                    continue
                backend_key = f"backend:{rule.id}:{folder.path}"
                label = f"{rule.label} Backend"
                builder.ensure_component(
                    backend_key,
                    kind=rule.kind,
                    label=label,
                    confidence=rule.confidence,
                    language="Python",
                    technology=rule.label,
                    tags=["python"],
                    metadata={"workspaceFolder": folder.path},
                    evidence=[
                        DetectionEvidence(
                            description=f"Dependency on {rule.dependency}",
                            resource=manifest_path,
                            confidence=rule.confidence,
                        )
                    ],
                )
                if rule.kind == ComponentKind.BACKEND:
                    run.register_backend(app_key, backend_key, label)
                    backends.append((backend_key, rule))
                builder.ensure_relationship(
                    f"hosts:{app_key}->{backend_key}",
                    source=app_key,
                    target=backend_key,
                    kind=RelationshipKind.HOSTS,
                    confidence=rule.confidence,
                    description=f"{rule.label} backend inside {folder.name}",
                )
                builder.add_summary(f"Detected Python backend ({rule.label}) in {folder.name}")

            for rule in catalog.PYTHON_DATASTORES:
                if rule.dependency not in packages:
                    continue
                store_key = f"database:{rule.id}:{rule.dependency}"
                builder.ensure_component(
                    store_key,
                    kind=rule.kind,
                    label=rule.label,
                    confidence=rule.confidence,
                    technology=rule.label,
                    tags=["python"],
                    evidence=[
                        DetectionEvidence(
                            description=f"Dependency on {rule.dependency}",
                            resource=manifest_path,
                            confidence=rule.confidence,
                        )
                    ],
                )
                relationship_kind = (
                    RelationshipKind.CONSUMES if rule.kind == ComponentKind.QUEUE else RelationshipKind.CONNECTS_TO
                )
                for backend_key, backend in backends:
                    builder.ensure_relationship(
                        f"connects:{backend_key}->{store_key}",
                        source=backend_key,
                        target=store_key,
                        kind=relationship_kind,
                        confidence=min(1.0, (backend.confidence + rule.confidence) / 2),
                        description=f"{backend.label} likely connects to {rule.label}",
                    )
                builder.add_summary(f"Detected Python dependency for {rule.label}")

    def _detect_go_ecosystem(self, run: _AnalysisRun) -> None:
        builder = run.builder
        for folder in self.context.folders:
            gomod_path = self.context.join(folder.path, "go.mod")
            text = self._read_text(gomod_path)
            if text is None:
                continue
            modules = parse_go_mod(text)
            if not modules:
                continue
            app_key = application_key(folder)

            def set_go_runtime(component: ArchitectureComponent) -> None:
                component.language = "Go"
                component.metadata["runtime"] = "Go"

            builder.augment_component(app_key, set_go_runtime)

            def requires(module_path: str) -> bool:
                return any(module_path in module for module in modules)

            backends = []
            for rule in catalog.GO_BACKEND_FRAMEWORKS:
                if not requires(rule.dependency):
                    continue
                backend_key = f"backend:{rule.id}:{folder.path}"
                label = f"{rule.label} Backend"
                builder.ensure_component(
                    backend_key,
                    kind=ComponentKind.BACKEND,
                    label=label,
                    confidence=rule.confidence,
                    language="Go",
                    technology=rule.label,
                    tags=["go"],
                    metadata={"workspaceFolder": folder.path},
                    evidence=[
                        DetectionEvidence(
                            description=f"Dependency on {rule.dependency}",
                            resource=gomod_path,
                            confidence=rule.confidence,
                        )
                    ],
                )
                run.register_backend(app_key, backend_key, label)
                backends.append((backend_key, rule))
                builder.ensure_relationship(
                    f"hosts:{app_key}->{backend_key}",
                    source=app_key,
                    target=backend_key,
                    kind=RelationshipKind.HOSTS,
                    confidence=rule.confidence,
                    description=f"{rule.label} backend inside {folder.name}",
                )
                builder.add_summary(f"Detected Go backend ({rule.label}) in {folder.name}")

            for rule in catalog.GO_DATASTORES:
                if not requires(rule.dependency):
                    continue
                store_key = f"database:{rule.id}"
                builder.ensure_component(
                    store_key,
                    kind=rule.kind,
                    label=rule.label,
                    confidence=rule.confidence,
                    technology=rule.label,
                    tags=["go"],
                    evidence=[
                        DetectionEvidence(
                            description=f"Dependency on {rule.dependency}",
                            resource=gomod_path,
                            confidence=rule.confidence,
                        )
                    ],
                )
                relationship_kind = RelationshipKind.CONNECTS_TO if rule.id == "redis" else RelationshipKind.STORES
                for backend_key, backend in backends:
                    builder.ensure_relationship(
                        f"connects:{backend_key}->{store_key}",
                        source=backend_key,
                        target=store_key,
                        kind=relationship_kind,
                        confidence=min(1.0, (backend.confidence + rule.confidence) / 2),
                        description=f"{backend.label} likely integrates with {rule.label}",
                    )
                builder.add_summary(f"Detected Go dependency for {rule.label}")

    def _detect_rust_ecosystem(self, run: _AnalysisRun) -> None:
        builder = run.builder
        for folder in self.context.folders:
            cargo_path = self.context.join(folder.path, "Cargo.toml")
            text = self._read_text(cargo_path)
            if text is None:
                continue
            manifest = text.lower()
            if "[dependencies]" not in manifest:
                continue
            crates = {rule_id for rule_id, needle in catalog.RUST_CRATE_NEEDLES.items() if needle in manifest}
            app_key = application_key(folder)

            def set_rust_runtime(component: ArchitectureComponent) -> None:
                component.language = "Rust"
                component.metadata["runtime"] = "Rust"

            builder.augment_component(app_key, set_rust_runtime)

            for rule in catalog.RUST_BACKEND_FRAMEWORKS:
                if rule.id not in crates:
                    continue
                backend_key = f"backend:{rule.id}:{folder.path}"
                label = f"{rule.label} Backend"
                builder.ensure_component(
                    backend_key,
                    kind=ComponentKind.BACKEND,
                    label=label,
                    confidence=rule.confidence,
                    language="Rust",
                    technology=catalog.RUST_TECHNOLOGY_NAMES[rule.id],
                    tags=["rust"],
                    metadata={"workspaceFolder": folder.path},
                    evidence=[
                        DetectionEvidence(
                            description=f"Dependency on {rule.dependency}",
                            resource=cargo_path,
                            confidence=rule.confidence,
                        )
                    ],
                )
                run.register_backend(app_key, backend_key, label)
                builder.ensure_relationship(
                    f"hosts:{app_key}->{backend_key}",
                    source=app_key,
                    target=backend_key,
                    kind=RelationshipKind.HOSTS,
                    confidence=rule.confidence,
                    description=f"{rule.label} backend inside {folder.name}",
                )
                builder.add_summary(f"Detected Rust backend ({rule.label}) in {folder.name}")

            for rule in catalog.RUST_DATABASE_CRATES:
                if rule.id not in crates:
                    continue
                builder.ensure_component(
                    f"database:{rule.id}",
                    kind=rule.kind,
                    label=rule.label,
                    confidence=rule.confidence,
                    technology="SQLx",
                    tags=["rust"],
                    evidence=[
                        DetectionEvidence(
                            description=f"Dependency on {rule.dependency}",
                            resource=cargo_path,
                            confidence=rule.confidence,
                        )
                    ],
                )

    def _detect_docker_compose(self, run: _AnalysisRun) -> None:
        for folder in self.context.folders:
            for file_name in catalog.COMPOSE_FILE_NAMES:
                compose_path = self.context.join(folder.path, file_name)
                text = self._read_text(compose_path)
                if text is None:
                    continue
                for image in parse_compose_images(text):
                    for rule in catalog.COMPOSE_IMAGE_RULES:
                        if not re.search(rule.pattern, image):
                            continue
                        run.builder.ensure_component(
                            rule.key,
                            kind=rule.kind,
                            label=rule.label,
                            confidence=rule.confidence,
                            technology=rule.technology,
                            tags=["docker"],
                            metadata={"image": image},
                            evidence=[
                                DetectionEvidence(
                                    description=f"Docker image {image}",
                                    resource=compose_path,
                                    confidence=rule.confidence,
                                )
                            ],
                        )

    def _ensure_dataset(
        self,
        run: _AnalysisRun,
        app_key: str,
        category: str,
        name: str,
        technology: str,
        schema_file: Optional[str] = None,
        fields: Optional[list[dict]] = None,
        columns: Optional[list[str]] = None,
        source: Optional[str] = None,
    ) -> Optional[str]:
        """
        Create or enrich a dataset component and its application ``stores`` link.

        Returns:
            The dataset key, or None when the application's dataset cap is reached
        """
        builder = run.builder
        key = dataset_key(app_key, category, name)
        is_new = key not in run.dataset_keys
        if is_new and run.dataset_counts.get(app_key, 0) >= self.dataset_limit_per_app:
            if app_key not in run.dataset_limit_warned:
                app_label = self._application_label(app_key)
                builder.add_warning(
                    f"Dataset sampling limited to {self.dataset_limit_per_app} entries for {app_label}; "
                    "additional datasets are omitted."
                )
                logger.warning("Dataset limit of %d reached for %s", self.dataset_limit_per_app, app_label)
                run.dataset_limit_warned.add(app_key)
            return None

        metadata = {"datasetType": category, "application": app_key}
        if schema_file:
            metadata["schemaFile"] = schema_file
        if fields:
            metadata["fields"] = fields
        if columns:
            metadata["columns"] = columns
        builder.ensure_component(
            key,
            kind=ComponentKind.DATASET,
            label=f"{name} {'Model' if category == 'model' else 'Table'}",
            description="Application data model" if category == "model" else "Database table",
            confidence=0.45,
            technology=technology,
            tags=["dataset", category],
            metadata=metadata,
        )
        if is_new:
            run.dataset_keys.add(key)
            run.dataset_counts[app_key] = run.dataset_counts.get(app_key, 0) + 1

        dataset_metadata = {"name": name, "type": category}
        if schema_file:
            dataset_metadata["schemaFile"] = schema_file
        builder.ensure_relationship(
            f"stores:{app_key}->{key}",
            source=app_key,
            target=key,
            kind=RelationshipKind.STORES,
            confidence=0.5,
            description=f"Stores data in {name}",
            metadata={"dataset": dataset_metadata},
            evidence=(
                [DetectionEvidence(description=f"{name} schema", resource=source, confidence=0.45)] if source else []
            ),
        )
        return key

    def _link_dataset_to_backends(
        self,
        run: _AnalysisRun,
        app_key: str,
        key: str,
        confidence: float,
        evidence: Optional[DetectionEvidence] = None,
    ) -> None:
        backends = run.backends_by_app.get(app_key, [])
        if not backends:
            if app_key not in run.missing_backend_warned:
                run.missing_backend_warned.add(app_key)
                logger.info("Datasets found for %s but no backend service to link", self._application_label(app_key))
                run.builder.add_warning(MISSING_BACKEND_WARNING)
            return
        dataset_label = run.component_labels.get(key, "Dataset")
        for backend_key in backends:
            backend_label = run.component_labels.get(backend_key, "Backend Service")
            run.builder.ensure_relationship(
                f"stores:{backend_key}->{key}",
                source=backend_key,
                target=key,
                kind=RelationshipKind.STORES,
                confidence=max(confidence, 0.45),
                description=f"{backend_label} stores data in {dataset_label}",
                metadata={"link": "dataset"},
                evidence=[evidence] if evidence else [],
            )

    def _collect_sql_files(self, folder: WorkspaceFolder) -> list[str]:
        result = self.file_search.file_search(
            FileQuery(
                folders=[folder.path],
                file_pattern="*.sql",
                exclude_globs=GRAPH_DEFAULT_EXCLUDE_GLOBS,
                max_results=catalog.SQL_SCHEMA_FILES_PER_FOLDER,
            )
        )
        return result.results[: catalog.SQL_SCHEMA_FILES_PER_FOLDER]

    def _detect_database_schemas(self, run: _AnalysisRun) -> None:
        builder = run.builder
        for folder in self.context.folders:
            app_key = application_key(folder)
            prisma_path = self.context.join(folder.path, "prisma/schema.prisma")
            prisma_text = self._read_text(prisma_path)
            models = parse_prisma_models(prisma_text) if prisma_text else []
            if models:
                builder.append_metadata(
                    app_key,
                    "databaseSchemas",
                    {"type": "prisma", "file": prisma_path, "models": [m.model_dump() for m in models]},
                )
                builder.add_evidence(
                    app_key,
                    DetectionEvidence(
                        description=f"Prisma schema defining {_plural(len(models), 'model')}",
                        resource=prisma_path,
                        snippet="\n".join(f"model {m.name} {{ … }}" for m in models[:2]),
                        confidence=0.6,
                    ),
                )
                builder.add_summary(f"Detected Prisma schema in {folder.name or self.context.basename(folder.path)}")
                for model in models:
                    self._check_cancelled()
                    key = self._ensure_dataset(
                        run,
                        app_key,
                        "model",
                        model.name,
                        "Prisma",
                        schema_file=prisma_path,
                        fields=[f.model_dump() for f in model.fields],
                        source=prisma_path,
                    )
                    if key is None:
                        continue
                    run.register_dataset(app_key, key, f"{model.name} Model")
                    builder.add_evidence(
                        key,
                        DetectionEvidence(
                            description=f"Model {model.name} defined in Prisma schema",
                            resource=prisma_path,
                            snippet=f"model {model.name} {{ … }}",
                            confidence=0.5,
                        ),
                    )
                    self._link_dataset_to_backends(
                        run,
                        app_key,
                        key,
                        0.55,
                        DetectionEvidence(description=f"Schema {model.name}", resource=prisma_path, confidence=0.5),
                    )

            for sql_path in self._collect_sql_files(folder):
                sql_text = self._read_text(sql_path)
                tables = parse_sql_tables(sql_text) if sql_text else []
                if not tables:
                    continue
                builder.append_metadata(
                    app_key,
                    "databaseSchemas",
                    {"type": "sql", "file": sql_path, "tables": [t.model_dump() for t in tables]},
                )
                builder.add_evidence(
                    app_key,
                    DetectionEvidence(
                        description=f"SQL schema defining {_plural(len(tables), 'table')}",
                        resource=sql_path,
                        snippet="\n".join(f"CREATE TABLE {t.name} (...)" for t in tables[:2]),
                        confidence=0.55,
                    ),
                )
                for table in tables:
                    self._check_cancelled()
                    key = self._ensure_dataset(
                        run,
                        app_key,
                        "table",
                        table.name,
                        "SQL",
                        schema_file=sql_path,
                        columns=table.columns,
                        source=sql_path,
                    )
                    if key is None:
                        continue
                    run.register_dataset(app_key, key, f"{table.name} Table")
                    builder.add_evidence(
                        key,
                        DetectionEvidence(
                            description=f"Table {table.name} defined in SQL schema",
                            resource=sql_path,
                            snippet=f"CREATE TABLE {table.name} (...)",
                            confidence=0.5,
                        ),
                    )
                    self._link_dataset_to_backends(
                        run,
                        app_key,
                        key,
                        0.5,
                        DetectionEvidence(description=f"SQL schema {table.name}", resource=sql_path, confidence=0.5),
                    )
            logger.debug(
                "Dataset count for %s: %d", self._application_label(app_key), run.dataset_counts.get(app_key, 0)
            )

    def _detect_graphql_operations(self, run: _AnalysisRun) -> None:
        folders = self._folder_paths()
        if not folders:
            return
        files: dict[str, None] = {}

        def collect(file_match: FileMatch) -> None:
            self._check_cancelled()
            files[file_match.resource] = None

        complete = self.file_search.text_search(
            TextQuery(
                folders=folders,
                pattern=catalog.GRAPHQL_LITERAL,
                is_regex=False,
                exclude_globs=GRAPH_DEFAULT_EXCLUDE_GLOBS,
                max_results=catalog.GRAPHQL_SEARCH_MAX_RESULTS,
            ),
            collect,
        )
        if complete.limit_hit:
            run.builder.add_warning(GRAPHQL_LIMIT_WARNING)

        for path in files:
            text = self._cached_text(run, path)
            if not text:
                continue
            operations = parse_graphql_operations(text, path, catalog.GRAPHQL_OPERATIONS_PER_FILE)
            if not operations:
                continue
            component_key = self._infer_component_for_resource(run, path)
            if not component_key:
                continue
            for operation in operations:
                run.builder.add_evidence(
                    component_key,
                    DetectionEvidence(
                        description=f"GraphQL {operation.type.upper()} {operation.name or '<anonymous>'}",
                        resource=path,
                        snippet=operation.snippet,
                        confidence=0.45,
                    ),
                )
                run.builder.append_metadata(
                    component_key, "graphqlOperations", operation.model_dump(exclude_none=True)
                )

    def _detect_workspace_symbols(self, run: _AnalysisRun, limit: int) -> None:
        if self.symbol_index is None:
            run.builder.add_warning(NO_SYMBOL_PROVIDER_WARNING)
            return
        files_with_symbols: set[str] = set()
        for query in catalog.WORKSPACE_SYMBOL_QUERIES:
            self._check_cancelled()
            try:
                symbols = self.symbol_index.query_workspace_symbols(query)[:limit]
            except Exception as e:
                logger.warning("Workspace symbol query %r failed: %s", query, e)
                continue
            for symbol in symbols:
                if not symbol.location:
                    continue
                files_with_symbols.add(symbol.location)
                component_key = self._infer_component_for_symbol(run, symbol, symbol.location)
                if not component_key:
                    continue
                run.builder.merge_evidence(
                    component_key,
                    DetectionEvidence(
                        description=f'Workspace symbol "{symbol.name or query}"',
                        resource=symbol.location,
                        confidence=0.2,
                    ),
                )
        if not files_with_symbols:
            logger.debug("No workspace symbols detected for architecture analysis")

    def _resolve_internal_backend(
        self, run: _AnalysisRun, source_key: Optional[str], app_key: Optional[str], host: Optional[str], url: str
    ) -> Optional[str]:
        """First registered backend of the caller's application, for relative or local URLs."""
        candidate_app = app_key or run.component_to_app.get(source_key or "")
        if not candidate_app:
            return None
        backends = run.backends_by_app.get(candidate_app, [])
        if not backends:
            return None
        if is_relative_url(url) or is_local_host(host):
            return backends[0]
        return None

    def _detect_http_clients(self, run: _AnalysisRun) -> None:
        folders = self._folder_paths()
        if not folders:
            return
        builder = run.builder
        warned_for_limit = False
        for client in catalog.HTTP_CLIENT_PATTERNS:
            matches, limit_hit = self._search_text(
                TextQuery(
                    folders=folders,
                    pattern=client.pattern,
                    is_regex=True,
                    case_sensitive=False,
                    exclude_globs=GRAPH_DEFAULT_EXCLUDE_GLOBS,
                    max_results=catalog.HTTP_SEARCH_MAX_RESULTS,
                )
            )
            if limit_hit and not warned_for_limit:
                builder.add_warning(HTTP_LIMIT_WARNING)
                warned_for_limit = True

            for resource, text in matches:
                call = parse_http_snippet(text)
                if not call.url:
                    continue
                url = call.url.strip()
                method = call.method
                snippet = text.strip()
                app_key = self._application_for(resource)
                source_key = self._infer_component_for_resource(run, resource) or app_key
                host = extract_host(url)
                internal_key = self._resolve_internal_backend(run, source_key, app_key, host, url)
                target_resource = host or "unknown"
                call_evidence = DetectionEvidence(
                    description=f"HTTP {method} {url}", resource=resource, snippet=snippet, confidence=0.5
                )

                if internal_key and source_key:
                    backend_label = run.component_labels.get(internal_key, "Backend Service")
                    target_resource = backend_label
                    builder.ensure_relationship(
                        f"calls:{source_key}->{internal_key}:{method}:{url}",
                        source=source_key,
                        target=internal_key,
                        kind=RelationshipKind.CALLS,
                        confidence=0.55,
                        description=f"HTTP {method} {url}",
                        metadata={"http": {"method": method, "url": url, "resource": backend_label, "file": resource}},
                        evidence=[call_evidence],
                    )
                else:
                    if not host:
                        continue
                    external_key = f"externalService:{host}"
                    builder.ensure_component(
                        external_key,
                        kind=ComponentKind.EXTERNAL_SERVICE,
                        label=f"External API ({host})",
                        confidence=0.55,
                        technology=host,
                        tags=["external"],
                        metadata={"host": host},
                    )

                    def add_endpoint(component: ArchitectureComponent) -> None:
                        endpoints = component.metadata.setdefault("endpoints", [])
                        endpoint = next((entry for entry in endpoints if entry["url"] == url), None)
                        if endpoint is None:
                            endpoint = {"url": url, "methods": []}
                            endpoints.append(endpoint)
                        if method not in endpoint["methods"]:
                            endpoint["methods"].append(method)

                    builder.augment_component(external_key, add_endpoint)
                    if source_key:
                        builder.ensure_relationship(
                            f"calls:{method}:{url}:{source_key}->{external_key}",
                            source=source_key,
                            target=external_key,
                            kind=RelationshipKind.CALLS,
                            confidence=0.55,
                            description=f"HTTP {method} {url}",
                            metadata={"http": {"method": method, "url": url, "resource": host, "file": resource}},
                            evidence=[call_evidence],
                        )

                if source_key:
                    builder.append_metadata(
                        source_key,
                        "httpCalls",
                        {
                            "method": method,
                            "url": url,
                            "resource": target_resource,
                            "file": resource,
                            "snippet": snippet,
                        },
                    )

    def _detect_sql_queries(self, run: _AnalysisRun) -> None:
        folders = self._folder_paths()
        if not folders:
            return
        builder = run.builder
        matches, limit_hit = self._search_text(
            TextQuery(
                folders=folders,
                pattern=catalog.SQL_QUERY_PATTERN,
                is_regex=True,
                case_sensitive=False,
                multiline=True,
                exclude_globs=GRAPH_DEFAULT_EXCLUDE_GLOBS,
            )
        )
        if limit_hit:
            builder.add_warning(SQL_LIMIT_WARNING)

        query_index = 0
        samples = matches[: catalog.SQL_QUERY_SAMPLE_LIMIT]
        for resource, text in samples:
            self._check_cancelled()
            app_key = self._application_for(resource)
            source_key = self._infer_component_for_resource(run, resource) or app_key
            if not app_key or not source_key:
                continue
            snippet = text.strip()
            table = parse_sql_table_name(text)
            builder.add_evidence(
                source_key,
                DetectionEvidence(
                    description=f"SQL query on {table}" if table else "SQL query",
                    resource=resource,
                    snippet=snippet,
                    confidence=0.4,
                ),
            )
            query_summary = {"file": resource, "snippet": snippet}
            if table:
                query_summary = {"table": table, **query_summary}
            builder.append_metadata(source_key, "sqlQueries", query_summary)
            if not table:
                continue

            key = self._ensure_dataset(run, app_key, "table", table, "SQL")
            if key is None:
                continue
            run.register_dataset(app_key, key, f"{table} Table")
            builder.ensure_relationship(
                f"queries:{source_key}->{key}:{query_index}",
                source=source_key,
                target=key,
                kind=RelationshipKind.QUERIES,
                confidence=0.45,
                description=f"Queries {table}",
                metadata={"sql": {"table": table, "file": resource, "snippet": snippet}},
                evidence=[
                    DetectionEvidence(
                        description=f"SQL query on {table}", resource=resource, snippet=snippet, confidence=0.4
                    )
                ],
            )
            query_index += 1
            builder.append_metadata(key, "queries", {"source": source_key, "file": resource, "snippet": snippet})
            builder.add_evidence(
                key,
                DetectionEvidence(
                    description=f"Queried via {source_key}", resource=resource, snippet=snippet, confidence=0.35
                ),
            )
            self._link_dataset_to_backends(
                run,
                app_key,
                key,
                0.45,
                DetectionEvidence(
                    description=f"Query from {source_key}", resource=resource, snippet=snippet, confidence=0.35
                ),
            )
        logger.debug("SQL query samples analyzed: %d", len(samples))
