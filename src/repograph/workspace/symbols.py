"""Regex-based workspace symbol index."""

import logging
import re
from typing import Optional

from repograph.analysis.constants import GRAPH_DEFAULT_EXCLUDE_GLOBS
from repograph.workspace.context import WorkspaceContext
from repograph.workspace.local import LocalFileSystem
from repograph.workspace.protocols import FileQuery, WorkspaceSymbol

logger = logging.getLogger(__name__)

SYMBOL_SOURCE_EXTENSIONS = (
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts",
    ".py", ".go", ".rs", ".java", ".kt", ".cs", ".vue", ".svelte",
)

# (kind, pattern) pairs; group 1 is the symbol name
DECLARATION_PATTERNS = [
    ("class", re.compile(r"^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?(?:public\s+)?class\s+([A-Za-z_$][\w$]*)", re.MULTILINE)),
    ("interface", re.compile(r"^\s*(?:export\s+)?interface\s+([A-Za-z_$][\w$]*)", re.MULTILINE)),
    ("function", re.compile(r"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*([A-Za-z_$][\w$]*)", re.MULTILINE)),
    ("function", re.compile(r"^\s*(?:async\s+)?def\s+([A-Za-z_]\w*)", re.MULTILINE)),
    ("struct", re.compile(r"^\s*type\s+([A-Za-z_]\w*)\s+struct\b", re.MULTILINE)),
    ("struct", re.compile(r"^\s*(?:pub\s+)?struct\s+([A-Za-z_]\w*)", re.MULTILINE)),
    ("variable", re.compile(r"^\s*export\s+const\s+([A-Za-z_$][\w$]*)\s*=", re.MULTILINE)),
]


class RegexSymbolIndex:
    """
    Finds class, function and struct declarations by pattern matching.

    The index is built lazily on the first query and reused afterwards.
    """

    def __init__(
        self,
        context: WorkspaceContext,
        file_system: Optional[LocalFileSystem] = None,
        max_files: int = 5000,
    ):
        """
        Initialize symbol index.

        Args:
            context: Workspace whose folders are indexed
            file_system: File reader and search collaborator
            max_files: Maximum number of source files indexed
        """
        self.context = context
        self.file_system = file_system or LocalFileSystem()
        self.max_files = max_files
        self._symbols: Optional[list[WorkspaceSymbol]] = None

    def _build(self) -> list[WorkspaceSymbol]:
        folders = [folder.path for folder in self.context.folders]
        if not folders:
            return []
        result = self.file_system.file_search(
            FileQuery(folders=folders, exclude_globs=GRAPH_DEFAULT_EXCLUDE_GLOBS, max_results=self.max_files * 4)
        )
        sources = [path for path in result.results if path.lower().endswith(SYMBOL_SOURCE_EXTENSIONS)]
        symbols: list[WorkspaceSymbol] = []
        for path in sources[: self.max_files]:
            try:
                text = self.file_system.read_file(path).decode("utf-8", errors="replace")
            except OSError as e:
                logger.debug("Skipping %s while indexing symbols: %s", path, e)
                continue
            container = self.context.basename(path)
            for kind, pattern in DECLARATION_PATTERNS:
                for match in pattern.finditer(text):
                    symbols.append(
                        WorkspaceSymbol(name=match.group(1), container_name=container, kind=kind, location=path)
                    )
        logger.debug("Indexed %d symbols from %d files", len(symbols), len(sources))
        return symbols

    def query_workspace_symbols(self, name: str) -> list[WorkspaceSymbol]:
        """Return symbols whose name contains ``name``, case-insensitively."""
        if self._symbols is None:
            self._symbols = self._build()
        needle = name.lower()
        return [symbol for symbol in self._symbols if needle in symbol.name.lower()]
