"""Interfaces of the collaborators the analyses consume, and their records."""

from typing import Callable, Optional, Protocol

from pydantic import BaseModel, Field


class FileStat(BaseModel):
    """Result of stat on a resource."""

    is_directory: bool
    children: Optional[list[str]] = None


class FileQuery(BaseModel):
    """Glob-based file search over workspace folders."""

    folders: list[str]
    file_pattern: Optional[str] = Field(default=None, description="File-name glob such as '*.sql'")
    exclude_globs: list[str] = Field(default_factory=list)
    max_results: Optional[int] = None


class FileSearchResult(BaseModel):
    results: list[str] = Field(default_factory=list)
    limit_hit: bool = False


class TextQuery(BaseModel):
    """Full-text search over workspace folders."""

    folders: list[str]
    pattern: str
    is_regex: bool = True
    case_sensitive: bool = False
    multiline: bool = False
    exclude_globs: list[str] = Field(default_factory=list)
    max_results: Optional[int] = None


class TextMatch(BaseModel):
    """One match inside a file, with the full text of the lines it spans."""

    preview_text: str
    line_number: int


class FileMatch(BaseModel):
    """All matches of a text search inside one file."""

    resource: str
    previews: list[TextMatch] = Field(default_factory=list)


class TextSearchComplete(BaseModel):
    limit_hit: bool = False


class WorkspaceSymbol(BaseModel):
    """A symbol returned by a workspace symbol index."""

    name: str
    container_name: Optional[str] = None
    kind: Optional[str] = None
    location: Optional[str] = Field(default=None, description="Path of the file declaring the symbol")


class FileReader(Protocol):
    """Reads workspace resources."""

    def read_file(self, path: str) -> bytes:
        """
        Read the full content of a file.

        Raises:
            FileNotFoundError: If the file does not exist
            OSError: If the file cannot be read
        """
        ...

    def exists(self, path: str) -> bool:
        """Return True if the resource exists."""
        ...

    def stat(self, path: str) -> FileStat:
        """Return directory flag and, for directories, child paths."""
        ...


class FileSearch(Protocol):
    """Glob and full-text search over workspace folders."""

    def file_search(self, query: FileQuery) -> FileSearchResult:
        ...

    def text_search(
        self,
        query: TextQuery,
        on_progress: Optional[Callable[[FileMatch], None]] = None,
    ) -> TextSearchComplete:
        """
        Search file contents, reporting matches file by file.

        Args:
            query: Search query
            on_progress: Called once per file with at least one match

        Returns:
            Completion record telling whether the result cap was reached
        """
        ...


class GitLogReader(Protocol):
    """Reads commit history of a local repository."""

    def read_git_log(self, root: str, window_days: int) -> str:
        """
        Return raw log text for the window.

        Each commit is a header line of \\x1f-separated fields
        (hash, commit time, author, author email, subject) followed by
        tab-separated numstat lines (additions, deletions, path).
        """
        ...

    def filter_ignored_paths(self, root: str, paths: list[str]) -> list[str]:
        """Return the subset of paths matched by .gitignore rules."""
        ...


class SymbolIndex(Protocol):
    """Best-effort workspace symbol search."""

    def query_workspace_symbols(self, name: str) -> list[WorkspaceSymbol]:
        ...
