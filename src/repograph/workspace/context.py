"""Workspace folders and path helpers shared by every analysis."""

import posixpath
import sys
from pathlib import Path
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, Field


class WorkspaceFolder(BaseModel):
    """A root folder of the analyzed workspace."""

    name: str = Field(description="Display name, usually the folder's basename")
    path: str = Field(description="Absolute POSIX-style path")
    scheme: str = Field(default="file", description="Resource scheme; only 'file' supports Git analysis")


def to_posix(path: str | Path) -> str:
    """Return an absolute, normalized path using forward slashes."""
    return Path(path).expanduser().resolve().as_posix()


class WorkspaceContext:
    """
    Path utilities scoped to a list of workspace folders.

    Resources are plain POSIX path strings. Comparison keys are case-folded on
    case-insensitive platforms so the same file is never processed twice.
    """

    def __init__(self, folders: Sequence[WorkspaceFolder], case_sensitive: Optional[bool] = None):
        """
        Initialize workspace context.

        Args:
            folders: Workspace folders, in priority order
            case_sensitive: Override platform case sensitivity for comparison keys
        """
        self._folders = list(folders)
        if case_sensitive is None:
            case_sensitive = sys.platform not in ("win32", "darwin")
        self.case_sensitive = case_sensitive

    @classmethod
    def from_paths(cls, paths: Iterable[str | Path], case_sensitive: Optional[bool] = None) -> "WorkspaceContext":
        """Build a context from local directory paths."""
        folders = []
        for path in paths:
            posix = to_posix(path)
            folders.append(WorkspaceFolder(name=posixpath.basename(posix) or posix, path=posix))
        return cls(folders, case_sensitive=case_sensitive)

    @property
    def folders(self) -> list[WorkspaceFolder]:
        return list(self._folders)

    def default_root(self) -> Optional[WorkspaceFolder]:
        """The first workspace folder, if any."""
        return self._folders[0] if self._folders else None

    def join(self, base: str, *parts: str) -> str:
        return posixpath.normpath(posixpath.join(base, *parts))

    def dirname(self, resource: str) -> str:
        return posixpath.dirname(resource)

    def basename(self, resource: str) -> str:
        return posixpath.basename(resource)

    def extname(self, resource: str) -> str:
        return posixpath.splitext(posixpath.basename(resource))[1]

    def resolve(self, base: str, specifier: str) -> str:
        """Lexically resolve a relative specifier against a directory."""
        return posixpath.normpath(posixpath.join(base, specifier))

    def key(self, resource: str) -> str:
        """Stable comparison key for a resource."""
        normalized = posixpath.normpath(resource.replace("\\", "/"))
        return normalized if self.case_sensitive else normalized.lower()

    def is_equal_or_parent(self, resource: str, folder_path: str) -> bool:
        resource_key = self.key(resource)
        folder_key = self.key(folder_path)
        if resource_key == folder_key:
            return True
        prefix = folder_key if folder_key.endswith("/") else folder_key + "/"
        return resource_key.startswith(prefix)

    def relative_path(self, folder_path: str, resource: str) -> Optional[str]:
        """Path of resource relative to folder_path, or None when it lies outside."""
        if not self.is_equal_or_parent(resource, folder_path):
            return None
        resource_norm = posixpath.normpath(resource.replace("\\", "/"))
        folder_norm = posixpath.normpath(folder_path.replace("\\", "/"))
        if len(resource_norm) <= len(folder_norm):
            return ""
        return resource_norm[len(folder_norm):].lstrip("/")

    def folder_for(self, resource: str) -> Optional[WorkspaceFolder]:
        """The first workspace folder containing resource."""
        for folder in self._folders:
            if self.is_equal_or_parent(resource, folder.path):
                return folder
        return None

    def is_within_workspace(self, resource: str) -> bool:
        return self.folder_for(resource) is not None

    def format_label(self, resource: str) -> str:
        """Workspace-relative path of resource, falling back to its basename."""
        for folder in self._folders:
            relative = self.relative_path(folder.path, resource)
            if relative:
                return relative
        return self.basename(resource)
