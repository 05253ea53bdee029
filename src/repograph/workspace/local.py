"""Local filesystem implementation of the file reader and search collaborators."""

import fnmatch
import logging
import os
import re
from pathlib import Path
from typing import Callable, Iterator, Optional

from repograph.workspace.protocols import (
    FileMatch,
    FileQuery,
    FileSearchResult,
    FileStat,
    TextMatch,
    TextQuery,
    TextSearchComplete,
)

logger = logging.getLogger(__name__)

# Files larger than this are skipped by text search.
MAX_TEXT_SEARCH_BYTES = 1024 * 1024


def _matches_any(relative: str, globs: list[str]) -> bool:
    # globs use '**/' prefixes; fnmatch's '*' already crosses '/' so they match
    # against '/'-prefixed relative paths directly
    candidate = "/" + relative
    return any(fnmatch.fnmatchcase(candidate, glob) for glob in globs)


class LocalFileSystem:
    """Reads and searches files on the local disk."""

    def read_file(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def stat(self, path: str) -> FileStat:
        target = Path(path)
        if not target.exists():
            raise FileNotFoundError(path)
        if target.is_dir():
            children = sorted(child.as_posix() for child in target.iterdir())
            return FileStat(is_directory=True, children=children)
        return FileStat(is_directory=False)

    def _walk(self, folder: str, exclude_globs: list[str]) -> Iterator[tuple[str, str]]:
        """Yield (absolute path, folder-relative path) of files not excluded."""
        root = Path(folder)
        if not root.is_dir():
            return
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = Path(dirpath).relative_to(root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir
            kept = []
            for dirname in sorted(dirnames):
                rel_child = f"{rel_dir}/{dirname}" if rel_dir else dirname
                if not _matches_any(rel_child + "/", exclude_globs):
                    kept.append(dirname)
            dirnames[:] = kept
            for filename in sorted(filenames):
                rel_file = f"{rel_dir}/{filename}" if rel_dir else filename
                if _matches_any(rel_file, exclude_globs):
                    continue
                yield (root / rel_file).as_posix(), rel_file

    def file_search(self, query: FileQuery) -> FileSearchResult:
        """
        Find files under the query folders.

        Args:
            query: Folders, optional file-name glob, exclude globs and result cap

        Returns:
            Matching absolute paths and whether the cap was reached
        """
        results: list[str] = []
        for folder in query.folders:
            for path, relative in self._walk(folder, query.exclude_globs):
                name = relative.rsplit("/", 1)[-1]
                if query.file_pattern and not fnmatch.fnmatch(name, query.file_pattern):
                    continue
                if query.max_results is not None and len(results) >= query.max_results:
                    return FileSearchResult(results=results, limit_hit=True)
                results.append(path)
        return FileSearchResult(results=results, limit_hit=False)

    def text_search(
        self,
        query: TextQuery,
        on_progress: Optional[Callable[[FileMatch], None]] = None,
    ) -> TextSearchComplete:
        """
        Search file contents with a regular expression or a literal string.

        Each reported preview holds the complete lines spanned by the match.
        """
        flags = 0 if query.case_sensitive else re.IGNORECASE
        if query.multiline:
            flags |= re.MULTILINE
        pattern = re.compile(query.pattern if query.is_regex else re.escape(query.pattern), flags)

        total = 0
        for folder in query.folders:
            for path, _ in self._walk(folder, query.exclude_globs):
                text = self._read_searchable_text(path)
                if text is None:
                    continue
                previews: list[TextMatch] = []
                limit_hit = False
                for match in pattern.finditer(text):
                    if query.max_results is not None and total >= query.max_results:
                        limit_hit = True
                        break
                    if not query.multiline and "\n" in match.group(0):
                        continue
                    line_start = text.rfind("\n", 0, match.start()) + 1
                    line_end = text.find("\n", match.end())
                    if line_end == -1:
                        line_end = len(text)
                    previews.append(
                        TextMatch(
                            preview_text=text[line_start:line_end],
                            line_number=text.count("\n", 0, match.start()) + 1,
                        )
                    )
                    total += 1
                if previews and on_progress:
                    on_progress(FileMatch(resource=path, previews=previews))
                if limit_hit:
                    return TextSearchComplete(limit_hit=True)
        return TextSearchComplete(limit_hit=False)

    def _read_searchable_text(self, path: str) -> Optional[str]:
        try:
            if os.path.getsize(path) > MAX_TEXT_SEARCH_BYTES:
                return None
            data = Path(path).read_bytes()
        except OSError as e:
            logger.debug("Skipping unreadable file %s: %s", path, e)
            return None
        if b"\x00" in data[:1024]:
            return None
        return data.decode("utf-8", errors="replace")
