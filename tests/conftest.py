"""Shared fixtures."""

from pathlib import Path

import pytest

import repograph.core.logging as repograph_logging
from repograph.workspace.context import WorkspaceContext, to_posix
from repograph.workspace.local import LocalFileSystem


class FakeClock:
    """Callable clock returning a settable time in seconds."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_logger(monkeypatch):
    """Give every test a fresh process-wide logger bound to the current stderr."""
    monkeypatch.setattr(repograph_logging, "_default_logger", None)


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def make_workspace(tmp_path):
    """Factory writing a dict of relative path -> text into a named folder under tmp_path."""

    def _make(files: dict[str, str], name: str = "app") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for relative, content in files.items():
            target = root / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return Path(to_posix(root))

    return _make


@pytest.fixture
def file_system():
    return LocalFileSystem()


@pytest.fixture
def context_for():
    """Factory building a case-sensitive WorkspaceContext over the given roots."""

    def _context(*roots: Path) -> WorkspaceContext:
        return WorkspaceContext.from_paths(roots, case_sensitive=True)

    return _context
