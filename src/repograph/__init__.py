"""repograph - dependency, architecture and Git co-change graphs for source workspaces."""

__version__ = "0.1.0"
