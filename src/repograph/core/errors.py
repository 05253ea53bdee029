"""Exception types raised by repograph."""


class RepographError(Exception):
    """Base class for all repograph errors."""

    pass


class GraphBuildError(RepographError):
    """Raised when a requested file or folder cannot be graphed."""

    pass


class GitHeatmapError(RepographError):
    """Raised when the Git co-change heatmap cannot be produced."""

    pass


class OperationCancelledError(RepographError):
    """Raised when a running build or analysis observes a cancellation request."""

    pass


class ManifestParseError(RepographError):
    """Raised when a package manifest or config file cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse {path}: {reason}")
