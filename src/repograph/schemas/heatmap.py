"""Schemas for the Git co-change heatmap."""

from enum import Enum
from typing import Optional

from pydantic import Field

from repograph.schemas.base import PayloadModel


class HeatmapGranularity(str, Enum):
    """How file paths are grouped into heatmap modules."""

    TOP_LEVEL = "topLevel"
    TWO_LEVEL = "twoLevel"
    FILE = "file"


class GitFileChange(PayloadModel):
    """One numstat line of a commit."""

    path: str = Field(description="Repository-relative file path")
    additions: int = Field(default=0, description="Added lines")
    deletions: int = Field(default=0, description="Removed lines")


class ParsedGitCommit(PayloadModel):
    """A commit read from the Git log."""

    hash: str
    timestamp: int = Field(description="Commit time in epoch seconds")
    author: str = ""
    author_email: Optional[str] = None
    message: str = ""
    files: list[GitFileChange] = Field(default_factory=list)


class ModuleFileChange(GitFileChange):
    """A file change tagged with the module it was mapped to."""

    module: Optional[str] = None


class ReducedHeatmapCommit(PayloadModel):
    """A commit after noise filtering, with its files grouped into modules."""

    hash: str
    timestamp: int
    author: str = ""
    author_email: Optional[str] = None
    message: str = ""
    modules: list[str] = Field(default_factory=list, description="Modules touched, first-seen order")
    module_churn: dict[str, int] = Field(default_factory=dict, description="Churn per module in this commit")
    commit_churn: int = 0
    files: list[ModuleFileChange] = Field(default_factory=list)


class HeatmapCommitSummary(PayloadModel):
    """Sample commit attached to a heatmap cell."""

    hash: str
    message: str
    author: str
    author_email: Optional[str] = None
    timestamp: int = Field(description="Commit time in epoch milliseconds")
    modules: list[str]
    churn: int
    files: list[GitFileChange] = Field(default_factory=list)


class HeatmapCell(PayloadModel):
    """Co-change statistics of one module pair (row <= column)."""

    row: int
    column: int
    weight: float = Field(description="Sum of time-decayed commit weights")
    normalized_weight: float = Field(description="Weight over the geometric mean of both modules' activity")
    commit_count: int
    commits: list[HeatmapCommitSummary] = Field(default_factory=list)


class HeatmapColorScale(PayloadModel):
    """Distribution of nonzero normalized weights for client-side coloring."""

    min: float = 0.0
    median: float = 0.0
    max: float = 0.0


class HeatmapPayload(PayloadModel):
    """The heatmap section of a gitHeatmap graph payload."""

    modules: list[str] = Field(default_factory=list)
    granularity: HeatmapGranularity
    window_days: int
    total_commits: int
    considered_commits: int
    generation_started_at: int = Field(description="Build start time in epoch milliseconds")
    churn: list[float] = Field(default_factory=list, description="Time-decayed churn per module")
    cells: list[HeatmapCell] = Field(default_factory=list)
    color_scale: HeatmapColorScale = Field(default_factory=HeatmapColorScale)
    summary: list[str] = Field(default_factory=list)
    description: str = ""
    normalization: str = ""
    filters: list[str] = Field(default_factory=list)
