"""
Git co-change heatmap.

Reads commit history, groups changed files into modules and scores how often
module pairs change together, with older commits weighing less.
"""

import logging
import math
import re
import time
from typing import Callable, Optional

from pydantic import BaseModel, Field

from repograph.core.errors import GitHeatmapError
from repograph.schemas.graph import GraphMode, GraphPayload
from repograph.schemas.heatmap import (
    GitFileChange,
    HeatmapCell,
    HeatmapColorScale,
    HeatmapCommitSummary,
    HeatmapGranularity,
    HeatmapPayload,
    ModuleFileChange,
    ParsedGitCommit,
    ReducedHeatmapCommit,
)
from repograph.workspace.context import WorkspaceContext
from repograph.workspace.git import SubprocessGitLogReader
from repograph.workspace.protocols import GitLogReader

logger = logging.getLogger(__name__)

MAX_FILES_PER_COMMIT = 40
MAX_MODULES = 120
MAX_CELLS = 2500
MIN_NORMALIZED_WEIGHT = 0.05
MIN_WEIGHT = 0.45
MAX_COMMITS_PER_PAIR = 5
MAX_FILES_PER_PAIR_SUMMARY = 6
DECAY_DAYS = 90
MIN_DECAY = 0.05
MS_PER_DAY = 24 * 60 * 60 * 1000

DEFAULT_WINDOW_DAYS = 90
MAX_WINDOW_DAYS = 365
ROOT_MODULE = "(root)"

HEATMAP_FILTERS = [
    f"Skipped commits touching more than {MAX_FILES_PER_COMMIT} files.",
    "Ignored hidden folders, package managers, Docker/config artifacts, and .gitignored paths.",
    f"Applied exponential time decay (half-life {DECAY_DAYS} days).",
]
HEATMAP_DESCRIPTION = "Darker cells highlight modules that frequently change together within the selected window."
HEATMAP_NORMALIZATION = "Weights normalized by the geometric mean of per-module activity."
NO_ACTIVITY_WARNING = "No Git activity found for the selected window."

IGNORED_FILE_NAMES = {
    "package.json",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "composer.lock",
    "cargo.lock",
    ".gitignore",
    ".gitattributes",
}
IGNORED_PATH_PARTS = ("node_modules/", "vendor/", "third_party/")
IGNORED_SUFFIXES = (".lock", ".min.js", ".min.css")
IGNORED_PREFIXES = ("dist/", "out/", "build/", ".yarn/", ".pnpm/")
DOCKERFILE_PATTERN = re.compile(r"^dockerfile(?:\.|$)")
COMPOSE_FILE_PATTERN = re.compile(r"^docker-compose\.")


class HeatmapBuildContext(BaseModel):
    """Run parameters echoed into the heatmap payload."""

    granularity: HeatmapGranularity
    window_days: int
    generation_started_at: int = Field(description="Epoch milliseconds")
    total_commits: int
    considered_commits: int


class CommitReduction(BaseModel):
    """Output of reduce_commits."""

    commits: list[ReducedHeatmapCommit] = Field(default_factory=list)
    module_churn: dict[str, int] = Field(default_factory=dict, description="Total churn per module")
    total_commits: int = 0
    considered_commits: int = 0


def _normalize_path(path: str) -> str:
    return path.replace("\\", "/")


def _parse_count(value: str) -> int:
    if value == "-":
        return 0
    try:
        return int(value.strip())
    except ValueError:
        return 0


def parse_git_log(raw: str) -> list[ParsedGitCommit]:
    """
    Parse ``git log --numstat`` output.

    Header lines hold \\x1f-separated hash, commit time, author, author email
    and subject. Numstat lines are ``additions<TAB>deletions<TAB>path``; binary
    files report ``-`` counts, which are read as 0.
    """
    commits: list[ParsedGitCommit] = []
    current: Optional[ParsedGitCommit] = None
    for line in raw.splitlines():
        if not line:
            continue
        if "\x1f" in line:
            if current is not None:
                commits.append(current)
            parts = line.split("\x1f")
            fields = parts + [""] * (5 - len(parts))
            current = ParsedGitCommit(
                hash=fields[0].strip(),
                timestamp=_parse_count(fields[1]),
                author=fields[2].strip(),
                author_email=fields[3].strip() or None,
                message=fields[4].strip(),
            )
            continue
        if current is None:
            continue
        segments = line.split("\t")
        if len(segments) < 3:
            continue
        file_path = "\t".join(segments[2:]).strip()
        if not file_path:
            continue
        current.files.append(
            GitFileChange(path=file_path, additions=_parse_count(segments[0]), deletions=_parse_count(segments[1]))
        )
    if current is not None:
        commits.append(current)
    return commits


def heatmap_module_key(path: str, granularity: HeatmapGranularity) -> str:
    """Module a repository path belongs to; paths with no segments map to ``(root)``."""
    cleaned = path[2:] if path.startswith("./") else path
    segments = [segment for segment in cleaned.split("/") if segment and segment != "."]
    if not segments:
        return ROOT_MODULE
    if granularity == HeatmapGranularity.FILE:
        return "/".join(segments)
    if granularity == HeatmapGranularity.TWO_LEVEL:
        return "/".join(segments[:2])
    return segments[0]


def should_ignore_heatmap_path(path: str) -> bool:
    """True for dotfiles and dot folders, lockfiles, Docker files, vendored trees and build output."""
    lower = path.lower()
    segments = path.split("/")
    if any(len(segment) > 1 and segment.startswith(".") for segment in segments):
        return True
    filename = segments[-1].lower()
    if filename in IGNORED_FILE_NAMES or DOCKERFILE_PATTERN.match(filename) or COMPOSE_FILE_PATTERN.match(filename):
        return True
    return (
        any(part in lower for part in IGNORED_PATH_PARTS)
        or lower.endswith(IGNORED_SUFFIXES)
        or lower.startswith(IGNORED_PREFIXES)
    )


def reduce_commits(
    commits: list[ParsedGitCommit],
    granularity: HeatmapGranularity,
    ignored_paths: set[str],
) -> CommitReduction:
    """
    Drop noisy commits and group the remaining files into modules.

    Commits touching no files or more than MAX_FILES_PER_COMMIT files are
    skipped, as are commits whose files are all ignored.
    """
    reduction = CommitReduction(total_commits=len(commits))
    for commit in commits:
        if not commit.files or len(commit.files) > MAX_FILES_PER_COMMIT:
            continue
        module_churn: dict[str, int] = {}
        files: list[ModuleFileChange] = []
        for change in commit.files:
            path = _normalize_path(change.path)
            if path in ignored_paths or should_ignore_heatmap_path(path):
                continue
            module = heatmap_module_key(path, granularity)
            churn = max(0, change.additions) + max(0, change.deletions)
            module_churn[module] = module_churn.get(module, 0) + churn
            files.append(
                ModuleFileChange(
                    path=change.path, additions=change.additions, deletions=change.deletions, module=module
                )
            )
        if not module_churn:
            continue
        reduction.commits.append(
            ReducedHeatmapCommit(
                hash=commit.hash,
                timestamp=commit.timestamp,
                author=commit.author,
                author_email=commit.author_email,
                message=commit.message,
                modules=list(module_churn),
                module_churn=module_churn,
                commit_churn=sum(module_churn.values()),
                files=files,
            )
        )
        reduction.considered_commits += 1
        for module, churn in module_churn.items():
            reduction.module_churn[module] = reduction.module_churn.get(module, 0) + churn
    return reduction


def commit_decay(timestamp: int, now_ms: int) -> float:
    """exp(-age/90 days), floored at MIN_DECAY; future commits count as age 0."""
    age_days = (now_ms - timestamp * 1000) / MS_PER_DAY
    decay = math.exp(-max(0.0, age_days) / DECAY_DAYS)
    return max(decay, MIN_DECAY) if math.isfinite(decay) else MIN_DECAY


class _PairStats:
    def __init__(self):
        self.weight = 0.0
        self.commit_count = 0
        self.commits: list[HeatmapCommitSummary] = []


def _pair_summary(commit: ReducedHeatmapCommit, module_a: str, module_b: str) -> HeatmapCommitSummary:
    files = [
        GitFileChange(path=change.path, additions=change.additions, deletions=change.deletions)
        for change in commit.files
        if change.module and change.module in (module_a, module_b)
    ][:MAX_FILES_PER_PAIR_SUMMARY]
    churn = commit.module_churn.get(module_a, 0)
    if module_a != module_b:
        churn += commit.module_churn.get(module_b, 0)
    return HeatmapCommitSummary(
        hash=commit.hash,
        message=commit.message,
        author=commit.author,
        author_email=commit.author_email,
        timestamp=commit.timestamp * 1000,
        modules=[module_a] if module_a == module_b else [module_a, module_b],
        churn=churn,
        files=files,
    )


def build_heatmap_from_commits(
    commits: list[ReducedHeatmapCommit],
    module_churn: dict[str, int],
    context: HeatmapBuildContext,
    now: int,
) -> HeatmapPayload:
    """
    Score module co-change.

    The MAX_MODULES modules with the highest total churn are kept and listed
    alphabetically. Each commit adds its decay weight to every unordered pair
    of kept modules it touched, a module paired with itself included. A
    pair's normalized weight divides its weight by the geometric mean of both
    modules' summed commit weights. Cells are emitted with row <= column.

    Args:
        commits: Reduced commits
        module_churn: Total churn per module, used to select modules
        context: Run parameters copied into the payload
        now: Current time in epoch milliseconds

    Returns:
        HeatmapPayload
    """
    ranked = sorted(module_churn.items(), key=lambda item: (-item[1], item[0]))
    module_names = sorted(name for name, _ in ranked[:MAX_MODULES])
    module_index = {name: index for index, name in enumerate(module_names)}
    weighted_churn = [0.0] * len(module_names)
    activity = [0.0] * len(module_names)
    pair_stats: dict[tuple[int, int], _PairStats] = {}

    for commit in commits:
        in_scope = [module for module in commit.modules if module in module_index]
        if not in_scope:
            continue
        weight = commit_decay(commit.timestamp, now)
        for module in in_scope:
            index = module_index[module]
            weighted_churn[index] += commit.module_churn.get(module, 0) * weight
            activity[index] += weight

        ordered = sorted(in_scope)
        for i, module_a in enumerate(ordered):
            for module_b in ordered[i:]:
                index_a, index_b = module_index[module_a], module_index[module_b]
                key = (min(index_a, index_b), max(index_a, index_b))
                stats = pair_stats.setdefault(key, _PairStats())
                stats.weight += weight
                stats.commit_count += 1
                if len(stats.commits) < MAX_COMMITS_PER_PAIR:
                    stats.commits.append(_pair_summary(commit, module_a, module_b))

    cells = []
    for (row, column), stats in pair_stats.items():
        denominator = math.sqrt(activity[row] * activity[column])
        normalized = stats.weight / denominator if denominator > 0 else 0.0
        cells.append(
            HeatmapCell(
                row=row,
                column=column,
                weight=round(stats.weight, 4),
                normalized_weight=round(normalized if math.isfinite(normalized) else 0.0, 4),
                commit_count=stats.commit_count,
                commits=sorted(stats.commits, key=lambda c: -c.timestamp)[:MAX_COMMITS_PER_PAIR],
            )
        )

    cells = [cell for cell in cells if cell.normalized_weight >= MIN_NORMALIZED_WEIGHT or cell.weight >= MIN_WEIGHT]
    cells.sort(key=lambda cell: (-cell.normalized_weight, -cell.weight))
    cells = cells[:MAX_CELLS]

    values = sorted(cell.normalized_weight for cell in cells if cell.normalized_weight > 0)
    color_scale = HeatmapColorScale(
        min=values[0] if values else 0.0,
        median=values[len(values) // 2] if values else 0.0,
        max=values[-1] if values else 0.0,
    )

    top_modules = sorted(
        ((name, weighted_churn[index]) for index, name in enumerate(module_names) if weighted_churn[index] > 0),
        key=lambda entry: -entry[1],
    )[:3]
    top_pairs = [
        f"{module_names[cell.row]} ↔ {module_names[cell.column]} ({cell.normalized_weight:.2f})" for cell in cells[:3]
    ]
    summary = [
        (
            "Top churn: " + ", ".join(f"{name} ({churn:.0f})" for name, churn in top_modules)
            if top_modules
            else "Coupling heatmap derived from Git activity."
        ),
        ("Strongest couplings: " + ", ".join(top_pairs)) if top_pairs else "No strong module couplings detected.",
    ]

    return HeatmapPayload(
        modules=module_names,
        granularity=context.granularity,
        window_days=context.window_days,
        total_commits=context.total_commits,
        considered_commits=context.considered_commits,
        generation_started_at=context.generation_started_at,
        churn=weighted_churn,
        cells=cells,
        color_scale=color_scale,
        summary=summary,
        description=HEATMAP_DESCRIPTION,
        normalization=HEATMAP_NORMALIZATION,
        filters=list(HEATMAP_FILTERS),
    )


def clamp_window_days(window_days: Optional[float]) -> int:
    """Floor to whole days within [1, 365]; a missing or zero window means 90."""
    return max(1, min(MAX_WINDOW_DAYS, math.floor(window_days or DEFAULT_WINDOW_DAYS)))


class GitHeatmapBuilder:
    """Builds the gitHeatmap graph payload for the workspace's first folder."""

    def __init__(
        self,
        context: WorkspaceContext,
        git_reader: Optional[GitLogReader] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize heatmap builder.

        Args:
            context: Workspace whose default root is the Git repository
            git_reader: Git collaborator; defaults to the git command-line tool
            clock: Returns the current time in seconds
        """
        self.context = context
        self.git_reader = git_reader or SubprocessGitLogReader(clock=clock)
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _read_commits(self, root: str, window_days: int) -> list[ParsedGitCommit]:
        try:
            raw = self.git_reader.read_git_log(root, window_days)
        except Exception as e:
            logger.error("git log execution failed: %s", e)
            raise GitHeatmapError("Unable to read Git history. Ensure Git is installed and accessible.") from e
        return parse_git_log(raw or "")

    def _ignored_paths(self, root: str, commits: list[ParsedGitCommit]) -> set[str]:
        candidates: dict[str, None] = {}
        for commit in commits:
            for change in commit.files:
                if change.path:
                    candidates[_normalize_path(change.path)] = None
        if not candidates:
            return set()
        try:
            ignored = self.git_reader.filter_ignored_paths(root, list(candidates))
        except Exception as e:
            logger.error("Failed to evaluate gitignore entries: %s", e)
            return set()
        return {_normalize_path(path) for path in ignored}

    def build_git_heatmap(
        self,
        window_days: Optional[float] = DEFAULT_WINDOW_DAYS,
        granularity: HeatmapGranularity = HeatmapGranularity.TOP_LEVEL,
    ) -> GraphPayload:
        """
        Build the co-change heatmap payload.

        Args:
            window_days: History window, clamped to [1, 365] days
            granularity: How paths are grouped into modules

        Returns:
            GraphPayload in gitHeatmap mode with no nodes or edges

        Raises:
            GitHeatmapError: If the workspace has no file-based root or Git history cannot be read
        """
        root = self.context.default_root()
        if root is None or root.scheme != "file":
            raise GitHeatmapError("Git heatmap requires a file-based workspace.")

        started_at = self._now_ms()
        days = clamp_window_days(window_days)
        granularity = HeatmapGranularity(granularity or HeatmapGranularity.TOP_LEVEL)

        commits = self._read_commits(root.path, days)
        ignored = self._ignored_paths(root.path, commits)
        reduction = reduce_commits(commits, granularity, ignored)
        heatmap = build_heatmap_from_commits(
            reduction.commits,
            reduction.module_churn,
            HeatmapBuildContext(
                granularity=granularity,
                window_days=days,
                generation_started_at=started_at,
                total_commits=reduction.total_commits,
                considered_commits=reduction.considered_commits,
            ),
            self._now_ms(),
        )
        logger.debug(
            "Git heatmap: %d modules, %d cells from %d of %d commits",
            len(heatmap.modules),
            len(heatmap.cells),
            reduction.considered_commits,
            reduction.total_commits,
        )

        summary = []
        if heatmap.modules:
            summary.append(f"Modules analyzed: {len(heatmap.modules)}")
        if heatmap.cells:
            summary.append(f"Active couplings: {len(heatmap.cells)}")
        summary.append(f"Commits considered: {reduction.considered_commits} of {reduction.total_commits}")

        warnings = [] if reduction.considered_commits else [NO_ACTIVITY_WARNING]

        return GraphPayload(
            nodes=[],
            edges=[],
            mode=GraphMode.GIT_HEATMAP,
            summary=summary,
            warnings=warnings,
            generated_at=self._now_ms(),
            metadata={
                "windowDays": days,
                "granularity": granularity.value,
                "totalCommits": reduction.total_commits,
                "consideredCommits": reduction.considered_commits,
            },
            heatmap=heatmap,
        )
