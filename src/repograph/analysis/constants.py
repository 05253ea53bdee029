"""Source extensions, exclusion rules and id helpers shared by the graph builders."""

import re
from urllib.parse import quote

GRAPH_FILE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts")

GRAPH_INDEX_FILENAMES = tuple(f"index{ext}" for ext in GRAPH_FILE_EXTENSIONS)

GRAPH_DEFAULT_EXCLUDE_GLOBS = [
    "**/node_modules/**",
    "**/.git/**",
    "**/.hg/**",
    "**/dist/**",
    "**/build/**",
    "**/out/**",
    "**/.next/**",
    "**/.turbo/**",
    "**/.vercel/**",
    "**/coverage/**",
    "**/tmp/**",
    "**/.cache/**",
]

GRAPH_EXCLUDED_PATH_SEGMENTS = frozenset(
    {
        "node_modules",
        ".git",
        ".hg",
        "dist",
        "build",
        "out",
        ".next",
        ".turbo",
        ".vercel",
        "coverage",
        "tmp",
        ".cache",
    }
)

# Framework packages that would otherwise dominate every graph.
GRAPH_IGNORED_IMPORT_SPECIFIERS = frozenset(
    {
        "react",
        "react-dom",
        "react-router",
        "react-router-dom",
        "react-router-native",
        "react-router-config",
        "recoil",
        "redux",
        "@reduxjs/toolkit",
        "@types/react",
        "@types/react-dom",
    }
)

_PATH_SPLIT = re.compile(r"[\\/]+")

# Characters encodeURIComponent leaves untouched.
_NODE_ID_SAFE = "-_.!~*'()"


def is_excluded_path(path: str) -> bool:
    """True if any segment of path is a build, vendor or VCS directory."""
    return any(segment in GRAPH_EXCLUDED_PATH_SEGMENTS for segment in _PATH_SPLIT.split(path))


def to_node_id(value: str) -> str:
    """Percent-encode value and replace '%' with '_' to get a selector-safe id."""
    return quote(value, safe=_NODE_ID_SAFE).replace("%", "_")


def get_import_base(specifier: str) -> str:
    """
    Package name of a specifier, lowercased.

    Scoped packages keep their scope (``@scope/name``); other specifiers are
    cut at the first slash.
    """
    if not specifier:
        return specifier
    trimmed = specifier.strip()
    if trimmed.startswith("@"):
        parts = trimmed.split("/")
        if len(parts) > 1 and parts[1]:
            return f"{parts[0]}/{parts[1]}".lower()
        return trimmed.lower()
    return trimmed.split("/", 1)[0].lower()
