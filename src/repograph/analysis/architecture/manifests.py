"""Parsers for package manifests and container configs read by the architecture analyzer."""

import json
import re
import tomllib
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from repograph.core.errors import ManifestParseError

REQUIREMENT_NAME_SPLIT = re.compile(r"[<>=!~;\[\s@]")
PEP508_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")
GO_REQUIRE_LINE = re.compile(r"^\s*require\s+([^\s(]+)\s+v[0-9][^\s]*", re.MULTILINE)
GO_REQUIRE_BLOCK = re.compile(r"^\s*require\s*\(([\s\S]*?)^\s*\)", re.MULTILINE)
GO_BLOCK_ENTRY = re.compile(r"^\s*([^\s/][^\s]*)\s+v[0-9][^\s]*", re.MULTILINE)
COMPOSE_IMAGE_LINE = re.compile(r"image:\s*([^\s#]+)")


class PackageManifest(BaseModel):
    """The parts of package.json the analyzer reads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)
    peer_dependencies: dict[str, str] = Field(default_factory=dict)
    scripts: dict[str, str] = Field(default_factory=dict)

    def merged_dependencies(self) -> dict[str, str]:
        """dependencies, devDependencies and peerDependencies; later maps win."""
        return {**self.dependencies, **self.dev_dependencies, **self.peer_dependencies}


def parse_package_manifest(text: str, path: str) -> PackageManifest:
    """
    Parse package.json content.

    Raises:
        ManifestParseError: If the content is not a JSON object with string maps
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestParseError(path, str(e)) from e
    if not isinstance(data, dict):
        raise ManifestParseError(path, "top-level value is not an object")
    # non-string versions (workspace protocols written as objects, etc.) are stringified
    for section in ("dependencies", "devDependencies", "peerDependencies", "scripts"):
        value = data.get(section)
        if isinstance(value, dict):
            data[section] = {str(k): str(v) for k, v in value.items()}
        elif value is not None:
            data.pop(section)
    try:
        return PackageManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestParseError(path, str(e)) from e


def _requirement_name(token: str) -> str:
    return REQUIREMENT_NAME_SPLIT.split(token.strip(), 1)[0].strip().lower()


def parse_requirements(text: str) -> set[str]:
    """Package names from requirements.txt, lowercased, without versions or extras."""
    packages = set()
    for line in text.splitlines():
        token = line.split(" #", 1)[0].strip()
        if not token or token.startswith("#") or token.startswith("-"):
            continue
        name = _requirement_name(token)
        if name:
            packages.add(name)
    return packages


def _pep508_names(entries: Any) -> set[str]:
    names = set()
    if not isinstance(entries, list):
        return names
    for entry in entries:
        if isinstance(entry, str):
            match = PEP508_NAME.match(entry)
            if match:
                names.add(match.group(1).lower())
    return names


def _table_names(table: Any) -> set[str]:
    if not isinstance(table, dict):
        return set()
    return {str(name).lower() for name in table if str(name).lower() != "python"}


def parse_pyproject(text: str, path: str) -> set[str]:
    """
    Dependency names declared in pyproject.toml.

    Reads PEP 621 ``[project]`` dependency arrays, Poetry dependency tables
    (including groups) and PDM dependency tables.

    Raises:
        ManifestParseError: If the document is not valid TOML
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ManifestParseError(path, str(e)) from e

    packages: set[str] = set()
    project = data.get("project", {})
    if isinstance(project, dict):
        packages |= _pep508_names(project.get("dependencies"))
        optional = project.get("optional-dependencies", {})
        if isinstance(optional, dict):
            for entries in optional.values():
                packages |= _pep508_names(entries)

    tool = data.get("tool", {})
    if isinstance(tool, dict):
        poetry = tool.get("poetry", {})
        if isinstance(poetry, dict):
            packages |= _table_names(poetry.get("dependencies"))
            packages |= _table_names(poetry.get("dev-dependencies"))
            groups = poetry.get("group", {})
            if isinstance(groups, dict):
                for group in groups.values():
                    if isinstance(group, dict):
                        packages |= _table_names(group.get("dependencies"))
        pdm = tool.get("pdm", {})
        if isinstance(pdm, dict):
            packages |= _table_names(pdm.get("dependencies"))
            dev = pdm.get("dev-dependencies", {})
            if isinstance(dev, dict):
                for entries in dev.values():
                    packages |= _pep508_names(entries)
    return packages


def parse_go_mod(text: str) -> list[str]:
    """Module paths required by go.mod, single-line and block form, in file order."""
    modules: dict[str, None] = {}
    for match in GO_REQUIRE_LINE.finditer(text):
        modules[match.group(1)] = None
    for block in GO_REQUIRE_BLOCK.finditer(text):
        for entry in GO_BLOCK_ENTRY.finditer(block.group(1)):
            modules[entry.group(1)] = None
    return list(modules)


def parse_compose_images(text: str) -> list[str]:
    """
    Container images of a compose file, lowercased.

    Reads ``services.*.image``; documents that are not valid YAML fall back to
    scanning ``image:`` lines.
    """
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError:
        document = None
    services = document.get("services") if isinstance(document, dict) else None
    if isinstance(services, dict):
        images = []
        for service in services.values():
            if isinstance(service, dict) and service.get("image"):
                images.append(str(service["image"]).lower())
        return images
    return [match.group(1).strip("'\"").lower() for match in COMPOSE_IMAGE_LINE.finditer(text)]
