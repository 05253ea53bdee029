"""
Regex-based extraction of ES module import statements.

No parser is involved: the extractor recognizes ``import ... from '...'``,
bare side-effect imports and ``import x = require('...')``.
"""

import re

from repograph.schemas.graph import ImportBinding, ImportDescriptor, NamedImport

IMPORT_FROM_PATTERN = re.compile(r"""import\s+([^'";]+?)\s+from\s+['"]([^'";]+)['"]""")
SIDE_EFFECT_IMPORT_PATTERN = re.compile(r"""import\s+['"]([^'";]+)['"]""")
IMPORT_EQUALS_PATTERN = re.compile(
    r"""import\s+(type\s+)?([A-Za-z0-9_$]+)\s*=\s*require\(\s*['"]([^'";]+)['"]\s*\)"""
)
NAMESPACE_PATTERN = re.compile(r"\*\s+as\s+([A-Za-z0-9_$]+)")
ALIAS_PATTERN = re.compile(r"^(.*?)\s+as\s+(.*)$")


def _parse_named_imports(inside: str, clause_is_type_only: bool) -> list[NamedImport]:
    named: list[NamedImport] = []
    for entry in inside.split(","):
        token = entry.strip()
        if not token:
            continue
        is_type_only = clause_is_type_only
        if token.startswith("type "):
            is_type_only = True
            token = token[5:].strip()
        alias_match = ALIAS_PATTERN.match(token)
        if alias_match:
            original = alias_match.group(1).strip()
            alias = alias_match.group(2).strip()
            if alias:
                named.append(
                    NamedImport(
                        name=alias,
                        property_name=original if original and original != alias else None,
                        is_type_only=is_type_only,
                    )
                )
        elif token:
            named.append(NamedImport(name=token, is_type_only=is_type_only))
    return named


def _parse_import_clause(clause: str, specifier: str) -> ImportDescriptor:
    clause_is_type_only = False
    if clause.startswith("type "):
        clause_is_type_only = True
        clause = clause[4:].strip()

    descriptor = ImportDescriptor(specifier=specifier)
    remainder = clause
    if remainder and not remainder.startswith("{") and not remainder.startswith("*"):
        default_part, _, remainder = remainder.partition(",")
        name = default_part.strip()
        if name:
            descriptor.default_import = ImportBinding(name=name, is_type_only=clause_is_type_only)

    remainder = remainder.strip()
    if remainder.startswith("{") and "}" in remainder:
        inside = remainder[1 : remainder.index("}")]
        descriptor.named_imports = _parse_named_imports(inside, clause_is_type_only)
    elif remainder.startswith("*"):
        namespace_match = NAMESPACE_PATTERN.search(remainder)
        if namespace_match:
            descriptor.namespace_import = ImportBinding(
                name=namespace_match.group(1), is_type_only=clause_is_type_only
            )
    return descriptor


def extract_import_descriptors(source_text: str) -> list[ImportDescriptor]:
    """
    Extract import descriptors from module source text.

    ``from`` imports come first in source order, followed by side-effect
    imports and then ``= require`` imports. A bare ``import 'x'`` is always
    reported as side-effect-only, even when ``x`` is also imported by name.

    Args:
        source_text: JavaScript or TypeScript source

    Returns:
        List of import descriptors; empty when the text has no imports
    """
    descriptors: list[ImportDescriptor] = []

    for match in IMPORT_FROM_PATTERN.finditer(source_text):
        clause = match.group(1).strip()
        specifier = match.group(2).strip()
        if not specifier:
            continue
        descriptors.append(_parse_import_clause(clause, specifier))

    for match in SIDE_EFFECT_IMPORT_PATTERN.finditer(source_text):
        specifier = match.group(1).strip()
        if not specifier:
            continue
        descriptors.append(ImportDescriptor(specifier=specifier, is_side_effect_only=True))

    for match in IMPORT_EQUALS_PATTERN.finditer(source_text):
        specifier = match.group(3).strip()
        name = match.group(2).strip()
        if not specifier or not name:
            continue
        descriptors.append(
            ImportDescriptor(
                specifier=specifier,
                default_import=ImportBinding(name=name, is_type_only=bool(match.group(1))),
            )
        )

    return descriptors


def describe_symbols(descriptor: ImportDescriptor) -> list[str]:
    """Display strings for an edge label: ``* as ns``, ``orig as alias``, `` (type)`` suffix."""
    symbols = []
    if descriptor.default_import:
        symbols.append(_decorate(descriptor.default_import.name, descriptor.default_import.is_type_only))
    if descriptor.namespace_import:
        symbols.append(
            _decorate(f"* as {descriptor.namespace_import.name}", descriptor.namespace_import.is_type_only)
        )
    for item in descriptor.named_imports:
        display = f"{item.property_name} as {item.name}" if item.property_name else item.name
        symbols.append(_decorate(display, item.is_type_only))
    return symbols


def symbol_names(descriptor: ImportDescriptor) -> list[str]:
    """Plain imported names: default, namespace and original exported names."""
    names = []
    if descriptor.default_import:
        names.append(descriptor.default_import.name)
    if descriptor.namespace_import:
        names.append(descriptor.namespace_import.name)
    for item in descriptor.named_imports:
        names.append(item.property_name or item.name)
    return names


def _decorate(name: str, is_type_only: bool) -> str:
    return f"{name} (type)" if is_type_only else name
