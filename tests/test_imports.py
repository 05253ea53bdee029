"""Unit tests for import descriptor extraction."""

from repograph.analysis.imports import describe_symbols, extract_import_descriptors, symbol_names


class TestExtractImportDescriptors:
    """Test extract_import_descriptors."""

    def test_no_imports(self):
        """Text without import statements yields nothing."""
        assert extract_import_descriptors("const x = 1;\nexport default x;\n") == []

    def test_default_import(self):
        descriptors = extract_import_descriptors("import React from 'react';")
        assert len(descriptors) == 1
        assert descriptors[0].specifier == "react"
        assert descriptors[0].default_import.name == "React"
        assert descriptors[0].named_imports == []
        assert descriptors[0].is_side_effect_only is False

    def test_namespace_import(self):
        descriptor = extract_import_descriptors('import * as path from "node:path";')[0]
        assert descriptor.namespace_import.name == "path"
        assert descriptor.default_import is None

    def test_default_and_named_with_alias_and_type(self):
        """Default binding, renamed named import and per-entry type modifier."""
        descriptor = extract_import_descriptors(
            "import React, { useState as us, type Props } from './component';"
        )[0]
        assert descriptor.default_import.name == "React"
        names = [(n.name, n.property_name, n.is_type_only) for n in descriptor.named_imports]
        assert names == [("us", "useState", False), ("Props", None, True)]

    def test_type_only_clause(self):
        """A leading 'type' marks every binding of the clause type-only."""
        descriptor = extract_import_descriptors("import type { A, B } from './types';")[0]
        assert all(n.is_type_only for n in descriptor.named_imports)
        assert [n.name for n in descriptor.named_imports] == ["A", "B"]

    def test_side_effect_import(self):
        descriptor = extract_import_descriptors("import './polyfills';")[0]
        assert descriptor.specifier == "./polyfills"
        assert descriptor.is_side_effect_only is True

    def test_require_import(self):
        descriptor = extract_import_descriptors("import fs = require('fs');")[0]
        assert descriptor.specifier == "fs"
        assert descriptor.default_import.name == "fs"
        assert descriptor.default_import.is_type_only is False

    def test_type_require_import(self):
        descriptor = extract_import_descriptors("import type Config = require('./config');")[0]
        assert descriptor.default_import.is_type_only is True

    def test_output_order(self):
        """from-imports first, then side-effect imports, then require imports."""
        text = "\n".join(
            [
                "import './setup';",
                "import x = require('./legacy');",
                "import { a } from './a';",
                "import b from './b';",
            ]
        )
        specifiers = [d.specifier for d in extract_import_descriptors(text)]
        assert specifiers == ["./a", "./b", "./setup", "./legacy"]

    def test_side_effect_reported_alongside_named_import(self):
        text = "import { a } from './x';\nimport './x';\n"
        descriptors = extract_import_descriptors(text)
        assert [(d.specifier, d.is_side_effect_only) for d in descriptors] == [("./x", False), ("./x", True)]

    def test_extraction_is_idempotent(self):
        """Extracting twice from the same text gives equal results."""
        text = "import React, { useEffect } from 'react';\nimport './styles.css';\nimport * as api from '../api';\n"
        assert extract_import_descriptors(text) == extract_import_descriptors(text)

    def test_multiline_named_imports(self):
        text = "import {\n  first,\n  second as other,\n} from './module';\n"
        descriptor = extract_import_descriptors(text)[0]
        assert [n.name for n in descriptor.named_imports] == ["first", "other"]


class TestSymbolHelpers:
    """Test edge label helpers."""

    def test_describe_symbols(self):
        descriptor = extract_import_descriptors(
            "import Def, { orig as alias, type T } from './m';"
        )[0]
        assert describe_symbols(descriptor) == ["Def", "orig as alias", "T (type)"]

    def test_describe_namespace(self):
        descriptor = extract_import_descriptors("import * as ns from './m';")[0]
        assert describe_symbols(descriptor) == ["* as ns"]

    def test_symbol_names_use_exported_names(self):
        descriptor = extract_import_descriptors("import Def, { orig as alias } from './m';")[0]
        assert symbol_names(descriptor) == ["Def", "orig"]
