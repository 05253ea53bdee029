"""Tests for manifest parsers and source pattern extractors."""

import pytest

from repograph.analysis.architecture.extractors import (
    extract_host,
    is_local_host,
    is_relative_url,
    parse_graphql_operations,
    parse_http_snippet,
    parse_prisma_models,
    parse_sql_table_name,
    parse_sql_tables,
)
from repograph.analysis.architecture.manifests import (
    parse_compose_images,
    parse_go_mod,
    parse_package_manifest,
    parse_pyproject,
    parse_requirements,
)
from repograph.core.errors import ManifestParseError


class TestPackageManifest:
    """Test package.json parsing."""

    def test_merged_dependencies(self):
        manifest = parse_package_manifest(
            '{"dependencies": {"express": "^4.0.0"}, "devDependencies": {"typescript": "5.0.0"},'
            ' "scripts": {"dev": "nodemon src/index.ts"}}',
            "/srv/app/package.json",
        )
        assert manifest.merged_dependencies() == {"express": "^4.0.0", "typescript": "5.0.0"}
        assert manifest.scripts == {"dev": "nodemon src/index.ts"}

    def test_non_string_versions_are_stringified(self):
        manifest = parse_package_manifest('{"dependencies": {"local": 1}, "scripts": []}', "package.json")
        assert manifest.dependencies == {"local": "1"}
        assert manifest.scripts == {}

    def test_invalid_json(self):
        with pytest.raises(ManifestParseError) as exc_info:
            parse_package_manifest("{not json", "/srv/app/package.json")
        assert exc_info.value.path == "/srv/app/package.json"

    def test_non_object(self):
        with pytest.raises(ManifestParseError):
            parse_package_manifest("[1, 2]", "package.json")


class TestPythonManifests:
    """Test requirements.txt and pyproject.toml parsing."""

    def test_requirements(self):
        text = "\n".join(
            [
                "# web",
                "Django>=4.2",
                "psycopg2-binary==2.9 ; python_version > '3.8'",
                "celery[redis]~=5.3  # worker",
                "-r dev.txt",
                "",
                "redis",
            ]
        )
        assert parse_requirements(text) == {"django", "psycopg2-binary", "celery", "redis"}

    def test_pep621_pyproject(self):
        text = """
[project]
name = "svc"
dependencies = ["fastapi>=0.100", "asyncpg"]

[project.optional-dependencies]
worker = ["celery[redis]"]
"""
        assert parse_pyproject(text, "pyproject.toml") == {"fastapi", "asyncpg", "celery"}

    def test_poetry_pyproject(self):
        text = """
[tool.poetry.dependencies]
python = "^3.11"
Flask = "^3.0"

[tool.poetry.group.dev.dependencies]
pytest = "^8"
"""
        assert parse_pyproject(text, "pyproject.toml") == {"flask", "pytest"}

    def test_invalid_pyproject(self):
        with pytest.raises(ManifestParseError):
            parse_pyproject("[project\nname = ", "pyproject.toml")


class TestOtherManifests:
    """Test go.mod and compose parsing."""

    def test_go_mod(self):
        text = """module example.com/svc

go 1.22

require github.com/gin-gonic/gin v1.9.1

require (
\tgithub.com/jackc/pgx/v5 v5.5.0
\tgithub.com/redis/go-redis/v9 v9.3.0 // indirect
)
"""
        assert parse_go_mod(text) == [
            "github.com/gin-gonic/gin",
            "github.com/jackc/pgx/v5",
            "github.com/redis/go-redis/v9",
        ]

    def test_compose_yaml(self):
        text = "services:\n  db:\n    image: Postgres:16\n  app:\n    build: .\n  cache:\n    image: redis:7\n"
        assert parse_compose_images(text) == ["postgres:16", "redis:7"]

    def test_compose_fallback_for_invalid_yaml(self):
        text = "services:\n  db:\n    image: postgres:16\n  broken: [\n    image: 'mongo:7'\n"
        assert parse_compose_images(text) == ["postgres:16", "mongo:7"]


class TestSchemaExtractors:
    """Test Prisma, SQL and GraphQL extraction."""

    def test_prisma_models(self):
        text = "model User {\n  id Int @id\n  email String @unique\n}\n\nmodel Post {\n  id Int @id\n}\n"
        models = parse_prisma_models(text)
        assert [m.name for m in models] == ["User", "Post"]
        assert [(f.name, f.type) for f in models[0].fields] == [("id", "Int"), ("email", "String")]

    def test_sql_tables(self):
        columns = ",\n".join(f"  col{i} INT" for i in range(15))
        text = f"CREATE TABLE `orders` (\n{columns}\n);\ncreate table items (\n  id INT\n);"
        tables = parse_sql_tables(text)
        assert [t.name for t in tables] == ["orders", "items"]
        assert len(tables[0].columns) == 12
        assert tables[1].columns == ["id INT"]

    def test_graphql_operations(self):
        text = "const A = gql`query GetUser { user { id } }`;\nconst B = gql`{ viewer { id } }`;\n"
        operations = parse_graphql_operations(text, "/srv/app/src/queries.ts")
        assert [(o.type, o.name) for o in operations] == [("query", "GetUser"), ("query", None)]
        assert operations[0].file == "/srv/app/src/queries.ts"

    def test_graphql_operation_limit(self):
        text = "".join(f"gql`mutation M{i} {{ x }}`\n" for i in range(8))
        assert len(parse_graphql_operations(text, "f.ts", limit=5)) == 5

    def test_sql_table_name(self):
        assert parse_sql_table_name('SELECT * FROM "public"."users" WHERE id = 1') == "public.users"
        assert parse_sql_table_name("select 1") is None


class TestHttpExtractors:
    """Test HTTP call parsing."""

    def test_axios(self):
        call = parse_http_snippet("const r = await axios.post('https://api.stripe.com/v1/charges', body);")
        assert (call.method, call.url) == ("POST", "https://api.stripe.com/v1/charges")

    def test_fetch_defaults_to_get(self):
        call = parse_http_snippet("await fetch('/api/users')")
        assert (call.method, call.url) == ("GET", "/api/users")

    def test_fetch_with_method(self):
        call = parse_http_snippet("await fetch(`/api/users`, { method: 'DELETE' })")
        assert (call.method, call.url) == ("DELETE", "/api/users")

    def test_http_client(self):
        call = parse_http_snippet("this.httpClient.put('/api/items/1', item)")
        assert (call.method, call.url) == ("PUT", "/api/items/1")

    def test_config_object(self):
        call = parse_http_snippet("request({ url: 'https://example.com/a', method: 'patch' })")
        assert (call.method, call.url) == ("PATCH", "https://example.com/a")

    def test_no_url(self):
        assert parse_http_snippet("fetch(buildUrl())").url is None

    def test_hosts(self):
        assert extract_host("https://api.example.com/v1") == "api.example.com"
        assert extract_host("/relative") is None
        assert is_local_host("localhost:3000")
        assert is_local_host("127.0.0.1")
        assert is_local_host("[::1]:8080")
        assert is_local_host("printer.local")
        assert not is_local_host("api.example.com")
        assert not is_local_host(None)
        assert is_relative_url("./a") and is_relative_url("/a")
        assert not is_relative_url("https://a")
