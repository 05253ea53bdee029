"""Tests for the architecture analyzer."""

import json
import threading
from unittest.mock import MagicMock

import pytest

from repograph.analysis.architecture.analyzer import (
    MISSING_BACKEND_WARNING,
    NO_SYMBOL_PROVIDER_WARNING,
    ArchitectureAnalyzer,
    application_key,
    detect_node_backends,
)
from repograph.core.cache import ResultCache
from repograph.core.errors import OperationCancelledError
from repograph.schemas.architecture import ComponentKind, RelationshipKind
from repograph.workspace.local import LocalFileSystem
from repograph.workspace.protocols import WorkspaceSymbol


def _package_json(dependencies=None, dev_dependencies=None, scripts=None) -> str:
    return json.dumps(
        {
            "name": "app",
            "dependencies": dependencies or {},
            "devDependencies": dev_dependencies or {},
            "scripts": scripts or {},
        }
    )


@pytest.fixture
def analyzer_for(context_for, file_system, clock):
    def _analyzer(*roots, **kwargs) -> ArchitectureAnalyzer:
        kwargs.setdefault("clock", clock)
        return ArchitectureAnalyzer(context_for(*roots), file_system, file_system, **kwargs)

    return _analyzer


def _components(result):
    return {component.key: component for component in result.components}


def _relationships(result):
    return {relationship.key: relationship for relationship in result.relationships}


class TestNodeBackendDetection:
    """Test backend selection from package.json content."""

    def test_framework_match(self):
        assert [r.id for r in detect_node_backends({"express": "4"}, {})] == ["express"]

    def test_service_fallback_from_scripts(self):
        backends = detect_node_backends({"express": "4"}, {"dev": "nodemon index.js"})
        assert [r.id for r in backends] == ["express", "node-server"]

    def test_orm_fallback_only_without_framework(self):
        assert [r.id for r in detect_node_backends({"@prisma/client": "5", "mongoose": "8"}, {})] == [
            "prisma-service"
        ]
        assert [r.id for r in detect_node_backends({"express": "4", "mongoose": "8"}, {})] == ["express"]


class TestArchitectureAnalyzer:
    """Test detection passes end to end on small workspaces."""

    def test_baseline_application(self, make_workspace, analyzer_for):
        root = make_workspace({"README.md": "hello"})
        result = analyzer_for(root).analyze()
        app = _components(result)[f"application:{root}"]
        assert app.kind == ComponentKind.APPLICATION
        assert app.confidence == 0.3
        assert app.tags == ["workspace"]
        assert NO_SYMBOL_PROVIDER_WARNING in result.warnings

    def test_node_backend_and_datastores(self, make_workspace, analyzer_for):
        root = make_workspace(
            {
                "package.json": _package_json(
                    {"express": "^4.18.0", "pg": "^8.0.0", "ioredis": "^5.0.0", "kafkajs": "^2.0.0"},
                    {"typescript": "^5.0.0"},
                )
            }
        )
        result = analyzer_for(root).analyze()
        components = _components(result)
        relationships = _relationships(result)
        backend_key = f"backend:express:{root}"
        app_key = f"application:{root}"

        backend = components[backend_key]
        assert backend.kind == ComponentKind.BACKEND
        assert backend.label == "Express.js Backend"
        assert backend.language == "TypeScript"
        assert backend.evidence[0].snippet == '"express": "^4.18.0"'
        assert components[app_key].metadata["runtime"] == "Node.js"
        assert components[app_key].language == "TypeScript"

        assert components["database:postgresql"].kind == ComponentKind.DATABASE
        assert components["cache:redis"].kind == ComponentKind.CACHE
        assert components["queue:kafka"].kind == ComponentKind.MESSAGE_BUS

        assert relationships[f"hosts:{app_key}->{backend_key}"].kind == RelationshipKind.HOSTS
        connects = relationships[f"connects:{backend_key}->database:postgresql"]
        assert connects.kind == RelationshipKind.CONNECTS_TO
        assert connects.confidence == pytest.approx(0.725)
        assert relationships[f"connects:{backend_key}->queue:kafka"].kind == RelationshipKind.PUBLISHES
        assert "Detected Express.js backend in app" in result.summary

    def test_frontend_detection(self, make_workspace, analyzer_for):
        root = make_workspace({"package.json": _package_json({"next": "14.0.0", "react": "18.0.0"})})
        components = _components(analyzer_for(root).analyze())
        assert components[f"frontend:nextjs:{root}"].kind == ComponentKind.FRONTEND
        assert components[f"frontend:react:{root}"].technology == "React"
        assert components[f"application:{root}"].language == "JavaScript"

    def test_malformed_package_json(self, make_workspace, analyzer_for):
        root = make_workspace({"package.json": "{ nope"})
        result = analyzer_for(root).analyze()
        assert "Failed to parse package.json in app" in result.warnings

    def test_python_backend_and_datastore(self, make_workspace, analyzer_for):
        root = make_workspace({"requirements.txt": "Django==4.2\npsycopg2>=2.9\ncelery\n"})
        result = analyzer_for(root).analyze()
        components = _components(result)
        relationships = _relationships(result)
        backend_key = f"backend:django:{root}"
        assert components[backend_key].language == "Python"
        assert components[f"backend:celery-worker:{root}"].kind == ComponentKind.SUPPORTING_SERVICE
        store = components["database:postgresql:psycopg2"]
        assert store.kind == ComponentKind.DATABASE
        assert relationships[f"connects:{backend_key}->database:postgresql:psycopg2"].kind == (
            RelationshipKind.CONNECTS_TO
        )
        assert f"connects:backend:celery-worker:{root}->database:postgresql:psycopg2" not in relationships

    def test_go_backend(self, make_workspace, analyzer_for):
        root = make_workspace(
            {
                "go.mod": (
                    "module example.com/svc\n\nrequire (\n"
                    "\tgithub.com/gin-gonic/gin v1.9.1\n\tgithub.com/lib/pq v1.10.0\n)\n"
                )
            }
        )
        result = analyzer_for(root).analyze()
        components = _components(result)
        relationships = _relationships(result)
        assert components[f"backend:gin:{root}"].language == "Go"
        assert components[f"application:{root}"].metadata["runtime"] == "Go"
        assert relationships[f"connects:backend:gin:{root}->database:postgresql"].kind == RelationshipKind.STORES

    def test_rust_backend(self, make_workspace, analyzer_for):
        root = make_workspace({"Cargo.toml": '[package]\nname = "svc"\n\n[dependencies]\nactix-web = "4"\nsqlx = "0.7"\n'})
        components = _components(analyzer_for(root).analyze())
        assert components[f"backend:actix:{root}"].technology == "Actix Web"
        assert components["database:sqlx"].kind == ComponentKind.DATABASE

    def test_rust_crates_found_in_unparsable_manifest(self, make_workspace, analyzer_for):
        """Crates are matched in the manifest text, renamed entries and broken TOML included."""
        root = make_workspace(
            {"Cargo.toml": '[dependencies]\nweb = { package = "actix-web", version = "4" }\nrocket = "0.5"\nbroken = [\n'}
        )
        result = analyzer_for(root).analyze()
        components = _components(result)
        assert f"backend:actix:{root}" in components
        assert f"backend:rocket:{root}" in components
        assert components[f"application:{root}"].language == "Rust"
        assert not any("Cargo.toml" in warning for warning in result.warnings)

    def test_rust_manifest_without_dependencies(self, make_workspace, analyzer_for):
        root = make_workspace({"Cargo.toml": '[package]\nname = "actix-web-demo"\n'})
        components = _components(analyzer_for(root).analyze())
        assert f"backend:actix:{root}" not in components

    def test_docker_compose(self, make_workspace, analyzer_for):
        root = make_workspace(
            {"docker-compose.yml": "services:\n  db:\n    image: postgres:16\n  cache:\n    image: redis:7-alpine\n"}
        )
        components = _components(analyzer_for(root).analyze())
        assert components["database:postgresql-compose"].metadata["image"] == "postgres:16"
        assert components["cache:redis-compose"].kind == ComponentKind.CACHE

    def test_prisma_datasets_link_to_backend(self, make_workspace, analyzer_for):
        root = make_workspace(
            {
                "package.json": _package_json({"express": "4.0.0"}),
                "prisma/schema.prisma": "model User {\n  id Int @id\n}\n\nmodel Order {\n  id Int @id\n}\n",
            }
        )
        result = analyzer_for(root).analyze()
        components = _components(result)
        relationships = _relationships(result)
        app_key = f"application:{root}"
        dataset = components[f"dataset:{app_key}:model:user"]
        assert dataset.kind == ComponentKind.DATASET
        assert dataset.label == "User Model"
        assert dataset.metadata["fields"] == [{"name": "id", "type": "Int"}]
        assert relationships[f"stores:{app_key}->dataset:{app_key}:model:user"].kind == RelationshipKind.STORES
        assert f"stores:backend:express:{root}->dataset:{app_key}:model:order" in relationships
        assert components[app_key].metadata["databaseSchemas"][0]["type"] == "prisma"

    def test_datasets_without_backend_warn_once(self, make_workspace, analyzer_for):
        root = make_workspace({"schema.sql": "CREATE TABLE a (\n  id INT\n);\nCREATE TABLE b (\n  id INT\n);\n"})
        result = analyzer_for(root).analyze()
        assert result.warnings.count(MISSING_BACKEND_WARNING) == 1
        datasets = [c for c in result.components if c.kind == ComponentKind.DATASET]
        assert len(datasets) == 2

    def test_dataset_cap(self, make_workspace, analyzer_for):
        """151 Prisma models give 150 datasets and one warning naming the application."""
        models = "\n".join(f"model Entity{i} {{\n  id Int @id\n}}\n" for i in range(151))
        root = make_workspace(
            {"package.json": _package_json({"express": "4.0.0"}), "prisma/schema.prisma": models},
            name="shop",
        )
        result = analyzer_for(root).analyze()
        datasets = [c for c in result.components if c.kind == ComponentKind.DATASET]
        assert len(datasets) == 150
        cap_warnings = [w for w in result.warnings if "shop" in w]
        assert len(cap_warnings) == 1
        assert "limited to 150" in cap_warnings[0]

    def test_symbol_evidence_merges_into_backend(self, make_workspace, analyzer_for):
        """A dependency match and a symbol match give one component with max confidence and two evidence items."""
        root = make_workspace({"package.json": _package_json({"express": "4.0.0"})})
        symbol_index = MagicMock()
        symbol_index.query_workspace_symbols.return_value = [
            WorkspaceSymbol(name="UserService", kind="class", location=f"{root}/src/server/user.ts")
        ]
        result = analyzer_for(root, symbol_index=symbol_index).analyze()
        backend = _components(result)[f"backend:express:{root}"]
        assert backend.confidence == 0.7
        assert len(backend.evidence) == 2
        assert NO_SYMBOL_PROVIDER_WARNING not in result.warnings

    def test_symbol_query_respects_limit(self, make_workspace, analyzer_for):
        root = make_workspace({"package.json": _package_json({"express": "4.0.0"})})
        symbols = [
            WorkspaceSymbol(name=f"Service{i}", location=f"{root}/src/server/s{i}.ts") for i in range(10)
        ]
        symbol_index = MagicMock()
        symbol_index.query_workspace_symbols.return_value = symbols
        result = analyzer_for(root, symbol_index=symbol_index).analyze(max_workspace_symbols=3)
        backend = _components(result)[f"backend:express:{root}"]
        assert len(backend.evidence) == 4

    def test_graphql_operations(self, make_workspace, analyzer_for):
        root = make_workspace(
            {
                "package.json": _package_json({"react": "18.0.0"}),
                "src/client/queries.ts": "export const Q = gql`query GetUser { user { id } }`;\n",
            }
        )
        result = analyzer_for(root).analyze()
        frontend = _components(result)[f"frontend:react:{root}"]
        assert frontend.metadata["graphqlOperations"][0]["name"] == "GetUser"
        assert any(e.description == "GraphQL QUERY GetUser" for e in frontend.evidence)

    def test_internal_and_external_http_calls(self, make_workspace, analyzer_for):
        root = make_workspace(
            {
                "package.json": _package_json({"express": "4.0.0", "react": "18.0.0"}),
                "src/client/api.ts": "export const load = () => fetch('/api/users');\n",
                "src/server/pay.ts": "await axios.post('https://api.stripe.com/v1/charges', body);\n",
            }
        )
        result = analyzer_for(root).analyze()
        components = _components(result)
        relationships = _relationships(result)
        frontend_key = f"frontend:react:{root}"
        backend_key = f"backend:express:{root}"

        internal = relationships[f"calls:{frontend_key}->{backend_key}:GET:/api/users"]
        assert internal.kind == RelationshipKind.CALLS
        assert internal.metadata["http"]["resource"] == "Express.js Backend"

        external = components["externalService:api.stripe.com"]
        assert external.kind == ComponentKind.EXTERNAL_SERVICE
        assert external.metadata["endpoints"] == [
            {"url": "https://api.stripe.com/v1/charges", "methods": ["POST"]}
        ]
        assert f"calls:POST:https://api.stripe.com/v1/charges:{backend_key}->externalService:api.stripe.com" in (
            relationships
        )
        assert components[frontend_key].metadata["httpCalls"][0]["url"] == "/api/users"

    def test_backend_calling_itself_creates_self_edge(self, make_workspace, analyzer_for):
        root = make_workspace(
            {
                "package.json": _package_json({"express": "4.0.0"}),
                "src/server/health.ts": "await fetch('http://localhost:3000/health');\n",
            }
        )
        result = analyzer_for(root).analyze()
        backend_key = f"backend:express:{root}"
        calls = _relationships(result)[f"calls:{backend_key}->{backend_key}:GET:http://localhost:3000/health"]
        assert calls.source == calls.target == backend_key
        assert calls.kind == RelationshipKind.CALLS
        assert calls.metadata["http"]["resource"] == "Express.js Backend"
        backend = _components(result)[backend_key]
        assert backend.metadata["httpCalls"][0]["resource"] == "Express.js Backend"

    def test_sql_queries(self, make_workspace, analyzer_for):
        root = make_workspace(
            {
                "package.json": _package_json({"express": "4.0.0"}),
                "src/server/db.ts": "const rows = await db.query(`SELECT id, name FROM users WHERE id = $1`);\n",
            }
        )
        result = analyzer_for(root).analyze()
        components = _components(result)
        relationships = _relationships(result)
        backend_key = f"backend:express:{root}"
        dataset_key = f"dataset:application:{root}:table:users"
        assert components[dataset_key].label == "users Table"
        queries = relationships[f"queries:{backend_key}->{dataset_key}:0"]
        assert queries.kind == RelationshipKind.QUERIES
        assert f"stores:{backend_key}->{dataset_key}" in relationships
        assert components[backend_key].metadata["sqlQueries"][0]["table"] == "users"

    def test_result_is_cached_until_forced(self, make_workspace, context_for, file_system, clock):
        """A second analyze() returns the cached object; force recomputes."""
        root = make_workspace({"package.json": _package_json({"express": "^4.0.0"})})
        analyzer = ArchitectureAnalyzer(context_for(root), file_system, file_system, clock=clock)
        first = analyzer.analyze()
        clock.advance(10)
        assert analyzer.analyze() is first
        forced = analyzer.analyze(force=True)
        assert forced is not first
        assert forced.generated_at == first.generated_at + 10_000

    def test_cache_expires(self, make_workspace, context_for, file_system, clock):
        root = make_workspace({})
        analyzer = ArchitectureAnalyzer(
            context_for(root), file_system, file_system, cache=ResultCache(ttl_seconds=300, clock=clock), clock=clock
        )
        first = analyzer.analyze()
        clock.advance(301)
        assert analyzer.analyze() is not first

    def test_progress_messages(self, make_workspace, analyzer_for):
        root = make_workspace({})
        analyzer = analyzer_for(root)
        messages = []
        analyzer.add_progress_listener(messages.append)
        analyzer.analyze()
        assert len(messages) == 11
        assert messages[0] == "Collecting workspace structure…"
        assert messages[-1] == "Scanning SQL queries…"

    def test_failing_pass_becomes_warning(self, make_workspace, context_for, clock):
        class BrokenSearch(LocalFileSystem):
            def text_search(self, query, on_progress=None):
                raise RuntimeError("boom")

        root = make_workspace({"package.json": _package_json({"express": "4.0.0"})})
        file_system = BrokenSearch()
        result = ArchitectureAnalyzer(context_for(root), file_system, file_system, clock=clock).analyze()
        assert "GraphQL detection failed: boom" in result.warnings
        assert "HTTP client detection failed: boom" in result.warnings
        assert "SQL query detection failed: boom" in result.warnings
        assert f"backend:express:{root}" in _components(result)

    def test_cancellation(self, make_workspace, analyzer_for):
        root = make_workspace({})
        event = threading.Event()
        event.set()
        with pytest.raises(OperationCancelledError):
            analyzer_for(root, cancel_event=event).analyze()

    def test_multiple_folders(self, make_workspace, analyzer_for):
        web = make_workspace({"package.json": _package_json({"vue": "3.0.0"})}, name="web")
        api = make_workspace({"requirements.txt": "fastapi\n"}, name="api")
        components = _components(analyzer_for(web, api).analyze())
        assert f"frontend:vue:{web}" in components
        assert f"backend:fastapi:{api}" in components
        assert components[f"application:{api}"].label == "api"

    def test_application_key(self, context_for, tmp_path):
        folder = context_for(tmp_path).folders[0]
        assert application_key(folder) == f"application:{folder.path}"
