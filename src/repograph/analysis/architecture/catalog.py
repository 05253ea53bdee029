"""Fixed detection tables mapping dependencies to technologies."""

from typing import Optional

from pydantic import BaseModel, Field

from repograph.schemas.architecture import ComponentKind


class TechnologyRule(BaseModel):
    """A dependency whose presence signals a technology."""

    id: str = Field(description="Technology id used in component keys")
    dependency: str = Field(description="Package, module path or crate name to look for")
    label: str
    confidence: float
    kind: Optional[ComponentKind] = Field(default=None, description="Component kind when the table mixes kinds")


def _rules(*entries) -> list[TechnologyRule]:
    rules = []
    for entry in entries:
        rule_id, dependency, label, confidence, *rest = entry
        rules.append(
            TechnologyRule(
                id=rule_id,
                dependency=dependency,
                label=label,
                confidence=confidence,
                kind=rest[0] if rest else None,
            )
        )
    return rules


# package.json

NODE_FRONTEND_FRAMEWORKS = _rules(
    ("react", "react", "React", 0.75),
    ("nextjs", "next", "Next.js", 0.85),
    ("vue", "vue", "Vue.js", 0.7),
    ("nuxt", "nuxt", "Nuxt.js", 0.75),
    ("svelte", "svelte", "Svelte", 0.65),
    ("angular", "@angular/core", "Angular", 0.7),
    ("vite", "vite", "Vite", 0.5),
    ("remix", "@remix-run/react", "Remix", 0.7),
)

NODE_BACKEND_FRAMEWORKS = _rules(
    ("express", "express", "Express.js", 0.7),
    ("koa", "koa", "Koa", 0.6),
    ("nestjs", "@nestjs/core", "NestJS", 0.75),
    ("fastify", "fastify", "Fastify", 0.65),
    ("apollo", "apollo-server", "Apollo GraphQL", 0.65),
    ("hapi", "@hapi/hapi", "hapi", 0.6),
    ("serverless", "serverless-http", "Serverless HTTP", 0.5),
    ("hono", "hono", "Hono", 0.6),
    ("trpc", "@trpc/server", "tRPC", 0.55),
    ("adonis", "@adonisjs/core", "AdonisJS", 0.55),
)

# Added when ts-node-dev is a dependency or a script runs nodemon/ts-node-dev.
NODE_SERVICE_FALLBACK = TechnologyRule(id="node-server", dependency="node", label="Node.js service", confidence=0.45)

# First match only, and only when no backend framework matched.
NODE_ORM_SERVICE_FALLBACKS = _rules(
    ("prisma-service", "@prisma/client", "Prisma Service", 0.55),
    ("prisma-service", "prisma", "Prisma Service", 0.5),
    ("drizzle-service", "drizzle-orm", "Drizzle Service", 0.5),
    ("typeorm-service", "typeorm", "TypeORM Service", 0.5),
    ("mongoose-service", "mongoose", "Mongoose Service", 0.5),
)

NODE_DATABASE_CLIENTS = _rules(
    ("postgresql", "pg", "PostgreSQL", 0.75),
    ("postgresql", "pg-promise", "PostgreSQL", 0.65),
    ("mysql", "mysql2", "MySQL", 0.7),
    ("mysql", "mysql", "MySQL", 0.6),
    ("mongodb", "mongoose", "MongoDB", 0.75),
    ("mongodb", "mongodb", "MongoDB", 0.6),
    ("dynamodb", "@aws-sdk/client-dynamodb", "Amazon DynamoDB", 0.6),
    ("prisma", "@prisma/client", "Relational Database via Prisma", 0.65),
    ("sqlite", "better-sqlite3", "SQLite", 0.6),
    ("elasticsearch", "@elastic/elasticsearch", "Elasticsearch", 0.6),
)

NODE_CACHE_CLIENTS = _rules(
    ("redis", "redis", "Redis Cache", 0.75),
    ("redis", "ioredis", "Redis Cache", 0.75),
    ("memcached", "memcached", "Memcached", 0.65),
    ("node-cache", "node-cache", "In-memory Cache", 0.4),
)

NODE_MESSAGING_CLIENTS = _rules(
    ("rabbitmq", "amqplib", "RabbitMQ", 0.65, ComponentKind.QUEUE),
    ("kafka", "kafkajs", "Apache Kafka", 0.7, ComponentKind.MESSAGE_BUS),
    ("bull", "bull", "Bull Queue (Redis)", 0.6, ComponentKind.QUEUE),
    ("bullmq", "bullmq", "BullMQ Queue", 0.6, ComponentKind.QUEUE),
    ("sqs", "@aws-sdk/client-sqs", "Amazon SQS", 0.6, ComponentKind.QUEUE),
)

TYPESCRIPT_DEPENDENCIES = ("typescript", "ts-node")
TYPESCRIPT_SCRIPT_PATTERN = r"tsc|ts-node"
NODE_SERVICE_SCRIPT_PATTERN = r"nodemon|ts-node-dev"

# requirements.txt / pyproject.toml

PYTHON_BACKEND_FRAMEWORKS = _rules(
    ("django", "django", "Django", 0.8, ComponentKind.BACKEND),
    ("fastapi", "fastapi", "FastAPI", 0.75, ComponentKind.BACKEND),
    ("flask", "flask", "Flask", 0.65, ComponentKind.BACKEND),
    ("tornado", "tornado", "Tornado", 0.6, ComponentKind.BACKEND),
    ("celery-worker", "celery", "Celery Worker", 0.6, ComponentKind.SUPPORTING_SERVICE),
)

PYTHON_DATASTORES = _rules(
    ("postgresql", "psycopg2", "PostgreSQL", 0.7, ComponentKind.DATABASE),
    ("postgresql", "asyncpg", "PostgreSQL", 0.65, ComponentKind.DATABASE),
    ("mysql", "mysqlclient", "MySQL", 0.65, ComponentKind.DATABASE),
    ("sqlite", "sqlite3", "SQLite", 0.6, ComponentKind.DATABASE),
    ("mongodb", "pymongo", "MongoDB", 0.65, ComponentKind.DATABASE),
    ("redis", "redis", "Redis Cache", 0.65, ComponentKind.CACHE),
    ("rabbitmq", "pika", "RabbitMQ", 0.6, ComponentKind.QUEUE),
)

# go.mod

GO_BACKEND_FRAMEWORKS = _rules(
    ("gin", "github.com/gin-gonic/gin", "Gin", 0.75),
    ("echo", "github.com/labstack/echo", "Echo", 0.7),
    ("fiber", "github.com/gofiber/fiber", "Fiber", 0.7),
    ("grpc", "google.golang.org/grpc", "gRPC Service", 0.65),
)

GO_DATASTORES = _rules(
    ("postgresql", "github.com/jackc/pgx", "PostgreSQL", 0.7, ComponentKind.DATABASE),
    ("postgresql", "github.com/lib/pq", "PostgreSQL", 0.65, ComponentKind.DATABASE),
    ("mysql", "github.com/go-sql-driver/mysql", "MySQL", 0.65, ComponentKind.DATABASE),
    ("mongodb", "go.mongodb.org/mongo-driver", "MongoDB", 0.65, ComponentKind.DATABASE),
    ("redis", "github.com/redis/go-redis", "Redis Cache", 0.7, ComponentKind.CACHE),
)

# Cargo.toml

RUST_BACKEND_FRAMEWORKS = _rules(
    ("actix", "actix-web", "Actix-Web", 0.75),
    ("rocket", "rocket", "Rocket", 0.7),
)
RUST_TECHNOLOGY_NAMES = {"actix": "Actix Web", "rocket": "Rocket"}
# substrings looked up in the lowercased Cargo.toml
RUST_CRATE_NEEDLES = {"actix": "actix-web", "rocket": "rocket =", "sqlx": "sqlx"}

RUST_DATABASE_CRATES = _rules(
    ("sqlx", "sqlx", "SQLx Database", 0.65, ComponentKind.DATABASE),
)

# docker compose images; dependency is the image-name pattern


class ComposeImageRule(BaseModel):
    """Infrastructure inferred from a container image name."""

    key: str
    pattern: str
    kind: ComponentKind
    label: str
    technology: str
    confidence: float


COMPOSE_FILE_NAMES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")

COMPOSE_IMAGE_RULES = [
    ComposeImageRule(
        key="database:postgresql-compose",
        pattern=r"postgres",
        kind=ComponentKind.DATABASE,
        label="PostgreSQL (Docker Compose)",
        technology="PostgreSQL",
        confidence=0.7,
    ),
    ComposeImageRule(
        key="database:mongodb-compose",
        pattern=r"mongo",
        kind=ComponentKind.DATABASE,
        label="MongoDB (Docker Compose)",
        technology="MongoDB",
        confidence=0.65,
    ),
    ComposeImageRule(
        key="cache:redis-compose",
        pattern=r"redis",
        kind=ComponentKind.CACHE,
        label="Redis (Docker Compose)",
        technology="Redis",
        confidence=0.7,
    ),
    ComposeImageRule(
        key="database:mysql-compose",
        pattern=r"mysql|mariadb",
        kind=ComponentKind.DATABASE,
        label="MySQL (Docker Compose)",
        technology="MySQL",
        confidence=0.65,
    ),
    ComposeImageRule(
        key="queue:rabbitmq-compose",
        pattern=r"rabbitmq",
        kind=ComponentKind.QUEUE,
        label="RabbitMQ (Docker Compose)",
        technology="RabbitMQ",
        confidence=0.65,
    ),
    ComposeImageRule(
        key="queue:kafka-compose",
        pattern=r"kafka",
        kind=ComponentKind.MESSAGE_BUS,
        label="Apache Kafka (Docker Compose)",
        technology="Apache Kafka",
        confidence=0.65,
    ),
]

# workspace symbol queries

WORKSPACE_SYMBOL_QUERIES = ("Controller", "Service", "Repository", "Resolver", "Component", "Client")

# text search patterns; label names the client library


class HttpClientPattern(BaseModel):
    pattern: str
    label: str


HTTP_CLIENT_PATTERNS = [
    HttpClientPattern(pattern=r"axios\s*\.\s*(get|post|put|delete|patch|request)\s*\(", label="axios"),
    HttpClientPattern(pattern=r"fetch\s*\(", label="fetch"),
    HttpClientPattern(pattern=r"httpClient\s*\.", label="httpClient"),
]

SQL_QUERY_PATTERN = r"\bselect\b[\n\r\t\s]+[\s\S]{0,200}?\bfrom\b"
GRAPHQL_LITERAL = "gql`"

HTTP_SEARCH_MAX_RESULTS = 200
GRAPHQL_SEARCH_MAX_RESULTS = 200
SQL_QUERY_SAMPLE_LIMIT = 200
GRAPHQL_OPERATIONS_PER_FILE = 5
SQL_SCHEMA_FILES_PER_FOLDER = 10
