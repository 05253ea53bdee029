"""Pattern-based extraction of schemas, GraphQL operations, HTTP calls and SQL tables."""

import re
from typing import Optional

from pydantic import BaseModel, Field

PRISMA_MODEL = re.compile(r"model\s+(\w+)\s+\{([\s\S]*?)\}")
PRISMA_FIELD = re.compile(r"^\s*(\w+)\s+([\w\[\]!?.]+).*$", re.IGNORECASE)
SQL_CREATE_TABLE = re.compile(r"""create\s+table\s+[`"']?([\w-]+)[`"']?\s*\(([\s\S]*?)\);""", re.IGNORECASE)
GRAPHQL_LITERAL = re.compile(r"gql`([\s\S]*?)`")
GRAPHQL_HEADER = re.compile(r"(query|mutation|subscription)\s*(\w+)?", re.IGNORECASE)
SQL_FROM_TABLE = re.compile(r"""from\s+([\w`"\.]+)""", re.IGNORECASE)

AXIOS_CALL = re.compile(r"""axios\s*\.\s*(get|post|put|delete|patch|request)\s*\(\s*(['"`])([^'"`]+)\2""", re.IGNORECASE)
FETCH_CALL = re.compile(r"""fetch\s*\(\s*(['"`])([^'"`]+)\1\s*(?:,\s*(\{[\s\S]*?\}))?""", re.IGNORECASE)
HTTP_CLIENT_CALL = re.compile(r"""httpClient\s*\.\s*(get|post|put|delete|patch)\s*\(\s*(['"`])([^'"`]+)\2""", re.IGNORECASE)
URL_PROPERTY = re.compile(r"""url\s*:\s*(['"`])([^'"`]+)\1""")
METHOD_PROPERTY = re.compile(r"""method\s*:\s*(['"`])([A-Z]+)\1""", re.IGNORECASE)
URL_HOST = re.compile(r"https?://([^/]+)")

MAX_SQL_COLUMNS = 12
GRAPHQL_SNIPPET_LENGTH = 200
# fetch() without an init object issues a GET
DEFAULT_HTTP_METHOD = "GET"


class SchemaField(BaseModel):
    name: str
    type: str


class PrismaModel(BaseModel):
    """A ``model Name { ... }`` block of a Prisma schema."""

    name: str
    fields: list[SchemaField] = Field(default_factory=list)


class SqlTable(BaseModel):
    """A ``CREATE TABLE`` statement with its first column definitions."""

    name: str
    columns: list[str] = Field(default_factory=list)


class GraphQLOperation(BaseModel):
    type: str
    name: Optional[str] = None
    file: str
    snippet: str


class HttpCall(BaseModel):
    """Method and literal URL parsed from an HTTP client call site."""

    method: str
    url: Optional[str] = None


def parse_prisma_models(text: str) -> list[PrismaModel]:
    models = []
    for match in PRISMA_MODEL.finditer(text):
        fields = []
        for line in match.group(2).splitlines():
            field_match = PRISMA_FIELD.match(line.strip())
            if field_match:
                fields.append(SchemaField(name=field_match.group(1), type=field_match.group(2)))
        models.append(PrismaModel(name=match.group(1), fields=fields))
    return models


def parse_sql_tables(text: str) -> list[SqlTable]:
    """CREATE TABLE statements; each keeps at most 12 non-empty column lines."""
    tables = []
    for match in SQL_CREATE_TABLE.finditer(text):
        columns = [line.strip() for line in match.group(2).splitlines()]
        columns = [line for line in columns if line and not line.startswith(")")]
        tables.append(SqlTable(name=match.group(1), columns=columns[:MAX_SQL_COLUMNS]))
    return tables


def parse_graphql_operations(text: str, file: str, limit: int = 5) -> list[GraphQLOperation]:
    """
    Operations of ``gql`` tagged template literals in a file.

    Args:
        text: File content
        file: Path recorded on each operation
        limit: Maximum number of operations returned

    Returns:
        Operations in source order; untyped documents count as queries
    """
    operations = []
    for match in GRAPHQL_LITERAL.finditer(text):
        body = match.group(1)
        header = GRAPHQL_HEADER.search(body)
        operations.append(
            GraphQLOperation(
                type=header.group(1) if header else "query",
                name=header.group(2) if header and header.group(2) else None,
                file=file,
                snippet=body[:GRAPHQL_SNIPPET_LENGTH],
            )
        )
        if len(operations) >= limit:
            break
    return operations


def parse_http_snippet(snippet: str) -> HttpCall:
    """Extract the HTTP method and literal URL of an axios, fetch or httpClient call."""
    axios_call = AXIOS_CALL.search(snippet)
    if axios_call:
        return HttpCall(method=axios_call.group(1).upper(), url=axios_call.group(3))

    fetch_call = FETCH_CALL.search(snippet)
    if fetch_call:
        method = DEFAULT_HTTP_METHOD
        if fetch_call.group(3):
            method_match = METHOD_PROPERTY.search(fetch_call.group(3))
            if method_match:
                method = method_match.group(2).upper()
        return HttpCall(method=method, url=fetch_call.group(2))

    client_call = HTTP_CLIENT_CALL.search(snippet)
    if client_call:
        return HttpCall(method=client_call.group(1).upper(), url=client_call.group(3))

    url_property = URL_PROPERTY.search(snippet)
    method_property = METHOD_PROPERTY.search(snippet)
    return HttpCall(
        method=method_property.group(2).upper() if method_property else DEFAULT_HTTP_METHOD,
        url=url_property.group(2) if url_property else None,
    )


def extract_host(url: str) -> Optional[str]:
    match = URL_HOST.search(url)
    return match.group(1) if match else None


def is_local_host(host: Optional[str]) -> bool:
    if not host:
        return False
    normalized = host.lower()
    # drop the port; IPv6 literals are bracketed
    if normalized.startswith("["):
        normalized = normalized[1:].split("]", 1)[0]
    elif normalized.count(":") == 1:
        normalized = normalized.split(":", 1)[0]
    return (
        normalized in ("localhost", "0.0.0.0", "::1")
        or normalized.startswith("127.")
        or normalized.endswith(".local")
    )


def is_relative_url(url: str) -> bool:
    return url.startswith(".") or url.startswith("/")


def parse_sql_table_name(snippet: str) -> Optional[str]:
    """Table named after the first FROM in a query snippet, without quotes."""
    match = SQL_FROM_TABLE.search(snippet)
    if not match:
        return None
    name = re.sub(r"""[`"']""", "", match.group(1))
    return name or None
