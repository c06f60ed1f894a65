"""
PostgreSQL implementation of the store gateway.

Collections are JSONB tables (see schema.py). ``find_join`` compiles lookup
stages into a single statement and streams the result through a server-side
cursor, so a pass never holds the whole event collection in memory.
"""

from typing import Any, Iterable, Iterator, Literal

from psycopg import Error as PsycopgError
from psycopg import sql
from psycopg.types.json import Jsonb

from sale_actions.observability.logger import get_logger
from sale_actions.utils.validation import sanitize_sql_identifier

from .connection import DatabaseConnectionPool
from .gateway import StoreError, StoreGateway
from .join import Lookup, LookupMode, as_text
from .schema import create_collections

logger = get_logger(__name__)

JoinStrategy = Literal["native", "sequential"]


def build_join_query(collection: str, lookups: list[Lookup]) -> sql.Composed:
    """
    Compile lookup stages into one SELECT returning a ``doc`` column.

    REQUIRE and ATTACH stages become lateral aggregates attached to the
    document; REQUIRE additionally filters on the match count. EXCLUDE
    stages become ``NOT EXISTS`` filters.

    Args:
        collection: Event collection
        lookups: Lookup stages

    Returns:
        Composed SQL statement
    """
    table = sanitize_sql_identifier(collection, "collection")
    doc_expr = [sql.SQL("e.doc || jsonb_build_object('_id', e.id)")]
    joins: list[sql.Composable] = []
    filters: list[sql.Composable] = []

    for i, lookup in enumerate(lookups):
        alias = sql.Identifier(f"l{i}")
        condition = sql.SQL("{alias}.doc->>{foreign} = e.doc->>{local}").format(
            alias=alias,
            foreign=sql.Literal(lookup.foreign_field),
            local=sql.Literal(lookup.local_field),
        )

        if lookup.mode is LookupMode.EXCLUDE:
            filters.append(
                sql.SQL("NOT EXISTS (SELECT 1 FROM {table} {alias} WHERE {condition})").format(
                    table=sql.Identifier(lookup.from_collection),
                    alias=alias,
                    condition=condition,
                )
            )
            continue

        if lookup.project is None:
            aggregate = sql.SQL("jsonb_agg({alias}.doc ORDER BY {alias}.id)").format(alias=alias)
        else:
            aggregate = sql.SQL(
                "jsonb_agg({alias}.doc->{project} ORDER BY {alias}.id) "
                "FILTER (WHERE {alias}.doc ? {project})"
            ).format(alias=alias, project=sql.Literal(lookup.project))

        joined = sql.Identifier(f"j{i}")
        joins.append(
            sql.SQL(
                "LEFT JOIN LATERAL (SELECT count(*) AS n, {aggregate} AS matches "
                "FROM {table} {alias} WHERE {condition}) {joined} ON TRUE"
            ).format(
                aggregate=aggregate,
                table=sql.Identifier(lookup.from_collection),
                alias=alias,
                condition=condition,
                joined=joined,
            )
        )
        doc_expr.append(
            sql.SQL("jsonb_build_object({as_field}, COALESCE({joined}.matches, '[]'::jsonb))").format(
                as_field=sql.Literal(lookup.as_field),
                joined=joined,
            )
        )
        if lookup.mode is LookupMode.REQUIRE:
            filters.append(sql.SQL("{joined}.n > 0").format(joined=joined))

    query = sql.SQL("SELECT {doc} AS doc FROM {table} e").format(
        doc=sql.SQL(" || ").join(doc_expr),
        table=sql.Identifier(table),
    )
    if joins:
        query = sql.SQL(" ").join([query, *joins])
    if filters:
        query = sql.SQL(" ").join([query, sql.SQL("WHERE"), sql.SQL(" AND ").join(filters)])
    return sql.SQL(" ").join([query, sql.SQL("ORDER BY e.id")])


class PostgresStoreGateway(StoreGateway):
    """
    Store gateway over a DatabaseConnectionPool.

    Args:
        pool: Open connection pool
        join_strategy: "native" compiles lookups into SQL, "sequential"
            performs them in application code
        fetch_size: Rows fetched per round trip when streaming
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        join_strategy: JoinStrategy = "native",
        fetch_size: int = 500,
    ) -> None:
        if join_strategy not in ("native", "sequential"):
            raise ValueError(f"Unknown join strategy: {join_strategy}")
        self.pool = pool
        self.join_strategy = join_strategy
        self.fetch_size = fetch_size

    def ping(self) -> bool:
        return self.pool.ping()

    def ensure_collections(self, names: Iterable[str]) -> None:
        try:
            create_collections(self.pool, names)
        except PsycopgError as e:
            raise StoreError(f"Creating collections failed: {e}") from e

    def _stream(self, query: sql.Composable) -> Iterator[dict[str, Any]]:
        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(name="sale_actions_stream") as cur:
                    cur.itersize = self.fetch_size
                    cur.execute(query)
                    for row in cur:
                        yield row["doc"]
        except PsycopgError as e:
            raise StoreError(f"Streaming query failed: {e}") from e

    def find(self, collection: str) -> Iterator[dict[str, Any]]:
        table = sanitize_sql_identifier(collection, "collection")
        query = sql.SQL(
            "SELECT doc || jsonb_build_object('_id', id) AS doc FROM {table} ORDER BY id"
        ).format(table=sql.Identifier(table))
        return self._stream(query)

    def find_matching(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        table = sanitize_sql_identifier(collection, "collection")
        field = sanitize_sql_identifier(field, "field")
        text = as_text(value)
        if text is None:
            return []
        query = sql.SQL("SELECT doc FROM {table} WHERE doc->>{field} = %s ORDER BY id").format(
            table=sql.Identifier(table),
            field=sql.Literal(field),
        )
        try:
            rows = self.pool.execute_query(query, (text,))
        except PsycopgError as e:
            raise StoreError(f"Lookup in '{table}' failed: {e}") from e
        return [row["doc"] for row in rows]

    def find_join(self, collection: str, lookups: list[Lookup]) -> Iterator[dict[str, Any]]:
        if self.join_strategy == "sequential":
            return super().find_join(collection, lookups)
        query = build_join_query(collection, lookups)
        logger.debug(f"Streaming join over '{collection}' with {len(lookups)} lookup(s)")
        return self._stream(query)

    def insert_many(self, collection: str, documents: list[dict[str, Any]]) -> int:
        if not documents:
            return 0
        table = sanitize_sql_identifier(collection, "collection")
        query = sql.SQL("INSERT INTO {table} (doc) VALUES (%s)").format(table=sql.Identifier(table))
        try:
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.executemany(query, [(Jsonb(document),) for document in documents])
                conn.commit()
        except PsycopgError as e:
            raise StoreError(f"Insert into '{table}' failed: {e}") from e
        return len(documents)

    def close(self) -> None:
        self.pool.close()
