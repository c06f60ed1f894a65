"""
Collection tables for the PostgreSQL document store.

Each collection is a table ``(id, doc, inserted_at)``; the fields used as
join keys get an expression index.
"""

from typing import Iterable

from psycopg import sql

from sale_actions.observability.logger import get_logger
from sale_actions.utils.validation import sanitize_sql_identifier

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

# collection -> document fields used as join keys
COLLECTIONS: dict[str, tuple[str, ...]] = {
    "sales": ("meta_hash", "tx_hash"),
    "auto_renew_updates": ("meta_hash", "tx_hash"),
    "metadata": ("meta_hash",),
    "email_groups": ("tx_hash",),
    "processed": ("meta_hash",),
    "ar_processed": ("tx_hash",),
}


def collection_ddl(name: str, indexed_fields: Iterable[str] = ()) -> list[sql.Composed]:
    """
    Build the statements creating one collection table and its indexes.

    Args:
        name: Collection name
        indexed_fields: Document fields to index

    Returns:
        List of SQL statements, all idempotent
    """
    table = sanitize_sql_identifier(name, "collection")
    statements = [
        sql.SQL(
            "CREATE TABLE IF NOT EXISTS {table} ("
            "id BIGSERIAL PRIMARY KEY, "
            "doc JSONB NOT NULL, "
            "inserted_at TIMESTAMPTZ NOT NULL DEFAULT now())"
        ).format(table=sql.Identifier(table))
    ]
    for field in indexed_fields:
        field = sanitize_sql_identifier(field, "field")
        statements.append(
            sql.SQL("CREATE INDEX IF NOT EXISTS {index} ON {table} ((doc->>{field}))").format(
                index=sql.Identifier(f"{table}_{field}_idx"),
                table=sql.Identifier(table),
                field=sql.Literal(field),
            )
        )
    return statements


def create_collections(pool: DatabaseConnectionPool, names: Iterable[str] | None = None) -> list[str]:
    """
    Create collection tables (all known collections by default).

    Returns:
        Names of the collections ensured
    """
    names = list(names) if names is not None else list(COLLECTIONS)
    with pool.get_connection() as conn:
        with conn.cursor() as cur:
            for name in names:
                for statement in collection_ddl(name, COLLECTIONS.get(name, ())):
                    cur.execute(statement)
        conn.commit()
    logger.info(f"Ensured collections: {', '.join(names)}")
    return names
