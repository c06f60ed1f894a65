"""
Integration tests for the database connection pool

Tests the PostgreSQL connection pool functionality using testcontainers.
"""
import pytest

from sale_actions.store.connection import DatabaseConnectionPool

pytestmark = pytest.mark.integration


def make_pool(postgres_container, **kwargs) -> DatabaseConnectionPool:
    return DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_sales",
        user="test_sale_actions",
        password="test_password",
        **kwargs,
    )


def test_connection_pool_initialization(postgres_container):
    """Test that connection pool initializes correctly"""
    pool = make_pool(postgres_container, min_size=2, max_size=5)

    pool.open()

    assert pool.is_open
    assert pool._pool.min_size == 2
    assert pool._pool.max_size == 5

    pool.close()
    assert not pool.is_open


def test_get_connection(postgres_container):
    """Test getting a connection from the pool"""
    pool = make_pool(postgres_container)
    pool.open()

    with pool.get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1 as test")
            assert cur.fetchone()["test"] == 1

    pool.close()


def test_execute_command(clean_db):
    """Test executing INSERT commands"""
    rowcount = clean_db.execute_command(
        "INSERT INTO processed (doc) VALUES (%s::jsonb)",
        ('{"meta_hash": "h1"}',),
    )

    assert rowcount == 1
    result = clean_db.execute_query("SELECT doc->>'meta_hash' AS key FROM processed")
    assert result == [{"key": "h1"}]


def test_ping(postgres_container):
    """Test the connectivity check on open and closed pools"""
    pool = make_pool(postgres_container)

    assert pool.ping() is False

    pool.open()
    assert pool.ping() is True
    pool.close()


def test_context_manager(postgres_container):
    """Test using pool as context manager"""
    with make_pool(postgres_container) as pool:
        result = pool.execute_query("SELECT 1 as test")
        assert result[0]["test"] == 1

    # Pool should be closed after context
    with pytest.raises(RuntimeError):
        pool.execute_query("SELECT 1")


def test_open_fails_after_retries():
    """Test that an unreachable server raises after the configured attempts"""
    from psycopg import OperationalError

    pool = DatabaseConnectionPool(
        host="127.0.0.1", port=1, database="none", user="none", password="x", timeout=1.0
    )

    with pytest.raises(OperationalError, match="after 2 attempts"):
        pool.open(max_retries=2, retry_delay=0)
    assert not pool.is_open


def test_missing_password_rejected(monkeypatch):
    """Test that a password is required when no connection string is given"""
    monkeypatch.delenv("DB_PASSWORD", raising=False)

    with pytest.raises(ValueError, match="password"):
        DatabaseConnectionPool(host="localhost")
