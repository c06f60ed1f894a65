"""
Pytest configuration and fixtures for sale-actions tests

This module provides shared fixtures for unit, integration, and E2E tests:
document factories, an in-memory store, a fake mailing API served through
httpx.MockTransport, and a PostgreSQL container for store tests.
"""
import json
import os
from typing import Any, Generator
from urllib.parse import unquote

import httpx
import pytest
from testcontainers.postgres import PostgresContainer

from sale_actions.core.models import NotificationRequest, SendResult
from sale_actions.notify.client import NotificationClient
from sale_actions.store.connection import DatabaseConnectionPool
from sale_actions.store.memory import InMemoryStoreGateway
from sale_actions.store.schema import COLLECTIONS

MAILING_API_URL = "https://mail.test/api"


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that run full pipeline passes"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# DOCUMENT FACTORIES
# =======================

class DocumentFactory:
    """Raw store documents as written by the ingestion side"""

    @staticmethod
    def metadata(meta_hash: str, email: str = "alice@example.com", **extra: Any) -> dict:
        return {"meta_hash": meta_hash, "email": email, "tax_state": "FR", "salt": "b7e1c4", **extra}

    @staticmethod
    def sale(tx_hash: str, meta_hash: str, **extra: Any) -> dict:
        return {
            "tx_hash": tx_hash,
            "meta_hash": meta_hash,
            "domain": "alice.stark",
            "price": 8.99,
            "payer": "0x0123",
            "timestamp": 1700000000,
            "expiry": 1731536000,
            "auto": True,
            **extra,
        }

    @staticmethod
    def renewal(tx_hash: str, meta_hash: str, allowance: str = "1000", **extra: Any) -> dict:
        return {
            "tx_hash": tx_hash,
            "meta_hash": meta_hash,
            "domain": "alice.stark",
            "renewer": "0x0a11ce",
            "allowance": allowance,
            **extra,
        }

    @staticmethod
    def group(tx_hash: str, group: str) -> dict:
        return {"tx_hash": tx_hash, "group": group}


@pytest.fixture(scope="session")
def docs() -> type[DocumentFactory]:
    """Document factory (session-scoped so property tests can use it)"""
    return DocumentFactory


@pytest.fixture(scope="function")
def memory_store() -> InMemoryStoreGateway:
    """Empty in-memory store"""
    return InMemoryStoreGateway()


# =======================
# MAILING API FIXTURES
# =======================

class MockMailingApi:
    """
    Fake mailing API behind httpx.MockTransport

    Records every HTTP request. Subscribers returned by the lookup GET are
    configured through ``subscribers`` (email -> {"id", "groups"}); status
    overrides by path-and-query prefix through ``fail_status``.
    """

    def __init__(self, subscribers: dict[str, dict] | None = None):
        self.requests: list[httpx.Request] = []
        self.subscribers = subscribers or {}
        self.fail_status: dict[str, int] = {}
        self.transport_error = False

    def _status_for(self, path: str) -> int:
        for prefix, status in self.fail_status.items():
            if path.startswith(prefix):
                return status
        return 200

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.transport_error:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path.removeprefix("/api")
        target = unquote(request.url.raw_path.decode("ascii")).removeprefix("/api")
        status = self._status_for(target)
        if status >= 400:
            return httpx.Response(status, json={"message": "rejected"})

        if request.method == "GET" and path.startswith("/subscribers/"):
            email = unquote(path[len("/subscribers/"):])
            if email not in self.subscribers:
                return httpx.Response(404, json={"message": "Resource not found."})
            return httpx.Response(200, json={"data": self.subscribers[email]})

        if path == "/batch":
            entries = json.loads(request.content)["requests"]
            return httpx.Response(
                200,
                json={
                    "responses": [
                        {"code": self._status_for(unquote(entry["path"])), "body": {"data": {}}}
                        for entry in entries
                    ]
                },
            )

        return httpx.Response(200, json={"data": {}})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def by_method(self, method: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.method == method]


class RecordingClient(NotificationClient):
    """NotificationClient remembering every request it was asked to send"""

    def __init__(self, api: MockMailingApi):
        super().__init__(MAILING_API_URL, "test-api-key", transport=api.transport)
        self.api = api
        self.sent: list[NotificationRequest] = []
        self.batches: list[list[NotificationRequest]] = []

    def send(self, request: NotificationRequest) -> SendResult:
        self.sent.append(request)
        return super().send(request)

    def send_batch(self, requests: list[NotificationRequest]) -> list[SendResult]:
        self.sent.extend(requests)
        self.batches.append(list(requests))
        return super().send_batch(requests)


@pytest.fixture(scope="function")
def mailing_api() -> MockMailingApi:
    """Fresh fake mailing API"""
    return MockMailingApi()


@pytest.fixture(scope="function")
def notification_client(mailing_api) -> Generator[RecordingClient, None, None]:
    """Recording client wired to the fake mailing API"""
    client = RecordingClient(mailing_api)
    yield client
    client.close()


@pytest.fixture(scope="session")
def make_client():
    """Factory for (api, client) pairs, usable from property tests"""
    def factory(subscribers: dict[str, dict] | None = None) -> tuple[MockMailingApi, RecordingClient]:
        api = MockMailingApi(subscribers)
        return api, RecordingClient(api)
    return factory


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with the collection tables created
    """
    import psycopg

    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_sale_actions",
        password="test_password",
        dbname="test_sales",
        driver=None,
    ) as postgres:
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )

        with open(init_sql_path, "r") as f:
            init_sql = f.read()

        with psycopg.connect(postgres.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield postgres


@pytest.fixture(scope="function")
def pg_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Open connection pool on the test database

    Yields:
        DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_sales",
        user="test_sale_actions",
        password="test_password",
    )
    pool.open()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def clean_db(pg_pool) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Provide a clean database by truncating every collection before the test

    Yields:
        DatabaseConnectionPool on the emptied database
    """
    with pg_pool.get_connection() as conn:
        with conn.cursor() as cur:
            for name in COLLECTIONS:
                cur.execute(f"TRUNCATE TABLE {name} RESTART IDENTITY")
        conn.commit()

    yield pg_pool
