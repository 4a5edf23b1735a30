"""
Pytest configuration and fixtures for tenantscope tests.

This module provides common fixtures used across unit tests, most notably
an in-memory Graph client that serves canned JSON documents.
"""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import pytest

from tenantscope.graph.client import GraphClient
from tenantscope.models import Tenant
from tenantscope.storage import InMemoryUnitOfWork


class FakeGraphClient(GraphClient):
    """
    Graph client serving canned responses.

    Responses and errors are keyed by endpoint. An exact endpoint match
    wins; otherwise the path before the query string is tried. Unknown
    endpoints behave like a 404 and return None.
    """

    def __init__(
        self,
        responses: dict[str, Any] | None = None,
        errors: dict[str, Exception] | None = None,
        permissions: list[str] | None = None,
    ):
        self.responses: dict[str, Any] = dict(responses or {})
        self.errors: dict[str, Exception] = dict(errors or {})
        self.permissions = list(permissions or [])
        self.requests: list[str] = []

    def respond(self, endpoint: str, body: Any) -> FakeGraphClient:
        self.responses[endpoint] = body
        return self

    def fail(self, endpoint: str, error: Exception) -> FakeGraphClient:
        self.errors[endpoint] = error
        return self

    @staticmethod
    def _lookup(table: dict[str, Any], endpoint: str) -> tuple[bool, Any]:
        if endpoint in table:
            return True, table[endpoint]
        path = endpoint.split("?", 1)[0]
        if path in table:
            return True, table[path]
        return False, None

    def get_raw_json(self, endpoint: str) -> str | None:
        self.requests.append(endpoint)
        has_error, error = self._lookup(self.errors, endpoint)
        if has_error:
            raise error
        _, body = self._lookup(self.responses, endpoint)
        if body is None:
            return None
        return body if isinstance(body, str) else json.dumps(body)

    def test_connection(self) -> bool:
        return True

    def get_granted_permissions(self) -> list[str]:
        return list(self.permissions)


# Fixtures


@pytest.fixture
def fake_client() -> FakeGraphClient:
    """Return an empty fake Graph client."""
    return FakeGraphClient()


@pytest.fixture
def fake_client_class() -> type[FakeGraphClient]:
    """Return the fake Graph client class for tests that build several."""
    return FakeGraphClient


@pytest.fixture
def sample_tenant() -> Tenant:
    """Return a tenant with complete credentials."""
    return Tenant(
        id="tenant-1",
        name="Contoso",
        azure_tenant_id="00000000-0000-0000-0000-000000000001",
        client_id="11111111-1111-1111-1111-111111111111",
        client_secret_encrypted="secret",
    )


@pytest.fixture
def unit_of_work(sample_tenant: Tenant) -> InMemoryUnitOfWork:
    """Return an in-memory unit-of-work holding the sample tenant."""
    uow = InMemoryUnitOfWork()
    uow.tenants.add(sample_tenant)
    uow.save_changes()
    return uow


@pytest.fixture
def client_factory(fake_client: FakeGraphClient) -> MagicMock:
    """Return a client factory that hands out the fake client."""
    factory = MagicMock()
    factory.create_client.return_value = fake_client
    return factory
