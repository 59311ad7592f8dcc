"""
Name: Composition Root Tests

Responsibilities:
  - Verify runtime wiring decisions driven by Settings
  - Verify singletons and reset behavior
"""

import pytest

from tenant_gate import container
from tenant_gate.identity.routes import RouteTableError
from tenant_gate.infrastructure.repositories import (
    InMemoryProfileRepository,
    PostgresProfileRepository,
)
from tenant_gate.infrastructure.services import GoTrueIdentityProvider

pytestmark = pytest.mark.unit


def test_without_database_url_uses_in_memory_store():
    assert isinstance(container.get_profile_repository(), InMemoryProfileRepository)
    assert container.get_profile_repository() is container.get_role_binding_repository()


def test_with_database_url_uses_postgres(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://gate@localhost/gate")

    assert isinstance(container.get_profile_repository(), PostgresProfileRepository)


def test_without_provider_url_only_demo_sessions():
    assert container.get_identity_provider() is None


def test_with_provider_url_builds_gotrue_adapter(monkeypatch):
    monkeypatch.setenv("IDENTITY_PROVIDER_URL", "https://idp.example.com")

    assert isinstance(container.get_identity_provider(), GoTrueIdentityProvider)


def test_engine_is_a_singleton_until_reset():
    engine = container.get_access_engine()

    assert container.get_access_engine() is engine
    container.reset_container()
    assert container.get_access_engine() is not engine


def test_invalid_route_overrides_fail_at_build(monkeypatch):
    monkeypatch.setenv("GATE_SUPERADMIN_PREFIXES", "/root")

    with pytest.raises(RouteTableError):
        container.get_access_engine()


@pytest.mark.asyncio
async def test_close_resources_closes_http_client(monkeypatch):
    monkeypatch.setenv("IDENTITY_PROVIDER_URL", "https://idp.example.com")
    client = container.get_http_client()

    await container.close_resources()

    assert client.is_closed
    assert container.get_http_client.cache_info().currsize == 0
