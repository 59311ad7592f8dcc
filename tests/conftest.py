"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Configure test environment (no .env, APP_ENV=test)
  - Reset cached settings and container singletons between tests
  - Provide in-memory repositories and engine/client factories

Collaborators:
  - pytest / pytest-asyncio
  - tenant_gate.container: singletons under test
  - tenant_gate.infrastructure.repositories.in_memory: fake profile store

Notes:
  - Use @pytest.fixture(scope="function") for per-test isolation
  - Demo cookies in tests are signed with TEST_DEMO_SECRET (>= 32 chars)
"""

import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from tenant_gate.crosscutting import config as app_config  # noqa: E402

app_config.Settings.model_config["env_file"] = None

os.environ.setdefault("APP_ENV", "test")

TEST_DEMO_SECRET = "test-demo-secret-with-at-least-32-chars"
os.environ.setdefault("DEMO_SESSION_SECRET", TEST_DEMO_SECRET)

from tenant_gate.container import reset_container  # noqa: E402
from tenant_gate.identity.access_decision import AccessDecisionEngine  # noqa: E402
from tenant_gate.identity.demo_session import (  # noqa: E402
    DemoSessionCodec,
    DemoSessionResolver,
)
from tenant_gate.identity.routes import RouteTable  # noqa: E402
from tenant_gate.identity.session import ResolverChain  # noqa: E402
from tenant_gate.identity.superadmin import SuperadminGate  # noqa: E402
from tenant_gate.identity.users import (  # noqa: E402
    SYSTEM_TENANT_ID,
    Identity,
    Profile,
    RoleBinding,
    UserRole,
)
from tenant_gate.infrastructure.repositories import (  # noqa: E402
    InMemoryProfileRepository,
)


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )


# ============================================================================
# Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def _isolate_singletons():
    """R: Settings y container se recalculan en cada test."""
    app_config.get_settings.cache_clear()
    reset_container()
    yield
    app_config.get_settings.cache_clear()
    reset_container()


# ============================================================================
# Domain fixtures
# ============================================================================


@pytest.fixture
def demo_codec() -> DemoSessionCodec:
    return DemoSessionCodec(secret=TEST_DEMO_SECRET)


@pytest.fixture
def profile_store() -> InMemoryProfileRepository:
    """R: Store con un usuario por rol relevante para el gate."""
    return InMemoryProfileRepository(
        profiles=[
            Profile("u-admin", UserRole.ADMIN, True, True, tenant_id="tenant-1"),
            Profile("u-customer", UserRole.CUSTOMER, True, True, tenant_id="tenant-1"),
            Profile("u-inactive", UserRole.ADMIN, False, True, tenant_id="tenant-1"),
            Profile("u-unverified", UserRole.ADMIN, True, False, tenant_id="tenant-1"),
            Profile("u-root", UserRole.SUPERADMIN, True, True, tenant_id=SYSTEM_TENANT_ID),
            Profile("u-rogue", UserRole.SUPERADMIN, True, True, tenant_id=SYSTEM_TENANT_ID),
        ],
        bindings=[
            RoleBinding("u-root", SYSTEM_TENANT_ID, UserRole.SUPERADMIN),
            RoleBinding("u-rogue", SYSTEM_TENANT_ID, UserRole.SUPERADMIN),
        ],
    )


class FakeIdentityProvider:
    """IdentityProvider en memoria: token => Identity."""

    def __init__(self, users=None, sessions=None, error=None):
        self.users = dict(users or {})
        self.sessions = dict(sessions or {})
        self.error = error
        self.get_user_calls = 0
        self.refresh_calls = 0

    async def get_user(self, access_token):
        self.get_user_calls += 1
        if self.error is not None:
            raise self.error
        return self.users.get(access_token)

    async def refresh(self, refresh_token):
        self.refresh_calls += 1
        if self.error is not None:
            raise self.error
        return self.sessions.get(refresh_token)


@pytest.fixture
def provider_users() -> dict:
    return {
        "tok-admin": Identity("u-admin", "admin@tenant.test"),
        "tok-customer": Identity("u-customer", "customer@tenant.test"),
        "tok-inactive": Identity("u-inactive", "inactive@tenant.test"),
        "tok-unverified": Identity("u-unverified", "unverified@tenant.test"),
        "tok-root": Identity("u-root", "root@platform.test"),
        "tok-rogue": Identity("u-rogue", "rogue@platform.test"),
        "tok-ghost": Identity("u-ghost", "ghost@tenant.test"),
    }


@pytest.fixture
def fake_provider(provider_users) -> FakeIdentityProvider:
    return FakeIdentityProvider(users=provider_users)


@pytest.fixture
def make_engine(profile_store, demo_codec):
    """R: Factory de engine con dependencias en memoria (sobrescribibles)."""
    from tenant_gate.identity.session import ProviderSessionResolver

    def _make(
        provider=None,
        *,
        resolver=None,
        profiles=None,
        allowlist=("root@platform.test",),
        routes=None,
        lookup_timeout_seconds=1.0,
        retry_after_seconds=7,
    ):
        store = profile_store if profiles is None else profiles
        if resolver is None:
            resolvers = [DemoSessionResolver(demo_codec)]
            if provider is not None:
                resolvers.append(
                    ProviderSessionResolver(
                        provider,
                        access_cookie="sb-access-token",
                        refresh_cookie="sb-refresh-token",
                    )
                )
            resolver = ResolverChain(resolvers)
        return AccessDecisionEngine(
            routes=routes or RouteTable(),
            resolver=resolver,
            profiles=store,
            superadmin=SuperadminGate(store, allowlist=allowlist),
            lookup_timeout_seconds=lookup_timeout_seconds,
            retry_after_seconds=retry_after_seconds,
        )

    return _make
