"""
Name: Session Resolver Tests

Responsibilities:
  - Verify provider resolution: valid token, refresh rotation, rejection, failure
  - Verify the resolver chain ordering and cookie update merging
"""

import time

import jwt
import pytest

from tenant_gate.crosscutting.exceptions import IdentityProviderError
from tenant_gate.identity.demo_session import DemoSessionResolver, create_demo_session
from tenant_gate.identity.session import (
    CookieUpdate,
    ProviderSessionResolver,
    ResolutionStatus,
    ResolverChain,
    SessionCredentials,
    SessionResolution,
    extract_bearer_token,
)
from tenant_gate.identity.users import Identity, ProviderSession

pytestmark = pytest.mark.unit

ACCESS = "sb-access-token"
REFRESH = "sb-refresh-token"


def _resolver(provider) -> ProviderSessionResolver:
    return ProviderSessionResolver(provider, access_cookie=ACCESS, refresh_cookie=REFRESH)


def _expired_token() -> str:
    return jwt.encode(
        {"sub": "u-admin", "exp": int(time.time()) - 60},
        "provider-secret-unknown-to-the-gate-000",
        algorithm="HS256",
    )


class _AbsentWithCleanup:
    async def resolve(self, credentials):
        return SessionResolution.absent([CookieUpdate("stale")])


def test_extract_bearer_token():
    assert extract_bearer_token("Bearer abc") == "abc"
    assert extract_bearer_token("bearer  abc ") == "abc"
    assert extract_bearer_token("Basic abc") is None
    assert extract_bearer_token("Bearer ") is None
    assert extract_bearer_token(None) is None


@pytest.mark.asyncio
async def test_no_credentials_is_absent_without_provider_call(fake_provider):
    resolution = await _resolver(fake_provider).resolve(SessionCredentials(cookies={}))

    assert resolution.status is ResolutionStatus.ABSENT
    assert fake_provider.get_user_calls == 0
    assert fake_provider.refresh_calls == 0


@pytest.mark.asyncio
async def test_valid_access_cookie_resolves(fake_provider):
    resolution = await _resolver(fake_provider).resolve(
        SessionCredentials(cookies={ACCESS: "tok-admin"})
    )

    assert resolution.status is ResolutionStatus.RESOLVED
    assert resolution.identity.id == "u-admin"
    assert resolution.cookie_updates == ()


@pytest.mark.asyncio
async def test_bearer_header_takes_precedence_over_cookie(fake_provider):
    resolution = await _resolver(fake_provider).resolve(
        SessionCredentials(cookies={ACCESS: "tok-customer"}, bearer_token="tok-admin")
    )

    assert resolution.identity.id == "u-admin"


@pytest.mark.asyncio
async def test_rejected_token_without_refresh_clears_cookies(fake_provider):
    resolution = await _resolver(fake_provider).resolve(
        SessionCredentials(cookies={ACCESS: "tok-unknown"})
    )

    assert resolution.status is ResolutionStatus.ABSENT
    assert resolution.cookie_updates == (CookieUpdate(ACCESS), CookieUpdate(REFRESH))
    assert all(update.is_deletion for update in resolution.cookie_updates)


@pytest.mark.asyncio
async def test_expired_access_token_refreshes_without_verifying(fake_provider):
    fake_provider.sessions["r-1"] = ProviderSession(
        access_token="tok-new",
        refresh_token="r-2",
        identity=Identity("u-admin", "admin@tenant.test"),
        expires_in=3600,
    )

    resolution = await _resolver(fake_provider).resolve(
        SessionCredentials(cookies={ACCESS: _expired_token(), REFRESH: "r-1"})
    )

    assert resolution.status is ResolutionStatus.RESOLVED
    assert fake_provider.get_user_calls == 0
    assert resolution.cookie_updates == (
        CookieUpdate(ACCESS, "tok-new", 3600),
        CookieUpdate(REFRESH, "r-2"),
    )


@pytest.mark.asyncio
async def test_rejected_refresh_is_absent_and_clears_cookies(fake_provider):
    resolution = await _resolver(fake_provider).resolve(
        SessionCredentials(cookies={REFRESH: "r-revoked"})
    )

    assert resolution.status is ResolutionStatus.ABSENT
    assert {u.name for u in resolution.cookie_updates} == {ACCESS, REFRESH}


@pytest.mark.asyncio
async def test_provider_failure_is_failed(fake_provider):
    fake_provider.error = IdentityProviderError("caído")

    resolution = await _resolver(fake_provider).resolve(
        SessionCredentials(cookies={ACCESS: "tok-admin"})
    )

    assert resolution.status is ResolutionStatus.FAILED
    assert resolution.error is fake_provider.error


@pytest.mark.asyncio
async def test_chain_prefers_demo_session(fake_provider, demo_codec):
    cookie = demo_codec.encode(create_demo_session("freshfoods"))
    chain = ResolverChain([DemoSessionResolver(demo_codec), _resolver(fake_provider)])

    resolution = await chain.resolve(
        SessionCredentials(cookies={"demo-session": cookie}, bearer_token="tok-admin")
    )

    assert resolution.is_demo is True
    assert fake_provider.get_user_calls == 0


@pytest.mark.asyncio
async def test_chain_keeps_cookie_updates_from_earlier_resolvers(fake_provider):
    chain = ResolverChain([_AbsentWithCleanup(), _resolver(fake_provider)])

    resolution = await chain.resolve(SessionCredentials(cookies={ACCESS: "tok-admin"}))

    assert resolution.status is ResolutionStatus.RESOLVED
    assert resolution.cookie_updates == (CookieUpdate("stale"),)


@pytest.mark.asyncio
async def test_empty_chain_is_absent():
    resolution = await ResolverChain([]).resolve(SessionCredentials(cookies={}))

    assert resolution.status is ResolutionStatus.ABSENT
