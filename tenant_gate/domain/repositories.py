"""
CRC — domain/repositories.py

Name
- Gate ports (Protocols): profile store, role bindings, identity provider

Responsibilities
- Define the contracts the access decision engine depends on.
- Keep the gate independent from infrastructure (PostgreSQL, HTTP, in-memory).
- Enable straightforward unit testing (in-memory / stub implementations).

Collaborators
- identity.users: Identity, Profile, ProviderSession, UserRole
- infrastructure.repositories: postgres / in_memory implementations
- infrastructure.services.identity_provider: HTTP implementation

Constraints
- Pure interfaces only: no side effects, no SQL, no HTTP.
- Expected absence is a return value (None / False), never an exception.
- Transport or store failures raise IdentityProviderError / ProfileStoreError.
"""

from typing import Optional, Protocol

from ..identity.users import Identity, Profile, ProviderSession, UserRole


class ProfileRepository(Protocol):
    """
    R: Read-only access to application profiles (user_profiles).
    """

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        """R: Profile for an identity id, or None when it does not exist."""
        ...


class RoleBindingRepository(Protocol):
    """
    R: Read-only access to per-tenant role bindings (user_tenant_roles).
    """

    async def has_active_binding(
        self, user_id: str, tenant_id: str, role: UserRole
    ) -> bool:
        """R: True only for an active, non-revoked binding."""
        ...


class IdentityProvider(Protocol):
    """
    R: Session verification and rotation against the identity provider.
    """

    async def get_user(self, access_token: str) -> Optional[Identity]:
        """R: Identity for a valid access token, None when rejected."""
        ...

    async def refresh(self, refresh_token: str) -> Optional[ProviderSession]:
        """R: Rotated session, None when the refresh token is rejected."""
        ...
