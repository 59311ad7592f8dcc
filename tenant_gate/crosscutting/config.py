"""
Name: Application Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults that match current behavior of the gate

Collaborators:
  - api/main.py: reads settings for lifespan (HTTP client, DB pool)
  - container.py: builds route table, resolvers and stores from settings
  - identity/superadmin.py: reads the superadmin allowlist once

Constraints:
  - Lives in API/infrastructure layer, NOT in domain
  - No business logic, pure configuration

Notes:
  - Uses pydantic-settings for env parsing and validation
  - Singleton via lru_cache for performance
  - Route tables and the allowlist are comma-separated lists
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_SECRETS = {"dev-demo-secret", "changeme", "change-me", "password", "secret"}


def split_csv(value: str) -> list[str]:
    """Parse comma-separated values into a list (ignores blanks)."""
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_env: Application environment (development/production/test)
        log_level: Root log level (default: INFO)
        log_json: Emit JSON logs (default: True)
        database_url: PostgreSQL connection string (empty => in-memory store)
        identity_provider_url: Base URL of the identity provider (GoTrue API)
        identity_provider_api_key: Public API key sent as `apikey` header
        identity_provider_timeout_seconds: HTTP timeout for provider calls
        session_access_cookie: Cookie holding the provider access token
        session_refresh_cookie: Cookie holding the provider refresh token
        session_cookie_secure: Set Secure on session cookies we rewrite
        gate_lookup_timeout_seconds: Upper bound for each external lookup
        gate_retry_after_seconds: Retry-After hint on fail-closed redirects
        gate_*_paths / gate_*_prefixes: Route table overrides (comma-separated)
        superadmin_emails: Allowlist of superadmin principals (comma-separated)
        demo_sessions_enabled: Accept demo-session cookies
        demo_session_cookie: Demo cookie name
        demo_session_secret: HMAC secret for signed demo cookies
        demo_session_ttl_hours: Demo session lifetime (default: 24)
        demo_session_allow_unsigned: Accept legacy base64 JSON demo cookies
    """

    # Environment
    app_env: str = "development"
    log_level: str = "INFO"
    log_json: bool = True

    # Profile store (Postgres). Empty => in-memory repository.
    database_url: str = ""
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    db_statement_timeout_ms: int = 5000

    # Identity provider
    identity_provider_url: str = ""
    identity_provider_api_key: str = ""
    identity_provider_timeout_seconds: float = 5.0

    # Session cookies (provider-opaque values)
    session_access_cookie: str = "sb-access-token"
    session_refresh_cookie: str = "sb-refresh-token"
    session_cookie_secure: bool = False

    # Gate behavior
    gate_lookup_timeout_seconds: float = 5.0
    gate_retry_after_seconds: int = 5

    # Route tables (empty => built-in defaults)
    gate_public_paths: str = ""
    gate_public_api_paths: str = ""
    gate_admin_prefixes: str = ""
    gate_superadmin_prefixes: str = ""

    # Superadmin allowlist
    superadmin_emails: str = ""

    # Demo sessions
    demo_sessions_enabled: bool = True
    demo_session_cookie: str = "demo-session"
    demo_session_secret: str = "dev-demo-secret"
    demo_session_ttl_hours: int = 24
    demo_session_allow_unsigned: bool = False

    @field_validator("gate_lookup_timeout_seconds", "identity_provider_timeout_seconds")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be greater than 0")
        return v

    @field_validator("demo_session_ttl_hours")
    @classmethod
    def demo_ttl_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("demo_session_ttl_hours must be greater than 0")
        return v

    @field_validator("gate_retry_after_seconds")
    @classmethod
    def retry_after_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("gate_retry_after_seconds must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_security_requirements(self):
        if not self.is_production():
            return self

        if not self.identity_provider_url.strip():
            raise ValueError("IDENTITY_PROVIDER_URL is required in production")
        if not self.session_cookie_secure:
            raise ValueError("SESSION_COOKIE_SECURE must be true in production")

        if self.demo_sessions_enabled:
            if self.demo_session_allow_unsigned:
                raise ValueError(
                    "DEMO_SESSION_ALLOW_UNSIGNED must be false in production"
                )
            secret = (self.demo_session_secret or "").strip()
            if not secret or secret in _INSECURE_SECRETS:
                raise ValueError(
                    "DEMO_SESSION_SECRET must be set to a strong, non-default value in production"
                )
            if len(secret) < 32:
                raise ValueError(
                    "DEMO_SESSION_SECRET must be at least 32 characters in production"
                )

        return self

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    def get_superadmin_emails(self) -> list[str]:
        """Allowlist normalizado (lowercase)."""
        return [email.lower() for email in split_csv(self.superadmin_emails)]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If env vars are missing or invalid
    """
    return Settings()
