"""
============================================================
TARJETA CRC — infrastructure/services/identity_provider.py
============================================================
Class: GoTrueIdentityProvider

Responsibilities:
  - Implementar el puerto IdentityProvider contra una API GoTrue-compatible.
  - Verificar un access token (GET /auth/v1/user).
  - Rotar la sesión con el refresh token (POST /auth/v1/token?grant_type=refresh_token).
  - Distinguir "rechazado" (None) de "proveedor caído" (IdentityProviderError).

Collaborators:
  - domain.repositories.IdentityProvider (contrato)
  - identity.users.Identity / ProviderSession
  - httpx.AsyncClient (cliente HTTP compartido, creado en el lifespan)

Notes:
  - 400/401/403/404 => credencial rechazada (None), nunca error.
  - 5xx, red, timeouts y payloads inválidos => IdentityProviderError.
  - Jamás loguea tokens.
============================================================
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import jwt

from ...crosscutting.exceptions import IdentityProviderError
from ...crosscutting.logger import logger
from ...identity.users import Identity, ProviderSession

_USER_PATH = "/auth/v1/user"
_TOKEN_PATH = "/auth/v1/token"

_REJECTED_STATUSES = {400, 401, 403, 404}


def token_claims(token: str) -> dict[str, Any]:
    """Claims de un JWT SIN verificar firma (solo lectura de iat/exp).

    La verificación real la hace el proveedor; esto solo evita round-trips
    con tokens ya vencidos. Token no-JWT => {}.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return {}
    return claims if isinstance(claims, dict) else {}


def _ts(value: object) -> datetime | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


def _identity_from_user(user: object, access_token: str) -> Identity:
    if not isinstance(user, dict) or not user.get("id"):
        raise IdentityProviderError("Respuesta de usuario inválida del proveedor")

    claims = token_claims(access_token)
    return Identity(
        id=str(user["id"]),
        email=str(user.get("email") or ""),
        issued_at=_ts(claims.get("iat")),
        expires_at=_ts(claims.get("exp")),
    )


class GoTrueIdentityProvider:
    """Adapter HTTP (httpx async) para el proveedor de identidad."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 5.0,
    ):
        if not base_url:
            raise ValueError("IDENTITY_PROVIDER_URL is required")
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_seconds

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            return await self._client.request(
                method, url, timeout=self._timeout, **kwargs
            )
        except httpx.TimeoutException as exc:
            logger.warning(
                "Timeout del proveedor de identidad", extra={"endpoint": path}
            )
            raise IdentityProviderError(
                "Timeout del proveedor de identidad", original_error=exc
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Proveedor de identidad inalcanzable",
                extra={"endpoint": path, "error": type(exc).__name__},
            )
            raise IdentityProviderError(
                "Proveedor de identidad inalcanzable", original_error=exc
            ) from exc

    @staticmethod
    def _json(response: httpx.Response, path: str) -> Any:
        if not response.is_success:
            logger.error(
                "Proveedor de identidad respondió error",
                extra={"endpoint": path, "status": response.status_code},
            )
            raise IdentityProviderError(
                f"Proveedor de identidad respondió {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise IdentityProviderError(
                "Respuesta no-JSON del proveedor de identidad", original_error=exc
            ) from exc

    async def get_user(self, access_token: str) -> Optional[Identity]:
        response = await self._request(
            "GET", _USER_PATH, headers=self._headers(access_token)
        )
        if response.status_code in _REJECTED_STATUSES:
            logger.debug(
                "Access token rechazado", extra={"status": response.status_code}
            )
            return None

        data = self._json(response, _USER_PATH)
        return _identity_from_user(data, access_token)

    async def refresh(self, refresh_token: str) -> Optional[ProviderSession]:
        response = await self._request(
            "POST",
            _TOKEN_PATH,
            params={"grant_type": "refresh_token"},
            headers=self._headers(),
            json={"refresh_token": refresh_token},
        )
        if response.status_code in _REJECTED_STATUSES:
            logger.info(
                "Refresh token rechazado", extra={"status": response.status_code}
            )
            return None

        data = self._json(response, _TOKEN_PATH)
        if not isinstance(data, dict):
            raise IdentityProviderError("Respuesta de refresh inválida")

        access = data.get("access_token")
        rotated = data.get("refresh_token")
        if not isinstance(access, str) or not isinstance(rotated, str):
            raise IdentityProviderError("Respuesta de refresh sin tokens")

        expires_in = data.get("expires_in")
        return ProviderSession(
            access_token=access,
            refresh_token=rotated,
            identity=_identity_from_user(data.get("user"), access),
            expires_in=expires_in if isinstance(expires_in, int) else None,
        )
