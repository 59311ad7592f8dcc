"""
===============================================================================
TARJETA CRC — identity/demo_session.py
===============================================================================

Módulo:
    Sesiones demo (cookie `demo-session`)

Responsabilidades:
    - Emitir (encode) y leer (decode) la cookie de sesión demo.
    - Expirar sesiones exactamente TTL (24h) después de `timestamp`.
    - Adaptar la sesión demo al contrato SessionResolver: identidad + perfil
      sintetizados, sin consultar el store de perfiles.
    - Mantener el catálogo de compañías demo (entry point /api/auth/mock-login).

Colaboradores:
    - PyJWT (HS256): la cookie va firmada.
    - identity/session.py: SessionResolution / SessionCredentials.
    - api/demo_routes.py: emite y borra la cookie.

Reglas:
    - decode() nunca lanza: malformado / vencido / firma inválida => None.
    - Rol desconocido o isDemo != true => malformado.
    - El formato legado (base64 JSON sin firma) solo se acepta si
      DEMO_SESSION_ALLOW_UNSIGNED=true (prohibido en producción).
    - Sin refresh ni registro server-side.
===============================================================================
"""

from __future__ import annotations

import base64
import json
import math
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

import jwt

from ..crosscutting.exceptions import DemoSessionError
from ..crosscutting.logger import logger
from .session import SessionCredentials, SessionResolution
from .users import Identity, Profile, UserRole

_ALGORITHM = "HS256"
DEMO_IDENTITY_PREFIX = "demo:"
# R: tolerancia de reloj para timestamps "del futuro".
_CLOCK_SKEW_MS = 60_000
# R: companyId termina en headers downstream (x-user-tenant).
_COMPANY_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,64}")


@dataclass(frozen=True, slots=True)
class DemoCompany:
    company_id: str
    name: str
    industry: str
    admin_email: str


_COMPANY_ROWS = (
    # (company_id, name, industry, admin_email)
    ("freshfoods", "Fresh Foods Restaurant", "restaurant", "admin@freshfoods.com"),
    ("techmart", "TechMart Electronics", "retail", "admin@techmart.com"),
    ("swiftlogistics", "Swift Logistics", "logistics", "admin@swiftlogistics.com"),
    (
        "digitalsolutions",
        "Digital Solutions Inc",
        "technology",
        "admin@digitalsolutions.com",
    ),
    ("infinitystack", "InfinityStack Demo", "enterprise", "admin@infinitystack.com"),
)

DEMO_COMPANIES: Mapping[str, DemoCompany] = {
    row[0]: DemoCompany(*row) for row in _COMPANY_ROWS
}


@dataclass(frozen=True, slots=True)
class DemoSession:
    """Payload de la cookie demo (timestamp en ms epoch)."""

    company_id: str
    company_name: str
    industry: str
    email: str
    role: UserRole
    timestamp: int
    is_demo: bool = True

    def to_claims(self) -> dict[str, Any]:
        return {
            "companyId": self.company_id,
            "companyName": self.company_name,
            "industry": self.industry,
            "email": self.email,
            "role": self.role.value,
            "isDemo": self.is_demo,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_claims(cls, data: object) -> Optional["DemoSession"]:
        """Valida el shape; cualquier desvío => None."""
        if not isinstance(data, dict):
            return None

        company_id = data.get("companyId")
        role = UserRole.parse(data.get("role"))
        timestamp = data.get("timestamp")

        if not isinstance(company_id, str) or not _COMPANY_ID_RE.fullmatch(company_id):
            return None
        if role is None or data.get("isDemo") is not True:
            return None
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return None
        if not math.isfinite(timestamp):
            return None

        return cls(
            company_id=company_id,
            company_name=str(data.get("companyName") or ""),
            industry=str(data.get("industry") or ""),
            email=str(data.get("email") or ""),
            role=role,
            timestamp=int(timestamp),
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


def _decode_legacy(value: str) -> object:
    normalized = value.replace("-", "+").replace("_", "/")
    raw = base64.b64decode(normalized + "=" * (-len(normalized) % 4))
    return json.loads(raw.decode("utf-8"))


class DemoSessionCodec:
    """Encode/decode de la cookie demo (JWT HS256; legado opcional)."""

    def __init__(
        self,
        *,
        secret: str,
        ttl_hours: int = 24,
        allow_unsigned: bool = False,
    ):
        if not secret:
            raise ValueError("DEMO_SESSION_SECRET is required")
        self._secret = secret
        self._ttl_ms = ttl_hours * 60 * 60 * 1000
        self._allow_unsigned = allow_unsigned

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_ms // 1000

    def encode(self, session: DemoSession) -> str:
        return jwt.encode(session.to_claims(), self._secret, algorithm=_ALGORITHM)

    def decode(
        self, value: Optional[str], *, now_ms: Optional[int] = None
    ) -> Optional[DemoSession]:
        if not value:
            return None

        try:
            if value.count(".") == 2:
                data = jwt.decode(value, self._secret, algorithms=[_ALGORITHM])
            elif self._allow_unsigned:
                data = _decode_legacy(value)
            else:
                logger.debug("Cookie demo sin firma rechazada")
                return None
        except (jwt.PyJWTError, ValueError):
            logger.debug("Cookie demo malformada")
            return None

        session = DemoSession.from_claims(data)
        if session is None:
            logger.debug("Cookie demo con payload inválido")
            return None

        now = _now_ms() if now_ms is None else now_ms
        if now - session.timestamp > self._ttl_ms:
            logger.debug(
                "Cookie demo vencida", extra={"company_id": session.company_id}
            )
            return None
        if session.timestamp - now > _CLOCK_SKEW_MS:
            logger.debug(
                "Cookie demo con timestamp futuro",
                extra={"company_id": session.company_id},
            )
            return None

        return session

    def expires_at(self, session: DemoSession) -> datetime:
        return _ms_to_datetime(session.timestamp) + timedelta(milliseconds=self._ttl_ms)


def _ms_to_datetime(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def create_demo_session(company_id: str, *, now_ms: Optional[int] = None) -> DemoSession:
    """Sesión demo ADMIN para una compañía del catálogo."""
    company = DEMO_COMPANIES.get(company_id)
    if company is None:
        raise DemoSessionError("Invalid company ID")

    return DemoSession(
        company_id=company.company_id,
        company_name=company.name,
        industry=company.industry,
        email=company.admin_email,
        role=UserRole.ADMIN,
        timestamp=_now_ms() if now_ms is None else now_ms,
    )


class DemoSessionResolver:
    """
    SessionResolver basado en la cookie demo.

    Sintetiza Identity (id = demo:<companyId>) y Profile (activo, verificado,
    tenant = companyId). Cookie ausente/vencida/malformada => ABSENT.
    """

    def __init__(
        self, codec: DemoSessionCodec, *, cookie_name: str = "demo-session"
    ):
        self._codec = codec
        self._cookie_name = cookie_name

    async def resolve(self, credentials: SessionCredentials) -> SessionResolution:
        session = self._codec.decode(credentials.cookies.get(self._cookie_name))
        if session is None:
            return SessionResolution.absent()

        identity = Identity(
            id=f"{DEMO_IDENTITY_PREFIX}{session.company_id}",
            email=session.email,
            issued_at=_ms_to_datetime(session.timestamp),
            expires_at=self._codec.expires_at(session),
        )
        profile = Profile(
            id=identity.id,
            role=session.role,
            is_active=True,
            is_verified=True,
            tenant_id=session.company_id,
        )
        return SessionResolution.resolved(identity, profile=profile, is_demo=True)
