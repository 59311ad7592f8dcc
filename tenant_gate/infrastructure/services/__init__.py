"""
Infrastructure Services (Infrastructure Layer)

Adapters concretos de los puertos del gate hacia servicios externos.

CRC (Component Card)
--------------------
Component: infrastructure.services (Facade)
Responsibilities:
  - Publicar imports canónicos del paquete
Collaborators:
  - infrastructure.services.identity_provider (GoTrue vía httpx)
"""

from .identity_provider import GoTrueIdentityProvider, token_claims

__all__ = ["GoTrueIdentityProvider", "token_claims"]
