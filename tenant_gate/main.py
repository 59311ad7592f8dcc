"""
Name: ASGI Entrypoint (tenant_gate.main)

Responsibilities:
  - Re-export the FastAPI app for ASGI servers and tooling
  - Keep the import path stable for uvicorn and tests

Notes/Constraints:
  - No configuration or IO should live here
"""

from tenant_gate.api.main import app

__all__ = ["app"]
