"""
Name: Observability Tests

Responsibilities:
  - JSON log formatter: request context enrichment and secret redaction
  - Prometheus helpers: endpoint normalization, status buckets, decisions
  - RequestContextMiddleware: X-Request-Id generation/propagation
"""

import json
import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tenant_gate.context import (
    clear_context,
    get_context_dict,
    set_identity_context,
    set_request_context,
)
from tenant_gate.crosscutting.logger import JSONFormatter
from tenant_gate.crosscutting.metrics import (
    _normalize_endpoint,
    _status_bucket,
    get_metrics_response,
    record_gate_decision,
)
from tenant_gate.crosscutting.middleware import RequestContextMiddleware

pytestmark = pytest.mark.unit


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="tenant-gate",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Decisión del gate",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_context()
    yield
    clear_context()


# =============================================================================
# Logging
# =============================================================================


def test_formatter_includes_request_and_identity_context():
    set_request_context(request_id="req-1", method="GET", path="/admin")
    set_identity_context(user_id="u-1", role="ADMIN", tenant_id="t-1")

    payload = json.loads(JSONFormatter().format(_record(decision="allow")))

    assert payload["message"] == "Decisión del gate"
    assert payload["request_id"] == "req-1"
    assert payload["path"] == "/admin"
    assert payload["user_id"] == "u-1"
    assert payload["tenant_id"] == "t-1"
    assert payload["decision"] == "allow"


def test_formatter_redacts_tokens_and_cookies():
    payload = json.loads(
        JSONFormatter().format(
            _record(
                access_token="eyJ.secret.value",
                cookies={"demo-session": "abc"},
                headers={"Authorization": "Bearer x", "accept": "json"},
            )
        )
    )

    assert payload["access_token"] == "***REDACTADO***"
    assert payload["cookies"] == "***REDACTADO***"
    assert payload["headers"]["Authorization"] == "***REDACTADO***"
    assert payload["headers"]["accept"] == "json"


def test_context_omits_empty_values():
    set_request_context(request_id="req-2", method="POST", path="/x")

    context = get_context_dict()

    assert context == {"request_id": "req-2", "method": "POST", "path": "/x"}


# =============================================================================
# Metrics
# =============================================================================


def test_endpoint_normalization():
    assert _normalize_endpoint("/admin/orders/42") == "/admin/orders/{id}"
    assert (
        _normalize_endpoint("/admin/tenants/3f2b8c1e-1111-4222-8333-444455556666")
        == "/admin/tenants/{id}"
    )


@pytest.mark.parametrize(
    "code, bucket", [(200, "2xx"), (307, "3xx"), (404, "4xx"), (503, "5xx"), (99, "other")]
)
def test_status_buckets(code, bucket):
    assert _status_bucket(code) == bucket


def test_gate_decisions_are_exported():
    record_gate_decision("redirect", "", "admin")

    body, content_type = get_metrics_response()

    assert content_type.startswith("text/plain")
    assert (
        'gate_decisions_total{outcome="redirect",reason="none",route_class="admin"}'
        in body.decode("utf-8")
    )


# =============================================================================
# Request context middleware
# =============================================================================


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/ping")
    def ping():
        return {"context": get_context_dict()}

    return app


def test_request_id_is_generated():
    response = TestClient(_app()).get("/ping")

    request_id = response.headers["x-request-id"]
    assert len(request_id) == 36
    assert response.json()["context"]["request_id"] == request_id


def test_incoming_request_id_is_kept():
    response = TestClient(_app()).get("/ping", headers={"X-Request-Id": "abc-123"})

    assert response.headers["x-request-id"] == "abc-123"
    assert response.json()["context"]["method"] == "GET"


def test_oversized_request_id_is_replaced():
    response = TestClient(_app()).get("/ping", headers={"X-Request-Id": "x" * 200})

    assert response.headers["x-request-id"] != "x" * 200


def test_request_metrics_use_route_template_not_raw_path():
    app = _app()

    @app.get("/items/{item_id}")
    def item(item_id: str):
        return {"id": item_id}

    client = TestClient(app)
    client.get("/items/sku-a91f")
    client.get("/random-a91f-path")

    body = get_metrics_response()[0].decode("utf-8")
    assert 'endpoint="/items/{item_id}"' in body
    assert 'endpoint="unmatched"' in body
    assert "sku-a91f" not in body
    assert "random-a91f" not in body
