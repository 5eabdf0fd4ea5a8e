from types import SimpleNamespace

from starlette.requests import Request
from starlette.responses import Response

from app.stockflow.middleware.observability import build_request_log_payload


def test_build_request_log_payload():
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/stockflow/transfers/abc/actions",
        "headers": [],
        "route": SimpleNamespace(path="/stockflow/transfers/{transfer_id}/actions"),
    }
    request = Request(scope)
    request.state.trace_id = "trace-1"
    request.state.actor_id = "manager-1"
    request.state.error_code = "INVALID_TRANSITION"
    response = Response(status_code=409)

    payload = build_request_log_payload(
        request=request,
        response=response,
        latency_ms=12.3456,
        db_time_ms=4.5678,
    )

    assert payload["event"] == "http_request"
    assert payload["trace_id"] == "trace-1"
    assert payload["actor_id"] == "manager-1"
    assert payload["route"] == "/stockflow/transfers/{transfer_id}/actions"
    assert payload["method"] == "POST"
    assert payload["status_code"] == 409
    assert payload["error_code"] == "INVALID_TRANSITION"
    assert payload["latency_ms"] == 12.35
    assert payload["db_time_ms"] == 4.57


def test_payload_without_response_reports_500():
    request = Request({"type": "http", "method": "GET", "path": "/health", "headers": []})

    payload = build_request_log_payload(request=request, response=None, latency_ms=1.0, db_time_ms=None)

    assert payload["status_code"] == 500
    assert payload["route"] == "/health"
    assert payload["actor_id"] is None
    assert payload["db_time_ms"] is None
