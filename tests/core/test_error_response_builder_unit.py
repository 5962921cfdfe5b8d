import json

from core.error_handler import _build_error_response


def test_build_error_response_production_hides_optional_fields():
    resp = _build_error_response(
        correlation_id="cid",
        error_type="internal_server_error",
        message="An internal error occurred",
        environment="production",
        code="INTERNAL_ERROR",
        details={"debug": True},
        traceback_str="trace",
        exception_type="ValueError",
        validation_errors={"x": 1},
        status_code=500,
    )
    # The JSONResponse produced here stores the rendered bytes in `body`
    body = json.loads(resp.body)

    assert resp.status_code == 500
    assert resp.headers["X-Correlation-ID"] == "cid"
    # In production only correlation_id, type and code are present in error
    assert body["error"] == {
        "correlation_id": "cid",
        "type": "internal_server_error",
        "code": "INTERNAL_ERROR",
    }
    assert body["success"] is False
    assert body["data"] is None


def test_build_error_response_development_includes_optional_fields():
    resp = _build_error_response(
        correlation_id="cid",
        error_type="internal_server_error",
        message="An internal error occurred",
        environment="development",
        details={"debug": True},
        traceback_str="trace",
        exception_type="ValueError",
        validation_errors={"x": 1},
        status_code=500,
    )
    body = json.loads(resp.body)

    assert resp.status_code == 500
    # Development environment exposes additional fields
    assert body["error"]["details"] == {"debug": True}
    assert "traceback" in body["error"]
    assert body["error"]["exception_type"] == "ValueError"
    assert body["error"]["validation_errors"] == {"x": 1}
    assert "code" not in body["error"]
