def test_health_sets_security_headers(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["Cache-Control"] == "no-store"


def test_messaging_errors_have_structured_body(client, make_user, auth_headers):
    user = make_user()
    resp = client.get("/api/messaging/conversations/987654321", headers=auth_headers(user))
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "NotFound", "message": "Conversation not found"}


def test_request_validation_keeps_422(client, make_user, auth_headers):
    user = make_user()
    resp = client.post(
        "/api/messaging/conversations/direct",
        json={"participantId": "not-a-number"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 422


def test_detail_is_included_when_present():
    import asyncio
    import json

    from starlette.requests import Request

    from app.core.errors import Conflict, messaging_error_handler

    request = Request({"type": "http", "method": "POST", "path": "/x", "headers": [], "query_string": b""})
    response = asyncio.run(messaging_error_handler(request, Conflict("Already a member", detail="user 7")))

    assert response.status_code == 409
    assert json.loads(response.body) == {
        "success": False, "error": "Conflict", "message": "Already a member", "detail": "user 7",
    }


def test_request_id_is_echoed_or_generated(client):
    echoed = client.get("/health", headers={"X-Request-ID": "mobile-123"})
    assert echoed.headers["X-Request-ID"] == "mobile-123"

    generated = client.get("/health")
    assert len(generated.headers["X-Request-ID"]) == 32


def test_push_logs_get_their_own_file(tmp_path):
    import logging

    from app.core.logging_config import PUSH_LOGGERS, setup_logging

    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    try:
        setup_logging(app_name="unit", enable_console=False, enable_file=True, log_dir=tmp_path)
        logging.getLogger(PUSH_LOGGERS[0]).warning("token rejected")
        logging.getLogger("app.services.conversations").warning("not a push record")
        for handler in root.handlers + logging.getLogger(PUSH_LOGGERS[0]).handlers:
            handler.flush()

        push_log = (tmp_path / "unit_push.log").read_text()
        assert "token rejected" in push_log
        assert "not a push record" not in push_log
        assert "not a push record" in (tmp_path / "unit.log").read_text()
    finally:
        for handler in root.handlers + logging.getLogger(PUSH_LOGGERS[0]).handlers:
            handler.close()
        for name in PUSH_LOGGERS:
            logging.getLogger(name).handlers.clear()
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])
