import time

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.middleware.request_context import (
    REQUEST_ID_PREFIX,
    RequestContext,
    RequestContextMiddleware,
    bind_thread_id,
    generate_request_id,
    get_request_context,
    get_request_id,
    request_scope,
)
from core.constants import Settings


def test_request_context_dataclass() -> None:
    ctx = RequestContext(request_id="123")
    assert ctx.request_id == "123"
    assert ctx.elapsed_ms >= 0
    assert "request_id" in ctx.to_log_context()

    time.sleep(0.01)
    assert ctx.elapsed_ms > 0


def test_log_context_omits_unset_fields() -> None:
    ctx = RequestContext(request_id="r", path="/api/chat", method="POST", thread_id="thread_1")
    log_ctx = ctx.to_log_context()
    assert log_ctx["thread_id"] == "thread_1"
    assert log_ctx["path"] == "/api/chat"
    assert "client_ip" not in log_ctx
    assert "backend" not in log_ctx


def test_generate_request_id() -> None:
    rid1 = generate_request_id()
    rid2 = generate_request_id()
    assert rid1.startswith(REQUEST_ID_PREFIX)
    assert len(rid1) == len(REQUEST_ID_PREFIX) + 16
    assert rid1 != rid2


def test_request_scope_restores_previous() -> None:
    outer = RequestContext(request_id="outer")
    inner = RequestContext(request_id="inner")

    with request_scope(outer):
        with request_scope(inner):
            assert get_request_id() == "inner"
        assert get_request_context() is outer

    assert get_request_context() is None
    assert get_request_id() is None


def test_bind_thread_id() -> None:
    ctx = RequestContext(request_id="test")

    with request_scope(ctx):
        bind_thread_id("thread_abc")
        bind_thread_id(None)

    assert ctx.thread_id == "thread_abc"


def test_bind_thread_id_outside_request_is_noop() -> None:
    bind_thread_id("ignored")
    assert get_request_context() is None


@pytest.fixture
def app() -> FastAPI:
    application = FastAPI()
    application.add_middleware(RequestContextMiddleware)

    @application.get("/whoami")
    def whoami() -> dict[str, str | None]:
        ctx = get_request_context()
        assert ctx is not None
        return {"request_id": ctx.request_id, "client_ip": ctx.client_ip, "backend": ctx.backend}

    return application


def test_middleware_generates_id(app: FastAPI) -> None:
    response = TestClient(app).get("/whoami")

    request_id = response.json()["request_id"]
    assert request_id.startswith(REQUEST_ID_PREFIX)
    assert response.headers["X-Request-ID"] == request_id
    assert response.headers["X-Response-Time"].endswith("ms")


def test_middleware_reuses_inbound_id_and_forwarded_ip(app: FastAPI) -> None:
    response = TestClient(app).get(
        "/whoami", headers={"X-Request-ID": "req_upstream", "X-Forwarded-For": "10.0.0.1, 172.16.0.1"}
    )

    assert response.json() == {"request_id": "req_upstream", "client_ip": "10.0.0.1", "backend": None}
    assert response.headers["X-Request-ID"] == "req_upstream"


def test_middleware_records_active_backend(app: FastAPI) -> None:
    app.state.settings = Settings(chat_backend="agent_run")

    response = TestClient(app).get("/whoami")

    assert response.json()["backend"] == "agent_run"
