"""
Tests for parcel_server/core/middleware.py

Covers:
- CorrelationIdMiddleware: correlation ID propagation
- RequestLoggingMiddleware: request logging with e-mail masking
- SecurityHeadersMiddleware
- Exception handlers: AppException, request validation and generic Exception
"""
import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from parcel_server.core.middleware import (
    CorrelationIdMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    setup_exception_handlers,
)
from parcel_server.core.exceptions import ErrorCode, ParcelNotFoundError


class _Body(BaseModel):
    amount: int


def _build_app(*middlewares: tuple) -> FastAPI:
    """Minimal app with the exception handlers and the given middleware"""
    app = FastAPI()

    @app.get("/test")
    async def hello(request: Request) -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get("/missing")
    async def missing():
        raise ParcelNotFoundError("abc")

    @app.get("/error")
    async def error():
        raise ValueError("secret internals")

    @app.post("/body")
    async def body(data: _Body):
        return {"amount": data.amount}

    setup_exception_handlers(app)
    for mw_class, kwargs in middlewares:
        app.add_middleware(mw_class, **kwargs)
    return app


class TestCorrelationIdMiddleware:

    @pytest.mark.unit
    def test_generates_correlation_id_when_missing(self) -> None:
        app = _build_app((CorrelationIdMiddleware, {}))
        with TestClient(app) as client:
            response = client.get("/test")
            assert response.status_code == 200
            assert len(response.headers["x-correlation-id"]) == 8

    @pytest.mark.unit
    def test_preserves_existing_correlation_id(self) -> None:
        app = _build_app((CorrelationIdMiddleware, {}))
        with TestClient(app) as client:
            response = client.get("/test", headers={"X-Correlation-ID": "my-request-id"})
            assert response.headers["x-correlation-id"] == "my-request-id"

    @pytest.mark.unit
    def test_correlation_id_unique_per_request(self) -> None:
        app = _build_app((CorrelationIdMiddleware, {}))
        with TestClient(app) as client:
            first = client.get("/test").headers["x-correlation-id"]
            second = client.get("/test").headers["x-correlation-id"]
            assert first != second


class TestRequestLoggingMiddleware:

    @pytest.mark.unit
    def test_email_in_query_is_masked(self, caplog) -> None:
        app = _build_app((RequestLoggingMiddleware, {}))
        with caplog.at_level(logging.INFO, logger="parcel_server.core.middleware"):
            with TestClient(app) as client:
                client.get("/test", params={"email": "alice@example.com"})

        started = [r for r in caplog.records if r.getMessage().startswith("Request started")]
        assert started
        assert started[0].extra_data["query_params"] == {"email": "a***@example.com"}
        assert "alice@example.com" not in caplog.text

    @pytest.mark.unit
    def test_exception_in_handler_is_500(self) -> None:
        app = _build_app((RequestLoggingMiddleware, {}))
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/error")
            assert response.status_code == 500


class TestSecurityHeadersMiddleware:

    @pytest.mark.unit
    def test_production_headers(self) -> None:
        app = _build_app((SecurityHeadersMiddleware, {"debug": False}))
        with TestClient(app) as client:
            response = client.get("/test")
            assert response.headers["x-content-type-options"] == "nosniff"
            assert "max-age" in response.headers["strict-transport-security"]

    @pytest.mark.unit
    def test_debug_skips_hsts(self) -> None:
        app = _build_app((SecurityHeadersMiddleware, {"debug": True}))
        with TestClient(app) as client:
            response = client.get("/test")
            assert response.headers["x-content-type-options"] == "nosniff"
            assert "strict-transport-security" not in response.headers


class TestExceptionHandlers:

    @pytest.mark.unit
    def test_app_exception_rendered(self) -> None:
        app = _build_app()
        with TestClient(app) as client:
            response = client.get("/missing")
            assert response.status_code == 404
            assert response.json() == {
                "error": {
                    "code": ErrorCode.PARCEL_NOT_FOUND.value,
                    "message": "Parcel not found",
                    "details": {"resource": "Parcel", "identifier": "abc"},
                }
            }

    @pytest.mark.unit
    def test_request_validation_is_400(self) -> None:
        app = _build_app()
        with TestClient(app) as client:
            response = client.post("/body", json={"amount": "many"})
            assert response.status_code == 400
            error = response.json()["error"]
            assert error["code"] == ErrorCode.VALIDATION_ERROR.value
            assert error["details"]["errors"][0]["field"] == "amount"

    @pytest.mark.unit
    def test_unhandled_exception_does_not_leak(self) -> None:
        app = _build_app()
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/error")
            assert response.status_code == 500
            assert "secret internals" not in response.text
            assert response.json()["error"]["code"] == ErrorCode.INTERNAL_ERROR.value
