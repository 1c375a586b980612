"""
Tests for the API error shape.

Verifies:
- ApiError and EntitlementError subclasses render the same envelope
- Engine errors map to their HTTP status; unmapped ones are 500
- Framework 404/405 and request validation use the envelope too
- Unhandled exceptions never leak details, and the correlation id is echoed
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from vorniq.entitlements.catalog import get_service_by_key
from vorniq.entitlements.errors import (
    EntitlementError,
    EntitlementLookupFailedError,
    IdentityUnavailableError,
    MalformedServiceIdListError,
    UnknownServiceError,
)
from vorniq.platform.errors import (
    CorrelationIdMiddleware,
    PaymentRequiredError,
    ValidationError,
    entitlement_error_status,
    register_error_handlers,
)


class _Order(BaseModel):
    quantity: int


def _build_app() -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)
    app.add_middleware(CorrelationIdMiddleware)

    @app.get("/services/{key}")
    def service(key: str):
        return {"id": get_service_by_key(key).id}

    @app.get("/identity")
    def identity():
        raise IdentityUnavailableError("auth server down")

    @app.get("/lookup")
    def lookup():
        raise EntitlementLookupFailedError("u1", "connection refused")

    @app.get("/ids")
    def ids():
        raise MalformedServiceIdListError("1,x", ["x"])

    @app.get("/engine")
    def engine():
        raise EntitlementError("unclassified")

    @app.get("/bad-request")
    def bad_request():
        raise ValidationError("Unknown service id", details={"service": 42})

    @app.get("/locked")
    def locked():
        raise PaymentRequiredError("Unlock CRM", details={"preview_route": "/preview/crm"})

    @app.post("/orders")
    def orders(order: _Order):
        return {"quantity": order.quantity}

    @app.get("/crash")
    def crash():
        raise RuntimeError("database password is hunter2")

    return app


@pytest.fixture
def client():
    with TestClient(_build_app(), raise_server_exceptions=False) as client:
        yield client


def _error(response):
    return response.json()["error"]


class TestEntitlementErrors:
    def test_unknown_service_is_404(self, client):
        response = client.get("/services/payroll")
        assert response.status_code == 404
        assert _error(response) == {
            "code": "UNKNOWN_SERVICE",
            "message": "Unknown service: 'payroll'",
            "details": {"service": "payroll"},
        }

    def test_known_service_passes(self, client):
        assert client.get("/services/crm").json() == {"id": 1}

    def test_identity_unavailable_is_503(self, client):
        response = client.get("/identity")
        assert response.status_code == 503
        assert _error(response)["code"] == "IDENTITY_UNAVAILABLE"

    def test_lookup_failure_carries_owner_key(self, client):
        response = client.get("/lookup")
        assert response.status_code == 503
        error = _error(response)
        assert error["code"] == "ENTITLEMENT_LOOKUP_FAILED"
        assert error["details"] == {"owner_key": "u1"}

    def test_malformed_ids_is_400(self, client):
        response = client.get("/ids")
        assert response.status_code == 400
        assert _error(response)["details"] == {"bad_tokens": ["x"]}

    def test_unmapped_entitlement_error_is_500(self, client):
        response = client.get("/engine")
        assert response.status_code == 500
        assert _error(response) == {"code": "ENTITLEMENT_ERROR", "message": "unclassified", "details": {}}

    def test_status_follows_subclass(self):
        class RetiredServiceError(UnknownServiceError):
            pass

        assert entitlement_error_status(RetiredServiceError("legacy")) == 404
        assert entitlement_error_status(EntitlementError("x")) == 500


class TestApiErrors:
    def test_validation_error(self, client):
        response = client.get("/bad-request")
        assert response.status_code == 400
        assert _error(response) == {
            "code": "VALIDATION_ERROR",
            "message": "Unknown service id",
            "details": {"service": 42},
        }

    def test_payment_required(self, client):
        response = client.get("/locked")
        assert response.status_code == 402
        assert _error(response)["details"]["preview_route"] == "/preview/crm"


class TestFrameworkErrors:
    def test_unknown_route(self, client):
        response = client.get("/nowhere")
        assert response.status_code == 404
        assert _error(response)["code"] == "NOT_FOUND"

    def test_wrong_method_keeps_allow_header(self, client):
        response = client.delete("/identity")
        assert response.status_code == 405
        assert _error(response)["code"] == "METHOD_NOT_ALLOWED"
        assert "GET" in response.headers["allow"]

    def test_request_validation(self, client):
        response = client.post("/orders", json={"quantity": "lots"})
        assert response.status_code == 422
        error = _error(response)
        assert error["code"] == "INVALID_REQUEST"
        assert error["details"]["fields"] == ["body.quantity"]


class TestUnhandledAndCorrelation:
    def test_unhandled_exception_is_opaque(self, client):
        response = client.get("/crash", headers={"X-Correlation-ID": "req-7"})
        assert response.status_code == 500
        error = _error(response)
        assert error["code"] == "INTERNAL_ERROR"
        assert "hunter2" not in response.text
        assert error["details"] == {"correlation_id": "req-7"}

    def test_correlation_id_echoed_on_errors(self, client):
        response = client.get("/identity", headers={"X-Correlation-ID": "req-42"})
        assert response.headers["X-Correlation-ID"] == "req-42"

    def test_correlation_id_generated_when_absent(self, client):
        response = client.get("/services/crm")
        assert len(response.headers["X-Correlation-ID"]) == 32
