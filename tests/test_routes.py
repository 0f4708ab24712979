import hashlib
import re
from datetime import datetime, timezone
from urllib.parse import urlencode
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from payfast_gateway.api.v1.endpoints.payfast.router import (
    PayFastCallbacks,
    build_payfast_router,
)
from payfast_gateway.schemas.payfast import ITNPayload, SubscriptionOutcome
from payfast_gateway.services.payfast_service import PayFastService
from payfast_gateway.services.signature import build_param_string, generate_signature, pf_encode

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}

ITN_PAIRS = [
    ("m_payment_id", "pay-1"),
    ("pf_payment_id", "1089250"),
    ("payment_status", "COMPLETE"),
    ("item_name", "Widget Pro"),
    ("amount_gross", "100.00"),
    ("amount_fee", "-2.30"),
    ("amount_net", "97.70"),
    ("custom_str1", ""),
    ("name_first", "Ann"),
    ("email_address", "ann@example.com"),
    ("merchant_id", "10000100"),
    ("token", "dc0521d3-55fe-269b-fa00-b647310d760f"),
]


def _itn_body(pairs, passphrase):
    param_string = build_param_string(pairs)
    if passphrase:
        param_string += f"&passphrase={pf_encode(passphrase)}"
    signature = hashlib.md5(param_string.encode()).hexdigest()
    return urlencode(pairs + [("signature", signature)])


@pytest.fixture
def callbacks():
    return PayFastCallbacks(
        on_payment_update=AsyncMock(),
        on_cancel=AsyncMock(),
        on_pause=AsyncMock(),
        on_unpause=AsyncMock(),
        on_fetch=AsyncMock(),
    )


@pytest.fixture
def service(settings):
    return PayFastService(settings)


@pytest.fixture
def client(settings, callbacks, service):
    app = FastAPI()
    app.include_router(build_payfast_router(settings, callbacks, service))
    return TestClient(app)


# ──────────────────────────────────────────────────────────────────────
#  POST /initiate
# ──────────────────────────────────────────────────────────────────────


def test_initiate_returns_signed_sandbox_payment(client, settings):
    response = client.post(
        "/initiate",
        json={"amount": "100", "item_name": "Widget", "m_payment_id": "pay-1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["payfastUrl"] == "https://sandbox.payfast.co.za/eng/process"

    data = body["paymentData"]
    assert data["amount"] == "100.00"
    assert data["recurring_amount"] == "100.00"
    assert data["merchant_id"] == "10000100"
    assert data["notify_url"] == settings.NOTIFY_URL
    assert data["subscription_type"] == 1
    assert data["frequency"] == 3
    assert data["cycles"] == 0
    assert data["subscription_notify_email"] is True
    assert data["billing_date"] == datetime.now(timezone.utc).date().isoformat()
    assert "item_description" not in data
    assert re.fullmatch(r"[0-9a-f]{32}", data["signature"])

    unsigned = {k: v for k, v in data.items() if k != "signature"}
    assert data["signature"] == generate_signature(unsigned, settings.PAYFAST_PASSPHRASE)


def test_initiate_keeps_caller_subscription_fields(client):
    response = client.post(
        "/initiate",
        json={
            "amount": 49.5,
            "item_name": "Monthly plan",
            "m_payment_id": "sub-7",
            "billing_date": "2025-01-15",
            "recurring_amount": "39.99",
            "frequency": 6,
            "cycles": 12,
            "subscription_notify_buyer": False,
        },
    )

    data = response.json()["paymentData"]
    assert data["amount"] == "49.50"
    assert data["billing_date"] == "2025-01-15"
    assert data["recurring_amount"] == "39.99"
    assert data["frequency"] == 6
    assert data["cycles"] == 12
    assert data["subscription_notify_buyer"] is False


@pytest.mark.parametrize("missing", ["amount", "item_name", "m_payment_id"])
def test_initiate_missing_required_field_is_400(client, missing):
    payload = {"amount": "100", "item_name": "Widget", "m_payment_id": "pay-1"}
    payload.pop(missing)

    response = client.post("/initiate", json=payload)

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}


def test_initiate_non_numeric_amount_is_400(client):
    response = client.post(
        "/initiate", json={"amount": "ten", "item_name": "Widget", "m_payment_id": "pay-1"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid amount"


def test_initiate_accepts_numeric_merchant_reference(client, settings):
    response = client.post(
        "/initiate", json={"amount": 100, "item_name": "Widget", "m_payment_id": 12345}
    )

    assert response.status_code == 200
    data = response.json()["paymentData"]
    assert data["m_payment_id"] == 12345
    assert data["amount"] == "100.00"

    unsigned = {k: v for k, v in data.items() if k != "signature"}
    unsigned["m_payment_id"] = "12345"
    assert data["signature"] == generate_signature(unsigned, settings.PAYFAST_PASSPHRASE)


def test_initiate_malformed_json_is_400(client):
    response = client.post(
        "/initiate", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON body"}


@pytest.mark.parametrize(
    "payload, error",
    [
        (["amount", "100"], "Request body must be a JSON object"),
        (
            {"amount": "100", "item_name": "Widget", "m_payment_id": "pay-1", "cycles": "many"},
            "Invalid request body",
        ),
        (
            {"amount": "100", "item_name": {"name": "Widget"}, "m_payment_id": "pay-1"},
            "Invalid request body",
        ),
    ],
)
def test_initiate_wrongly_shaped_body_is_400(client, payload, error):
    response = client.post("/initiate", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == error
    assert "detail" not in body


def test_initiate_uses_live_url_in_production(settings, callbacks):
    live = settings.model_copy(update={"ENVIRONMENT": "production"})
    app = FastAPI()
    app.include_router(build_payfast_router(live, callbacks))

    response = TestClient(app).post(
        "/initiate", json={"amount": "1", "item_name": "Widget", "m_payment_id": "pay-1"}
    )

    assert response.json()["payfastUrl"] == "https://www.payfast.co.za/eng/process"


# ──────────────────────────────────────────────────────────────────────
#  POST /notify
# ──────────────────────────────────────────────────────────────────────


def test_notify_valid_itn_calls_payment_update(client, service, callbacks, settings):
    service.validate_itn = AsyncMock(return_value=True)

    response = client.post(
        "/notify", content=_itn_body(ITN_PAIRS, settings.PAYFAST_PASSPHRASE), headers=FORM_HEADERS
    )

    assert response.status_code == 200
    assert response.text == "OK"
    service.validate_itn.assert_awaited_once()
    callbacks.on_payment_update.assert_awaited_once()
    payload = callbacks.on_payment_update.await_args.args[0]
    assert isinstance(payload, ITNPayload)
    assert payload.m_payment_id == "pay-1"
    assert payload.payment_status == "COMPLETE"
    assert payload.custom_int1 == ""


def test_notify_bad_signature_is_400_and_skips_remote_validation(client, service, callbacks):
    service.validate_itn = AsyncMock(return_value=True)
    body = urlencode(ITN_PAIRS + [("signature", "0" * 32)])

    response = client.post("/notify", content=body, headers=FORM_HEADERS)

    assert response.status_code == 400
    assert response.text == "Invalid signature"
    service.validate_itn.assert_not_awaited()
    callbacks.on_payment_update.assert_not_awaited()


def test_notify_signature_depends_on_arrival_order(client, service, settings):
    service.validate_itn = AsyncMock(return_value=True)
    signed = _itn_body(ITN_PAIRS, settings.PAYFAST_PASSPHRASE)
    signature = signed.rsplit("signature=", 1)[1]
    reordered = urlencode(list(reversed(ITN_PAIRS)) + [("signature", signature)])

    response = client.post("/notify", content=reordered, headers=FORM_HEADERS)

    assert response.status_code == 400


def test_notify_non_utf8_body_is_invalid_signature(client, service, callbacks):
    service.validate_itn = AsyncMock(return_value=True)

    response = client.post(
        "/notify", content=b"m_payment_id=\xff\xfe&signature=abc", headers=FORM_HEADERS
    )

    assert response.status_code == 400
    assert response.text == "Invalid signature"
    service.validate_itn.assert_not_awaited()
    callbacks.on_payment_update.assert_not_awaited()


def test_notify_remote_validation_failure_is_400(client, service, callbacks, settings):
    service.validate_itn = AsyncMock(return_value=False)

    response = client.post(
        "/notify", content=_itn_body(ITN_PAIRS, settings.PAYFAST_PASSPHRASE), headers=FORM_HEADERS
    )

    assert response.status_code == 400
    assert response.text == "Validation with PayFast failed"
    callbacks.on_payment_update.assert_not_awaited()


def test_notify_callback_failure_is_500(client, service, callbacks, settings):
    service.validate_itn = AsyncMock(return_value=True)
    callbacks.on_payment_update.side_effect = RuntimeError("db down")

    response = client.post(
        "/notify", content=_itn_body(ITN_PAIRS, settings.PAYFAST_PASSPHRASE), headers=FORM_HEADERS
    )

    assert response.status_code == 500
    assert response.text == "Callback failed"


def test_notify_end_to_end_with_validate_endpoint(settings, callbacks):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="VALID")

    service = PayFastService(settings, transport=httpx.MockTransport(handler))
    app = FastAPI()
    app.include_router(build_payfast_router(settings, callbacks, service))

    response = TestClient(app).post(
        "/notify", content=_itn_body(ITN_PAIRS, settings.PAYFAST_PASSPHRASE), headers=FORM_HEADERS
    )

    assert response.status_code == 200
    assert len(seen) == 1
    assert seen[0].url.path == "/eng/query/validate"


# ──────────────────────────────────────────────────────────────────────
#  Subscription routes
# ──────────────────────────────────────────────────────────────────────


def test_cancel_with_empty_subscription_id_is_400(client, service):
    service.run_subscription_action = AsyncMock()

    response = client.post("/cancel/tok-1/")

    assert response.status_code == 400
    assert "Subscription ID" in response.json()["error"]
    service.run_subscription_action.assert_not_awaited()


def test_cancel_with_subscription_id_passes_it_through(client, service, callbacks):
    service.run_subscription_action = AsyncMock(
        return_value=SubscriptionOutcome(status_code=200, payload={"message": "done", "data": {}})
    )

    response = client.post("/cancel/tok-1/sub-9")

    assert response.status_code == 200
    assert response.json() == {"message": "done", "data": {}}
    service.run_subscription_action.assert_awaited_once_with(
        action="cancel",
        method="PUT",
        token="tok-1",
        subscription_id="sub-9",
        callback=callbacks.on_cancel,
    )


@pytest.mark.parametrize(
    "http_method, path, action, method, callback_name",
    [
        ("post", "/cancel/tok-1", "cancel", "PUT", "on_cancel"),
        ("post", "/pause/tok-1", "pause", "PUT", "on_pause"),
        ("post", "/unpause/tok-1", "unpause", "PUT", "on_unpause"),
        ("get", "/fetch/tok-1", "fetch", "GET", "on_fetch"),
    ],
)
def test_subscription_routes_relay_outcome(
    client, service, callbacks, http_method, path, action, method, callback_name
):
    service.run_subscription_action = AsyncMock(
        return_value=SubscriptionOutcome(
            status_code=404, payload={"error": "Subscription not found", "details": {}}
        )
    )

    response = getattr(client, http_method)(path)

    assert response.status_code == 404
    assert response.json()["error"] == "Subscription not found"
    service.run_subscription_action.assert_awaited_once_with(
        action=action,
        method=method,
        token="tok-1",
        subscription_id=None,
        callback=getattr(callbacks, callback_name),
    )


def test_subscription_route_unexpected_error_is_500(client, service):
    service.run_subscription_action = AsyncMock(side_effect=RuntimeError("boom"))

    response = client.post("/pause/tok-1")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "details": "boom"}


def test_subscription_callback_failure_surfaces_as_500(settings, callbacks):
    def handler(request: httpx.Request) -> httpx.Response:
        if "/subscriptions/" in str(request.url):
            return httpx.Response(200, json={"message": "paused"})
        return httpx.Response(200, text="<html></html>")

    callbacks.on_pause.side_effect = RuntimeError("db down")
    service = PayFastService(settings, transport=httpx.MockTransport(handler))
    app = FastAPI()
    app.include_router(build_payfast_router(settings, callbacks, service))

    response = TestClient(app).post("/pause/tok-1")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "details": "db down"}
