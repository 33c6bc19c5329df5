from __future__ import annotations

import hashlib
import hmac
import json
import time

import pytest
import stripe
from fastapi import status

from src.core.config import settings
from src.core.plans import PlanId


API_PREFIX = f"{settings.API_PREFIX}/v1"


def signed_headers(payload: bytes) -> dict:
    secret = settings.billing.stripe_webhook_secret.get_secret_value()
    timestamp = int(time.time())
    digest = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return {"Stripe-Signature": f"t={timestamp},v1={digest}", "Content-Type": "application/json"}


def checkout_payload(account_id, price_id="price_api") -> bytes:
    return json.dumps(
        {
            "id": "evt_1",
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_1",
                    "customer": "cus_42",
                    "subscription": "sub_42",
                    "client_reference_id": str(account_id),
                    "metadata": {"account_id": str(account_id), "price_id": price_id},
                }
            },
        }
    ).encode("utf-8")


@pytest.mark.asyncio
async def test_webhook_upgrade_enables_api_generation(
    client, make_account, load_account, auth_header
):
    account = await make_account(PlanId.FREE)
    payload = checkout_payload(account.id)

    response = await client.post(
        f"{API_PREFIX}/billing/webhook", content=payload, headers=signed_headers(payload)
    )

    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json() == {"received": True, "status": "processed", "plan": "api_metered"}
    stored = await load_account(account.id)
    assert stored.plan == "api_metered"
    assert stored.api_calls_limit == 100
    assert stored.stripe_customer_id == "cus_42"

    me = await client.get(f"{API_PREFIX}/users/me", headers=auth_header(account.id))
    assert me.json()["usage"]["api"]["allowed"] is True


@pytest.mark.asyncio
async def test_webhook_replay_is_acknowledged_without_change(client, make_account, load_account):
    account = await make_account(PlanId.FREE)
    payload = checkout_payload(account.id)

    await client.post(f"{API_PREFIX}/billing/webhook", content=payload, headers=signed_headers(payload))
    replay = await client.post(
        f"{API_PREFIX}/billing/webhook", content=payload, headers=signed_headers(payload)
    )

    assert replay.status_code == status.HTTP_200_OK
    assert replay.json()["status"] == "duplicate"
    assert (await load_account(account.id)).api_calls_used == 0


@pytest.mark.asyncio
async def test_webhook_with_bad_signature_is_rejected(client, make_account, load_account):
    account = await make_account(PlanId.FREE)
    payload = checkout_payload(account.id)
    headers = signed_headers(payload)
    headers["Stripe-Signature"] = headers["Stripe-Signature"][:-4] + "0000"

    response = await client.post(f"{API_PREFIX}/billing/webhook", content=payload, headers=headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Webhook signature verification failed"
    assert (await load_account(account.id)).plan == "free"


@pytest.mark.asyncio
async def test_webhook_without_signature_is_rejected(client):
    response = await client.post(f"{API_PREFIX}/billing/webhook", content=b"{}")

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_webhook_with_unmapped_price_is_acknowledged(client, make_account, load_account):
    account = await make_account(PlanId.FREE)
    payload = checkout_payload(account.id, price_id="price_mystery")

    response = await client.post(
        f"{API_PREFIX}/billing/webhook", content=payload, headers=signed_headers(payload)
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "unmapped_plan"
    assert (await load_account(account.id)).plan == "free"


@pytest.mark.asyncio
async def test_webhook_cancellation_reverts_plan(client, make_account, load_account):
    account = await make_account(PlanId.BUNDLE, stripe_subscription_id="sub_gone")
    payload = json.dumps(
        {
            "id": "evt_2",
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": "sub_gone", "status": "canceled"}},
        }
    ).encode("utf-8")

    response = await client.post(
        f"{API_PREFIX}/billing/webhook", content=payload, headers=signed_headers(payload)
    )

    assert response.json()["status"] == "processed"
    stored = await load_account(account.id)
    assert (stored.plan, stored.is_pro, stored.api_calls_limit) == ("free", False, 0)


@pytest.mark.asyncio
async def test_checkout_session_carries_account_metadata(
    client, make_account, auth_header, monkeypatch
):
    account = await make_account(PlanId.FREE, email="octo@example.com")
    captured = {}

    def _create(**kwargs):
        captured.update(kwargs)
        return {"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)

    response = await client.post(
        f"{API_PREFIX}/billing/checkout",
        json={"plan": "bundle"},
        headers=auth_header(account.id),
    )

    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json() == {
        "url": "https://checkout.stripe.test/cs_test_1",
        "session_id": "cs_test_1",
    }
    assert captured["metadata"] == {
        "account_id": str(account.id),
        "price_id": "price_bundle",
        "plan": "bundle",
    }
    assert captured["client_reference_id"] == str(account.id)
    assert captured["customer_email"] == "octo@example.com"
    assert captured["line_items"] == [{"price": "price_bundle", "quantity": 1}]


@pytest.mark.asyncio
async def test_checkout_rejects_free_and_unpriced_plans(
    client, make_account, auth_header, monkeypatch
):
    account = await make_account(PlanId.FREE)
    monkeypatch.setattr(settings.billing, "price_plans", {"price_bundle": PlanId.BUNDLE})

    free = await client.post(
        f"{API_PREFIX}/billing/checkout", json={"plan": "free"}, headers=auth_header(account.id)
    )
    unpriced = await client.post(
        f"{API_PREFIX}/billing/checkout",
        json={"plan": "api_metered"},
        headers=auth_header(account.id),
    )

    assert free.status_code == status.HTTP_400_BAD_REQUEST
    assert unpriced.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_checkout_provider_error_is_opaque(client, make_account, auth_header, monkeypatch):
    account = await make_account(PlanId.FREE)

    def _fail(**kwargs):
        raise stripe.StripeError("No such price: price_bundle")

    monkeypatch.setattr(stripe.checkout.Session, "create", _fail)

    response = await client.post(
        f"{API_PREFIX}/billing/checkout", json={"plan": "bundle"}, headers=auth_header(account.id)
    )

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert "price_bundle" not in response.text
