"""Endpoints for plan checkout and payment webhooks."""
from __future__ import annotations

import logging

import stripe
from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_current_account, get_db_session
from src.core.config import settings
from src.core.exceptions import AppError, InvalidRequest, UnmappedPlanIdentifier
from src.core.plans import PlanId
from src.db.models.account import Account
from src.schemas.billing import CheckoutCreate, CheckoutRead, WebhookAck
from src.services.limits import check_rate_limit
from src.services.plan_transitions import PlanTransitionHandler, verify_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


class CheckoutUnavailable(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "checkout_unavailable"
    message = "Failed to create checkout session"


@router.post("/checkout", response_model=CheckoutRead)
async def create_checkout(
    body: CheckoutCreate,
    account: Account = Depends(get_current_account),
):
    await check_rate_limit(str(account.id))

    if body.plan is PlanId.FREE:
        raise InvalidRequest("The free plan does not need a checkout")
    price_id = settings.billing.price_for(body.plan)
    if price_id is None:
        raise InvalidRequest(f"Plan {body.plan.value} is not available for purchase")

    params = {
        "api_key": settings.billing.stripe_secret_key.get_secret_value(),
        "mode": "subscription",
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": settings.billing.checkout_success_url,
        "cancel_url": settings.billing.checkout_cancel_url,
        "client_reference_id": str(account.id),
        "metadata": {
            "account_id": str(account.id),
            "price_id": price_id,
            "plan": body.plan.value,
        },
    }
    if account.stripe_customer_id:
        params["customer"] = account.stripe_customer_id
    elif account.email:
        params["customer_email"] = account.email

    try:
        session = await run_in_threadpool(stripe.checkout.Session.create, **params)
    except stripe.StripeError as exc:
        logger.error("Checkout session for %s failed: %s", account.id, exc)
        raise CheckoutUnavailable() from exc

    logger.info("Checkout session %s created for %s (%s)", session["id"], account.id, body.plan.value)
    return CheckoutRead(url=session["url"], session_id=session["id"])


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db_session),
):
    payload = await request.body()
    event = verify_webhook(
        payload,
        stripe_signature,
        settings.billing.stripe_webhook_secret.get_secret_value(),
        settings.billing.webhook_tolerance_seconds,
    )

    handler = PlanTransitionHandler.from_settings(db, settings)
    try:
        result = await handler.handle_event(event)
    except UnmappedPlanIdentifier as exc:
        # Acknowledge so the provider stops retrying; the mapping needs fixing.
        logger.error("Webhook %s not applied: %s", event.get("id"), exc.message)
        return WebhookAck(status="unmapped_plan")

    return WebhookAck(
        status=result.status,
        plan=result.plan.value if result.plan is not None else None,
    )
