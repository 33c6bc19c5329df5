"""Plan transitions driven by Stripe webhook events.

Supported events:

- ``checkout.session.completed``: move the account to the plan mapped
  from the purchased price, restart its API window at zero and store the
  customer and subscription references.
- ``customer.subscription.deleted``: revert to ``free``.
- ``customer.subscription.updated``: revert to ``free`` when the status is
  past due, canceled or unpaid; other statuses leave the account alone.

Events are matched to accounts, never used to create them. Applied checkout
sessions are recorded; a redelivered session, a checkout for a subscription
already cancelled on the account, or one created before the last applied
checkout changes nothing.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings
from src.core.exceptions import UnmappedPlanIdentifier, WebhookVerificationFailure
from src.core.plans import PlanId, PlanTable
from src.core.timeutil import utcnow
from src.db.models.account import Account
from src.repositories.account_repo import AccountRepo
from src.repositories.checkout_repo import CheckoutRepo

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"

LAPSED_STATUSES = frozenset({"past_due", "canceled", "unpaid", "incomplete_expired"})


def _from_timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


@dataclass(frozen=True)
class TransitionResult:
    status: str
    account_id: Optional[UUID] = None
    plan: Optional[PlanId] = None


def verify_webhook(
    payload: bytes, signature: Optional[str], secret: str, tolerance: int = 300
) -> Dict[str, Any]:
    """Check the ``Stripe-Signature`` header and return the decoded event."""

    if not signature:
        raise WebhookVerificationFailure("Missing webhook signature")
    if not secret:
        logger.error("Webhook secret is not configured; rejecting event")
        raise WebhookVerificationFailure()
    try:
        body = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(body, signature, secret, tolerance)
        event = json.loads(body)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Webhook signature verification failed: %s", exc)
        raise WebhookVerificationFailure() from exc
    except (UnicodeDecodeError, ValueError) as exc:
        raise WebhookVerificationFailure("Invalid webhook payload") from exc
    if not isinstance(event, dict):
        raise WebhookVerificationFailure("Invalid webhook payload")
    return event


class PlanTransitionHandler:
    """Applies verified payment events to the account store."""

    def __init__(
        self,
        session: AsyncSession,
        plan_table: PlanTable,
        price_plans: Mapping[str, PlanId],
    ) -> None:
        self.accounts = AccountRepo(session)
        self.checkouts = CheckoutRepo(session)
        self.plan_table = plan_table
        self.price_plans = price_plans

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: Settings) -> "PlanTransitionHandler":
        return cls(session, settings.plans, settings.billing.price_plans)

    async def handle_event(self, event: Mapping[str, Any]) -> TransitionResult:
        event_type = event.get("type", "")
        data_object = (event.get("data") or {}).get("object") or {}

        if event_type == CHECKOUT_COMPLETED:
            return await self._checkout_completed(data_object)
        if event_type == SUBSCRIPTION_DELETED:
            return await self._subscription_lapsed(data_object)
        if event_type == SUBSCRIPTION_UPDATED:
            status = data_object.get("status")
            if status in LAPSED_STATUSES:
                return await self._subscription_lapsed(data_object)
            logger.debug(
                "Subscription %s updated with status %s; no change",
                data_object.get("id"),
                status,
            )
            return TransitionResult(status="ignored")

        logger.debug("Unhandled webhook event type: %s", event_type)
        return TransitionResult(status="ignored")

    def plan_for_price(self, price_id: Optional[str]) -> PlanId:
        plan = self.price_plans.get(price_id or "")
        if plan is None or plan is PlanId.FREE:
            raise UnmappedPlanIdentifier(f"Unknown price identifier: {price_id!r}")
        return plan

    async def _resolve_checkout_account(self, session_obj: Mapping[str, Any]) -> Optional[Account]:
        metadata = session_obj.get("metadata") or {}
        raw_id = metadata.get("account_id") or session_obj.get("client_reference_id")
        if raw_id:
            try:
                account = await self.accounts.get(UUID(str(raw_id)))
            except ValueError:
                account = None
            if account is not None:
                return account
        customer_id = session_obj.get("customer")
        if customer_id:
            return await self.accounts.get_by_customer_id(customer_id)
        return None

    @staticmethod
    def _checkout_price(session_obj: Mapping[str, Any]) -> Optional[str]:
        metadata = session_obj.get("metadata") or {}
        if metadata.get("price_id"):
            return metadata["price_id"]
        items = (session_obj.get("line_items") or {}).get("data") or []
        if items:
            return (items[0].get("price") or {}).get("id")
        return None

    async def _checkout_completed(self, session_obj: Mapping[str, Any]) -> TransitionResult:
        plan = self.plan_for_price(self._checkout_price(session_obj))
        account = await self._resolve_checkout_account(session_obj)
        if account is None:
            logger.warning(
                "Checkout %s matched no account (customer=%s); dropping",
                session_obj.get("id"),
                session_obj.get("customer"),
            )
            return TransitionResult(status="ignored")

        session_id = session_obj.get("id")
        subscription_id = session_obj.get("subscription")
        created_at = _from_timestamp(session_obj.get("created"))

        if subscription_id and account.stripe_subscription_id == subscription_id:
            if account.canceled_at is not None:
                logger.warning(
                    "Checkout %s refers to cancelled subscription %s on %s; dropping",
                    session_id,
                    subscription_id,
                    account.id,
                )
                return TransitionResult(status="stale", account_id=account.id)
            if account.plan == plan.value:
                logger.info(
                    "Checkout for subscription %s already applied to %s",
                    subscription_id,
                    account.id,
                )
                return TransitionResult(status="duplicate", account_id=account.id, plan=plan)

        if created_at is not None:
            latest = await self.checkouts.latest_created_at(account.id)
            if latest is not None and created_at < latest:
                logger.warning(
                    "Checkout %s on %s predates the applied checkout; dropping",
                    session_id,
                    account.id,
                )
                return TransitionResult(status="stale", account_id=account.id)

        if session_id and not await self.checkouts.claim(
            session_id,
            account.id,
            subscription_id=subscription_id,
            plan=plan,
            created_at=created_at,
        ):
            logger.info("Checkout %s already applied to %s", session_id, account.id)
            return TransitionResult(status="duplicate", account_id=account.id, plan=plan)

        await self.accounts.apply_paid_plan(
            account.id,
            plan,
            self.plan_table[plan],
            customer_id=session_obj.get("customer"),
            subscription_id=subscription_id,
            now=utcnow(),
        )
        logger.info("Account %s upgraded to %s", account.id, plan.value)
        return TransitionResult(status="processed", account_id=account.id, plan=plan)

    async def _subscription_lapsed(self, subscription: Mapping[str, Any]) -> TransitionResult:
        subscription_id = subscription.get("id")
        if not subscription_id:
            return TransitionResult(status="ignored")
        updated = await self.accounts.revert_to_free(
            subscription_id, self.plan_table[PlanId.FREE], now=utcnow()
        )
        if not updated:
            logger.warning("Subscription %s matched no account; dropping", subscription_id)
            return TransitionResult(status="ignored")
        logger.info(
            "Subscription %s lapsed (%s); reverted to free",
            subscription_id,
            subscription.get("status", "deleted"),
        )
        return TransitionResult(status="processed", plan=PlanId.FREE)
