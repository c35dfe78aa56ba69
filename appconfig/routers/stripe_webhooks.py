from __future__ import annotations

import json
import logging
from typing import Any, Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from appconfig.config import settings
from appconfig.db.deps import get_session
from appconfig.db.enums import SubscriptionStatusEnum
from appconfig.db.models import utcnow
from appconfig.db.repositories.billing import SubscriptionsRepository
from appconfig.services import billing as billing_service

router = APIRouter(prefix="/stripe", tags=["stripe"])
logger = logging.getLogger(__name__)


def _invoice_subscription_id(invoice: dict[str, Any]) -> Optional[str]:
    subscription_id = invoice.get("subscription")
    if isinstance(subscription_id, dict):
        return subscription_id.get("id")
    if subscription_id:
        return subscription_id
    # Newer API versions nest it under the invoice parent.
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


def _plan_from_subscription(subscription: dict[str, Any]) -> dict[str, Any]:
    items = (subscription.get("items") or {}).get("data") or []
    price = items[0].get("price") if items else None
    return billing_service.plan_from_price(price) if isinstance(price, dict) else {}


def _sync_subscription(session: Session, stripe_subscription: dict[str, Any]) -> None:
    repo = SubscriptionsRepository(session)
    fields = billing_service.subscription_mirror_fields(stripe_subscription)
    existing = repo.get_by_stripe_id(stripe_subscription["id"])
    if existing:
        repo.update(existing, **fields)
        return

    metadata = stripe_subscription.get("metadata") or {}
    if not metadata.get("userId") or not metadata.get("orgId"):
        logger.warning(
            "Subscription event for unknown subscription without owner metadata",
            extra={"stripe_subscription_id": stripe_subscription["id"]},
        )
        return
    customer = stripe_subscription.get("customer")
    repo.create(
        org_id=metadata["orgId"],
        user_id=metadata["userId"],
        application_id=metadata.get("applicationId"),
        stripe_subscription_id=stripe_subscription["id"],
        stripe_customer_id=customer.get("id") if isinstance(customer, dict) else customer,
        plan=_plan_from_subscription(stripe_subscription),
        **fields,
    )


def _mark_deleted(session: Session, stripe_subscription: dict[str, Any]) -> None:
    repo = SubscriptionsRepository(session)
    existing = repo.get_by_stripe_id(stripe_subscription["id"])
    if not existing:
        logger.info("Deleted subscription not mirrored locally", extra={"stripe_subscription_id": stripe_subscription["id"]})
        return
    repo.update(
        existing,
        status=SubscriptionStatusEnum.canceled.value,
        canceled_at=billing_service.from_timestamp(stripe_subscription.get("canceled_at")) or utcnow(),
        cancel_at_period_end=False,
    )


def _record_payment(session: Session, invoice: dict[str, Any], *, outcome: str) -> None:
    subscription_id = _invoice_subscription_id(invoice)
    if not subscription_id:
        return
    repo = SubscriptionsRepository(session)
    existing = repo.get_by_stripe_id(subscription_id)
    if not existing:
        logger.info("Invoice for subscription not mirrored locally", extra={"stripe_subscription_id": subscription_id})
        return
    repo.update(existing, last_payment_status=outcome)
    log = logger.warning if outcome == "failed" else logger.info
    log(
        "Invoice payment recorded",
        extra={"stripe_subscription_id": subscription_id, "invoice_id": invoice.get("id"), "outcome": outcome},
    )


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    session: Session = Depends(get_session),
):
    webhook_secret = settings.STRIPE_WEBHOOK_SECRET
    if not webhook_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe webhook secret is not configured.",
        )

    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing Stripe signature header.")

    payload = await request.body()
    try:
        stripe.Webhook.construct_event(payload, signature, webhook_secret)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Rejected Stripe webhook with invalid signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Stripe signature.") from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Stripe payload.") from exc

    event = json.loads(payload)
    event_type = event.get("type")
    data_object = (event.get("data") or {}).get("object") or {}

    try:
        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            _sync_subscription(session, data_object)
        elif event_type == "customer.subscription.deleted":
            _mark_deleted(session, data_object)
        elif event_type == "invoice.payment_succeeded":
            _record_payment(session, data_object, outcome="succeeded")
        elif event_type == "invoice.payment_failed":
            _record_payment(session, data_object, outcome="failed")
        else:
            logger.info("Unhandled Stripe event", extra={"event_type": event_type, "event_id": event.get("id")})
    except Exception as exc:
        session.rollback()
        logger.exception("Stripe webhook handler failed", extra={"event_type": event_type, "event_id": event.get("id")})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed.",
        ) from exc

    return {"received": True}
