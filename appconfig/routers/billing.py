from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appconfig.auth.dependencies import AuthContext, get_current_user
from appconfig.db.deps import get_session
from appconfig.db.enums import ACTIVE_SUBSCRIPTION_STATUSES
from appconfig.db.models import BillingCustomer, Subscription
from appconfig.db.repositories.applications import ApplicationsRepository
from appconfig.db.repositories.billing import BillingCustomersRepository, SubscriptionsRepository
from appconfig.schemas.billing import (
    CouponApplyRequest,
    PaymentMethodAttachRequest,
    SubscriptionCreateRequest,
    SubscriptionUpdateRequest,
)
from appconfig.services import billing as billing_service

router = APIRouter(prefix="/billing", tags=["billing"])
logger = logging.getLogger(__name__)


def _subscription_payload(subscription: Subscription) -> dict:
    return {
        "id": subscription.id,
        "stripeSubscriptionId": subscription.stripe_subscription_id,
        "applicationId": subscription.application_id,
        "plan": subscription.plan,
        "status": subscription.status,
        "seats": subscription.seats,
        "currentPeriodStart": subscription.current_period_start,
        "currentPeriodEnd": subscription.current_period_end,
        "cancelAtPeriodEnd": subscription.cancel_at_period_end,
        "canceledAt": subscription.canceled_at,
        "lastPaymentStatus": subscription.last_payment_status,
    }


def _customer_or_400(session: Session, auth: AuthContext) -> BillingCustomer:
    customer = BillingCustomersRepository(session).get(org_id=auth.org_id, user_id=auth.user_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No billing customer found")
    return customer


def _ensure_customer(session: Session, auth: AuthContext) -> BillingCustomer:
    repo = BillingCustomersRepository(session)
    customer = repo.get(org_id=auth.org_id, user_id=auth.user_id)
    if customer:
        return customer
    created = billing_service.create_customer(email=auth.email, user_id=auth.user_id, org_id=auth.org_id)
    logger.info("Stripe customer created", extra={"user_id": auth.user_id, "customer_id": created["id"]})
    return repo.create(
        org_id=auth.org_id,
        user_id=auth.user_id,
        stripe_customer_id=created["id"],
        email=auth.email,
    )


def _resolve_subscription_or_404(session: Session, auth: AuthContext, subscription_id: str) -> Subscription:
    repo = SubscriptionsRepository(session)
    if subscription_id == "current":
        subscription = repo.latest_for_user(org_id=auth.org_id, user_id=auth.user_id)
    else:
        subscription = repo.get_for_user(org_id=auth.org_id, user_id=auth.user_id, subscription_id=subscription_id)
    if not subscription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found")
    return subscription


def _upsert_mirror(session: Session, auth: AuthContext, *, stripe_subscription_id: str, **fields) -> Subscription:
    """The `customer.subscription.created` webhook may mirror the row before the API call returns."""
    repo = SubscriptionsRepository(session)
    existing = repo.get_by_stripe_id(stripe_subscription_id)
    if existing:
        return repo.update(existing, **fields)
    try:
        return repo.create(
            org_id=auth.org_id,
            user_id=auth.user_id,
            stripe_subscription_id=stripe_subscription_id,
            **fields,
        )
    except IntegrityError:
        session.rollback()
        existing = repo.get_by_stripe_id(stripe_subscription_id)
        if existing is None:
            raise
        logger.info(
            "Subscription mirrored concurrently by webhook",
            extra={"stripe_subscription_id": stripe_subscription_id},
        )
        return repo.update(existing, **fields)


@router.get("/plans")
def list_plans() -> list:
    return billing_service.list_plans()


@router.post("/subscription", status_code=status.HTTP_201_CREATED)
def create_subscription(
    payload: SubscriptionCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    subscriptions = SubscriptionsRepository(session)
    existing = subscriptions.current_for_user(
        org_id=auth.org_id, user_id=auth.user_id, statuses=ACTIVE_SUBSCRIPTION_STATUSES
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already has an active subscription")
    if payload.applicationId and not ApplicationsRepository(session).get(
        org_id=auth.org_id, application_id=payload.applicationId
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")

    plan = billing_service.plan_from_price(billing_service.retrieve_price(payload.planId))
    customer = _ensure_customer(session, auth)
    if payload.paymentMethodId:
        billing_service.attach_payment_method(
            customer_id=customer.stripe_customer_id,
            payment_method_id=payload.paymentMethodId,
            set_default=True,
        )
        BillingCustomersRepository(session).set_default_payment_method(customer, payload.paymentMethodId)

    metadata = {"userId": auth.user_id, "orgId": auth.org_id}
    if payload.applicationId:
        metadata["applicationId"] = payload.applicationId
    stripe_subscription = billing_service.create_subscription(
        customer_id=customer.stripe_customer_id,
        price_id=payload.planId,
        seats=payload.seats,
        metadata=metadata,
        trial_days=payload.trialDays,
        coupon=payload.coupon,
    )
    mirror = billing_service.subscription_mirror_fields(stripe_subscription)
    mirror.setdefault("seats", payload.seats)
    subscription = _upsert_mirror(
        session,
        auth,
        stripe_subscription_id=stripe_subscription["id"],
        application_id=payload.applicationId,
        stripe_customer_id=customer.stripe_customer_id,
        plan=plan,
        **mirror,
    )
    logger.info(
        "Subscription created",
        extra={"subscription_id": subscription.id, "stripe_subscription_id": subscription.stripe_subscription_id},
    )
    return {
        "subscription": jsonable_encoder(_subscription_payload(subscription)),
        "clientSecret": billing_service.client_secret_from(stripe_subscription),
    }


@router.get("/subscription")
def get_subscription(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    subscription = SubscriptionsRepository(session).current_for_user(org_id=auth.org_id, user_id=auth.user_id)
    if not subscription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active subscription")
    return jsonable_encoder(_subscription_payload(subscription))


@router.put("/subscription")
def change_plan(
    payload: SubscriptionUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = SubscriptionsRepository(session)
    subscription = repo.current_for_user(org_id=auth.org_id, user_id=auth.user_id)
    if not subscription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active subscription")
    plan = billing_service.plan_from_price(billing_service.retrieve_price(payload.planId))
    updated = billing_service.change_subscription_price(
        subscription_id=subscription.stripe_subscription_id,
        price_id=payload.planId,
        seats=payload.seats,
    )
    subscription = repo.update(subscription, plan=plan, **billing_service.subscription_mirror_fields(updated))
    return jsonable_encoder(_subscription_payload(subscription))


def _set_cancel_flag(session: Session, auth: AuthContext, subscription_id: str, *, cancel: bool) -> dict:
    subscription = _resolve_subscription_or_404(session, auth, subscription_id)
    updated = billing_service.set_cancel_at_period_end(
        subscription_id=subscription.stripe_subscription_id, cancel=cancel
    )
    subscription = SubscriptionsRepository(session).update(
        subscription, **billing_service.subscription_mirror_fields(updated)
    )
    logger.info(
        "Subscription cancel flag changed",
        extra={"subscription_id": subscription.id, "cancel_at_period_end": cancel},
    )
    return jsonable_encoder(_subscription_payload(subscription))


@router.post("/subscription/{subscription_id}/cancel")
def cancel_subscription(
    subscription_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return _set_cancel_flag(session, auth, subscription_id, cancel=True)


@router.post("/subscription/{subscription_id}/reactivate")
def reactivate_subscription(
    subscription_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return _set_cancel_flag(session, auth, subscription_id, cancel=False)


@router.post("/payment-methods", status_code=status.HTTP_201_CREATED)
def add_payment_method(
    payload: PaymentMethodAttachRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    customer = _ensure_customer(session, auth)
    method = billing_service.attach_payment_method(
        customer_id=customer.stripe_customer_id,
        payment_method_id=payload.paymentMethodId,
        set_default=payload.setAsDefault,
    )
    if payload.setAsDefault:
        BillingCustomersRepository(session).set_default_payment_method(customer, payload.paymentMethodId)
    return method


@router.get("/payment-methods")
def list_payment_methods(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    customer = BillingCustomersRepository(session).get(org_id=auth.org_id, user_id=auth.user_id)
    if not customer:
        return {"paymentMethods": [], "defaultPaymentMethodId": None}
    return {
        "paymentMethods": billing_service.list_payment_methods(customer_id=customer.stripe_customer_id),
        "defaultPaymentMethodId": customer.default_payment_method_id,
    }


@router.post("/payment-methods/{payment_method_id}/default")
def set_default_payment_method(
    payment_method_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    customer = _customer_or_400(session, auth)
    billing_service.set_default_payment_method(
        customer_id=customer.stripe_customer_id, payment_method_id=payment_method_id
    )
    BillingCustomersRepository(session).set_default_payment_method(customer, payment_method_id)
    return {"defaultPaymentMethodId": payment_method_id}


@router.delete("/payment-methods/{payment_method_id}")
def remove_payment_method(
    payment_method_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    customer = _customer_or_400(session, auth)
    owned = {method.get("id") for method in billing_service.list_payment_methods(customer_id=customer.stripe_customer_id)}
    if payment_method_id not in owned:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment method not found")
    billing_service.detach_payment_method(payment_method_id=payment_method_id)
    if customer.default_payment_method_id == payment_method_id:
        BillingCustomersRepository(session).set_default_payment_method(customer, None)
    return {"removed": payment_method_id}


@router.get("/invoices")
def list_invoices(
    limit: int = Query(default=10, ge=1, le=100),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    customer: Optional[BillingCustomer] = BillingCustomersRepository(session).get(
        org_id=auth.org_id, user_id=auth.user_id
    )
    if not customer:
        return {"invoices": []}
    return jsonable_encoder({"invoices": billing_service.list_invoices(customer_id=customer.stripe_customer_id, limit=limit)})


@router.post("/apply-coupon")
def apply_coupon(
    payload: CouponApplyRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    subscription = SubscriptionsRepository(session).current_for_user(org_id=auth.org_id, user_id=auth.user_id)
    if not subscription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active subscription")
    billing_service.apply_coupon(subscription_id=subscription.stripe_subscription_id, coupon=payload.coupon)
    logger.info("Coupon applied", extra={"subscription_id": subscription.id, "coupon": payload.coupon})
    return {"applied": payload.coupon}
