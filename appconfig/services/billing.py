"""
Stripe pass-through for subscriptions and payment methods.

Stripe stays the system of record; the `subscriptions` table is a mirror refreshed from API
responses and webhooks. Every function here returns plain dicts so callers never depend on
SDK object types.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import stripe

from appconfig.config import settings

logger = logging.getLogger(__name__)


class BillingConfigurationError(RuntimeError):
    pass


class BillingProviderError(RuntimeError):
    pass


def _client() -> None:
    if not settings.STRIPE_SECRET_KEY:
        raise BillingConfigurationError("Stripe is not configured.")
    stripe.api_key = settings.STRIPE_SECRET_KEY


def _plain(obj: Any) -> dict[str, Any]:
    for attr in ("to_dict", "to_dict_recursive"):
        convert = getattr(obj, attr, None)
        if callable(convert):
            return convert()
    return dict(obj)


def _call(operation: str, fn, *args, **kwargs) -> dict[str, Any]:
    _client()
    try:
        return _plain(fn(*args, **kwargs))
    except stripe.StripeError as exc:
        logger.exception("Stripe request failed", extra={"operation": operation})
        raise BillingProviderError(getattr(exc, "user_message", None) or "Payment provider request failed.") from exc


def from_timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def plan_from_price(price: dict[str, Any]) -> dict[str, Any]:
    recurring = price.get("recurring") or {}
    product = price.get("product")
    name = product.get("name") if isinstance(product, dict) else price.get("nickname")
    return {
        "id": price.get("id"),
        "name": name or price.get("nickname") or price.get("id"),
        "price": (price.get("unit_amount") or 0) / 100,
        "currency": price.get("currency"),
        "interval": recurring.get("interval"),
        "intervalCount": recurring.get("interval_count") or 1,
    }


def subscription_mirror_fields(subscription: dict[str, Any]) -> dict[str, Any]:
    """Columns of the local mirror derived from a Stripe subscription payload."""
    items = (subscription.get("items") or {}).get("data") or []
    first_item = items[0] if items else {}
    # Newer API versions report billing periods per item.
    period_start = subscription.get("current_period_start") or first_item.get("current_period_start")
    period_end = subscription.get("current_period_end") or first_item.get("current_period_end")
    fields: dict[str, Any] = {
        "status": subscription.get("status"),
        "current_period_start": from_timestamp(period_start),
        "current_period_end": from_timestamp(period_end),
        "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
        "canceled_at": from_timestamp(subscription.get("canceled_at")),
    }
    if first_item.get("quantity"):
        fields["seats"] = int(first_item["quantity"])
    return fields


def client_secret_from(subscription: dict[str, Any]) -> Optional[str]:
    invoice = subscription.get("latest_invoice")
    if not isinstance(invoice, dict):
        return None
    intent = invoice.get("payment_intent")
    if isinstance(intent, dict):
        return intent.get("client_secret")
    confirmation = invoice.get("confirmation_secret")
    if isinstance(confirmation, dict):
        return confirmation.get("client_secret")
    return None


def retrieve_price(price_id: str) -> dict[str, Any]:
    return _call("price.retrieve", stripe.Price.retrieve, price_id, expand=["product"])


def list_plans() -> list[dict[str, Any]]:
    prices = _call("price.list", stripe.Price.list, active=True, type="recurring", expand=["data.product"], limit=100)
    return [plan_from_price(price) for price in prices.get("data", [])]


def create_customer(*, email: Optional[str], user_id: str, org_id: str) -> dict[str, Any]:
    return _call(
        "customer.create",
        stripe.Customer.create,
        email=email,
        metadata={"userId": user_id, "orgId": org_id},
    )


def attach_payment_method(*, customer_id: str, payment_method_id: str, set_default: bool) -> dict[str, Any]:
    method = _call(
        "payment_method.attach",
        stripe.PaymentMethod.attach,
        payment_method_id,
        customer=customer_id,
    )
    if set_default:
        set_default_payment_method(customer_id=customer_id, payment_method_id=payment_method_id)
    return method


def set_default_payment_method(*, customer_id: str, payment_method_id: str) -> dict[str, Any]:
    return _call(
        "customer.modify",
        stripe.Customer.modify,
        customer_id,
        invoice_settings={"default_payment_method": payment_method_id},
    )


def list_payment_methods(*, customer_id: str) -> list[dict[str, Any]]:
    methods = _call("payment_method.list", stripe.PaymentMethod.list, customer=customer_id, type="card")
    return methods.get("data", [])


def detach_payment_method(*, payment_method_id: str) -> dict[str, Any]:
    return _call("payment_method.detach", stripe.PaymentMethod.detach, payment_method_id)


def create_subscription(
    *,
    customer_id: str,
    price_id: str,
    seats: int,
    metadata: dict[str, str],
    trial_days: Optional[int] = None,
    coupon: Optional[str] = None,
) -> dict[str, Any]:
    params: dict[str, Any] = {
        "customer": customer_id,
        "items": [{"price": price_id, "quantity": seats}],
        "payment_behavior": "default_incomplete",
        "payment_settings": {"save_default_payment_method": "on_subscription"},
        "expand": ["latest_invoice.payment_intent"],
        "metadata": metadata,
    }
    if trial_days:
        params["trial_period_days"] = trial_days
    if coupon:
        params["discounts"] = [{"coupon": coupon}]
    return _call("subscription.create", stripe.Subscription.create, **params)


def retrieve_subscription(subscription_id: str) -> dict[str, Any]:
    return _call("subscription.retrieve", stripe.Subscription.retrieve, subscription_id)


def change_subscription_price(*, subscription_id: str, price_id: str, seats: Optional[int] = None) -> dict[str, Any]:
    current = retrieve_subscription(subscription_id)
    items = (current.get("items") or {}).get("data") or []
    if not items:
        raise BillingProviderError("Subscription has no items to update.")
    item: dict[str, Any] = {"id": items[0]["id"], "price": price_id}
    if seats:
        item["quantity"] = seats
    return _call(
        "subscription.modify",
        stripe.Subscription.modify,
        subscription_id,
        items=[item],
        proration_behavior="create_prorations",
    )


def set_cancel_at_period_end(*, subscription_id: str, cancel: bool) -> dict[str, Any]:
    return _call(
        "subscription.modify",
        stripe.Subscription.modify,
        subscription_id,
        cancel_at_period_end=cancel,
    )


def apply_coupon(*, subscription_id: str, coupon: str) -> dict[str, Any]:
    return _call(
        "subscription.modify",
        stripe.Subscription.modify,
        subscription_id,
        discounts=[{"coupon": coupon}],
    )


def list_invoices(*, customer_id: str, limit: int = 10) -> list[dict[str, Any]]:
    invoices = _call("invoice.list", stripe.Invoice.list, customer=customer_id, limit=limit)
    return [
        {
            "id": invoice.get("id"),
            "number": invoice.get("number"),
            "status": invoice.get("status"),
            "amountDue": (invoice.get("amount_due") or 0) / 100,
            "amountPaid": (invoice.get("amount_paid") or 0) / 100,
            "currency": invoice.get("currency"),
            "createdAt": from_timestamp(invoice.get("created")),
            "hostedInvoiceUrl": invoice.get("hosted_invoice_url"),
            "invoicePdf": invoice.get("invoice_pdf"),
        }
        for invoice in invoices.get("data", [])
    ]
