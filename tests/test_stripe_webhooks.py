import hashlib
import hmac
import json
import time

import pytest

from appconfig.db.models import Subscription

TEST_ORG_ID = "00000000-0000-0000-0000-000000000001"
WEBHOOK_URL = "/api/v1/stripe/webhook"
WEBHOOK_SECRET = "whsec_test"


def _signed(event: dict) -> tuple[bytes, dict]:
    payload = json.dumps(event).encode("utf-8")
    timestamp = int(time.time())
    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    signature = hmac.new(WEBHOOK_SECRET.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return payload, {"stripe-signature": f"t={timestamp},v1={signature}", "content-type": "application/json"}


def _post_event(api_client, event_type: str, data_object: dict):
    payload, headers = _signed({"id": "evt_1", "type": event_type, "data": {"object": data_object}})
    return api_client.post(WEBHOOK_URL, content=payload, headers=headers)


@pytest.fixture()
def mirrored_subscription(db_session) -> Subscription:
    subscription = Subscription(
        org_id=TEST_ORG_ID,
        user_id="user_admin",
        stripe_subscription_id="sub_live",
        stripe_customer_id="cus_live",
        plan={"id": "price_pro", "name": "Pro"},
        status="active",
        seats=1,
    )
    db_session.add(subscription)
    db_session.commit()
    return subscription


def test_invalid_signature_is_rejected_without_changes(api_client, db_session, mirrored_subscription):
    payload = json.dumps(
        {"type": "customer.subscription.deleted", "data": {"object": {"id": "sub_live"}}}
    ).encode("utf-8")

    response = api_client.post(WEBHOOK_URL, content=payload, headers={"stripe-signature": "t=1,v1=bad"})

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid Stripe signature."}
    db_session.refresh(mirrored_subscription)
    assert mirrored_subscription.status == "active"


def test_missing_signature_header_is_rejected(api_client):
    response = api_client.post(WEBHOOK_URL, content=b"{}")
    assert response.status_code == 400


def test_subscription_updated_refreshes_mirror(api_client, db_session, mirrored_subscription):
    response = _post_event(
        api_client,
        "customer.subscription.updated",
        {
            "id": "sub_live",
            "status": "past_due",
            "cancel_at_period_end": True,
            "items": {"data": [{"quantity": 4, "price": {"id": "price_pro"}}]},
        },
    )

    assert response.status_code == 200
    assert response.json() == {"received": True}
    db_session.refresh(mirrored_subscription)
    assert mirrored_subscription.status == "past_due"
    assert mirrored_subscription.cancel_at_period_end is True
    assert mirrored_subscription.seats == 4


def test_subscription_deleted_marks_canceled(api_client, db_session, mirrored_subscription):
    response = _post_event(api_client, "customer.subscription.deleted", {"id": "sub_live", "canceled_at": 1_760_000_000})

    assert response.status_code == 200
    db_session.refresh(mirrored_subscription)
    assert mirrored_subscription.status == "canceled"
    assert mirrored_subscription.canceled_at is not None


def test_failed_invoice_payment_is_recorded(api_client, db_session, mirrored_subscription):
    response = _post_event(
        api_client,
        "invoice.payment_failed",
        {"id": "in_1", "parent": {"subscription_details": {"subscription": "sub_live"}}},
    )

    assert response.status_code == 200
    db_session.refresh(mirrored_subscription)
    assert mirrored_subscription.last_payment_status == "failed"
    assert mirrored_subscription.status == "active"


def test_created_event_mirrors_unknown_subscription_from_metadata(api_client, db_session):
    response = _post_event(
        api_client,
        "customer.subscription.created",
        {
            "id": "sub_new",
            "customer": "cus_new",
            "status": "trialing",
            "metadata": {"userId": "user_admin", "orgId": TEST_ORG_ID},
            "items": {"data": [{"quantity": 2, "price": {"id": "price_team", "unit_amount": 900, "currency": "usd"}}]},
        },
    )

    assert response.status_code == 200
    created = db_session.query(Subscription).filter(Subscription.stripe_subscription_id == "sub_new").one()
    assert created.status == "trialing"
    assert created.seats == 2
    assert created.stripe_customer_id == "cus_new"
    assert created.plan["price"] == 9.0


def test_unhandled_events_are_acknowledged(api_client):
    response = _post_event(api_client, "charge.refunded", {"id": "ch_1"})
    assert response.status_code == 200
    assert response.json() == {"received": True}
