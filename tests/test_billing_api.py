import pytest

from appconfig.db.base import SessionLocal
from appconfig.db.models import Subscription
from appconfig.db.repositories.billing import SubscriptionsRepository
from appconfig.services import billing as billing_service

TEST_ORG_ID = "00000000-0000-0000-0000-000000000001"
PERIOD_START = 1_760_000_000
PERIOD_END = 1_762_592_000


def _stripe_subscription(subscription_id: str = "sub_123", **overrides) -> dict:
    payload = {
        "id": subscription_id,
        "status": "active",
        "cancel_at_period_end": False,
        "canceled_at": None,
        "current_period_start": PERIOD_START,
        "current_period_end": PERIOD_END,
        "items": {"data": [{"id": "si_1", "quantity": 3, "price": {"id": "price_pro"}}]},
        "latest_invoice": {"payment_intent": {"client_secret": "pi_secret"}},
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def fake_stripe(monkeypatch):
    calls: dict[str, list] = {"customers": [], "subscriptions": [], "cancel": [], "detached": []}

    def retrieve_price(price_id):
        return {
            "id": price_id,
            "unit_amount": 1999,
            "currency": "usd",
            "recurring": {"interval": "month", "interval_count": 1},
            "product": {"name": "Pro"},
        }

    def create_customer(*, email, user_id, org_id):
        calls["customers"].append(user_id)
        return {"id": "cus_123", "email": email}

    def create_subscription(**kwargs):
        calls["subscriptions"].append(kwargs)
        return _stripe_subscription()

    def set_cancel_at_period_end(*, subscription_id, cancel):
        calls["cancel"].append((subscription_id, cancel))
        return _stripe_subscription(subscription_id, cancel_at_period_end=cancel)

    def list_payment_methods(*, customer_id):
        return [{"id": "pm_card", "card": {"brand": "visa", "last4": "4242"}}]

    def detach_payment_method(*, payment_method_id):
        calls["detached"].append(payment_method_id)
        return {"id": payment_method_id}

    monkeypatch.setattr(billing_service, "retrieve_price", retrieve_price)
    monkeypatch.setattr(billing_service, "create_customer", create_customer)
    monkeypatch.setattr(billing_service, "create_subscription", create_subscription)
    monkeypatch.setattr(billing_service, "set_cancel_at_period_end", set_cancel_at_period_end)
    monkeypatch.setattr(billing_service, "list_payment_methods", list_payment_methods)
    monkeypatch.setattr(billing_service, "detach_payment_method", detach_payment_method)
    return calls


def test_plan_from_price_normalises_amounts():
    plan = billing_service.plan_from_price(
        {"id": "price_1", "unit_amount": 4900, "currency": "eur", "nickname": "Team", "recurring": {"interval": "year"}}
    )
    assert plan == {
        "id": "price_1",
        "name": "Team",
        "price": 49.0,
        "currency": "eur",
        "interval": "year",
        "intervalCount": 1,
    }


def test_mirror_fields_read_item_periods_on_newer_payloads():
    fields = billing_service.subscription_mirror_fields(
        {
            "status": "trialing",
            "items": {"data": [{"current_period_start": PERIOD_START, "current_period_end": PERIOD_END, "quantity": 2}]},
        }
    )
    assert fields["status"] == "trialing"
    assert fields["seats"] == 2
    assert fields["current_period_start"].timestamp() == PERIOD_START
    assert fields["cancel_at_period_end"] is False


def test_stripe_calls_fail_clearly_without_secret_key(monkeypatch):
    from appconfig.config import settings

    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", None)
    with pytest.raises(billing_service.BillingConfigurationError):
        billing_service.retrieve_subscription("sub_missing")


def test_create_subscription_mirrors_stripe(api_client, fake_stripe, db_session):
    response = api_client.post("/api/v1/billing/subscription", json={"planId": "price_pro", "seats": 3})

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["clientSecret"] == "pi_secret"
    assert body["subscription"]["status"] == "active"
    assert body["subscription"]["seats"] == 3
    assert body["subscription"]["plan"]["name"] == "Pro"
    assert body["subscription"]["plan"]["price"] == 19.99
    assert fake_stripe["customers"] == ["user_admin"]
    assert fake_stripe["subscriptions"][0]["metadata"] == {"userId": "user_admin", "orgId": TEST_ORG_ID}
    assert fake_stripe["subscriptions"][0]["seats"] == 3
    assert db_session.query(Subscription).count() == 1

    current = api_client.get("/api/v1/billing/subscription").json()
    assert current["stripeSubscriptionId"] == "sub_123"


def _mirror_from_webhook(subscription_id: str = "sub_123") -> None:
    # Same row shape `customer.subscription.created` writes from metadata.
    session = SessionLocal()
    try:
        session.add(
            Subscription(
                org_id=TEST_ORG_ID,
                user_id="user_admin",
                stripe_subscription_id=subscription_id,
                stripe_customer_id="cus_123",
                status="incomplete",
                seats=1,
            )
        )
        session.commit()
    finally:
        session.close()


def test_create_subscription_updates_row_already_mirrored_by_webhook(api_client, fake_stripe, db_session, monkeypatch):
    def create_subscription(**kwargs):
        fake_stripe["subscriptions"].append(kwargs)
        _mirror_from_webhook()
        return _stripe_subscription()

    monkeypatch.setattr(billing_service, "create_subscription", create_subscription)

    response = api_client.post("/api/v1/billing/subscription", json={"planId": "price_pro", "seats": 3})

    assert response.status_code == 201, response.text
    body = response.json()["subscription"]
    assert body["status"] == "active"
    assert body["seats"] == 3
    assert body["plan"]["name"] == "Pro"
    assert db_session.query(Subscription).count() == 1


def test_create_subscription_recovers_from_concurrent_insert(api_client, fake_stripe, db_session, monkeypatch):
    original_lookup = SubscriptionsRepository.get_by_stripe_id
    lookups: list[str] = []

    def racing_lookup(self, stripe_subscription_id):
        lookups.append(stripe_subscription_id)
        if len(lookups) == 1:
            # The webhook commits between the lookup and the insert.
            _mirror_from_webhook(stripe_subscription_id)
            return None
        return original_lookup(self, stripe_subscription_id)

    monkeypatch.setattr(SubscriptionsRepository, "get_by_stripe_id", racing_lookup)

    response = api_client.post("/api/v1/billing/subscription", json={"planId": "price_pro", "seats": 3})

    assert response.status_code == 201, response.text
    assert lookups == ["sub_123", "sub_123"]
    assert response.json()["subscription"]["status"] == "active"
    db_session.expire_all()
    rows = db_session.query(Subscription).all()
    assert len(rows) == 1
    assert rows[0].plan["name"] == "Pro"


def test_second_active_subscription_is_rejected(api_client, fake_stripe):
    assert api_client.post("/api/v1/billing/subscription", json={"planId": "price_pro"}).status_code == 201

    again = api_client.post("/api/v1/billing/subscription", json={"planId": "price_pro"})

    assert again.status_code == 400
    assert again.json()["detail"] == "User already has an active subscription"
    assert len(fake_stripe["subscriptions"]) == 1


def test_cancel_and_reactivate_current_subscription(api_client, fake_stripe):
    api_client.post("/api/v1/billing/subscription", json={"planId": "price_pro"})

    canceled = api_client.post("/api/v1/billing/subscription/current/cancel")
    assert canceled.status_code == 200
    assert canceled.json()["cancelAtPeriodEnd"] is True

    reactivated = api_client.post("/api/v1/billing/subscription/current/reactivate")
    assert reactivated.json()["cancelAtPeriodEnd"] is False
    assert fake_stripe["cancel"] == [("sub_123", True), ("sub_123", False)]


def test_unknown_subscription_is_not_found(api_client, fake_stripe):
    assert api_client.get("/api/v1/billing/subscription").status_code == 404
    assert api_client.post("/api/v1/billing/subscription/does-not-exist/cancel").status_code == 404


def test_payment_method_removal_requires_ownership(api_client, fake_stripe):
    no_customer = api_client.delete("/api/v1/billing/payment-methods/pm_card")
    assert no_customer.status_code == 400

    api_client.post("/api/v1/billing/subscription", json={"planId": "price_pro"})

    foreign = api_client.delete("/api/v1/billing/payment-methods/pm_other")
    assert foreign.status_code == 404

    removed = api_client.delete("/api/v1/billing/payment-methods/pm_card")
    assert removed.status_code == 200
    assert fake_stripe["detached"] == ["pm_card"]


def test_provider_errors_surface_as_bad_gateway(api_client, monkeypatch):
    def failing_price(price_id):
        raise billing_service.BillingProviderError("card declined")

    monkeypatch.setattr(billing_service, "retrieve_price", failing_price)

    response = api_client.post("/api/v1/billing/subscription", json={"planId": "price_pro"})

    assert response.status_code == 502
    assert response.json() == {"detail": "Billing provider request failed."}
