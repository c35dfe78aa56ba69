from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from appconfig.db.enums import CURRENT_SUBSCRIPTION_STATUSES
from appconfig.db.models import BillingCustomer, Subscription


class BillingCustomersRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, *, org_id: str, user_id: str) -> Optional[BillingCustomer]:
        stmt = select(BillingCustomer).where(BillingCustomer.org_id == org_id, BillingCustomer.user_id == user_id)
        return self.session.scalars(stmt).first()

    def create(
        self,
        *,
        org_id: str,
        user_id: str,
        stripe_customer_id: str,
        email: Optional[str] = None,
    ) -> BillingCustomer:
        customer = BillingCustomer(
            org_id=org_id,
            user_id=user_id,
            stripe_customer_id=stripe_customer_id,
            email=email,
        )
        self.session.add(customer)
        self.session.commit()
        self.session.refresh(customer)
        return customer

    def set_default_payment_method(self, customer: BillingCustomer, payment_method_id: Optional[str]) -> None:
        customer.default_payment_method_id = payment_method_id
        self.session.commit()


class SubscriptionsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def current_for_user(
        self,
        *,
        org_id: str,
        user_id: str,
        statuses: tuple[str, ...] = CURRENT_SUBSCRIPTION_STATUSES,
    ) -> Optional[Subscription]:
        stmt = (
            select(Subscription)
            .where(
                Subscription.org_id == org_id,
                Subscription.user_id == user_id,
                Subscription.status.in_(statuses),
            )
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def get_for_user(self, *, org_id: str, user_id: str, subscription_id: str) -> Optional[Subscription]:
        stmt = select(Subscription).where(
            Subscription.org_id == org_id,
            Subscription.user_id == user_id,
            Subscription.id == subscription_id,
        )
        return self.session.scalars(stmt).first()

    def latest_for_user(self, *, org_id: str, user_id: str) -> Optional[Subscription]:
        stmt = (
            select(Subscription)
            .where(Subscription.org_id == org_id, Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def get_by_stripe_id(self, stripe_subscription_id: str) -> Optional[Subscription]:
        stmt = select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
        return self.session.scalars(stmt).first()

    def create(self, **fields: Any) -> Subscription:
        subscription = Subscription(**fields)
        self.session.add(subscription)
        self.session.commit()
        self.session.refresh(subscription)
        return subscription

    def update(self, subscription: Subscription, **fields: Any) -> Subscription:
        for key, value in fields.items():
            setattr(subscription, key, value)
        self.session.commit()
        self.session.refresh(subscription)
        return subscription
