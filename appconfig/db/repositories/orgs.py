from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appconfig.db.models import Org


def clerk_org_name(external_id: str, slug: Optional[str] = None) -> str:
    return slug or f"Clerk org {external_id}"


class OrgsRepository:
    """Tenants are keyed by their Clerk organization id and created on first sight."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_external_id(self, external_id: str) -> Optional[Org]:
        stmt = select(Org).where(Org.external_id == external_id)
        return self.session.scalars(stmt).first()

    def get_or_create_for_clerk(self, *, external_id: str, slug: Optional[str] = None) -> tuple[Org, bool]:
        """Return the org for a Clerk organization and whether it was just created.

        Two first requests from the same organization can race on the unique
        external id; the loser reads the winner's row.
        """
        org = self.get_by_external_id(external_id)
        if org:
            return org, False
        org = Org(name=clerk_org_name(external_id, slug), external_id=external_id)
        self.session.add(org)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            existing = self.get_by_external_id(external_id)
            if existing is None:
                raise
            return existing, False
        self.session.refresh(org)
        return org, True
