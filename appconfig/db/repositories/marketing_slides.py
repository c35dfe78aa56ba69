from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from appconfig.db.enums import SlideStatusEnum
from appconfig.db.models import MarketingSlide


class MarketingSlidesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(
        self,
        *,
        org_id: str,
        application_id: Optional[str] = None,
        status: Optional[SlideStatusEnum] = None,
    ) -> list[MarketingSlide]:
        stmt = select(MarketingSlide).where(MarketingSlide.org_id == org_id)
        if application_id:
            stmt = stmt.where(MarketingSlide.application_id == application_id)
        if status:
            stmt = stmt.where(MarketingSlide.status == status)
        stmt = stmt.order_by(MarketingSlide.ordering.asc(), MarketingSlide.created_at.asc())
        return list(self.session.scalars(stmt).all())

    def list_published(self, *, application_id: str) -> list[MarketingSlide]:
        stmt = (
            select(MarketingSlide)
            .where(
                MarketingSlide.application_id == application_id,
                MarketingSlide.status == SlideStatusEnum.published,
            )
            .order_by(MarketingSlide.ordering.asc(), MarketingSlide.created_at.asc())
        )
        return list(self.session.scalars(stmt).all())

    def get(self, *, org_id: str, slide_id: str) -> Optional[MarketingSlide]:
        stmt = select(MarketingSlide).where(MarketingSlide.org_id == org_id, MarketingSlide.id == slide_id)
        return self.session.scalars(stmt).first()

    def create(
        self,
        *,
        org_id: str,
        application_id: Optional[str] = None,
        ordering: Optional[int] = None,
        **fields: Any,
    ) -> MarketingSlide:
        if ordering is None:
            # New slides go last within their own application.
            same_application = (
                MarketingSlide.application_id.is_(None)
                if application_id is None
                else MarketingSlide.application_id == application_id
            )
            stmt = select(func.max(MarketingSlide.ordering)).where(
                MarketingSlide.org_id == org_id, same_application
            )
            current = self.session.scalar(stmt)
            ordering = 0 if current is None else current + 1
        slide = MarketingSlide(org_id=org_id, application_id=application_id, ordering=ordering, **fields)
        self.session.add(slide)
        self.session.commit()
        self.session.refresh(slide)
        return slide

    def update(self, slide: MarketingSlide, **fields: Any) -> MarketingSlide:
        for key, value in fields.items():
            setattr(slide, key, value)
        self.session.commit()
        self.session.refresh(slide)
        return slide

    def delete(self, slide: MarketingSlide) -> None:
        self.session.delete(slide)
        self.session.commit()

    def reorder(self, *, org_id: str, slide_ids: list[str]) -> list[MarketingSlide]:
        stmt = select(MarketingSlide).where(MarketingSlide.org_id == org_id, MarketingSlide.id.in_(slide_ids))
        slides = {slide.id: slide for slide in self.session.scalars(stmt).all()}
        missing = [slide_id for slide_id in slide_ids if slide_id not in slides]
        if missing:
            raise LookupError(", ".join(missing))
        for position, slide_id in enumerate(slide_ids):
            slides[slide_id].ordering = position
        self.session.commit()
        ordered = [slides[slide_id] for slide_id in slide_ids]
        for slide in ordered:
            self.session.refresh(slide)
        return ordered
