from __future__ import annotations

import json
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appconfig.db.enums import ContentStatusEnum
from appconfig.db.models import ContentAnalytics, ContentPage, ContentVersion, as_utc, utcnow


class DuplicatePageSlugError(Exception):
    pass


class LastVersionError(Exception):
    pass


def content_size_bytes(content: Any) -> int:
    return len(json.dumps(content, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))


def component_count(content: Any) -> int:
    components = content.get("components") if isinstance(content, dict) else None
    return len(components) if isinstance(components, list) else 0


class ContentPagesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(
        self,
        *,
        org_id: str,
        page_type: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        application_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[ContentPage], int]:
        stmt = select(ContentPage).where(ContentPage.org_id == org_id)
        if page_type:
            stmt = stmt.where(ContentPage.type == page_type)
        if status and status != "all":
            stmt = stmt.where(ContentPage.status == ContentStatusEnum(status))
        if application_id:
            stmt = stmt.where(ContentPage.application_id == application_id)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(func.lower(ContentPage.title).like(pattern), func.lower(ContentPage.slug).like(pattern))
            )
        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = stmt.order_by(ContentPage.updated_at.desc()).offset(offset).limit(limit)
        return list(self.session.scalars(stmt).all()), total

    def list_published(self, *, application_id: str) -> list[ContentPage]:
        stmt = (
            select(ContentPage)
            .where(
                ContentPage.application_id == application_id,
                ContentPage.status == ContentStatusEnum.published,
            )
            .order_by(ContentPage.updated_at.desc())
        )
        return list(self.session.scalars(stmt).all())

    def get(self, *, org_id: str, page_id: str) -> Optional[ContentPage]:
        stmt = select(ContentPage).where(ContentPage.org_id == org_id, ContentPage.id == page_id)
        return self.session.scalars(stmt).first()

    def get_published(self, page_id: str) -> Optional[ContentPage]:
        stmt = select(ContentPage).where(
            ContentPage.id == page_id,
            ContentPage.status == ContentStatusEnum.published,
        )
        return self.session.scalars(stmt).first()

    def create(self, *, org_id: str, **fields: Any) -> ContentPage:
        page = ContentPage(org_id=org_id, **fields)
        self.session.add(page)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicatePageSlugError(fields.get("slug")) from exc
        self.session.refresh(page)
        return page

    def update(self, page: ContentPage, **fields: Any) -> ContentPage:
        for key, value in fields.items():
            setattr(page, key, value)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicatePageSlugError(fields.get("slug")) from exc
        self.session.refresh(page)
        return page

    def delete(self, page: ContentPage) -> None:
        self.session.delete(page)
        self.session.commit()


class ContentVersionsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, *, page_id: str, offset: int = 0, limit: int = 20) -> tuple[list[ContentVersion], int]:
        total = self.count(page_id=page_id)
        stmt = (
            select(ContentVersion)
            .where(ContentVersion.page_id == page_id)
            .order_by(ContentVersion.version_number.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all()), total

    def count(self, *, page_id: str) -> int:
        stmt = select(func.count(ContentVersion.id)).where(ContentVersion.page_id == page_id)
        return self.session.scalar(stmt) or 0

    def get(self, *, page_id: str, version_id: str) -> Optional[ContentVersion]:
        stmt = select(ContentVersion).where(
            ContentVersion.page_id == page_id,
            ContentVersion.id == version_id,
        )
        return self.session.scalars(stmt).first()

    def latest(self, *, page_id: str) -> Optional[ContentVersion]:
        stmt = (
            select(ContentVersion)
            .where(ContentVersion.page_id == page_id)
            .order_by(ContentVersion.version_number.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def _next_number(self, page_id: str) -> int:
        stmt = select(func.max(ContentVersion.version_number)).where(ContentVersion.page_id == page_id)
        return (self.session.scalar(stmt) or 0) + 1

    def create(
        self,
        *,
        page_id: str,
        title: str,
        content: dict[str, Any],
        change_description: Optional[str] = None,
        is_auto_save: bool = False,
        created_by: Optional[str] = None,
    ) -> ContentVersion:
        version = ContentVersion(
            page_id=page_id,
            version_number=self._next_number(page_id),
            title=title,
            content=content,
            change_description=change_description,
            is_auto_save=is_auto_save,
            size_bytes=content_size_bytes(content),
            created_by=created_by,
        )
        self.session.add(version)
        self.session.commit()
        self.session.refresh(version)
        return version

    def restore(
        self,
        *,
        page: ContentPage,
        source: ContentVersion,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> ContentVersion:
        """
        Append a copy of ``source`` as the newest version and roll the page's components back to it.

        Both writes share one transaction; nothing is persisted if either fails.
        """
        try:
            content = dict(source.content or {})
            restored = ContentVersion(
                page_id=page.id,
                version_number=self._next_number(page.id),
                title=f"Restored from Version {source.version_number}",
                content=content,
                change_description=description
                or f"Restored from version {source.version_number}: {source.title}",
                is_auto_save=False,
                size_bytes=content_size_bytes(content),
                created_by=created_by,
            )
            self.session.add(restored)
            components = content.get("components")
            page.components = list(components) if isinstance(components, list) else []
            page.updated_by = created_by
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(restored)
        return restored

    def delete(self, *, page_id: str, version: ContentVersion) -> None:
        if self.count(page_id=page_id) <= 1:
            raise LastVersionError("Cannot delete the only version")
        self.session.delete(version)
        self.session.commit()

    def auto_save(
        self,
        *,
        page_id: str,
        content: dict[str, Any],
        window_seconds: int,
        created_by: Optional[str] = None,
    ) -> tuple[ContentVersion, bool]:
        """
        Record an auto-save and return ``(version, created)``.

        A fresh auto-save at the head of the history is overwritten in place so rapid edits
        do not flood the version list.
        """
        latest = self.latest(page_id=page_id)
        now = utcnow()
        if (
            latest is not None
            and latest.is_auto_save
            and now - as_utc(latest.created_at) <= timedelta(seconds=window_seconds)
        ):
            latest.content = content
            latest.size_bytes = content_size_bytes(content)
            latest.updated_at = now
            self.session.commit()
            self.session.refresh(latest)
            return latest, False

        version = self.create(
            page_id=page_id,
            title="Auto Save",
            content=content,
            change_description="Auto-saved changes",
            is_auto_save=True,
            created_by=created_by,
        )
        return version, True


class ContentAnalyticsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, page_id: str) -> Optional[ContentAnalytics]:
        return self.session.get(ContentAnalytics, page_id)

    def record_view(self, page_id: str) -> ContentAnalytics:
        analytics = self.get(page_id)
        if analytics is None:
            analytics = ContentAnalytics(page_id=page_id, views=0, clicks=0, conversions=0)
            self.session.add(analytics)
        analytics.views = (analytics.views or 0) + 1
        analytics.last_viewed = utcnow()
        self.session.commit()
        self.session.refresh(analytics)
        return analytics
