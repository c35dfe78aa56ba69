from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appconfig.db.enums import ApplicationVersionStatusEnum
from appconfig.db.models import Application, ApplicationVersion, StoredAsset, utcnow


class DuplicateSlugError(Exception):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Slug already exists: {slug}")
        self.slug = slug


class ApplicationsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, *, org_id: str, include_inactive: bool = False) -> list[Application]:
        stmt = select(Application).where(Application.org_id == org_id)
        if not include_inactive:
            stmt = stmt.where(Application.is_active.is_(True))
        stmt = stmt.order_by(Application.created_at.desc())
        return list(self.session.scalars(stmt).all())

    def get(self, *, org_id: str, application_id: str) -> Optional[Application]:
        stmt = select(Application).where(
            Application.org_id == org_id,
            Application.id == application_id,
        )
        return self.session.scalars(stmt).first()

    def get_by_slug(self, slug: str, *, active_only: bool = True) -> Optional[Application]:
        stmt = select(Application).where(Application.slug == slug)
        if active_only:
            stmt = stmt.where(Application.is_active.is_(True))
        return self.session.scalars(stmt).first()

    def slug_exists(self, slug: str) -> bool:
        stmt = select(Application.id).where(Application.slug == slug).limit(1)
        return self.session.scalars(stmt).first() is not None

    def create(
        self,
        *,
        org_id: str,
        name: str,
        slug: str,
        branding: dict[str, Any],
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Application:
        if self.slug_exists(slug):
            raise DuplicateSlugError(slug)
        application = Application(
            org_id=org_id,
            name=name,
            slug=slug,
            description=description,
            branding=branding,
            settings={},
            component_styles={},
            created_by=created_by,
        )
        self.session.add(application)
        try:
            self.session.commit()
        except IntegrityError as exc:
            # Concurrent create with the same slug.
            self.session.rollback()
            raise DuplicateSlugError(slug) from exc
        self.session.refresh(application)
        return application

    def update(self, *, org_id: str, application_id: str, **fields: Any) -> Optional[Application]:
        application = self.get(org_id=org_id, application_id=application_id)
        if not application:
            return None
        for key, value in fields.items():
            setattr(application, key, value)
        self.session.commit()
        self.session.refresh(application)
        return application

    def save(self, application: Application) -> Application:
        self.session.commit()
        self.session.refresh(application)
        return application


class ApplicationVersionsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, *, application_id: str) -> list[ApplicationVersion]:
        stmt = (
            select(ApplicationVersion)
            .where(ApplicationVersion.application_id == application_id)
            .order_by(ApplicationVersion.version_number.desc())
        )
        return list(self.session.scalars(stmt).all())

    def get(self, *, application_id: str, version_id: str) -> Optional[ApplicationVersion]:
        stmt = select(ApplicationVersion).where(
            ApplicationVersion.application_id == application_id,
            ApplicationVersion.id == version_id,
        )
        return self.session.scalars(stmt).first()

    def _next_number(self, application_id: str) -> int:
        stmt = select(func.max(ApplicationVersion.version_number)).where(
            ApplicationVersion.application_id == application_id
        )
        return (self.session.scalar(stmt) or 0) + 1

    def create_draft(
        self,
        *,
        application_id: str,
        branding: dict[str, Any],
        settings: dict[str, Any],
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> ApplicationVersion:
        version = ApplicationVersion(
            application_id=application_id,
            version_number=self._next_number(application_id),
            status=ApplicationVersionStatusEnum.draft,
            branding=branding,
            settings=settings,
            notes=notes,
            created_by=created_by,
        )
        self.session.add(version)
        self.session.commit()
        self.session.refresh(version)
        return version

    def update(self, version: ApplicationVersion, **fields: Any) -> ApplicationVersion:
        for key, value in fields.items():
            setattr(version, key, value)
        self.session.commit()
        self.session.refresh(version)
        return version

    def publish(self, *, application: Application, version: ApplicationVersion) -> ApplicationVersion:
        """Archive the currently published version and copy this one onto the application, atomically."""
        stmt = select(ApplicationVersion).where(
            ApplicationVersion.application_id == application.id,
            ApplicationVersion.status == ApplicationVersionStatusEnum.published,
        )
        for previous in self.session.scalars(stmt).all():
            previous.status = ApplicationVersionStatusEnum.archived
        version.status = ApplicationVersionStatusEnum.published
        version.published_at = utcnow()
        application.branding = dict(version.branding or {})
        application.settings = dict(version.settings or {})
        application.branding_revision = (application.branding_revision or 0) + 1
        self.session.commit()
        self.session.refresh(version)
        self.session.refresh(application)
        return version


class StoredAssetsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, asset_id: str) -> Optional[StoredAsset]:
        stmt = select(StoredAsset).where(StoredAsset.id == asset_id)
        return self.session.scalars(stmt).first()
