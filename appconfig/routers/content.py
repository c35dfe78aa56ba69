from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from appconfig.auth.dependencies import AuthContext, require_admin
from appconfig.config import settings
from appconfig.db.deps import get_session
from appconfig.db.models import ContentAnalytics, ContentPage, as_utc
from appconfig.db.repositories.applications import ApplicationsRepository
from appconfig.db.repositories.content import (
    ContentAnalyticsRepository,
    ContentPagesRepository,
    ContentVersionsRepository,
    DuplicatePageSlugError,
    LastVersionError,
    component_count,
)
from appconfig.schemas.content import (
    AutoSaveRequest,
    ContentPageCreateRequest,
    ContentPageUpdateRequest,
    ContentRestoreRequest,
    ContentVersionCreateRequest,
)

router = APIRouter(prefix="/admin/content", tags=["content"])
logger = logging.getLogger(__name__)


def _get_page_or_404(session: Session, *, org_id: str, page_id: str) -> ContentPage:
    page = ContentPagesRepository(session).get(org_id=org_id, page_id=page_id)
    if not page:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")
    return page


def _ensure_application_belongs(session: Session, *, org_id: str, application_id: Optional[str]) -> None:
    if application_id and not ApplicationsRepository(session).get(org_id=org_id, application_id=application_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")


def analytics_payload(analytics: Optional[ContentAnalytics]) -> dict:
    if analytics is None:
        return {"views": 0, "clicks": 0, "conversions": 0, "lastViewed": None}
    return {
        "views": analytics.views,
        "clicks": analytics.clicks,
        "conversions": analytics.conversions,
        "lastViewed": analytics.last_viewed,
    }


@router.get("/pages")
def list_pages(
    type: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    search: Optional[str] = None,
    applicationId: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if status_filter and status_filter not in ("all", "draft", "published", "archived"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status filter")
    pages, total = ContentPagesRepository(session).list(
        org_id=auth.org_id,
        page_type=type,
        status=status_filter,
        search=search,
        application_id=applicationId,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return {"pages": jsonable_encoder(pages), "total": total, "page": page, "pageSize": page_size}


@router.post("/pages", status_code=status.HTTP_201_CREATED)
def create_page(
    payload: ContentPageCreateRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    _ensure_application_belongs(session, org_id=auth.org_id, application_id=payload.applicationId)
    try:
        page = ContentPagesRepository(session).create(
            org_id=auth.org_id,
            application_id=payload.applicationId,
            title=payload.title,
            slug=payload.slug,
            type=payload.type,
            status=payload.status,
            components=payload.components,
            mobile_display=payload.mobileDisplay.model_dump(),
            created_by=auth.user_id,
            updated_by=auth.user_id,
        )
    except DuplicatePageSlugError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already exists") from exc
    return jsonable_encoder(page)


@router.get("/pages/{page_id}")
def get_page(
    page_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    page = _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    analytics = ContentAnalyticsRepository(session).get(page.id)
    return {**jsonable_encoder(page), "analytics": jsonable_encoder(analytics_payload(analytics))}


@router.put("/pages/{page_id}")
def update_page(
    page_id: str,
    payload: ContentPageUpdateRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    page = _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    fields: dict[str, object] = {}
    for attr in ("title", "slug", "type", "status", "components"):
        value = getattr(payload, attr)
        if value is not None:
            fields[attr] = value
    if payload.mobileDisplay is not None:
        fields["mobile_display"] = payload.mobileDisplay.model_dump()
    if "applicationId" in payload.model_fields_set:
        _ensure_application_belongs(session, org_id=auth.org_id, application_id=payload.applicationId)
        fields["application_id"] = payload.applicationId
    fields["updated_by"] = auth.user_id
    try:
        page = ContentPagesRepository(session).update(page, **fields)
    except DuplicatePageSlugError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already exists") from exc
    return jsonable_encoder(page)


@router.delete("/pages/{page_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_page(
    page_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    page = _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    ContentPagesRepository(session).delete(page)
    logger.info("Content page deleted", extra={"page_id": page_id})


@router.get("/pages/{page_id}/analytics")
def get_page_analytics(
    page_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    page = _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    return jsonable_encoder(analytics_payload(ContentAnalyticsRepository(session).get(page.id)))


@router.get("/pages/{page_id}/versions")
def list_versions(
    page_id: str,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    versions, total = ContentVersionsRepository(session).list(
        page_id=page_id, offset=(page - 1) * page_size, limit=page_size
    )
    return {
        "versions": jsonable_encoder(versions),
        "pagination": {
            "page": page,
            "pageSize": page_size,
            "total": total,
            "totalPages": (total + page_size - 1) // page_size,
        },
    }


@router.get("/pages/{page_id}/versions/{version_id}")
def get_version(
    page_id: str,
    version_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    version = ContentVersionsRepository(session).get(page_id=page_id, version_id=version_id)
    if not version:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Version not found")
    return jsonable_encoder(version)


@router.post("/pages/{page_id}/versions", status_code=status.HTTP_201_CREATED)
def create_version(
    page_id: str,
    payload: ContentVersionCreateRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    if not payload.title or payload.content is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title and content are required")
    version = ContentVersionsRepository(session).create(
        page_id=page_id,
        title=payload.title,
        content=payload.content,
        change_description=payload.change_description,
        is_auto_save=payload.is_auto_save,
        created_by=auth.user_id,
    )
    return jsonable_encoder(version)


@router.post("/pages/{page_id}/versions/{version_id}/restore", status_code=status.HTTP_201_CREATED)
def restore_version(
    page_id: str,
    version_id: str,
    payload: ContentRestoreRequest | None = None,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    page = _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    repo = ContentVersionsRepository(session)
    source = repo.get(page_id=page_id, version_id=version_id)
    if not source:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Version not found")
    restored = repo.restore(
        page=page,
        source=source,
        description=payload.restore_description if payload else None,
        created_by=auth.user_id,
    )
    logger.info(
        "Content version restored",
        extra={"page_id": page_id, "source_version": source.version_number, "new_version": restored.version_number},
    )
    return {"message": "Version restored successfully", "version": jsonable_encoder(restored)}


@router.delete("/pages/{page_id}/versions/{version_id}")
def delete_version(
    page_id: str,
    version_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    repo = ContentVersionsRepository(session)
    version = repo.get(page_id=page_id, version_id=version_id)
    if not version:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Version not found")
    try:
        repo.delete(page_id=page_id, version=version)
    except LastVersionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"message": "Version deleted successfully"}


@router.get("/pages/{page_id}/versions/{version_id_1}/compare/{version_id_2}")
def compare_versions(
    page_id: str,
    version_id_1: str,
    version_id_2: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    repo = ContentVersionsRepository(session)
    v1 = repo.get(page_id=page_id, version_id=version_id_1)
    v2 = repo.get(page_id=page_id, version_id=version_id_2)
    if not v1 or not v2:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="One or both versions not found")

    def _summary(version) -> dict:
        return {
            "id": version.id,
            "version_number": version.version_number,
            "title": version.title,
            "created_at": version.created_at,
            "component_count": component_count(version.content),
            "size_bytes": version.size_bytes,
        }

    elapsed = as_utc(v2.created_at) - as_utc(v1.created_at)
    diff = {
        "version1": _summary(v1),
        "version2": _summary(v2),
        "changes": {
            "component_count_diff": component_count(v2.content) - component_count(v1.content),
            "size_diff": v2.size_bytes - v1.size_bytes,
            "time_diff": int(elapsed.total_seconds() * 1000),
        },
    }
    return {"diff": jsonable_encoder(diff)}


@router.post("/pages/{page_id}/auto-save")
def auto_save(
    page_id: str,
    payload: AutoSaveRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    _get_page_or_404(session, org_id=auth.org_id, page_id=page_id)
    if payload.content is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Content is required")
    version, created = ContentVersionsRepository(session).auto_save(
        page_id=page_id,
        content=payload.content,
        window_seconds=settings.CONTENT_AUTOSAVE_WINDOW_SECONDS,
        created_by=auth.user_id,
    )
    return {
        "message": "Auto-save created" if created else "Auto-save updated",
        "created": created,
        "version": jsonable_encoder(version),
    }
