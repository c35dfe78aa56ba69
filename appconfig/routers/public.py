from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import Response as BinaryResponse
from sqlalchemy.orm import Session

from appconfig.db.deps import get_session
from appconfig.db.models import Application
from appconfig.db.repositories.applications import ApplicationsRepository, StoredAssetsRepository
from appconfig.db.repositories.content import ContentAnalyticsRepository, ContentPagesRepository
from appconfig.db.repositories.marketing_slides import MarketingSlidesRepository
from appconfig.services.assets import read_asset_bytes
from appconfig.services.login_config import build_login_config
from appconfig.services.media_storage import IMMUTABLE_CACHE_CONTROL, MediaObjectNotFoundError

router = APIRouter(prefix="/public", tags=["public"])
storage_router = APIRouter(prefix="/storage", tags=["storage"])
logger = logging.getLogger(__name__)

_DISPLAY_FLAGS = ("showOnLogin", "showOnHome", "showOnNews", "showAsPopup")


def _get_active_application_or_404(session: Session, slug: str) -> Application:
    application = ApplicationsRepository(session).get_by_slug(slug)
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return application


@router.get("/applications/{slug}/config")
def get_mobile_config(slug: str, session: Session = Depends(get_session)):
    application = _get_active_application_or_404(session, slug)
    styles = application.component_styles or {}
    return jsonable_encoder(
        {
            "componentStyles": {
                "branding": application.branding,
                "categories": styles.get("categories", []),
                "updatedAt": styles.get("updatedAt") or application.updated_at,
            },
            "revision": application.branding_revision,
        }
    )


@router.get("/applications/{slug}/login-config")
def get_public_login_config(slug: str, session: Session = Depends(get_session)):
    application = _get_active_application_or_404(session, slug)
    return {"config": build_login_config(application)}


@router.get("/applications/{slug}/content")
def list_published_content(
    slug: str,
    type: Optional[str] = None,
    showOnLogin: Optional[bool] = None,
    showOnHome: Optional[bool] = None,
    showOnNews: Optional[bool] = None,
    showAsPopup: Optional[bool] = None,
    session: Session = Depends(get_session),
):
    application = _get_active_application_or_404(session, slug)
    wanted = {
        flag: value
        for flag, value in zip(_DISPLAY_FLAGS, (showOnLogin, showOnHome, showOnNews, showAsPopup))
        if value is not None
    }
    pages = [
        page
        for page in ContentPagesRepository(session).list_published(application_id=application.id)
        if (not type or page.type == type)
        and all(bool((page.mobile_display or {}).get(flag)) == value for flag, value in wanted.items())
    ]
    return jsonable_encoder(
        {
            "pages": [
                {
                    "id": page.id,
                    "title": page.title,
                    "slug": page.slug,
                    "type": page.type,
                    "components": page.components,
                    "mobileDisplay": page.mobile_display,
                    "updatedAt": page.updated_at,
                }
                for page in pages
            ]
        }
    )


@router.get("/applications/{slug}/marketing-slides")
def list_published_slides(slug: str, session: Session = Depends(get_session)) -> list:
    application = _get_active_application_or_404(session, slug)
    slides = MarketingSlidesRepository(session).list_published(application_id=application.id)
    return jsonable_encoder(
        [
            {
                "id": slide.id,
                "title": slide.title,
                "subtitle": slide.subtitle,
                "description": slide.description,
                "ordering": slide.ordering,
                **(slide.slide_data or {}),
            }
            for slide in slides
        ]
    )


@router.post("/content/pages/{page_id}/view")
def track_page_view(page_id: str, session: Session = Depends(get_session)):
    page = ContentPagesRepository(session).get_published(page_id)
    if not page:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")
    analytics = ContentAnalyticsRepository(session).record_view(page.id)
    return {"views": analytics.views}


@storage_router.get("/proxy/{asset_id}")
def proxy_asset(asset_id: str, session: Session = Depends(get_session)):
    asset = StoredAssetsRepository(session).get(asset_id)
    if not asset:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")
    try:
        data = read_asset_bytes(asset)
    except MediaObjectNotFoundError as exc:
        logger.warning("Stored asset missing from storage", extra={"asset_id": asset_id, "key": asset.storage_key})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found") from exc
    return BinaryResponse(
        content=data,
        media_type=asset.content_type or "application/octet-stream",
        headers={"Cache-Control": IMMUTABLE_CACHE_CONTROL},
    )
