from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from appconfig.auth.dependencies import AuthContext, require_admin
from appconfig.db.deps import get_session
from appconfig.db.enums import SlideStatusEnum
from appconfig.db.models import MarketingSlide
from appconfig.db.repositories.applications import ApplicationsRepository
from appconfig.db.repositories.marketing_slides import MarketingSlidesRepository
from appconfig.schemas.marketing import (
    MarketingSlideCreateRequest,
    MarketingSlideUpdateRequest,
    SlideReorderRequest,
)

router = APIRouter(prefix="/admin/marketing/slides", tags=["marketing"])


def _get_slide_or_404(session: Session, *, org_id: str, slide_id: str) -> MarketingSlide:
    slide = MarketingSlidesRepository(session).get(org_id=org_id, slide_id=slide_id)
    if not slide:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Slide not found")
    return slide


@router.get("")
def list_slides(
    applicationId: Optional[str] = None,
    status_filter: Optional[SlideStatusEnum] = Query(default=None, alias="status"),
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> list:
    repo = MarketingSlidesRepository(session)
    return jsonable_encoder(repo.list(org_id=auth.org_id, application_id=applicationId, status=status_filter))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_slide(
    payload: MarketingSlideCreateRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if payload.applicationId and not ApplicationsRepository(session).get(
        org_id=auth.org_id, application_id=payload.applicationId
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    slide = MarketingSlidesRepository(session).create(
        org_id=auth.org_id,
        ordering=payload.ordering,
        application_id=payload.applicationId,
        title=payload.title,
        subtitle=payload.subtitle,
        description=payload.description,
        status=payload.status,
        slide_data=payload.slideData.model_dump(),
        created_by=auth.user_id,
    )
    return jsonable_encoder(slide)


@router.post("/reorder")
def reorder_slides(
    payload: SlideReorderRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> list:
    try:
        slides = MarketingSlidesRepository(session).reorder(org_id=auth.org_id, slide_ids=payload.ids)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Slides not found: {exc}") from exc
    return jsonable_encoder(slides)


@router.get("/{slide_id}")
def get_slide(
    slide_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    return jsonable_encoder(_get_slide_or_404(session, org_id=auth.org_id, slide_id=slide_id))


@router.put("/{slide_id}")
def update_slide(
    slide_id: str,
    payload: MarketingSlideUpdateRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    slide = _get_slide_or_404(session, org_id=auth.org_id, slide_id=slide_id)
    fields: dict[str, object] = {}
    for attr in ("subtitle", "description"):
        if attr in payload.model_fields_set:
            fields[attr] = getattr(payload, attr)
    for attr in ("title", "status", "ordering"):
        value = getattr(payload, attr)
        if value is not None:
            fields[attr] = value
    if payload.slideData is not None:
        fields["slide_data"] = payload.slideData.model_dump()
    return jsonable_encoder(MarketingSlidesRepository(session).update(slide, **fields))


@router.delete("/{slide_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_slide(
    slide_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    slide = _get_slide_or_404(session, org_id=auth.org_id, slide_id=slide_id)
    MarketingSlidesRepository(session).delete(slide)
