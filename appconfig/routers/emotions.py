from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from appconfig.auth.dependencies import AuthContext, get_current_user
from appconfig.db.deps import get_session
from appconfig.db.enums import EmotionEnum
from appconfig.db.models import utcnow
from appconfig.db.repositories.entities import MAX_PAGE_SIZE, EntitiesRepository
from appconfig.routers.entities import ensure_application, entity_payload
from appconfig.schemas.entities import EmotionCheckInRequest

router = APIRouter(prefix="/emotions", tags=["emotions"])

EMOTION_ENTITY_TYPE = "emotion_checkin"


@router.post("/check-in", status_code=status.HTTP_201_CREATED)
def check_in(
    payload: EmotionCheckInRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    ensure_application(session, auth, payload.applicationId)
    entity = EntitiesRepository(session).create(
        org_id=auth.org_id,
        type_name=EMOTION_ENTITY_TYPE,
        owner_id=auth.user_id,
        application_id=payload.applicationId,
        data={
            "emotion": payload.emotion.value,
            "intensity": payload.intensity,
            "note": payload.note,
        },
    )
    return entity_payload(entity)


@router.get("/history")
def history(
    days: int = Query(default=30, ge=1, le=365),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    entries, total = EntitiesRepository(session).query(
        org_id=auth.org_id,
        type_name=EMOTION_ENTITY_TYPE,
        owner_id=auth.user_id,
        since=utcnow() - timedelta(days=days),
        page=page,
        limit=limit,
    )
    return {"checkIns": [entity_payload(entry) for entry in entries], "total": total, "days": days}


@router.get("/summary")
def summary(
    days: int = Query(default=30, ge=1, le=365),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    counts = EntitiesRepository(session).count_by_attribute(
        org_id=auth.org_id,
        type_name=EMOTION_ENTITY_TYPE,
        key="emotion",
        owner_id=auth.user_id,
        since=utcnow() - timedelta(days=days),
    )
    per_emotion = {emotion.value: counts.get(emotion.value, 0) for emotion in EmotionEnum}
    total = sum(per_emotion.values())
    dominant = max(per_emotion, key=per_emotion.get) if total else None
    return {"days": days, "total": total, "counts": per_emotion, "dominant": dominant}
