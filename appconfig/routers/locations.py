from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from appconfig.auth.dependencies import AuthContext, get_current_user
from appconfig.db.deps import get_session
from appconfig.db.models import as_utc, utcnow
from appconfig.db.repositories.entities import MAX_PAGE_SIZE, EntitiesRepository
from appconfig.routers.entities import ensure_application, entity_payload
from appconfig.schemas.entities import LocationPingRequest

router = APIRouter(prefix="/locations", tags=["locations"])
logger = logging.getLogger(__name__)

LOCATION_ENTITY_TYPE = "location_ping"
RECORDED_AT = "recordedAt"
RECORDED_AT_ORDER = f"attributes.{RECORDED_AT}"


@router.post("/ping", status_code=status.HTTP_201_CREATED)
def ping(
    payload: LocationPingRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    ensure_application(session, auth, payload.applicationId)
    recorded_at = as_utc(payload.recordedAt) if payload.recordedAt else utcnow()
    entity = EntitiesRepository(session).create(
        org_id=auth.org_id,
        type_name=LOCATION_ENTITY_TYPE,
        owner_id=auth.user_id,
        application_id=payload.applicationId,
        data={
            "latitude": payload.latitude,
            "longitude": payload.longitude,
            "accuracy": payload.accuracy,
            "address": payload.address,
            RECORDED_AT: recorded_at.isoformat(timespec="microseconds"),
        },
    )
    logger.debug("Location ping stored", extra={"entity_id": entity.id, "user_id": auth.user_id})
    return entity_payload(entity)


@router.get("/history")
def history(
    days: int = Query(default=7, ge=1, le=365),
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    pings, total = EntitiesRepository(session).query(
        org_id=auth.org_id,
        type_name=LOCATION_ENTITY_TYPE,
        owner_id=auth.user_id,
        since=utcnow() - timedelta(days=days),
        since_attribute=RECORDED_AT,
        order_by=RECORDED_AT_ORDER,
        limit=limit,
    )
    return {"locations": [entity_payload(item) for item in pings], "total": total, "days": days}


@router.get("/latest")
def latest(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    pings, _ = EntitiesRepository(session).query(
        org_id=auth.org_id,
        type_name=LOCATION_ENTITY_TYPE,
        owner_id=auth.user_id,
        order_by=RECORDED_AT_ORDER,
        limit=1,
    )
    if not pings:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No location recorded")
    return entity_payload(pings[0])
