from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from appconfig.auth.dependencies import AuthContext, get_current_user
from appconfig.db.deps import get_session
from appconfig.db.enums import EntityStatusEnum
from appconfig.db.models import Entity, EntityRelation
from appconfig.db.repositories.applications import ApplicationsRepository
from appconfig.db.repositories.entities import MAX_PAGE_SIZE, EntitiesRepository, EntityRelationsRepository
from appconfig.schemas.entities import EntityCreateRequest, EntityUpdateRequest, RelationUpsertRequest

router = APIRouter(prefix="/entities/{type_name}", tags=["entities"])
logger = logging.getLogger(__name__)


def entity_payload(entity: Entity, relation: Optional[EntityRelation] = None) -> dict[str, Any]:
    payload = {
        "id": entity.id,
        "type": entity.type,
        "applicationId": entity.application_id,
        "ownerId": entity.owner_id,
        "status": entity.status,
        "attributes": entity.data or {},
        "metadata": entity.meta or {},
        "createdAt": entity.created_at,
        "updatedAt": entity.updated_at,
    }
    if relation is not None:
        payload["relation"] = {
            "type": relation.relation_type,
            "metadata": relation.meta or {},
            "createdAt": relation.created_at,
        }
    return jsonable_encoder(payload)


def ensure_application(session: Session, auth: AuthContext, application_id: Optional[str]) -> None:
    if application_id and not ApplicationsRepository(session).get(org_id=auth.org_id, application_id=application_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")


def get_owned_entity_or_404(session: Session, auth: AuthContext, type_name: Optional[str], entity_id: str) -> Entity:
    entity = EntitiesRepository(session).get(
        org_id=auth.org_id,
        entity_id=entity_id,
        type_name=type_name,
        owner_id=auth.user_id,
    )
    if not entity:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entity not found")
    return entity


def _parse_filters(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        filters = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="filters must be a JSON object") from exc
    if not isinstance(filters, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="filters must be a JSON object")
    return filters


@router.get("")
def query_entities(
    type_name: str,
    applicationId: Optional[str] = None,
    search: Optional[str] = None,
    filters: Optional[str] = None,
    status_filter: Optional[EntityStatusEnum] = Query(default=None, alias="status"),
    orderBy: str = "created_at",
    orderDir: str = Query(default="desc", pattern="^(asc|desc)$"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    entities, total = EntitiesRepository(session).query(
        org_id=auth.org_id,
        type_name=type_name,
        owner_id=auth.user_id,
        application_id=applicationId,
        status=status_filter,
        search=search,
        filters=_parse_filters(filters),
        order_by=orderBy,
        order_dir=orderDir,
        page=page,
        limit=limit,
    )
    return {
        "items": [entity_payload(entity) for entity in entities],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_entity(
    type_name: str,
    payload: EntityCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    ensure_application(session, auth, payload.applicationId)
    entity = EntitiesRepository(session).create(
        org_id=auth.org_id,
        type_name=type_name,
        owner_id=auth.user_id,
        data=payload.attributes,
        meta=payload.metadata,
        application_id=payload.applicationId,
    )
    return entity_payload(entity)


@router.get("/{entity_id}")
def get_entity(
    type_name: str,
    entity_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return entity_payload(get_owned_entity_or_404(session, auth, type_name, entity_id))


@router.patch("/{entity_id}")
def update_entity(
    type_name: str,
    entity_id: str,
    payload: EntityUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    entity = get_owned_entity_or_404(session, auth, type_name, entity_id)
    entity = EntitiesRepository(session).update(
        entity,
        data=payload.attributes,
        meta=payload.metadata,
        status=payload.status,
    )
    return entity_payload(entity)


@router.delete("/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entity(
    type_name: str,
    entity_id: str,
    hard: bool = False,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    entity = get_owned_entity_or_404(session, auth, type_name, entity_id)
    EntitiesRepository(session).delete(entity, hard=hard)
    logger.info("Entity deleted", extra={"entity_id": entity_id, "type": type_name, "hard": hard})


@router.put("/{entity_id}/relations")
def upsert_relation(
    type_name: str,
    entity_id: str,
    payload: RelationUpsertRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    source = get_owned_entity_or_404(session, auth, type_name, entity_id)
    target = get_owned_entity_or_404(session, auth, None, payload.targetId)
    relation = EntityRelationsRepository(session).upsert(
        source_id=source.id,
        target_id=target.id,
        relation_type=payload.relationType,
        meta=payload.metadata,
    )
    return jsonable_encoder(
        {
            "sourceId": relation.source_id,
            "targetId": relation.target_id,
            "relationType": relation.relation_type,
            "metadata": relation.meta or {},
            "createdAt": relation.created_at,
        }
    )


@router.get("/{entity_id}/relations/{relation_type}")
def list_related(
    type_name: str,
    entity_id: str,
    relation_type: str,
    targetType: Optional[str] = None,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    source = get_owned_entity_or_404(session, auth, type_name, entity_id)
    rows = EntityRelationsRepository(session).related(
        source_id=source.id, relation_type=relation_type, target_type=targetType
    )
    return {"items": [entity_payload(entity, relation) for entity, relation in rows]}


@router.delete("/{entity_id}/relations/{relation_type}/{target_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_relation(
    type_name: str,
    entity_id: str,
    relation_type: str,
    target_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    source = get_owned_entity_or_404(session, auth, type_name, entity_id)
    removed = EntityRelationsRepository(session).delete(
        source_id=source.id, target_id=target_id, relation_type=relation_type
    )
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Relation not found")
