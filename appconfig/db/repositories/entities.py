from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Text, cast, func, select
from sqlalchemy.orm import Session

from appconfig.db.enums import EntityStatusEnum
from appconfig.db.models import Entity, EntityRelation

MAX_PAGE_SIZE = 100
_ORDER_COLUMNS = {
    "created_at": Entity.created_at,
    "updated_at": Entity.updated_at,
}


def _order_column(order_by: str):
    if order_by.startswith("attributes."):
        return Entity.data[order_by.split(".", 1)[1]].as_string()
    return _ORDER_COLUMNS.get(order_by, Entity.created_at)


def _attribute_clause(key: str, value: Any):
    element = Entity.data[key]
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    if isinstance(value, float):
        return element.as_float() == value
    return element.as_string() == str(value)


class EntitiesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(
        self,
        *,
        org_id: str,
        type_name: str,
        owner_id: str,
        data: dict[str, Any],
        meta: Optional[dict[str, Any]] = None,
        application_id: Optional[str] = None,
    ) -> Entity:
        entity = Entity(
            org_id=org_id,
            type=type_name,
            owner_id=owner_id,
            application_id=application_id,
            data=data,
            meta=meta or {},
        )
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def get(
        self,
        *,
        org_id: str,
        entity_id: str,
        type_name: Optional[str] = None,
        owner_id: Optional[str] = None,
        include_deleted: bool = False,
    ) -> Optional[Entity]:
        stmt = select(Entity).where(Entity.org_id == org_id, Entity.id == entity_id)
        if type_name:
            stmt = stmt.where(Entity.type == type_name)
        if owner_id:
            stmt = stmt.where(Entity.owner_id == owner_id)
        if not include_deleted:
            stmt = stmt.where(Entity.status != EntityStatusEnum.deleted)
        return self.session.scalars(stmt).first()

    def update(
        self,
        entity: Entity,
        *,
        data: Optional[dict[str, Any]] = None,
        meta: Optional[dict[str, Any]] = None,
        status: Optional[EntityStatusEnum] = None,
    ) -> Entity:
        """Shallow-merge ``data``/``meta`` into the stored documents; ``status`` replaces."""
        if data is not None:
            entity.data = {**(entity.data or {}), **data}
        if meta is not None:
            entity.meta = {**(entity.meta or {}), **meta}
        if status is not None:
            entity.status = status
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def delete(self, entity: Entity, *, hard: bool = False) -> None:
        if hard:
            self.session.delete(entity)
        else:
            entity.status = EntityStatusEnum.deleted
        self.session.commit()

    def query(
        self,
        *,
        org_id: str,
        type_name: str,
        owner_id: Optional[str] = None,
        application_id: Optional[str] = None,
        status: Optional[EntityStatusEnum] = None,
        search: Optional[str] = None,
        filters: Optional[dict[str, Any]] = None,
        since: Optional[datetime] = None,
        since_attribute: Optional[str] = None,
        order_by: str = "created_at",
        order_dir: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Entity], int]:
        stmt = select(Entity).where(Entity.org_id == org_id, Entity.type == type_name)
        if owner_id:
            stmt = stmt.where(Entity.owner_id == owner_id)
        if application_id:
            stmt = stmt.where(Entity.application_id == application_id)
        if status:
            stmt = stmt.where(Entity.status == status)
        else:
            stmt = stmt.where(Entity.status != EntityStatusEnum.deleted)
        if search:
            stmt = stmt.where(func.lower(cast(Entity.data, Text)).like(f"%{search.lower()}%"))
        if since is not None and since_attribute:
            # Timestamp attributes are stored as UTC isoformat strings with microseconds.
            cutoff = since.isoformat(timespec="microseconds")
            stmt = stmt.where(Entity.data[since_attribute].as_string() >= cutoff)
        elif since is not None:
            stmt = stmt.where(Entity.created_at >= since)
        for key, value in (filters or {}).items():
            stmt = stmt.where(_attribute_clause(key, value))

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0

        column = _order_column(order_by)
        stmt = stmt.order_by(column.asc() if order_dir.lower() == "asc" else column.desc())
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        page = max(1, page)
        stmt = stmt.offset((page - 1) * limit).limit(limit)
        return list(self.session.scalars(stmt).all()), total

    def count_by_attribute(
        self,
        *,
        org_id: str,
        type_name: str,
        key: str,
        owner_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> dict[str, int]:
        value = Entity.data[key].as_string()
        stmt = (
            select(value, func.count())
            .where(
                Entity.org_id == org_id,
                Entity.type == type_name,
                Entity.status != EntityStatusEnum.deleted,
            )
            .group_by(value)
        )
        if owner_id:
            stmt = stmt.where(Entity.owner_id == owner_id)
        if since is not None:
            stmt = stmt.where(Entity.created_at >= since)
        return {label: count for label, count in self.session.execute(stmt).all() if label is not None}


class EntityRelationsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, *, source_id: str, target_id: str, relation_type: str) -> Optional[EntityRelation]:
        stmt = select(EntityRelation).where(
            EntityRelation.source_id == source_id,
            EntityRelation.target_id == target_id,
            EntityRelation.relation_type == relation_type,
        )
        return self.session.scalars(stmt).first()

    def upsert(
        self,
        *,
        source_id: str,
        target_id: str,
        relation_type: str,
        meta: Optional[dict[str, Any]] = None,
    ) -> EntityRelation:
        relation = self.get(source_id=source_id, target_id=target_id, relation_type=relation_type)
        if relation is None:
            relation = EntityRelation(
                source_id=source_id,
                target_id=target_id,
                relation_type=relation_type,
                meta=meta or {},
            )
            self.session.add(relation)
        elif meta:
            relation.meta = {**(relation.meta or {}), **meta}
        self.session.commit()
        self.session.refresh(relation)
        return relation

    def delete(self, *, source_id: str, target_id: str, relation_type: str) -> bool:
        relation = self.get(source_id=source_id, target_id=target_id, relation_type=relation_type)
        if relation is None:
            return False
        self.session.delete(relation)
        self.session.commit()
        return True

    def delete_for_target(self, *, target_id: str, relation_type: str) -> None:
        stmt = select(EntityRelation).where(
            EntityRelation.target_id == target_id,
            EntityRelation.relation_type == relation_type,
        )
        for relation in self.session.scalars(stmt).all():
            self.session.delete(relation)
        self.session.commit()

    def related(
        self,
        *,
        source_id: str,
        relation_type: str,
        target_type: Optional[str] = None,
    ) -> list[tuple[Entity, EntityRelation]]:
        """Entities ``source_id`` points at through ``relation_type``, newest edge first."""
        stmt = (
            select(Entity, EntityRelation)
            .join(EntityRelation, EntityRelation.target_id == Entity.id)
            .where(
                EntityRelation.source_id == source_id,
                EntityRelation.relation_type == relation_type,
                Entity.status != EntityStatusEnum.deleted,
            )
            .order_by(EntityRelation.created_at.desc())
        )
        if target_type:
            stmt = stmt.where(Entity.type == target_type)
        return [(row[0], row[1]) for row in self.session.execute(stmt).all()]

    def sources_for(self, *, target_id: str, relation_type: str) -> list[tuple[Entity, EntityRelation]]:
        stmt = (
            select(Entity, EntityRelation)
            .join(EntityRelation, EntityRelation.source_id == Entity.id)
            .where(
                EntityRelation.target_id == target_id,
                EntityRelation.relation_type == relation_type,
                Entity.status != EntityStatusEnum.deleted,
            )
            .order_by(EntityRelation.created_at.asc())
        )
        return [(row[0], row[1]) for row in self.session.execute(stmt).all()]

    def delete_for_source(self, *, source_id: str, relation_type: str) -> int:
        stmt = select(EntityRelation).where(
            EntityRelation.source_id == source_id,
            EntityRelation.relation_type == relation_type,
        )
        relations = list(self.session.scalars(stmt).all())
        for relation in relations:
            self.session.delete(relation)
        self.session.commit()
        return len(relations)
