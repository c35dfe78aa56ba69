from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from appconfig.db.enums import EmotionEnum, EntityStatusEnum


class EntityCreateRequest(BaseModel):
    attributes: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    applicationId: Optional[str] = None


class EntityUpdateRequest(BaseModel):
    attributes: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = None
    status: Optional[EntityStatusEnum] = None


class RelationUpsertRequest(BaseModel):
    targetId: str
    relationType: str = Field(min_length=1, max_length=64)
    metadata: dict[str, Any] = Field(default_factory=dict)


class EmotionCheckInRequest(BaseModel):
    emotion: EmotionEnum
    intensity: int = Field(default=3, ge=1, le=5)
    note: Optional[str] = Field(default=None, max_length=2000)
    applicationId: Optional[str] = None


class LocationPingRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0)
    address: Optional[str] = None
    recordedAt: Optional[datetime] = None
    applicationId: Optional[str] = None


class AlbumCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None


class AlbumUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    coverPhotoId: Optional[str] = None


class PhotoCreateRequest(BaseModel):
    url: str = Field(min_length=1)
    caption: Optional[str] = None
    albumId: Optional[str] = None
    takenAt: Optional[datetime] = None
    width: Optional[int] = None
    height: Optional[int] = None


class PhotoMoveRequest(BaseModel):
    albumId: Optional[str] = None
