from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from appconfig.db.enums import SlideStatusEnum


class SlideData(BaseModel):
    gradient: list[str] = Field(default_factory=lambda: ["#3b82f6", "#8b5cf6"], min_length=2, max_length=2)
    features: list[str] = Field(default_factory=list)
    icon: Optional[str] = None
    ctaText: Optional[str] = None
    imageUrl: Optional[str] = None


class MarketingSlideCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    subtitle: Optional[str] = None
    description: Optional[str] = None
    status: SlideStatusEnum = SlideStatusEnum.draft
    ordering: Optional[int] = None
    applicationId: Optional[str] = None
    slideData: SlideData = Field(default_factory=SlideData)


class MarketingSlideUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    subtitle: Optional[str] = None
    description: Optional[str] = None
    status: Optional[SlideStatusEnum] = None
    ordering: Optional[int] = None
    slideData: Optional[SlideData] = None


class SlideReorderRequest(BaseModel):
    ids: list[str] = Field(min_length=1)
