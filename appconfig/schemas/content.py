from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from appconfig.db.enums import ContentStatusEnum


class MobileDisplay(BaseModel):
    showOnLogin: bool = False
    showOnHome: bool = False
    showOnNews: bool = False
    showAsPopup: bool = False


class ContentPageCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    slug: str = Field(min_length=1, max_length=200)
    type: str = Field(min_length=1, max_length=64)
    status: ContentStatusEnum = ContentStatusEnum.draft
    components: list[Any] = Field(default_factory=list)
    mobileDisplay: MobileDisplay = Field(default_factory=MobileDisplay)
    applicationId: Optional[str] = None


class ContentPageUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=200)
    type: Optional[str] = None
    status: Optional[ContentStatusEnum] = None
    components: Optional[list[Any]] = None
    mobileDisplay: Optional[MobileDisplay] = None
    applicationId: Optional[str] = None


class ContentVersionCreateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[dict[str, Any]] = None
    change_description: Optional[str] = None
    is_auto_save: bool = False


class ContentRestoreRequest(BaseModel):
    restore_description: Optional[str] = None


class AutoSaveRequest(BaseModel):
    content: Optional[dict[str, Any]] = None
