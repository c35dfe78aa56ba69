from enum import Enum


class ApplicationVersionStatusEnum(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class ContentStatusEnum(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class SlideStatusEnum(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class SubscriptionStatusEnum(str, Enum):
    incomplete = "incomplete"
    incomplete_expired = "incomplete_expired"
    trialing = "trialing"
    active = "active"
    past_due = "past_due"
    unpaid = "unpaid"
    canceled = "canceled"
    paused = "paused"


class EntityStatusEnum(str, Enum):
    active = "active"
    archived = "archived"
    deleted = "deleted"


class AssetKindEnum(str, Enum):
    logo = "logo"
    icon = "icon"
    branding = "branding"


class EmotionEnum(str, Enum):
    HAPPY = "HAPPY"
    CALM = "CALM"
    WORRIED = "WORRIED"
    EXCITED = "EXCITED"
    FRUSTRATED = "FRUSTRATED"
    ANGRY = "ANGRY"
    SAD = "SAD"
    SHY = "SHY"
    SCARED = "SCARED"
    NERVOUS = "NERVOUS"
    TIRED = "TIRED"
    SILLY = "SILLY"
    DISAPPOINTED = "DISAPPOINTED"
    LOVED = "LOVED"
    PROUD = "PROUD"
    CONFUSED = "CONFUSED"


ACTIVE_SUBSCRIPTION_STATUSES = (
    SubscriptionStatusEnum.active.value,
    SubscriptionStatusEnum.trialing.value,
)
CURRENT_SUBSCRIPTION_STATUSES = (
    SubscriptionStatusEnum.active.value,
    SubscriptionStatusEnum.trialing.value,
    SubscriptionStatusEnum.past_due.value,
)
