from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

SLUG_PATTERN = r"^[a-z0-9][a-z0-9-]*$"


class ApplicationCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    slug: str = Field(min_length=1, max_length=120, pattern=SLUG_PATTERN)
    description: Optional[str] = None
    branding: dict[str, Any] = Field(default_factory=dict)


class ApplicationUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    slug: Optional[str] = None
    description: Optional[str] = None
    isActive: Optional[bool] = None


class BrandingUpdateRequest(BaseModel):
    branding: dict[str, Any]
    expectedRevision: Optional[int] = None


# Typed per-section branding updates. Fields left unset are not written.


class AuthFlowSettings(BaseModel):
    section: Literal["authFlow"]
    flow: Literal["login", "signup"] = "login"
    requireEmailVerification: Optional[bool] = None
    allowSocialLogin: Optional[bool] = None
    termsAcceptedOn: Optional[Literal["signup", "login", "both"]] = None
    passwordPolicy: Optional[Literal["standard", "strong", "custom"]] = None


class SecuritySettings(BaseModel):
    section: Literal["security"]
    sessionTimeout: Optional[int] = Field(default=None, ge=1)
    disableScreenshots: Optional[bool] = None
    mandatoryMFA: Optional[bool] = None


class ApiSettings(BaseModel):
    section: Literal["api"]
    baseUrl: Optional[str] = None
    timeout: Optional[int] = Field(default=None, ge=0)
    cacheExpiry: Optional[int] = Field(default=None, ge=0)


class LegalSettings(BaseModel):
    section: Literal["legal"]
    privacyPolicyUrl: Optional[str] = None
    termsOfServiceUrl: Optional[str] = None
    cookiePolicyUrl: Optional[str] = None
    dataDeletionUrl: Optional[str] = None
    dataRequestEmail: Optional[str] = None


class LocalizationSettings(BaseModel):
    section: Literal["localization"]
    defaultLanguage: Optional[str] = None
    supportedLanguages: Optional[list[str]] = None
    enableRTL: Optional[bool] = None


class GradientToken(BaseModel):
    start: str
    end: str
    angle: int = 135
    enabled: bool = True


class GlassmorphismToken(BaseModel):
    enabled: bool = False
    blur: int = 10
    opacity: float = Field(default=0.8, ge=0, le=1)


class VisualTokenSettings(BaseModel):
    section: Literal["tokens"]
    primaryGradient: Optional[GradientToken] = None
    secondaryGradient: Optional[GradientToken] = None
    glassmorphism: Optional[GlassmorphismToken] = None
    borderRadius: Optional[Literal["sharp", "standard", "organic", "squircle"]] = None


class SurveySlide(BaseModel):
    id: str
    question: str
    options: list[str] = Field(default_factory=list)
    type: Literal["single_choice", "multiple_choice", "text"] = "single_choice"


class SurveySettings(BaseModel):
    section: Literal["survey"]
    enabled: Optional[bool] = None
    trigger: Optional[Literal["on_startup", "after_onboarding", "after_first_action"]] = None
    slides: Optional[list[SurveySlide]] = None


class OnboardingSettings(BaseModel):
    section: Literal["onboarding"]
    enabled: Optional[bool] = None
    skippable: Optional[bool] = None
    slides: Optional[list[dict[str, Any]]] = None


class FeatureSettings(BaseModel):
    section: Literal["features"]
    flags: dict[str, bool] = Field(default_factory=dict)


class SocialSettings(BaseModel):
    section: Literal["social"]
    google: Optional[bool] = None
    apple: Optional[bool] = None
    facebook: Optional[bool] = None
    github: Optional[bool] = None


class TypographySettings(BaseModel):
    section: Literal["typography"]
    baseSize: Optional[int] = Field(default=None, ge=8, le=32)
    scale: Optional[float] = Field(default=None, gt=1, le=2)
    headingWeight: Optional[int] = None
    bodyWeight: Optional[int] = None


class AnnouncementSettings(BaseModel):
    section: Literal["announcements"]
    enabled: Optional[bool] = None
    items: Optional[list[dict[str, Any]]] = None


BrandingSectionUpdate = Annotated[
    Union[
        AuthFlowSettings,
        SecuritySettings,
        ApiSettings,
        LegalSettings,
        LocalizationSettings,
        VisualTokenSettings,
        SurveySettings,
        OnboardingSettings,
        FeatureSettings,
        SocialSettings,
        TypographySettings,
        AnnouncementSettings,
    ],
    Field(discriminator="section"),
]


class BrandingSectionsRequest(BaseModel):
    updates: list[BrandingSectionUpdate] = Field(min_length=1)
    expectedRevision: Optional[int] = None


def section_update_fields(update: BaseModel) -> dict[str, Any]:
    """Only what the caller sent; `features` flattens its flag map into the slice."""
    fields = update.model_dump(exclude_unset=True, mode="json")
    fields["section"] = update.section
    if isinstance(update, FeatureSettings):
        fields = {"section": "features", **update.flags}
    if isinstance(update, AuthFlowSettings):
        fields["flow"] = update.flow
    return fields


class LoginConfigRequest(BaseModel):
    config: dict[str, Any]


class PreviewRequest(BaseModel):
    config: dict[str, Any] = Field(default_factory=dict)


class ApplicationVersionCreateRequest(BaseModel):
    branding: Optional[dict[str, Any]] = None
    settings: Optional[dict[str, Any]] = None
    notes: Optional[str] = None


class ApplicationVersionUpdateRequest(BaseModel):
    branding: Optional[dict[str, Any]] = None
    settings: Optional[dict[str, Any]] = None
    notes: Optional[str] = None


class ComponentStylesRequest(BaseModel):
    componentStyles: dict[str, Any]
