from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Iterable

logger = logging.getLogger(__name__)


class BrandingRevisionConflictError(Exception):
    def __init__(self, *, expected: int, current: int) -> None:
        super().__init__(f"Branding was modified by someone else (expected revision {expected}, current {current}).")
        self.expected = expected
        self.current = current


DEFAULT_BRANDING: dict[str, Any] = {
    "appName": "",
    "logoUrl": None,
    "iconUrl": None,
    "primaryColor": "#3b82f6",
    "secondaryColor": "#6b7280",
    "accentColor": "#10b981",
    "primaryFont": "Inter",
    "secondaryFont": "Inter",
    "typography": {"baseSize": 16, "scale": 1.25, "headingWeight": 700, "bodyWeight": 400},
    "screens": {},
    "onboarding": {"enabled": True, "skippable": True, "slides": []},
    "flows": {
        "onboarding": {"enabled": True, "slides": []},
        "survey": {"enabled": False, "trigger": "after_onboarding", "slides": []},
        "login": {
            "requireEmailVerification": False,
            "allowSocialLogin": True,
            "termsAcceptedOn": "signup",
            "passwordPolicy": "standard",
        },
        "signup": {
            "requireEmailVerification": True,
            "allowSocialLogin": True,
            "termsAcceptedOn": "signup",
            "passwordPolicy": "standard",
        },
    },
    "social": {"google": False, "apple": False, "facebook": False, "github": False},
    "features": {},
    "navigation": {"type": "tabs", "items": []},
    "splash": {"backgroundColor": "#ffffff", "durationMs": 1500},
    "notifications": {"enabled": True},
    "announcements": {"enabled": False, "items": []},
    "updates": {"minimumVersion": None, "forceUpdate": False},
    "localization": {"defaultLanguage": "en", "supportedLanguages": ["en"], "enableRTL": False},
    "api": {"baseUrl": None, "timeout": 30000, "cacheExpiry": 300},
    "security": {"sessionTimeout": 30, "disableScreenshots": False, "mandatoryMFA": False},
    "analytics": {"enabled": False},
    "legal": {
        "privacyPolicyUrl": None,
        "termsOfServiceUrl": None,
        "cookiePolicyUrl": None,
        "dataDeletionUrl": None,
        "dataRequestEmail": None,
    },
    "seo": {},
    "ux": {},
    "tokens": {
        "primaryGradient": {"start": "#3b82f6", "end": "#8b5cf6", "angle": 135, "enabled": False},
        "secondaryGradient": {"start": "#10b981", "end": "#3b82f6", "angle": 135, "enabled": False},
        "glassmorphism": {"enabled": False, "blur": 10, "opacity": 0.8},
        "borderRadius": "standard",
    },
    "engagement": {},
    "support": {},
}

# Section name -> path inside the branding document.
SECTION_PATHS: dict[str, tuple[str, ...]] = {
    "security": ("security",),
    "api": ("api",),
    "legal": ("legal",),
    "localization": ("localization",),
    "tokens": ("tokens",),
    "survey": ("flows", "survey"),
    "onboarding": ("onboarding",),
    "features": ("features",),
    "social": ("social",),
    "typography": ("typography",),
    "announcements": ("announcements",),
}


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """
    Merge ``patch`` into a copy of ``base``.

    Nested objects merge key by key; lists and scalars in ``patch`` replace what was there.
    """
    merged = deepcopy(base)
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


def default_branding(*, app_name: str = "") -> dict[str, Any]:
    branding = deepcopy(DEFAULT_BRANDING)
    branding["appName"] = app_name
    return branding


def check_revision(*, expected: int | None, current: int) -> None:
    if expected is not None and expected != current:
        raise BrandingRevisionConflictError(expected=expected, current=current)


def _section_path(section: str, fields: dict[str, Any]) -> tuple[str, ...]:
    if section == "authFlow":
        return ("flows", fields.pop("flow", "login"))
    try:
        return SECTION_PATHS[section]
    except KeyError as exc:
        raise ValueError(f"Unknown branding section: {section}") from exc


def apply_section_updates(branding: dict[str, Any], updates: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """
    Apply typed section updates to a branding document.

    Each update only touches the slice it names, and only the fields it carries.
    """
    result = deepcopy(branding)
    for update in updates:
        fields = {k: v for k, v in update.items() if k != "section"}
        path = _section_path(update["section"], fields)
        node = result
        for part in path[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        leaf = node.get(path[-1])
        node[path[-1]] = {**(leaf if isinstance(leaf, dict) else {}), **deepcopy(fields)}
        logger.debug("Applied branding section update", extra={"section": update["section"], "fields": list(fields)})
    return result
