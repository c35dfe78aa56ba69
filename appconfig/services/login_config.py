from __future__ import annotations

import re
from copy import deepcopy
from typing import Any

from appconfig.db.models import Application

BACKGROUND_TYPES = ("solid", "gradient", "image", "video", "pattern")
LAYOUT_TYPES = ("centered", "split", "full-width", "card")
THEMES = ("light", "dark", "auto")

_COLOR_PATTERNS = (
    re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"),
    re.compile(r"^rgb\(\d+,\s*\d+,\s*\d+\)$"),
    re.compile(r"^rgba\(\d+,\s*\d+,\s*\d+,\s*[\d.]+\)$"),
    re.compile(r"^hsl\(\d+,\s*\d+%,\s*\d+%\)$"),
    re.compile(r"^hsla\(\d+,\s*\d+%,\s*\d+%,\s*[\d.]+\)$"),
)

DEFAULT_LOGIN_CONFIG: dict[str, Any] = {
    "branding": {
        "appName": "",
        "logoUrl": None,
        "primaryColor": "#3b82f6",
        "secondaryColor": "#6b7280",
        "accentColor": "#10b981",
        "fontFamily": "Inter",
        "tagline": None,
        "description": None,
    },
    "background": {
        "type": "gradient",
        "gradientStops": [
            {"color": "#3b82f6", "position": 0},
            {"color": "#8b5cf6", "position": 100},
        ],
        "gradientDirection": "to right",
    },
    "layout": {
        "layout": "centered",
        "maxWidth": "400px",
        "padding": "2rem",
        "borderRadius": "1rem",
        "shadow": "0 20px 25px -5px rgba(0, 0, 0, 0.1)",
        "backdropBlur": True,
        "showBranding": True,
        "showFooter": True,
    },
    "form": {
        "showRememberMe": True,
        "showForgotPassword": True,
        "buttonStyle": "solid",
        "buttonSize": "medium",
        "buttonBorderRadius": "medium",
        "buttonFullWidth": True,
    },
    "socialLogin": {"enabled": False, "providers": []},
    "sso": {"enabled": False},
    "security": {"showCaptcha": False, "maxAttempts": 5},
    "analytics": {"trackViews": False},
    "customCSS": None,
    "customJS": None,
    "theme": "light",
    "animations": True,
    "locale": "en",
    "translations": {},
}

# Login config section -> key in `application.settings`.
_SETTINGS_KEYS = {
    "background": "loginBackground",
    "layout": "loginLayout",
    "form": "loginForm",
    "socialLogin": "socialLogin",
    "sso": "sso",
    "security": "loginSecurity",
    "analytics": "loginAnalytics",
    "customCSS": "customCSS",
    "customJS": "customJS",
    "theme": "theme",
    "animations": "animations",
    "locale": "locale",
    "translations": "translations",
    "responsive": "loginResponsive",
}
_BRANDING_KEYS = ("primaryColor", "secondaryColor", "accentColor", "fontFamily", "tagline", "description")


def is_valid_color(value: str) -> bool:
    return any(pattern.match(value) for pattern in _COLOR_PATTERNS)


def validate_login_config(config: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    branding = config.get("branding") or {}
    for key, label in (("primaryColor", "primary"), ("secondaryColor", "secondary"), ("accentColor", "accent")):
        value = branding.get(key)
        if value and (not isinstance(value, str) or not is_valid_color(value)):
            errors.append(f"Invalid {label} color format")

    background = config.get("background") or {}
    if background.get("type") and background["type"] not in BACKGROUND_TYPES:
        errors.append("Invalid background type")
    if "gradientStops" in background and not isinstance(background["gradientStops"], list):
        errors.append("Gradient stops must be an array")

    layout = config.get("layout") or {}
    if layout.get("layout") and layout["layout"] not in LAYOUT_TYPES:
        errors.append("Invalid layout type")

    if config.get("theme") and config["theme"] not in THEMES:
        errors.append("Invalid theme value")
    return errors


def merge_with_defaults(config: dict[str, Any]) -> dict[str, Any]:
    merged = deepcopy(DEFAULT_LOGIN_CONFIG)
    for key, value in config.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **{k: v for k, v in value.items() if v is not None}}
        else:
            merged[key] = deepcopy(value)
    return merged


def build_login_config(application: Application) -> dict[str, Any]:
    branding = application.branding or {}
    settings = application.settings or {}
    config: dict[str, Any] = {
        "branding": {
            "appName": application.name,
            "logoUrl": branding.get("logoUrl"),
            **{key: branding.get(key) for key in _BRANDING_KEYS},
        }
    }
    for section, settings_key in _SETTINGS_KEYS.items():
        if settings_key in settings:
            config[section] = settings[settings_key]
    return merge_with_defaults(config)


def apply_login_config(application: Application, config: dict[str, Any]) -> None:
    """Split a login config back into the application's branding and settings documents."""
    settings = deepcopy(application.settings or {})
    for section, settings_key in _SETTINGS_KEYS.items():
        if section in config:
            settings[settings_key] = deepcopy(config[section])

    branding = deepcopy(application.branding or {})
    incoming_branding = config.get("branding") or {}
    for key in _BRANDING_KEYS:
        if key in incoming_branding:
            branding[key] = incoming_branding[key]
    if incoming_branding.get("logoUrl"):
        branding["logoUrl"] = incoming_branding["logoUrl"]

    if incoming_branding.get("appName"):
        application.name = incoming_branding["appName"]
    application.branding = branding
    application.settings = settings
    application.branding_revision = (application.branding_revision or 0) + 1
