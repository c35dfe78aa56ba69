"""
Style computation for the login/signup emulator.

Everything here is a pure function of a login config plus a device mode. Unknown or malformed
values fall back to defaults rather than failing the preview.
"""
from __future__ import annotations

from typing import Any, Literal

DeviceMode = Literal["desktop", "tablet", "mobile"]
Screen = Literal["login", "signup"]

DEFAULT_COLORS = {
    "primaryColor": "#3b82f6",
    "secondaryColor": "#6b7280",
    "accentColor": "#10b981",
    "textColor": "#1f2937",
}

_BUTTON_RADIUS = {
    "none": "0",
    "small": "2px",
    "medium": "4px",
    "large": "8px",
    "extra-large": "12px",
    "full": "9999px",
}
_BUTTON_SIZE = {
    "small": ("0.5rem 1rem", "0.875rem"),
    "large": ("1rem 2rem", "1.125rem"),
    "extra-large": ("1.25rem 2.5rem", "1.25rem"),
}
_BUTTON_ANIMATIONS = {
    "pulse": "pulse 2s infinite",
    "bounce": "bounce 2s infinite",
    "shake": "shake 0.5s infinite",
    "rotate": "rotate 2s infinite linear",
}
_MERGED_SECTIONS = ("branding", "layout", "form", "background")


def _obj(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _number(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def resolve_device_config(config: dict[str, Any], device: DeviceMode) -> dict[str, Any]:
    """Overlay the device-specific block onto the base config when responsive config is on."""
    merged = dict(config)
    responsive = _obj(config.get("responsive"))
    device_block = _obj(config.get(device)) if responsive.get("enableResponsiveConfig") else {}
    for section in _MERGED_SECTIONS:
        merged[section] = {**_obj(config.get(section)), **_obj(device_block.get(section))}
    return merged


def branding_colors(config: dict[str, Any]) -> dict[str, str]:
    branding = _obj(config.get("branding"))
    return {key: branding.get(key) or default for key, default in DEFAULT_COLORS.items()}


def background_style(config: dict[str, Any]) -> dict[str, Any]:
    bg = _obj(config.get("background"))
    bg_type = bg.get("type") or "solid"
    style: dict[str, Any] = {}

    if bg_type == "solid":
        style = {"backgroundColor": bg.get("value") or "#ffffff"}
    elif bg_type == "gradient":
        stops = bg.get("gradientStops")
        if isinstance(stops, list) and stops:
            parts = ", ".join(
                f"{_obj(stop).get('color')} {_obj(stop).get('position')}%" for stop in stops
            )
            style = {"background": f"linear-gradient({bg.get('gradientDirection') or 'to right'}, {parts})"}
    elif bg_type == "image":
        if bg.get("imageUrl"):
            style = {
                "backgroundImage": f"url({bg['imageUrl']})",
                "backgroundSize": "cover",
                "backgroundPosition": "center",
                "backgroundRepeat": "no-repeat",
            }
    elif bg_type == "pattern":
        style = _pattern_style(bg)

    if bg_type != "video":
        opacity = bg.get("opacity")
        if bg_type != "pattern" and isinstance(opacity, (int, float)) and opacity < 1:
            style["opacity"] = opacity
        blur = _number(bg.get("blur"), 0)
        if blur > 0:
            style["filter"] = f"blur({_format_number(blur)}px)"
    return style


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _pattern_style(bg: dict[str, Any]) -> dict[str, Any]:
    size = str(bg.get("patternSize") or "20px")
    color = bg.get("patternColor") or "#f3f4f6"
    opacity = bg.get("opacity") or 0.1
    ink = f"rgba(0,0,0,{opacity})"
    pattern = bg.get("patternType")
    if pattern == "dots":
        return {
            "backgroundColor": color,
            "backgroundImage": f"radial-gradient(circle at 1px 1px, {ink} 1px, transparent 0)",
            "backgroundSize": f"{size} {size}",
        }
    if pattern == "grid":
        return {
            "backgroundColor": color,
            "backgroundImage": (
                f"linear-gradient({ink} 1px, transparent 1px), "
                f"linear-gradient(90deg, {ink} 1px, transparent 1px)"
            ),
            "backgroundSize": f"{size} {size}",
        }
    doubled = int(_number(size.rstrip("px"), 20)) * 2
    return {
        "backgroundColor": color,
        "backgroundImage": (
            f"repeating-linear-gradient(45deg, transparent, transparent {size}, {ink} {size}, {ink} {doubled}px)"
        ),
    }


def video_background(config: dict[str, Any]) -> dict[str, Any] | None:
    bg = _obj(config.get("background"))
    if bg.get("type") != "video" or not bg.get("videoUrl"):
        return None
    return {
        "url": bg["videoUrl"],
        "filter": f"blur({_format_number(_number(bg.get('blur'), 0))}px)",
        "opacity": bg.get("opacity") or 1,
    }


def card_style(config: dict[str, Any], device: DeviceMode) -> dict[str, Any]:
    layout = _obj(config.get("layout"))
    if device == "mobile":
        max_width, padding = "100%", "1.5rem"
    elif device == "tablet":
        max_width, padding = "480px", "1.5rem"
    else:
        max_width, padding = "400px", "2rem"
    return {
        "width": layout.get("maxWidth") or max_width,
        "padding": layout.get("padding") or padding,
        "borderRadius": "0" if device == "mobile" else (layout.get("borderRadius") or "0.5rem"),
        "boxShadow": "none" if device == "mobile" else (layout.get("shadow") or "0 10px 25px rgba(0, 0, 0, 0.1)"),
    }


def _position(value: Any, start: str, end: str) -> str:
    if value == start:
        return "start"
    if value == end:
        return "end"
    return "center"


def container_style(config: dict[str, Any], device: DeviceMode) -> dict[str, Any]:
    layout = _obj(config.get("layout"))
    layout_type = layout.get("layout") or "centered"
    if device == "mobile":
        place_items = "center stretch"
    elif layout.get("useCustomPosition"):
        place_items = "start"
    else:
        vertical = _position(layout.get("verticalPosition"), "top", "bottom")
        horizontal = _position(layout.get("horizontalPosition"), "left", "right")
        place_items = f"{vertical} {horizontal}"
    edge_to_edge = device == "mobile" or layout_type in ("split", "full-width")
    return {
        **background_style(config),
        "display": "flex" if layout_type == "split" else "grid",
        "placeItems": place_items,
        "padding": "0" if edge_to_edge else "2rem",
        "minHeight": "100%",
    }


def button_style(config: dict[str, Any]) -> dict[str, Any]:
    form = _obj(config.get("form"))
    colors = branding_colors(config)
    style: dict[str, Any] = {
        "width": "100%" if form.get("buttonFullWidth") else "auto",
        "transition": "all 0.2s",
        "borderRadius": _BUTTON_RADIUS.get(form.get("buttonBorderRadius"), "0.5rem"),
    }
    style["padding"], style["fontSize"] = _BUTTON_SIZE.get(form.get("buttonSize"), ("0.75rem 1.5rem", "1rem"))

    variant = form.get("buttonStyle")
    if variant == "outline":
        style.update(
            backgroundColor="transparent",
            border=f"2px solid {colors['primaryColor']}",
            color=colors["primaryColor"],
        )
    elif variant == "ghost":
        style.update(backgroundColor="transparent", color=colors["primaryColor"])
    elif variant == "gradient":
        style.update(
            background=f"linear-gradient(to right, {colors['primaryColor']}, {colors['accentColor']})",
            color="white",
            border="none",
        )
    else:
        style.update(backgroundColor=colors["primaryColor"], color="white", border="none")

    animations = _obj(config.get("animations"))
    animation = animations.get("buttonAnimationType") or form.get("buttonAnimation")
    if animation in _BUTTON_ANIMATIONS:
        style["animation"] = _BUTTON_ANIMATIONS[animation]
    return style


def signup_fields(branding: dict[str, Any]) -> list[dict[str, Any]]:
    flow = _obj(_obj(branding.get("flows")).get("signup"))
    fields: list[dict[str, Any]] = [
        {"name": "name", "type": "text", "required": True},
        {"name": "email", "type": "email", "required": True},
        {
            "name": "password",
            "type": "password",
            "required": True,
            "hint": _password_hint(flow.get("passwordPolicy")),
        },
    ]
    if flow.get("termsAcceptedOn") in ("signup", "both"):
        fields.append({"name": "acceptTerms", "type": "checkbox", "required": True})
    return fields


def _password_hint(policy: Any) -> str:
    if policy == "strong":
        return "At least 12 characters with upper and lower case letters, a number and a symbol."
    if policy == "custom":
        return "Password must follow your organization's policy."
    return "At least 8 characters."


def build_preview(
    config: dict[str, Any],
    *,
    screen: Screen,
    device: DeviceMode,
    branding: dict[str, Any] | None = None,
) -> dict[str, Any]:
    resolved = resolve_device_config(config, device)
    layout = _obj(resolved.get("layout"))
    preview: dict[str, Any] = {
        "screen": screen,
        "device": device,
        "layout": layout.get("layout") or "centered",
        "colors": branding_colors(resolved),
        "container": container_style(resolved, device),
        "card": card_style(resolved, device),
        "button": button_style(resolved),
        "video": video_background(resolved),
        "backdropBlur": bool(layout.get("backdropBlur")),
        "showSplitImage": layout.get("layout") == "split" and device != "mobile",
    }
    if screen == "signup":
        preview["fields"] = signup_fields(branding or {})
    return preview
