"""Centralized color constants and icons for terminal output."""

import os
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Theme:
    """Color palette used by the renderers."""

    name: str
    ACCENT: str
    BORDER: str
    DIM: str
    TEXT: str
    SUCCESS: str
    WARN: str
    ERROR: str
    INFO: str


_THEMES: Dict[str, Theme] = {
    "github_dark": Theme(
        name="github_dark",
        ACCENT="#7FA6D9", BORDER="#30363D", DIM="#6E7681", TEXT="#E6EDF3",
        SUCCESS="#57DB9C", WARN="#E3B341", ERROR="#F85149", INFO="#58A6FF",
    ),
    "github_light": Theme(
        name="github_light",
        ACCENT="#0969DA", BORDER="#D0D7DE", DIM="#6E7781", TEXT="#1F2328",
        SUCCESS="#1A7F37", WARN="#9A6700", ERROR="#CF222E", INFO="#0969DA",
    ),
    # Plain output for NO_COLOR; rich treats "none" as no style.
    "no_color": Theme(
        name="no_color",
        ACCENT="none", BORDER="none", DIM="none", TEXT="none",
        SUCCESS="none", WARN="none", ERROR="none", INFO="none",
    ),
}

_current_theme: Optional[Theme] = None

# ASCII fallbacks for terminals without unicode support
_ICON_MAP = {
    "●": "*",
    "▸": ">",
    "✓": "+",
    "✗": "x",
    "○": "o",
    "★": "!",
}
_USE_UNICODE = os.environ.get("ENKAI_ASCII", "") == ""


def get_theme() -> Theme:
    """Return the currently active theme."""
    global _current_theme
    if _current_theme is None:
        _current_theme = _THEMES["no_color" if os.environ.get("NO_COLOR") else "github_dark"]
    return _current_theme


def set_theme(name: str) -> bool:
    """Set the active theme by name. Returns True if successful."""
    global _current_theme
    if os.environ.get("NO_COLOR"):
        _current_theme = _THEMES["no_color"]
        return True
    theme = _THEMES.get(name.lower())
    if theme is None:
        return False
    _current_theme = theme
    return True


def list_themes() -> list:
    return list(_THEMES)


def get_icon(unicode_icon: str) -> str:
    """Unicode icon, or its ASCII fallback when ENKAI_ASCII is set."""
    if _USE_UNICODE:
        return unicode_icon
    return _ICON_MAP.get(unicode_icon, unicode_icon)


def __getattr__(name: str):
    """Dynamically get colors from the active theme."""
    theme = get_theme()
    if name.isupper() and hasattr(theme, name):
        return getattr(theme, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
