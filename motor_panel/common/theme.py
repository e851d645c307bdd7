from __future__ import annotations

from typing import Literal, get_args

from nicegui import ui

ThemeMode = Literal["light", "dark", "system"]
THEME_MODES: tuple[ThemeMode, ...] = get_args(ThemeMode)

_current_mode: ThemeMode = "system"


def get_palette(mode: ThemeMode) -> dict[str, str]:
    """Return palette tokens for the given mode ('system' resolves to dark)."""
    if mode == "light":
        return {
            "primary": "#3B8ED0",
            "primary_hover": "#36719F",
            "background": "#EBEBEB",
            "surface": "#DBDBDB",
            "text": "#1A1A1A",
            "muted": "#6B7280",
            "accent": "#22D3EE",
            "positive": "#21BA45",
            "negative": "#DB2828",
            "info": "#31CCEC",
            "warning": "#F2C037",
        }
    return {
        "primary": "#1F538D",
        "primary_hover": "#14375E",
        "background": "#1A1A1A",
        "surface": "#212121",
        "text": "#D6D6D6",
        "muted": "#949A9F",
        "accent": "#22D3EE",
        "positive": "#21BA45",
        "negative": "#DB2828",
        "info": "#31CCEC",
        "warning": "#F2C037",
    }


def _inject_css(p: dict[str, str]) -> None:
    ui.add_css(
        f"""
:root {{
  --mp-bg: {p["background"]};
  --mp-surface: {p["surface"]};
  --mp-text: {p["text"]};
  --mp-muted: {p["muted"]};
}}

body, .q-page {{ background: var(--mp-bg); color: var(--mp-text); }}
.q-header, .q-footer, .q-card {{ background: var(--mp-surface); color: var(--mp-text); }}
.motor-card {{ min-width: 320px; }}
.status-dot {{ width: 12px; height: 12px; border-radius: 9999px; }}
"""
    )


def apply_theme(mode: ThemeMode) -> None:
    """Set Quasar colors and dark mode for the current page."""
    global _current_mode
    _current_mode = mode
    pal = get_palette(mode)
    ui.colors(
        primary=pal["primary"],
        secondary=pal["primary_hover"],
        accent=pal["accent"],
        positive=pal["positive"],
        negative=pal["negative"],
        info=pal["info"],
        warning=pal["warning"],
    )
    if mode == "light":
        ui.dark_mode().disable()
    else:
        ui.dark_mode().enable()
    _inject_css(pal)


def get_theme() -> ThemeMode:
    return _current_mode


def parse_theme(value: str | None) -> ThemeMode:
    """Map a stored or toggle value ('Light', 'dark', ...) onto a ThemeMode."""
    name = (value or "system").strip().lower()
    for mode in THEME_MODES:
        if mode == name:
            return mode
    return "system"
