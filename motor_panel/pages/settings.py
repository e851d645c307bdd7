from __future__ import annotations

import logging

from nicegui import app as ng_app
from nicegui import ui

from motor_panel.common.theme import apply_theme, get_theme, parse_theme
from motor_panel.config import PanelConfig


class SettingsPage:
    """Settings tab: theme mode and the active bridge configuration."""

    def __init__(self, config: PanelConfig) -> None:
        self.config = config

    def build(self) -> None:
        with ui.card().classes("w-full"):
            ui.label("Appearance").classes("text-md font-medium")
            saved_mode = parse_theme(ng_app.storage.general.get("theme_mode", get_theme()))
            mode_toggle = ui.toggle(
                options=["System", "Light", "Dark"], value=saved_mode.capitalize()
            ).props("dense")

            def _on_mode() -> None:
                mode = parse_theme(mode_toggle.value)
                apply_theme(mode)
                ng_app.storage.general["theme_mode"] = mode
                logging.debug("Set theme to mode: %s", mode)

            mode_toggle.on_value_change(lambda e: _on_mode())

        with ui.card().classes("w-full"):
            ui.label("Bridge").classes("text-md font-medium")
            with ui.grid(columns=2).classes("gap-x-6 gap-y-1 text-sm"):
                ui.label("Endpoint")
                ui.label(self.config.bridge_url).mark("bridge-url")
                ui.label("Namespace")
                ui.label(self.config.namespace)
                ui.label("Poll interval")
                ui.label(f"{self.config.poll_interval_s:.1f} s")
                ui.label("Settle delay")
                ui.label(f"{self.config.settle_delay_s:.1f} s")
                ui.label("Call timeout")
                ui.label(f"{self.config.call_timeout_s:.1f} s")
