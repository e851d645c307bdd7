"""Per-motor card: badge, rotary gauge, slider and preset buttons."""

from __future__ import annotations

from functools import partial
from typing import Awaitable, Callable

from nicegui import ui

from motor_panel import view
from motor_panel.constants import (
    ANGLE_MAX_DEG,
    ANGLE_MIN_DEG,
    ANGLE_STEP_DEG,
    PRESET_POSITIONS_DEG,
)
from motor_panel.state import MotorRecord

CommandHandler = Callable[[int, float], Awaitable[None]]


class MotorCard:
    """
    Widgets for one motor. Built once per motor ID; `update()` pushes a new
    record into the existing widgets so a poll never interrupts a slider drag.
    """

    def __init__(self, record: MotorRecord, on_command: CommandHandler) -> None:
        self.motor_id = record.motor_id
        self._on_command = on_command
        self._shown_target: float | None = None
        self.badge: ui.label | None = None
        self.gauge: ui.echart | None = None
        self.current_label: ui.label | None = None
        self.target_label: ui.label | None = None
        self.slider: ui.slider | None = None
        self.preset_buttons: dict[int, ui.button] = {}

    # ---- Actions ----

    async def _on_slider_release(self, e) -> None:
        value = e.args if isinstance(e.args, (int, float)) else None
        if value is None and self.slider is not None:
            value = self.slider.value
        if value is None:
            return
        await self._on_command(self.motor_id, float(value))

    async def _on_preset(self, degrees: int) -> None:
        await self._on_command(self.motor_id, float(degrees))

    # ---- UI ----

    def build(self, record: MotorRecord, enabled: bool) -> None:
        with ui.card().classes("motor-card").mark(f"motor-{self.motor_id}"):
            with ui.row().classes("w-full items-center justify-between"):
                ui.label(f"Motor {self.motor_id}").classes("text-md font-medium")
                self.badge = ui.label().classes("px-2 py-1 rounded-full text-xs font-bold")

            self.gauge = ui.echart(view.gauge_options(record)).classes("w-full").style(
                "height: 220px"
            )
            self.current_label = ui.label().classes("text-sm text-center w-full")

            with ui.row().classes("w-full items-center justify-between"):
                ui.label("Position (degrees)").classes("text-sm font-medium")
                self.target_label = ui.label().classes("text-sm font-bold")
            self.slider = (
                ui.slider(
                    min=ANGLE_MIN_DEG,
                    max=ANGLE_MAX_DEG,
                    step=ANGLE_STEP_DEG,
                    value=record.target_position_deg,
                )
                .props("label")
                .classes("w-full")
                .mark(f"slider-{self.motor_id}")
            )
            # Command on release, not on every intermediate step of a drag
            self.slider.on("change", self._on_slider_release)
            with ui.row().classes("w-full justify-between text-xs"):
                for tick in (-360, -180, 0, 180, 360):
                    ui.label(f"{tick}°")

            ui.label("Preset positions").classes("text-sm font-medium")
            with ui.grid(columns=3).classes("w-full gap-2"):
                for degrees in PRESET_POSITIONS_DEG:
                    self.preset_buttons[degrees] = (
                        ui.button(f"{degrees}°", on_click=partial(self._on_preset, degrees))
                        .props("unelevated dense icon=replay")
                        .mark(f"preset-{self.motor_id}-{degrees}")
                    )
        self._shown_target = record.target_position_deg
        self.update(record, enabled)

    def update(self, record: MotorRecord, enabled: bool) -> None:
        if self.badge is None:
            return
        text, color = view.motion_badge(record)
        self.badge.text = text
        self.badge.style(f"background: {color}20; color: {color}; border: 1px solid {color}40")

        if self.gauge is not None:
            self.gauge.options.clear()
            self.gauge.options.update(view.gauge_options(record))
            self.gauge.update()
        if self.current_label is not None:
            self.current_label.text = view.current_position_label(record)
        if self.target_label is not None:
            self.target_label.text = view.target_label(record)

        if self.slider is not None:
            if record.target_position_deg != self._shown_target:
                self.slider.value = record.target_position_deg
            self.slider.set_enabled(enabled)
        self._shown_target = record.target_position_deg

        for degrees, button in self.preset_buttons.items():
            active = view.is_active_preset(record, degrees)
            button.props(f"color={'primary' if active else 'grey-7'}")
            button.set_enabled(enabled)
