from __future__ import annotations

from nicegui import ui

from motor_panel import view
from motor_panel.common.logging_config import attach_ui_log
from motor_panel.components.motor_card import MotorCard
from motor_panel.constants import MOTOR_ID_MAX, MOTOR_ID_MIN
from motor_panel.services.panel_session import PanelSession
from motor_panel.state import PanelState


class MotorsPage:
    """Motors tab: connection status, manual motor entry and one card per motor."""

    def __init__(self, session: PanelSession) -> None:
        self.session = session

        # Status widgets
        self.connection_dot: ui.element | None = None
        self.connection_label: ui.label | None = None
        self.message_label: ui.label | None = None

        # Manual motor entry
        self.motor_id_input: ui.number | None = None
        self.add_button: ui.button | None = None

        self.event_log: ui.log | None = None

        self.cards: dict[int, MotorCard] = {}
        self._rendered_ids: list[int] = []
        self._motor_grid: ui.refreshable | None = None

    # ---- Actions ----

    def _add_motor(self) -> None:
        raw = self.motor_id_input.value if self.motor_id_input else None
        if self.session.add_motor(raw):
            self.session.log.info("Motor %s added manually", int(raw))

    async def _command(self, motor_id: int, target_deg: float) -> None:
        await self.session.command(motor_id, target_deg)

    # ---- Rendering ----

    def _render_motor_grid(self) -> None:
        state = self.session.state
        self.cards = {}
        self._rendered_ids = state.motor_ids
        if not state.motors:
            ui.label("No motors discovered yet. Add a motor ID or wait for discovery.").classes(
                "text-sm text-[var(--mp-muted)]"
            )
            return
        with ui.row().classes("w-full gap-4 items-start"):
            for record in state.motors.values():
                card = MotorCard(record, self._command)
                card.build(record, state.controls_enabled(record.motor_id))
                self.cards[record.motor_id] = card

    def render(self, state: PanelState) -> None:
        """Push a snapshot into the widgets; rebuild cards only when the ID set changes."""
        if self.connection_label is not None:
            self.connection_label.text = view.connection_label(state.connection)
        if self.connection_dot is not None:
            self.connection_dot.style(
                f"background: {view.connection_color(state.connection)}"
            )
        if self.message_label is not None:
            self.message_label.text = state.last_message or ""
            self.message_label.set_visibility(bool(state.last_message))

        if self._motor_grid is None:
            return
        if state.motor_ids != self._rendered_ids:
            self._motor_grid.refresh()
            return
        for motor_id, card in self.cards.items():
            record = state.motors.get(motor_id)
            if record is not None:
                card.update(record, state.controls_enabled(motor_id))

    def build(self) -> None:
        with ui.card().classes("w-full"):
            with ui.row().classes("items-center gap-2"):
                self.connection_dot = ui.element("div").classes("status-dot")
                self.connection_label = ui.label().classes("text-sm").mark("connection")
            self.message_label = (
                ui.label().classes("w-full p-3 border rounded text-sm").mark("status")
            )

            with ui.row().classes("items-end gap-2"):
                self.motor_id_input = ui.number(
                    label="Motor ID",
                    value=1,
                    min=MOTOR_ID_MIN,
                    max=MOTOR_ID_MAX,
                    step=1,
                    format="%d",
                ).classes("w-28").mark("motor-id")
                self.add_button = ui.button("Add motor", on_click=self._add_motor).props(
                    "unelevated"
                ).mark("add-motor")

        self._motor_grid = ui.refreshable(self._render_motor_grid)
        self._motor_grid()

        with ui.expansion("Event log").classes("w-full"):
            self.event_log = ui.log(max_lines=200).classes("w-full h-40")
        attach_ui_log(self.event_log, scope=self.session.scope)

        self.session.subscribe(self.render)
        self.render(self.session.state)
