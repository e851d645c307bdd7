from __future__ import annotations

import argparse
import logging
import sys

from nicegui import app as ng_app
from nicegui import ui

from motor_panel import config as panel_config
from motor_panel import view
from motor_panel.common.logging_config import TRACE, configure_logging
from motor_panel.common.theme import apply_theme, parse_theme
from motor_panel.constants import (
    LOG_LEVEL,
    ROSBRIDGE_DOC_URL,
    SERVER_HOST,
    SERVER_PORT,
)
from motor_panel.pages.motors import MotorsPage
from motor_panel.pages.settings import SettingsPage
from motor_panel.services.panel_session import PanelSession
from motor_panel.state import PanelState


def create_session() -> PanelSession:
    """Session factory; one per browser client."""
    return PanelSession(panel_config.config)


def build_header_and_tabs(motors_page: MotorsPage, settings_page: SettingsPage) -> None:
    with (
        ui.header().classes("p-0"),
        ui.row().classes("w-full items-center justify-between px-2"),
    ):
        with ui.tabs() as tabs:
            motors_tab = ui.tab("Motors")
            settings_tab = ui.tab("Settings")
        ui.label("Westwood Motor Control").classes("text-lg font-bold")
        ui.button(
            "?",
            on_click=lambda: ui.run_javascript(
                f"window.open('{ROSBRIDGE_DOC_URL}', '_blank')"
            ),
        ).props("round unelevated")

    with ui.tab_panels(tabs, value=motors_tab).classes("w-full"):
        with ui.tab_panel(motors_tab):
            motors_page.build()
        with ui.tab_panel(settings_tab):
            settings_page.build()


def build_footer(session: PanelSession) -> None:
    with ui.footer().classes("justify-between items-center px-3 py-1"):
        with ui.row().classes("items-center gap-4"):
            bridge_label = ui.label("BRIDGE").classes("text-sm")
            with bridge_label:
                bridge_tooltip = ui.tooltip("connecting")
            ui.label("|").classes("text-sm text-[var(--mp-muted)]")
            motors_label = ui.label("MOTORS: 0").classes("text-sm")
        ui.label(session.config.bridge_url).classes("text-xs text-[var(--mp-muted)]")

    def _update(state: PanelState) -> None:
        bridge_tooltip.text = state.connection.value
        bridge_label.style(f"color: {view.connection_color(state.connection)}")
        motors_label.text = f"MOTORS: {len(state.motors)}"

    session.subscribe(_update)
    _update(session.state)


@ui.page("/")
async def index() -> None:
    apply_theme(parse_theme(ng_app.storage.general.get("theme_mode")))
    ui.query(".nicegui-content").classes("p-0")

    session = create_session()
    motors_page = MotorsPage(session)
    settings_page = SettingsPage(session.config)

    build_header_and_tabs(motors_page, settings_page)
    build_footer(session)

    # Connection and poll timer live as long as this client; a reconnect keeps them
    ui.context.client.on_delete(session.close)
    ui.timer(0.05, session.start, once=True)


def main() -> None:
    parser = argparse.ArgumentParser(description="Westwood motor control panel (NiceGUI)")
    parser.add_argument("--host", default=SERVER_HOST, help="Webserver bind host")
    parser.add_argument("--port", type=int, default=SERVER_PORT, help="Webserver bind port")
    parser.add_argument(
        "--bridge-url",
        default=None,
        help="rosbridge WebSocket URL (overrides ROSBRIDGE_URL)",
    )
    parser.add_argument(
        "--namespace",
        default=None,
        help="Motor driver service namespace, e.g. /westwood_motor",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between discovery/position polls",
    )
    parser.add_argument(
        "--log-level",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set log level",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity; -v=INFO, -vv=DEBUG, -vvv=TRACE",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Only log warnings and errors"
    )
    args, _ = parser.parse_known_args()

    panel_config.config = panel_config.config.with_overrides(
        bridge_url=args.bridge_url,
        namespace=args.namespace,
        poll_interval_s=args.poll_interval,
    )

    # Explicit --log-level > -v/-q > environment default
    if args.log_level:
        log_level = TRACE if args.log_level == "TRACE" else getattr(logging, args.log_level)
    elif args.verbose >= 3:
        log_level = TRACE
    elif args.verbose == 2:
        log_level = logging.DEBUG
    elif args.verbose == 1:
        log_level = logging.INFO
    elif args.quiet:
        log_level = logging.WARNING
    else:
        log_level = LOG_LEVEL

    configure_logging(log_level)
    logging.info("Webserver bind: host=%s port=%s", args.host, args.port)
    logging.info(
        "Bridge target: url=%s namespace=%s",
        panel_config.config.bridge_url,
        panel_config.config.namespace,
    )

    ui.run(
        title="Westwood Motor Control",
        host=args.host,
        port=int(args.port),
        reload=False,
        show=False,
        loop="uvloop" if sys.platform != "win32" else "asyncio",
        http="httptools",
        ws="wsproto",
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
