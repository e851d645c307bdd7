from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Coroutine

from motor_panel import state as st
from motor_panel.common.logging_config import TRACE, scoped_logger
from motor_panel.common.units import deg2rad
from motor_panel.config import PanelConfig
from motor_panel.constants import MOTOR_ID_MAX, MOTOR_ID_MIN
from motor_panel.services.bridge import BridgeConnection, MotorServices, TransportError
from motor_panel.services.poller import Poller
from motor_panel.state import PanelState

logger = logging.getLogger(__name__)

Listener = Callable[[PanelState], None]

_session_ids = itertools.count(1)


class PanelSession:
    """
    Per-page controller: owns the bridge connection, the poll loop and the
    current PanelState snapshot.

    Every event (connection, poll reply, user command, settle timer) replaces
    the snapshot through a pure transition from motor_panel.state and then
    notifies listeners. All of it runs on the asyncio loop.

    Replies are applied in arrival order with no sequencing: a slow reply to an
    older command overwrites the status of a newer one, and its settle timer
    can clear `is_moving` while the newer command is still in flight.
    """

    def __init__(
        self,
        config: PanelConfig,
        connection_factory: Callable[..., BridgeConnection] = BridgeConnection,
        services_factory: Callable[[BridgeConnection, PanelConfig], MotorServices] = MotorServices,
    ) -> None:
        self.config = config
        self.scope = f"session-{next(_session_ids)}"
        self.log = scoped_logger(logger, self.scope)
        self.state = PanelState()
        self.connection: BridgeConnection | None = None
        self.services: MotorServices | None = None
        self.poller = Poller(config.poll_interval_s, self.poll_once, name="motor-poll")
        self._connection_factory = connection_factory
        self._services_factory = services_factory
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    # ---- State plumbing ----

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _apply(self, transition: Callable[..., PanelState], *args: Any) -> None:
        new_state = transition(self.state, *args)
        if new_state is self.state:
            return
        self.state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as e:
                self.log.error("State listener failed: %s", e)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ---- Connection lifecycle ----

    async def start(self) -> None:
        if self.connection is not None or self._closed:
            return
        url = self.config.bridge_url
        conn = self._connection_factory(
            url, self.config.connect_timeout_s, scope=self.scope
        )
        conn.on_connect(self._on_connect)
        conn.on_error(self._on_error)
        conn.on_close(self._on_close)
        self.connection = conn
        self._apply(st.connecting, url)
        await conn.open()

    def _on_connect(self) -> None:
        if self._closed or self.connection is None:
            return
        try:
            self.services = self._services_factory(self.connection, self.config)
        except Exception as e:
            self.log.error("Failed to create motor services: %s", e)
            self.connection.close()
            self._apply(st.connection_error, e)
            return
        self._apply(st.connected, self.config.bridge_url)
        self.poller.start()

    def _on_error(self, error: object) -> None:
        self.poller.stop()
        self.services = None
        self._apply(st.connection_error, error)

    def _on_close(self) -> None:
        self.poller.stop()
        self.services = None
        self._apply(st.connection_closed)

    def close(self) -> None:
        """Tear down: stop polling, drop pending tasks, close the connection."""
        if self._closed:
            return
        self._closed = True
        self.poller.stop()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self.services = None
        self._listeners.clear()
        if self.connection is not None:
            self.connection.close()
        self.log.debug("Panel session closed")

    # ---- Poll loop ----

    def poll_once(self) -> None:
        """One poll tick: discovery and bulk positions, fired independently."""
        if self.services is None or not self.state.connected:
            return
        self._spawn(self._refresh_available(self.services))
        ids = self.state.motor_ids
        self.log.log(TRACE, "Poll tick: ids=%s", ids)
        if ids:
            self._spawn(self._refresh_positions(self.services, ids))

    async def _refresh_available(self, services: MotorServices) -> None:
        try:
            result = await services.get_available_motors()
        except TransportError as e:
            self.log.warning("get_available_motors failed: %s", e)
            return
        if not result.success:
            self.log.debug("get_available_motors returned success=false")
            return
        self._apply(st.apply_available, result.motor_ids)

    async def _refresh_positions(self, services: MotorServices, ids: list[int]) -> None:
        try:
            result = await services.get_motor_positions(ids)
        except TransportError as e:
            self.log.warning("get_motor_positions failed: %s", e)
            return
        if not result.success:
            self.log.debug("get_motor_positions returned success=false")
            return
        self._apply(st.apply_positions, ids, result.positions)

    # ---- User actions ----

    def add_motor(self, raw_id: Any) -> bool:
        """Pin a motor ID typed by the user; returns False when rejected."""
        try:
            value = float(raw_id)
        except (TypeError, ValueError):
            value = float("nan")
        if not value.is_integer() or not MOTOR_ID_MIN <= value <= MOTOR_ID_MAX:
            self._apply(
                st.with_message,
                f"Motor ID must be an integer between {MOTOR_ID_MIN} and {MOTOR_ID_MAX}",
            )
            return False
        motor_id = int(value)
        self._apply(st.add_motor, motor_id)
        self._apply(st.with_message, f"Motor {motor_id} added")
        return True

    async def command(self, motor_id: int, target_deg: float) -> None:
        """Slider release or preset press: optimistic target, then one set call."""
        services = self.services
        if services is None:
            self.log.warning("Service not initialized; dropping command for motor %s", motor_id)
            self._apply(st.with_message, st.MSG_NOT_READY)
            return

        self._apply(st.begin_move, motor_id, target_deg)
        try:
            result = await services.set_motor_target([motor_id], [deg2rad(target_deg)])
        except TransportError as e:
            self.log.error("set_motor_id_and_target call failed: %s", e)
            self._apply(st.move_transport_failed, motor_id, e)
        else:
            if result.success:
                self.log.info(
                    "Motor %s moved to %.1f deg (previous %s rad)",
                    motor_id,
                    target_deg,
                    result.previous_positions,
                )
                self._apply(
                    st.move_succeeded, motor_id, target_deg, result.previous_positions
                )
            else:
                self.log.warning("Motor %s command rejected: %s", motor_id, result.message)
                self._apply(st.move_rejected, motor_id, result.message)

        if not self._closed:
            self._spawn(self._settle(motor_id))

    async def _settle(self, motor_id: int) -> None:
        await asyncio.sleep(self.config.settle_delay_s)
        self._apply(st.settled, motor_id)
