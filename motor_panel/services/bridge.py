from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Callable

import roslibpy

from motor_panel.common.logging_config import scoped_logger
from motor_panel.config import PanelConfig
from motor_panel.constants import (
    SERVICE_AVAILABLE,
    SERVICE_POSITIONS,
    SERVICE_SET_TARGET,
    SERVICE_TYPE_AVAILABLE,
    SERVICE_TYPE_POSITIONS,
    SERVICE_TYPE_SET_TARGET,
)

logger = logging.getLogger(__name__)


class BridgeError(Exception):
    """Base class for bridge failures surfaced to the panel."""


class TransportError(BridgeError):
    """A service call could not complete (errback, timeout, connection gone)."""


class ServiceNotReady(BridgeError):
    """A call was attempted before the service handles were built."""


# ---- Typed service replies ----


@dataclass(frozen=True)
class SetTargetResult:
    success: bool
    message: str | None = None
    previous_positions: list[float] = field(default_factory=list)  # radians

    @classmethod
    def from_response(cls, resp: dict[str, Any]) -> "SetTargetResult":
        return cls(
            success=bool(resp.get("success", False)),
            message=resp.get("message") or None,
            previous_positions=[float(p) for p in resp.get("previous_positions") or []],
        )


@dataclass(frozen=True)
class AvailableMotorsResult:
    success: bool
    motor_ids: list[int] = field(default_factory=list)

    @classmethod
    def from_response(cls, resp: dict[str, Any]) -> "AvailableMotorsResult":
        return cls(
            success=bool(resp.get("success", False)),
            motor_ids=[int(i) for i in resp.get("motor_ids") or []],
        )


@dataclass(frozen=True)
class MotorPositionsResult:
    success: bool
    positions: list[float] = field(default_factory=list)  # radians, parallel to request

    @classmethod
    def from_response(cls, resp: dict[str, Any]) -> "MotorPositionsResult":
        return cls(
            success=bool(resp.get("success", False)),
            positions=[float(p) for p in resp.get("positions") or []],
        )


# ---- Connection manager ----


class BridgeConnection:
    """
    One rosbridge connection owned by a panel session.

    roslibpy delivers events on its reactor thread; every handler registered
    here is re-dispatched onto the asyncio loop that called open(). No
    reconnection is attempted: once closed or errored, later ready events are
    dropped.
    """

    def __init__(
        self, url: str, connect_timeout: float = 10.0, scope: str | None = None
    ) -> None:
        self.url = url
        self.connect_timeout = connect_timeout
        self.log = scoped_logger(logger, scope)
        self._ros: roslibpy.Ros | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_connect: Callable[[], None] | None = None
        self._on_error: Callable[[BaseException | str], None] | None = None
        self._on_close: Callable[[], None] | None = None
        self._finished = False  # error/close seen or close() called
        self._ready = False
        self._failure: str | None = None  # last transport-level connect failure

    # Handler registration

    def on_connect(self, callback: Callable[[], None]) -> None:
        self._on_connect = callback

    def on_error(self, callback: Callable[[BaseException | str], None]) -> None:
        self._on_error = callback

    def on_close(self, callback: Callable[[], None]) -> None:
        self._on_close = callback

    @property
    def is_connected(self) -> bool:
        return self._ready and not self._finished

    def _dispatch(self, fn: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(fn, *args)

    def _handle_ready(self) -> None:
        if self._finished:
            # Socket came up after close()/error; release it again
            self._shutdown_ros()
            return
        if self._ready:
            return
        self._ready = True
        self.log.info("Connected to rosbridge at %s", self.url)
        if self._on_connect:
            self._on_connect()

    def _handle_error(self, error: BaseException | str) -> None:
        if self._finished:
            return
        self._finished = True
        self.log.error("rosbridge connection error: %s", error)
        self._shutdown_ros()
        if self._on_error:
            self._on_error(error)

    def _handle_close(self) -> None:
        if self._finished:
            return
        self._finished = True
        self.log.warning("rosbridge connection closed")
        self._shutdown_ros()
        if self._on_close:
            self._on_close()

    def _watch_failures(self, ros: roslibpy.Ros) -> None:
        """Keep the reason of the last failed connect attempt (refused, DNS, TLS)."""
        factory = getattr(ros, "factory", None)
        failed = getattr(factory, "clientConnectionFailed", None)
        if failed is None:
            return

        def _connection_failed(connector: Any, reason: Any) -> None:
            describe = getattr(reason, "getErrorMessage", None)
            self._failure = describe() if describe else str(reason)
            failed(connector, reason)

        factory.clientConnectionFailed = _connection_failed

    def _describe_failure(self, error: BaseException) -> BaseException | str:
        if self._failure is None:
            return error
        return f"{error}: {self._failure}"

    async def open(self) -> None:
        """Open the connection; outcome is reported through the handlers."""
        if self._ros is not None:
            return
        self._loop = asyncio.get_running_loop()
        try:
            self._ros = roslibpy.Ros(host=self.url)
            self._watch_failures(self._ros)
            self._ros.on_ready(lambda *_: self._dispatch(self._handle_ready))
            self._ros.on("close", lambda *_: self._dispatch(self._handle_close))
            await asyncio.to_thread(self._ros.run, self.connect_timeout)
        except Exception as e:
            # Unreachable endpoint, timeout, malformed URL
            self._handle_error(self._describe_failure(e))

    def service(self, name: str, service_type: str) -> roslibpy.Service:
        if self._ros is None:
            raise ServiceNotReady("Bridge connection not opened")
        return roslibpy.Service(self._ros, name, service_type)

    def _shutdown_ros(self) -> None:
        ros = self._ros
        if ros is None:
            return
        factory = getattr(ros, "factory", None)
        if hasattr(factory, "stopTrying"):
            # The twisted factory redials on every failure or loss until told otherwise
            factory.continueTrying = False
            factory.manager.call_later(0, factory.stopTrying)
        try:
            ros.close()
        except Exception as e:
            self.log.debug("Ignoring error while closing rosbridge handle: %s", e)

    def close(self) -> None:
        """Release the connection; safe to call repeatedly."""
        if self._finished:
            return
        self._finished = True
        self._shutdown_ros()
        self.log.info("Closed rosbridge connection to %s", self.url)


# ---- Remote call handles ----


class MotorServices:
    """The three motor driver services bound to one open connection."""

    def __init__(self, connection: BridgeConnection, config: PanelConfig) -> None:
        self.connection = connection
        self.timeout = config.call_timeout_s
        self._set_target = connection.service(
            config.service_name(SERVICE_SET_TARGET), SERVICE_TYPE_SET_TARGET
        )
        self._available = connection.service(
            config.service_name(SERVICE_AVAILABLE), SERVICE_TYPE_AVAILABLE
        )
        self._positions = connection.service(
            config.service_name(SERVICE_POSITIONS), SERVICE_TYPE_POSITIONS
        )

    async def _call(self, service: roslibpy.Service, payload: dict[str, Any]) -> dict:
        if not self.connection.is_connected:
            raise TransportError("not connected to rosbridge")

        loop = asyncio.get_running_loop()
        fut: asyncio.Future[dict] = loop.create_future()

        def _resolve(response: Any) -> None:
            if not fut.done():
                fut.set_result(dict(response or {}))

        def _reject(error: Any) -> None:
            if not fut.done():
                fut.set_exception(TransportError(str(error)))

        service.call(
            roslibpy.ServiceRequest(payload),
            lambda resp: loop.call_soon_threadsafe(_resolve, resp),
            lambda err: loop.call_soon_threadsafe(_reject, err),
        )
        try:
            return await asyncio.wait_for(fut, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise TransportError(
                f"{service.name} timed out after {self.timeout:.1f}s"
            ) from None

    async def set_motor_target(
        self, motor_ids: Sequence[int], target_positions_rad: Sequence[float]
    ) -> SetTargetResult:
        resp = await self._call(
            self._set_target,
            {
                "motor_ids": [int(i) for i in motor_ids],
                "target_positions": [float(p) for p in target_positions_rad],
            },
        )
        return SetTargetResult.from_response(resp)

    async def get_available_motors(self) -> AvailableMotorsResult:
        resp = await self._call(self._available, {})
        return AvailableMotorsResult.from_response(resp)

    async def get_motor_positions(self, motor_ids: Sequence[int]) -> MotorPositionsResult:
        resp = await self._call(self._positions, {"motor_ids": [int(i) for i in motor_ids]})
        return MotorPositionsResult.from_response(resp)
