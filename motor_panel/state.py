from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

from motor_panel.common.units import rad2deg

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class MotorRecord:
    motor_id: int
    current_position_deg: float | None = None  # None until the first poll
    target_position_deg: float = 0.0
    is_moving: bool = False
    awaiting_reply: bool = False  # set call in flight
    pinned: bool = False  # added by hand; survives discovery


class MotorMap(Mapping[int, MotorRecord]):
    """Immutable motor ID -> record mapping, iterated in ascending ID order."""

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[MotorRecord] = ()) -> None:
        by_id = {r.motor_id: r for r in records}
        self._records: tuple[MotorRecord, ...] = tuple(
            by_id[k] for k in sorted(by_id)
        )

    def __getitem__(self, motor_id: int) -> MotorRecord:
        for r in self._records:
            if r.motor_id == motor_id:
                return r
        raise KeyError(motor_id)

    def __iter__(self) -> Iterator[int]:
        return (r.motor_id for r in self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MotorMap):
            return self._records == other._records
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._records)

    def __repr__(self) -> str:
        return f"MotorMap({list(self._records)!r})"

    def records(self) -> tuple[MotorRecord, ...]:
        return self._records

    def set(self, record: MotorRecord) -> "MotorMap":
        others = [r for r in self._records if r.motor_id != record.motor_id]
        return MotorMap([*others, record])

    def update(self, motor_id: int, **changes) -> "MotorMap":
        """Replace fields of one record; unknown IDs are left alone."""
        if motor_id not in self:
            return self
        return self.set(replace(self[motor_id], **changes))


@dataclass(frozen=True)
class PanelState:
    """One immutable snapshot of everything the page renders."""

    connection: ConnectionState = ConnectionState.CONNECTING
    motors: MotorMap = field(default_factory=MotorMap)
    last_message: str | None = None

    @property
    def connected(self) -> bool:
        return self.connection is ConnectionState.CONNECTED

    @property
    def motor_ids(self) -> list[int]:
        return list(self.motors)

    def controls_enabled(self, motor_id: int) -> bool:
        record = self.motors.get(motor_id)
        return self.connected and record is not None and not record.awaiting_reply


# ---- Status messages ----

MSG_NOT_READY = "Service not initialized. Is rosbridge running?"
MSG_CLOSED = "Connection to rosbridge closed"
MSG_UNKNOWN_ERROR = "unknown error"


def move_message(motor_id: int, previous_rad: float, requested_deg: float) -> str:
    return (
        f"Motor {motor_id} moved from {rad2deg(previous_rad):.1f}° "
        f"to {requested_deg:.1f}°"
    )


# ---- Connection transitions ----


def connecting(state: PanelState, url: str) -> PanelState:
    return replace(
        state,
        connection=ConnectionState.CONNECTING,
        last_message=f"Connecting to rosbridge at {url}...",
    )


def connected(state: PanelState, url: str) -> PanelState:
    return replace(
        state,
        connection=ConnectionState.CONNECTED,
        last_message=f"Connected to rosbridge at {url}",
    )


def connection_error(state: PanelState, error: object) -> PanelState:
    return replace(
        state,
        connection=ConnectionState.DISCONNECTED,
        last_message=f"Connection error: {error}",
    )


def connection_closed(state: PanelState) -> PanelState:
    return replace(
        state, connection=ConnectionState.DISCONNECTED, last_message=MSG_CLOSED
    )


def with_message(state: PanelState, message: str) -> PanelState:
    return replace(state, last_message=message)


# ---- Discovery / polling transitions ----


def add_motor(state: PanelState, motor_id: int, pinned: bool = True) -> PanelState:
    existing = state.motors.get(motor_id)
    if existing is not None:
        return replace(
            state,
            motors=state.motors.update(motor_id, pinned=pinned or existing.pinned),
        )
    return replace(
        state, motors=state.motors.set(MotorRecord(motor_id=motor_id, pinned=pinned))
    )


def apply_available(state: PanelState, motor_ids: Sequence[int]) -> PanelState:
    """Fold a discovery reply: add new IDs, drop unreported ones unless pinned."""
    reported = {int(i) for i in motor_ids}
    kept = [r for r in state.motors.records() if r.motor_id in reported or r.pinned]
    known = {r.motor_id for r in kept}
    added = [MotorRecord(motor_id=i) for i in reported if i not in known]
    motors = MotorMap([*kept, *added])
    if motors == state.motors:
        return state
    return replace(state, motors=motors)


def apply_positions(
    state: PanelState, motor_ids: Sequence[int], positions_rad: Sequence[float]
) -> PanelState:
    """Fold a position reply; positions[i] belongs to motor_ids[i] of the request."""
    if len(motor_ids) != len(positions_rad):
        logger.warning(
            "Position reply length mismatch: %d ids, %d positions",
            len(motor_ids),
            len(positions_rad),
        )
    motors = state.motors
    for motor_id, pos_rad in zip(motor_ids, positions_rad):
        motors = motors.update(motor_id, current_position_deg=rad2deg(pos_rad))
    return replace(state, motors=motors)


# ---- Per-motor command transitions ----


def begin_move(state: PanelState, motor_id: int, target_deg: float) -> PanelState:
    """Idle/Moving -> Moving: optimistic target, reply pending."""
    if motor_id not in state.motors:
        # Commanding an ID by hand pins it like the manual entry does
        state = add_motor(state, motor_id)
    return replace(
        state,
        motors=state.motors.update(
            motor_id,
            target_position_deg=float(target_deg),
            is_moving=True,
            awaiting_reply=True,
        ),
        last_message=f"Sending command to motor {motor_id}...",
    )


def move_succeeded(
    state: PanelState,
    motor_id: int,
    requested_deg: float,
    previous_positions_rad: Sequence[float] | None,
) -> PanelState:
    previous = previous_positions_rad[0] if previous_positions_rad else 0.0
    return replace(
        state,
        motors=state.motors.update(motor_id, awaiting_reply=False),
        last_message=move_message(motor_id, previous, requested_deg),
    )


def move_rejected(state: PanelState, motor_id: int, message: str | None) -> PanelState:
    return replace(
        state,
        motors=state.motors.update(motor_id, awaiting_reply=False),
        last_message=f"Error: {message or MSG_UNKNOWN_ERROR}",
    )


def move_transport_failed(state: PanelState, motor_id: int, error: object) -> PanelState:
    return replace(
        state,
        motors=state.motors.update(motor_id, awaiting_reply=False),
        last_message=f"Service call failed: {error}",
    )


def settled(state: PanelState, motor_id: int) -> PanelState:
    """Moving -> Idle after the fixed settle delay; arrival is not confirmed."""
    return replace(state, motors=state.motors.update(motor_id, is_moving=False))
