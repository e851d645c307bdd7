from __future__ import annotations

import asyncio
import math
from dataclasses import replace

import pytest

from motor_panel import state as st
from motor_panel.services.bridge import (
    AvailableMotorsResult,
    MotorPositionsResult,
    SetTargetResult,
    TransportError,
)
from motor_panel.state import ConnectionState, PanelState
from tests.utils.fake_services import FakeConnection


async def drain(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.mark.unit
async def test_start_connects_and_starts_polling(make_session, services):
    services.available = AvailableMotorsResult(success=True, motor_ids=[2, 1])
    session = make_session()
    seen: list[PanelState] = []
    session.subscribe(seen.append)

    await session.start()
    await drain()

    assert session.state.connected
    assert seen[0].connection is ConnectionState.CONNECTING
    assert session.poller.active
    assert services.available_calls == 1  # immediate first tick
    assert session.state.motor_ids == [1, 2]


@pytest.mark.unit
async def test_unreachable_endpoint_disables_everything(make_session, services, monkeypatch):
    monkeypatch.setattr(FakeConnection, "outcome", "error")
    session = make_session()

    await session.start()

    assert session.state.connection is ConnectionState.DISCONNECTED
    assert session.state.last_message == f"Connection error: {FakeConnection.error_text}"
    assert not session.poller.active
    session.add_motor(3)
    assert not session.state.controls_enabled(3)

    await session.command(3, 90.0)
    assert session.state.last_message == st.MSG_NOT_READY
    assert services.set_calls == []


@pytest.mark.unit
async def test_close_event_stops_poller_and_calls(make_session, services):
    session = make_session()
    await session.start()
    await drain()
    calls_before = services.available_calls

    FakeConnection.instances[-1].fire_close()
    session.poll_once()
    await drain()

    assert session.state.last_message == st.MSG_CLOSED
    assert not session.state.connected
    assert not session.poller.active
    assert services.available_calls == calls_before


@pytest.mark.unit
async def test_error_after_connect_stops_poller(make_session, services):
    session = make_session()
    await session.start()
    FakeConnection.instances[-1].fire_error(RuntimeError("socket reset"))

    assert session.state.last_message == "Connection error: socket reset"
    assert not session.poller.active
    assert session.services is None


@pytest.mark.unit
async def test_poll_maps_positions_to_requested_ids_by_index(make_session, services):
    services.available = AvailableMotorsResult(success=True, motor_ids=[5, 2])
    session = make_session()
    await session.start()
    await drain()

    services.positions = MotorPositionsResult(success=True, positions=[math.pi / 2, -math.pi])
    session.poll_once()
    await drain()

    assert services.position_calls == [[2, 5]]
    assert session.state.motors[2].current_position_deg == pytest.approx(90.0)
    assert session.state.motors[5].current_position_deg == pytest.approx(-180.0)


@pytest.mark.unit
async def test_failed_poll_keeps_status_message(make_session, services):
    session = make_session()
    await session.start()
    await drain()
    message = session.state.last_message

    services.available = TransportError("timed out")
    session.poll_once()
    await drain()
    services.available = AvailableMotorsResult(success=False)
    session.poll_once()
    await drain()

    assert session.state.last_message == message
    assert session.state.connected


@pytest.mark.unit
async def test_move_motor_three_to_ninety(make_session, services):
    session = make_session()
    await session.start()
    services.set_results.append(SetTargetResult(success=True, previous_positions=[0.0]))

    await session.command(3, 90.0)

    assert services.set_calls == [([3], [pytest.approx(1.5708, abs=1e-4)])]
    assert session.state.last_message == "Motor 3 moved from 0.0° to 90.0°"
    record = session.state.motors[3]
    assert record.target_position_deg == 90.0
    assert record.is_moving and not record.awaiting_reply

    await drain()
    assert not session.state.motors[3].is_moving


@pytest.mark.unit
async def test_preset_sets_exact_target_with_one_call(make_session, services):
    session = make_session()
    await session.start()
    session.add_motor(7)
    services.set_results.append(SetTargetResult(success=True, previous_positions=[math.pi]))

    await session.command(7, -270.0)

    assert len(services.set_calls) == 1
    ids, rads = services.set_calls[0]
    assert ids == [7]
    assert rads == [pytest.approx(math.radians(-270.0))]
    assert session.state.motors[7].target_position_deg == -270.0
    assert session.state.last_message == "Motor 7 moved from 180.0° to -270.0°"


@pytest.mark.unit
async def test_rejected_command_reports_message(make_session, services):
    session = make_session()
    await session.start()
    services.set_results.append(SetTargetResult(success=False, message=None))

    await session.command(1, 45.0)
    await drain()

    assert session.state.last_message == "Error: unknown error"
    assert not session.state.motors[1].is_moving
    assert session.state.controls_enabled(1)


@pytest.mark.unit
async def test_transport_failure_reports_and_settles(make_session, services):
    session = make_session()
    await session.start()
    services.set_results.append(TransportError("timed out after 5.0s"))

    await session.command(1, 45.0)
    assert session.state.last_message == "Service call failed: timed out after 5.0s"
    await drain()
    assert not session.state.motors[1].is_moving


@pytest.mark.unit
async def test_stale_reply_wins_when_it_arrives_last(make_session, services, panel_config):
    """Replies carry no sequence token: whichever resolves last sets the status."""
    session = make_session(replace(panel_config, settle_delay_s=0.05))
    await session.start()
    loop = asyncio.get_running_loop()
    first, second = loop.create_future(), loop.create_future()
    services.set_results.extend([first, second])

    t1 = asyncio.create_task(session.command(3, 90.0))
    await drain()
    t2 = asyncio.create_task(session.command(3, 180.0))
    await drain()
    assert session.state.motors[3].target_position_deg == 180.0

    second.set_result(SetTargetResult(success=True, previous_positions=[0.0]))
    await t2
    first.set_result(SetTargetResult(success=True, previous_positions=[0.0]))
    await t1

    assert session.state.last_message == "Motor 3 moved from 0.0° to 90.0°"
    assert session.state.motors[3].target_position_deg == 180.0

    await asyncio.sleep(0.1)
    assert not session.state.motors[3].is_moving


@pytest.mark.unit
async def test_settle_from_older_command_clears_moving_early(make_session, services, panel_config):
    session = make_session(replace(panel_config, settle_delay_s=0.03))
    await session.start()
    loop = asyncio.get_running_loop()
    pending = loop.create_future()
    services.set_results.extend([SetTargetResult(success=True), pending])

    await session.command(2, 10.0)
    t2 = asyncio.create_task(session.command(2, 20.0))
    await asyncio.sleep(0.06)

    # Second command still in flight, yet the first settle already fired
    assert session.state.motors[2].awaiting_reply
    assert not session.state.motors[2].is_moving

    pending.set_result(SetTargetResult(success=True))
    await t2


@pytest.mark.unit
async def test_add_motor_validates_range(make_session):
    session = make_session()
    await session.start()

    assert not session.add_motor(0)
    assert session.state.last_message == "Motor ID must be an integer between 1 and 254"
    assert not session.add_motor(2.5)
    assert not session.add_motor(None)
    assert session.add_motor(254.0)
    assert session.state.motors[254].pinned


@pytest.mark.unit
async def test_close_tears_everything_down(make_session, services):
    session = make_session()
    seen: list[PanelState] = []
    session.subscribe(seen.append)
    await session.start()

    session.close()
    session.close()

    assert FakeConnection.instances[-1].closed
    assert not session.poller.active
    count = len(seen)
    await session.command(1, 10.0)
    assert services.set_calls == []
    assert len(seen) == count


@pytest.mark.unit
async def test_sessions_tag_their_logs_and_connection_with_own_scope(make_session):
    first, second = make_session(), make_session()
    await first.start()
    await second.start()

    assert first.scope != second.scope
    assert [c.scope for c in FakeConnection.instances] == [first.scope, second.scope]
    assert first.log.extra == {"panel_scope": first.scope}
