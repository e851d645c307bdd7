"""Pure presentation helpers: snapshot in, display values out."""

from __future__ import annotations

from typing import Any

from motor_panel.constants import GAUGE_TICKS_DEG
from motor_panel.state import ConnectionState, MotorRecord

POSITIVE = "#21BA45"
NEGATIVE = "#DB2828"
MUTED = "#9E9E9E"
ACTIVE = "#3B8ED0"


def connection_label(connection: ConnectionState) -> str:
    return {
        ConnectionState.CONNECTING: "Connecting...",
        ConnectionState.CONNECTED: "Connected to rosbridge",
        ConnectionState.DISCONNECTED: "Disconnected",
    }[connection]


def connection_color(connection: ConnectionState) -> str:
    if connection is ConnectionState.CONNECTED:
        return POSITIVE
    if connection is ConnectionState.CONNECTING:
        return MUTED
    return NEGATIVE


def motion_badge(record: MotorRecord) -> tuple[str, str]:
    """(text, color) for the per-motor status badge."""
    return ("MOVING", ACTIVE) if record.is_moving else ("IDLE", MUTED)


def current_position_label(record: MotorRecord) -> str:
    if record.current_position_deg is None:
        return "Current: --"
    return f"Current: {record.current_position_deg:.1f}°"


def target_label(record: MotorRecord) -> str:
    return f"{round(record.target_position_deg)}°"


def is_active_preset(record: MotorRecord, preset_deg: float) -> bool:
    return record.target_position_deg == preset_deg


def gauge_options(record: MotorRecord) -> dict[str, Any]:
    """
    ECharts options for the rotary gauge.

    The dial is a full circle with 0° at the top, increasing clockwise like the
    motor shaft marker; the pointer follows the commanded target, wrapped into
    [0, 360) since the slider covers two full turns each way.
    """
    target = record.target_position_deg
    wrapped = target % 360.0
    return {
        "backgroundColor": "transparent",
        "animationDurationUpdate": 300,
        "series": [
            {
                "type": "gauge",
                "startAngle": 90,
                "endAngle": -270,
                "clockwise": True,
                "min": 0,
                "max": 360,
                "splitNumber": len(GAUGE_TICKS_DEG),
                "radius": "90%",
                "progress": {"show": False},
                "axisLine": {"lineStyle": {"width": 6, "color": [[1, MUTED]]}},
                "axisTick": {"show": False},
                "splitLine": {"length": 10, "lineStyle": {"color": MUTED, "width": 2}},
                "axisLabel": {
                    "distance": 14,
                    "fontSize": 10,
                    # 0° and 360° share the top of the dial
                    ":formatter": "value => value === 360 ? '' : value + '°'",
                    "color": MUTED,
                },
                "pointer": {
                    "length": "70%",
                    "width": 4,
                    "itemStyle": {"color": NEGATIVE},
                },
                "anchor": {"show": True, "size": 10},
                "title": {"show": False},
                "detail": {
                    "valueAnimation": False,
                    "offsetCenter": [0, "40%"],
                    "fontSize": 16,
                    "fontWeight": "bold",
                    "formatter": target_label(record),
                },
                "data": [{"value": round(wrapped, 2), "name": f"Motor {record.motor_id}"}],
            }
        ],
    }
