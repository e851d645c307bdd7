from __future__ import annotations

import logging
import os


# rosbridge documentation, linked from the header help button
ROSBRIDGE_DOC_URL = "https://github.com/RobotWebTools/rosbridge_suite"

# Motor ID range accepted by the manual entry field
MOTOR_ID_MIN = 1
MOTOR_ID_MAX = 254

# Slider range and preset positions (degrees)
ANGLE_MIN_DEG = -360
ANGLE_MAX_DEG = 360
ANGLE_STEP_DEG = 1
PRESET_POSITIONS_DEG: list[int] = [-360, -270, -180, -90, 0, 90, 180, 270, 360]
GAUGE_TICKS_DEG: list[int] = [0, 45, 90, 135, 180, 225, 270, 315]

# Service names are joined onto the namespace; types are fixed by the motor driver package
SERVICE_SET_TARGET = "set_motor_id_and_target"
SERVICE_AVAILABLE = "get_available_motors"
SERVICE_POSITIONS = "get_motor_positions"
SERVICE_TYPE_SET_TARGET = "westwood_motor_interfaces/SetMotorIdAndTarget"
SERVICE_TYPE_AVAILABLE = "westwood_motor_interfaces/GetAvailableMotors"
SERVICE_TYPE_POSITIONS = "westwood_motor_interfaces/GetMotorPositions"

# Bridge target (what the UI connects to)
ROSBRIDGE_URL: str = os.getenv("ROSBRIDGE_URL", "ws://localhost:9090")
MOTOR_NAMESPACE: str = os.getenv("MOTOR_PANEL_NAMESPACE", "/westwood_motor")

# Timings (seconds)
POLL_INTERVAL_S: float = float(os.getenv("MOTOR_PANEL_POLL_INTERVAL_S", "1.0"))
SETTLE_DELAY_S: float = float(os.getenv("MOTOR_PANEL_SETTLE_DELAY_S", "1.0"))
CALL_TIMEOUT_S: float = float(os.getenv("MOTOR_PANEL_CALL_TIMEOUT_S", "5.0"))
CONNECT_TIMEOUT_S: float = float(os.getenv("MOTOR_PANEL_CONNECT_TIMEOUT_S", "10.0"))

# Webserver bind (NiceGUI host/port)
SERVER_HOST: str = os.getenv("MOTOR_PANEL_SERVER_IP", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("MOTOR_PANEL_SERVER_PORT", "8080"))


def _resolve_log_level() -> int:
    s = os.getenv("MOTOR_PANEL_LOG_LEVEL")
    if not s:
        return logging.WARNING
    mapping = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return mapping.get(s.strip().upper(), logging.WARNING)


LOG_LEVEL: int = _resolve_log_level()
