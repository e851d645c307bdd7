from __future__ import annotations

import math

# Positions travel as radians over the bridge and are shown in degrees.


def deg2rad(degrees: float) -> float:
    return degrees * (math.pi / 180.0)


def rad2deg(radians: float) -> float:
    return radians * (180.0 / math.pi)
