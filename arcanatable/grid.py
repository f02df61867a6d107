"""Battle map geometry shared by the server and client sessions."""

from __future__ import annotations

from dataclasses import dataclass
import math


CELL_SIZE = 64
TOKEN_SIZE = 48
TOKEN_INSET = (CELL_SIZE - TOKEN_SIZE) // 2
FEET_PER_STRAIGHT = 5
FEET_PER_DIAGONAL = 10

ZOOM_MIN = 0.5
ZOOM_MAX = 3.0


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def to_payload(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


def snap(raw: float) -> int:
    """Snap a pixel coordinate to the inset top-left corner of the nearest cell.

    Drops and drags share the same half-up rounding so a token never lands one
    cell off from where it was released.
    """
    cell = math.floor(raw / CELL_SIZE + 0.5)
    return cell * CELL_SIZE + TOKEN_INSET


def to_cell(value: float) -> int:
    return math.floor(value / CELL_SIZE)


def cell_center(value: float) -> float:
    return to_cell(value) * CELL_SIZE + CELL_SIZE / 2


def distance_feet(origin: Point, target: Point) -> int:
    """Grid distance with a flat 10 ft per diagonal step and 5 ft per straight step."""
    dx = abs(to_cell(target.x) - to_cell(origin.x))
    dy = abs(to_cell(target.y) - to_cell(origin.y))
    diagonal = min(dx, dy)
    straight = abs(dx - dy)
    return diagonal * FEET_PER_DIAGONAL + straight * FEET_PER_STRAIGHT


def clamp_zoom(zoom: float) -> float:
    return min(ZOOM_MAX, max(ZOOM_MIN, zoom))
