"""Procedural floor-plan generator for the SeedCore hotel."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
import random
from typing import Any, Optional

from .map_utils import Cell, Coordinates, Room, serialize_grid, walkable_grid

logger = getLogger("seedcore_core.maps.hotel")

DEFAULT_GRID_WIDTH = 80
DEFAULT_GRID_HEIGHT = 44

ATRIUM_W = 20
ATRIUM_H = 12
ATRIUM_BOTTOM_MARGIN = 4
WING_HEIGHT = 26
SUITES_PER_ROW = 6
SUITE_W = 5
SUITE_H = 4

# Smallest grid where both wings and at least two garden rows fit.
MIN_GRID_WIDTH = 36
MIN_GRID_HEIGHT = 24

GARDEN_PLANT_THRESHOLD = 0.8
GARDEN_WATER_THRESHOLD = 0.6


class LayoutError(ValueError):
    """Raised when the fixed hotel layout cannot fit the requested grid."""


@dataclass(frozen=True)
class HotelLayout:
    """Anchor points of the fixed layout, derived from the grid size."""

    width: int
    height: int
    atrium_x: int
    atrium_y: int
    atrium_w: int = ATRIUM_W
    atrium_h: int = ATRIUM_H

    @classmethod
    def for_dimensions(cls, width: int, height: int) -> HotelLayout:
        if width < MIN_GRID_WIDTH or height < MIN_GRID_HEIGHT:
            raise LayoutError(
                f"Grid {width}x{height} is too small for the hotel layout "
                f"(minimum {MIN_GRID_WIDTH}x{MIN_GRID_HEIGHT})"
            )
        return cls(
            width=width,
            height=height,
            atrium_x=width // 2 - ATRIUM_W // 2,
            atrium_y=height - ATRIUM_H - ATRIUM_BOTTOM_MARGIN,
        )

    @property
    def atrium_center(self) -> Coordinates:
        return self.atrium_x + self.atrium_w // 2, self.atrium_y + self.atrium_h // 2

    @property
    def reception(self) -> Coordinates:
        return self.atrium_x + self.atrium_w // 2, self.atrium_y + 2

    @property
    def west_wing_x(self) -> int:
        return self.atrium_x - 2

    @property
    def east_wing_x(self) -> int:
        return self.atrium_x + self.atrium_w + 1

    @property
    def bridge_y(self) -> int:
        return max(0, self.atrium_y - WING_HEIGHT)

    def in_atrium(self, x: int, y: int) -> bool:
        return (
            self.atrium_x <= x < self.atrium_x + self.atrium_w
            and self.atrium_y <= y < self.atrium_y + self.atrium_h
        )


@dataclass(frozen=True)
class HotelMap:
    layout: HotelLayout
    grid: tuple[tuple[Cell, ...], ...]
    rooms: tuple[Room, ...]

    @property
    def width(self) -> int:
        return self.layout.width

    @property
    def height(self) -> int:
        return self.layout.height

    def room_at(self, x: int, y: int) -> Optional[Room]:
        # Later rooms were carved over earlier ones, so they win.
        for room in reversed(self.rooms):
            if room.contains(x, y):
                return room
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "atrium": {
                "x": self.layout.atrium_x,
                "y": self.layout.atrium_y,
                "w": self.layout.atrium_w,
                "h": self.layout.atrium_h,
            },
            "reception": {"x": self.layout.reception[0], "y": self.layout.reception[1]},
            "grid": serialize_grid(self.grid),
            "walkable": walkable_grid(self.grid),
            "rooms": [room.to_dict() for room in self.rooms],
        }


class _GridBuilder:
    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.cells: list[list[Cell]] = [[Cell.EMPTY for _ in range(width)] for _ in range(height)]
        self.rooms: list[Room] = []

    def set(self, x: int, y: int, cell: Cell) -> None:
        # Writes outside the grid are dropped.
        if 0 <= x < self.width and 0 <= y < self.height:
            self.cells[y][x] = cell

    def fill(self, x: int, y: int, w: int, h: int, cell: Cell) -> None:
        for ry in range(y, y + h):
            for rx in range(x, x + w):
                self.set(rx, ry, cell)

    def suite(self, room_id: str, x: int, y: int, w: int = SUITE_W, h: int = SUITE_H) -> None:
        door_x = x + w // 2
        for ry in range(y, y + h):
            for rx in range(x, x + w):
                on_edge = rx in (x, x + w - 1) or ry in (y, y + h - 1)
                if not on_edge:
                    self.set(rx, ry, Cell.ROOM_FLOOR)
                elif ry in (y, y + h - 1) and rx == door_x:
                    self.set(rx, ry, Cell.ROOM_DOOR)
                else:
                    self.set(rx, ry, Cell.ROOM_WALL)
        self.set(x + 1, y + 1, Cell.ROOM_FURNITURE)
        self.rooms.append(
            Room(
                room_id=room_id,
                name=f"Room {room_id}",
                category="SUITE",
                top_left=(x, y),
                bottom_right=(x + w - 1, y + h - 1),
            )
        )

    def freeze(self) -> tuple[tuple[Cell, ...], ...]:
        return tuple(tuple(row) for row in self.cells)


def generate_hotel_map(
    width: int = DEFAULT_GRID_WIDTH,
    height: int = DEFAULT_GRID_HEIGHT,
    *,
    rng: random.Random | None = None,
) -> HotelMap:
    """Build the hotel floor plan.

    Everything but the garden tiles is deterministic for a given size; pass a
    seeded ``rng`` to make the garden reproducible. Raises ``LayoutError`` when
    the grid is smaller than ``MIN_GRID_WIDTH`` x ``MIN_GRID_HEIGHT``.
    """
    layout = HotelLayout.for_dimensions(width, height)
    rand = rng or random.Random()
    builder = _GridBuilder(width, height)
    ax, ay = layout.atrium_x, layout.atrium_y

    builder.fill(ax, ay, layout.atrium_w, layout.atrium_h, Cell.LOBBY_FLOOR)
    desk_x, desk_y = layout.reception
    for dx in (-1, 0, 1):
        builder.set(desk_x + dx, desk_y, Cell.RECEPTION_DESK)
    builder.rooms.append(
        Room(
            room_id="LOBBY-MAIN",
            name="Grand Atrium",
            category="LOBBY",
            top_left=(ax, ay),
            bottom_right=(ax + layout.atrium_w - 1, ay + layout.atrium_h - 1),
        )
    )

    west_x = layout.west_wing_x
    east_x = layout.east_wing_x
    for y in range(ay - WING_HEIGHT, ay):
        builder.set(west_x, y, Cell.LOBBY_FLOOR)
        builder.set(west_x - 1, y, Cell.LOBBY_FLOOR)
        builder.set(east_x, y, Cell.LOBBY_FLOOR)
        builder.set(east_x + 1, y, Cell.LOBBY_FLOOR)

    for i in range(SUITES_PER_ROW):
        row_y = ay - SUITE_H - i * SUITE_H
        builder.suite(f"1{i}A", west_x - 6, row_y)
        builder.suite(f"1{i}B", west_x + 1, row_y)
    for i in range(SUITES_PER_ROW):
        row_y = ay - SUITE_H - i * SUITE_H
        builder.suite(f"2{i}A", east_x - 5, row_y)
        builder.suite(f"2{i}B", east_x + 2, row_y)

    bridge_y = layout.bridge_y
    for x in range(west_x, east_x + 1):
        builder.set(x, bridge_y, Cell.LOBBY_FLOOR)
        builder.set(x, bridge_y + 1, Cell.LOBBY_FLOOR)
    for i in range(SUITES_PER_ROW):
        builder.suite(f"30{i}", west_x + 2 + i * (SUITE_W + 1), bridge_y - SUITE_H)

    garden_x = west_x + 4
    garden_y = bridge_y + 4
    garden_w = (east_x - west_x) - 6
    garden_h = (ay - bridge_y) - 6
    for y in range(garden_y, garden_y + garden_h):
        for x in range(garden_x, garden_x + garden_w):
            roll = rand.random()
            if roll > GARDEN_PLANT_THRESHOLD:
                builder.set(x, y, Cell.GARDEN_PLANT)
            elif roll > GARDEN_WATER_THRESHOLD:
                builder.set(x, y, Cell.GARDEN_WATER)
            else:
                builder.set(x, y, Cell.GARDEN_PATH)
    builder.rooms.append(
        Room(
            room_id="GARDEN-MAIN",
            name="Central Zen Court",
            category="GARDEN",
            top_left=(garden_x, garden_y),
            bottom_right=(garden_x + garden_w - 1, garden_y + garden_h - 1),
        )
    )

    logger.debug(
        "[HOTEL] Generated %dx%d floor plan with %d rooms (atrium at %d,%d)",
        width,
        height,
        len(builder.rooms),
        ax,
        ay,
    )
    return HotelMap(layout=layout, grid=builder.freeze(), rooms=tuple(builder.rooms))
