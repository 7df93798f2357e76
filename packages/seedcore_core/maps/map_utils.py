"""Cell types, rooms and walkability helpers for SeedCore hotel maps.

Grids are row-major: ``grid[y][x]``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Sequence


class Cell(str, Enum):
    EMPTY = "EMPTY"
    WALL = "WALL"
    LOBBY_FLOOR = "LOBBY_FLOOR"
    RECEPTION_DESK = "RECEPTION_DESK"
    GARDEN_PATH = "GARDEN_PATH"
    GARDEN_PLANT = "GARDEN_PLANT"
    GARDEN_WATER = "GARDEN_WATER"
    ROOM_FLOOR = "ROOM_FLOOR"
    ROOM_WALL = "ROOM_WALL"
    ROOM_DOOR = "ROOM_DOOR"
    ROOM_FURNITURE = "ROOM_FURNITURE"
    SERVICE_HUB = "SERVICE_HUB"


# Staff may stand behind the reception desk.
WALKABLE_CELLS = frozenset(
    {
        Cell.LOBBY_FLOOR,
        Cell.ROOM_FLOOR,
        Cell.GARDEN_PATH,
        Cell.ROOM_DOOR,
        Cell.RECEPTION_DESK,
        Cell.SERVICE_HUB,
    }
)

Coordinates = tuple[int, int]
Grid = Sequence[Sequence[Cell]]


@dataclass(frozen=True)
class Room:
    """Named axis-aligned area of the floor plan (inclusive corners)."""

    room_id: str
    name: str
    category: str
    top_left: Coordinates
    bottom_right: Coordinates

    def contains(self, x: int, y: int) -> bool:
        return (
            self.top_left[0] <= x <= self.bottom_right[0]
            and self.top_left[1] <= y <= self.bottom_right[1]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.room_id,
            "name": self.name,
            "type": self.category,
            "top_left": {"x": self.top_left[0], "y": self.top_left[1]},
            "bottom_right": {"x": self.bottom_right[0], "y": self.bottom_right[1]},
        }


def grid_size(grid: Grid) -> tuple[int, int]:
    height = len(grid)
    width = len(grid[0]) if height else 0
    return width, height


def in_bounds(x: int, y: int, width: int, height: int) -> bool:
    return 0 <= x < width and 0 <= y < height


def is_walkable(grid: Grid, x: int, y: int) -> bool:
    width, height = grid_size(grid)
    if not in_bounds(x, y, width, height):
        return False
    return grid[y][x] in WALKABLE_CELLS


def walkable_grid(grid: Grid) -> list[list[int]]:
    return [[1 if cell in WALKABLE_CELLS else 0 for cell in row] for row in grid]


def neighbors8(x: int, y: int, width: int, height: int) -> Iterable[Coordinates]:
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dx == 0 and dy == 0:
                continue
            nx, ny = x + dx, y + dy
            if in_bounds(nx, ny, width, height):
                yield nx, ny


def serialize_grid(grid: Grid) -> list[list[str]]:
    return [[cell.value for cell in row] for row in grid]
