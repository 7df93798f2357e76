"""Sanity checks for generated hotel floor plans."""

from __future__ import annotations

from collections import Counter, deque
from logging import getLogger
from typing import Any

from .hotel import HotelMap
from .map_utils import Coordinates, Grid, grid_size, is_walkable, neighbors8

logger = getLogger("seedcore_core.maps.validator")


def bfs_reachable(start: Coordinates, grid: Grid) -> set[Coordinates]:
    # Agents may step diagonally, so reachability uses all eight neighbours.
    width, height = grid_size(grid)
    if not is_walkable(grid, *start):
        return set()
    seen: set[Coordinates] = {start}
    queue = deque([start])
    while queue:
        x, y = queue.popleft()
        for nx, ny in neighbors8(x, y, width, height):
            if (nx, ny) in seen or not is_walkable(grid, nx, ny):
                continue
            seen.add((nx, ny))
            queue.append((nx, ny))
    return seen


def validate_hotel_map(hotel_map: HotelMap) -> tuple[list[str], list[str], dict[str, Any]]:
    logger.debug("[VALIDATOR] Starting hotel map validation")
    errors: list[str] = []
    warnings: list[str] = []
    grid = hotel_map.grid
    layout = hotel_map.layout

    for label, point in (("atrium center", layout.atrium_center), ("reception", layout.reception)):
        if not is_walkable(grid, *point):
            errors.append(f"{label} at {point[0]},{point[1]} is not walkable")

    tile_counts = Counter(cell.value for row in grid for cell in row)
    walkable = {
        (x, y)
        for y in range(hotel_map.height)
        for x in range(hotel_map.width)
        if is_walkable(grid, x, y)
    }
    reachable = bfs_reachable(layout.atrium_center, grid)
    unreachable = len(walkable - reachable)
    if unreachable:
        warnings.append(f"{unreachable} walkable tiles are unreachable from the atrium")

    room_counts = Counter(room.category for room in hotel_map.rooms)
    summary = {
        "dimensions": {"width": hotel_map.width, "height": hotel_map.height},
        "tiles": {
            "by_type": dict(sorted(tile_counts.items())),
            "walkable": len(walkable),
            "reachable_from_atrium": len(reachable),
        },
        "rooms": {"total": len(hotel_map.rooms), "by_type": dict(sorted(room_counts.items()))},
    }
    if errors:
        logger.warning("[VALIDATOR] Hotel map validation failed: %s", errors)
    else:
        logger.debug("[VALIDATOR] Hotel map valid: walkable=%d reachable=%d", len(walkable), len(reachable))
    return errors, warnings, summary
