#!/usr/bin/env python3

from __future__ import annotations

import random
import unittest

from packages.seedcore_core.maps.hotel import (
    HotelLayout,
    LayoutError,
    MIN_GRID_HEIGHT,
    MIN_GRID_WIDTH,
    generate_hotel_map,
)
from packages.seedcore_core.maps.map_utils import WALKABLE_CELLS, Cell, is_walkable
from packages.seedcore_core.maps.validator import bfs_reachable, validate_hotel_map


class HotelMapTests(unittest.TestCase):
    def test_default_layout_anchors(self) -> None:
        hotel = generate_hotel_map(rng=random.Random(1))

        self.assertEqual((hotel.width, hotel.height), (80, 44))
        self.assertEqual(len(hotel.grid), 44)
        self.assertTrue(all(len(row) == 80 for row in hotel.grid))
        self.assertEqual((hotel.layout.atrium_x, hotel.layout.atrium_y), (30, 28))
        self.assertEqual(hotel.layout.atrium_center, (40, 34))
        self.assertEqual(hotel.layout.reception, (40, 30))
        self.assertEqual(hotel.grid[30][40], Cell.RECEPTION_DESK)
        self.assertEqual(hotel.grid[34][40], Cell.LOBBY_FLOOR)

    def test_rooms_cover_suites_lobby_and_garden(self) -> None:
        hotel = generate_hotel_map(rng=random.Random(2))
        categories = [room.category for room in hotel.rooms]

        self.assertEqual(categories.count("SUITE"), 30)
        self.assertEqual(categories.count("LOBBY"), 1)
        self.assertEqual(categories.count("GARDEN"), 1)
        self.assertEqual(hotel.room_at(40, 34).room_id, "LOBBY-MAIN")

        suite = next(room for room in hotel.rooms if room.room_id == "10A")
        x0, y0 = suite.top_left
        self.assertEqual(hotel.grid[y0 + 1][x0 + 1], Cell.ROOM_FURNITURE)
        self.assertEqual(hotel.grid[y0][x0 + 2], Cell.ROOM_DOOR)
        self.assertEqual(hotel.grid[y0][x0], Cell.ROOM_WALL)

    def test_garden_is_reproducible_with_seeded_rng(self) -> None:
        first = generate_hotel_map(rng=random.Random(42))
        second = generate_hotel_map(rng=random.Random(42))
        self.assertEqual(first.grid, second.grid)

        garden = next(room for room in first.rooms if room.category == "GARDEN")
        (gx0, gy0), (gx1, gy1) = garden.top_left, garden.bottom_right
        garden_cells = {first.grid[y][x] for y in range(gy0, gy1 + 1) for x in range(gx0, gx1 + 1)}
        self.assertTrue(garden_cells <= {Cell.GARDEN_PATH, Cell.GARDEN_PLANT, Cell.GARDEN_WATER})

    def test_walkability_follows_cell_set(self) -> None:
        hotel = generate_hotel_map(rng=random.Random(3))
        for y, row in enumerate(hotel.grid):
            for x, cell in enumerate(row):
                self.assertEqual(is_walkable(hotel.grid, x, y), cell in WALKABLE_CELLS)
        self.assertFalse(is_walkable(hotel.grid, -1, 0))
        self.assertFalse(is_walkable(hotel.grid, 80, 0))
        self.assertFalse(is_walkable(hotel.grid, 0, 44))

    def test_too_small_grid_raises_layout_error(self) -> None:
        with self.assertRaises(LayoutError):
            generate_hotel_map(MIN_GRID_WIDTH - 1, 44)
        with self.assertRaises(LayoutError):
            HotelLayout.for_dimensions(80, MIN_GRID_HEIGHT - 1)

    def test_minimum_grid_still_generates(self) -> None:
        hotel = generate_hotel_map(MIN_GRID_WIDTH, MIN_GRID_HEIGHT, rng=random.Random(4))
        errors, _, _ = validate_hotel_map(hotel)
        self.assertEqual(errors, [])

    def test_validation_summary(self) -> None:
        hotel = generate_hotel_map(rng=random.Random(5))
        errors, warnings, summary = validate_hotel_map(hotel)

        self.assertEqual(errors, [])
        self.assertIsInstance(warnings, list)
        self.assertEqual(summary["dimensions"], {"width": 80, "height": 44})
        self.assertEqual(summary["rooms"]["total"], len(hotel.rooms))
        self.assertGreater(summary["tiles"]["reachable_from_atrium"], 0)
        self.assertLessEqual(summary["tiles"]["reachable_from_atrium"], summary["tiles"]["walkable"])

    def test_bfs_from_blocked_start_is_empty(self) -> None:
        grid = ((Cell.EMPTY, Cell.LOBBY_FLOOR), (Cell.LOBBY_FLOOR, Cell.LOBBY_FLOOR))
        self.assertEqual(bfs_reachable((0, 0), grid), set())
        self.assertEqual(bfs_reachable((1, 1), grid), {(1, 0), (0, 1), (1, 1)})


if __name__ == "__main__":
    unittest.main()
