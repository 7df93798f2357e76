"""Floor-plan primitives for the SeedCore hotel."""

from .hotel import HotelLayout, HotelMap, LayoutError, generate_hotel_map
from .map_utils import WALKABLE_CELLS, Cell, Room, is_walkable
from .validator import validate_hotel_map

__all__ = [
    "Cell",
    "Room",
    "WALKABLE_CELLS",
    "is_walkable",
    "HotelLayout",
    "HotelMap",
    "LayoutError",
    "generate_hotel_map",
    "validate_hotel_map",
]
