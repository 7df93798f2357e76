"""Agent records and initial population for the hotel simulation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import random
from typing import Any, Optional

from packages.seedcore_core.llm.speech import AudioClip
from packages.seedcore_core.maps.hotel import HotelMap
from packages.seedcore_core.maps.map_utils import Coordinates, is_walkable


class AgentRole(str, Enum):
    GUEST = "GUEST"
    STAFF_HUMAN = "STAFF_HUMAN"
    ROBOT_WAITER = "ROBOT_WAITER"
    ROBOT_CONCIERGE = "ROBOT_CONCIERGE"
    ROBOT_GARDENER = "ROBOT_GARDENER"


class AgentState(str, Enum):
    SOCIALIZING = "SOCIALIZING"
    WALKING = "WALKING"
    PAUSING = "PAUSING"
    OBSERVING = "OBSERVING"
    SERVICING = "SERVICING"
    CHARGING = "CHARGING"
    CONVERSING = "CONVERSING"


# Roles that speak, and that may be pulled into a conversation.
CONVERSATIONAL_ROLES = frozenset({AgentRole.GUEST, AgentRole.ROBOT_WAITER})


@dataclass
class Agent:
    """Live state for one agent in the hotel."""

    agent_id: str
    role: AgentRole
    position: Coordinates
    state: AgentState
    mood: str
    target: Optional[Coordinates] = None
    previous_position: Optional[Coordinates] = None
    dialogue: Optional[str] = None
    audio: Optional[AudioClip] = None
    last_dialogue_at: Optional[float] = None
    is_generating_dialogue: bool = False

    @property
    def is_robot(self) -> bool:
        return self.role in (AgentRole.ROBOT_WAITER, AgentRole.ROBOT_CONCIERGE, AgentRole.ROBOT_GARDENER)

    def snapshot(self) -> Agent:
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.agent_id,
            "role": self.role.value,
            "is_robot": self.is_robot,
            "position": {"x": self.position[0], "y": self.position[1]},
            "previous_position": (
                {"x": self.previous_position[0], "y": self.previous_position[1]}
                if self.previous_position is not None
                else None
            ),
            "target": {"x": self.target[0], "y": self.target[1]} if self.target is not None else None,
            "state": self.state.value,
            "mood": self.mood,
            "dialogue": self.dialogue,
            "audio": self.audio.to_dict() if self.audio is not None else None,
            "last_dialogue_at": self.last_dialogue_at,
            "is_generating_dialogue": self.is_generating_dialogue,
        }


def _spawn_near(
    hotel_map: HotelMap,
    center: Coordinates,
    *,
    spread_x: int,
    spread_y: int,
    rng: random.Random,
) -> Coordinates:
    x = max(0, center[0] + rng.randrange(spread_x) - spread_x // 2)
    y = max(0, center[1] + rng.randrange(spread_y) - spread_y // 2)
    if is_walkable(hotel_map.grid, x, y):
        return x, y
    return center


def spawn_agents(
    hotel_map: HotelMap,
    *,
    guest_count: int = 10,
    robot_count: int = 5,
    rng: random.Random | None = None,
) -> list[Agent]:
    """Create the fixed starting population.

    Guests scatter around the atrium centre. Robots alternate by index:
    even indices are concierges posted at the reception desk, odd indices are
    waiters near the atrium centre.
    """
    rand = rng or random.Random()
    layout = hotel_map.layout
    center = layout.atrium_center
    agents: list[Agent] = []

    for i in range(guest_count):
        agents.append(
            Agent(
                agent_id=f"G-{i}",
                role=AgentRole.GUEST,
                position=_spawn_near(hotel_map, center, spread_x=12, spread_y=8, rng=rand),
                state=AgentState.WALKING,
                mood="Neutral",
            )
        )

    for i in range(robot_count):
        is_concierge = i % 2 == 0
        if is_concierge:
            position = layout.reception
        else:
            position = _spawn_near(hotel_map, center, spread_x=8, spread_y=8, rng=rand)
        agents.append(
            Agent(
                agent_id=f"R-{i}",
                role=AgentRole.ROBOT_CONCIERGE if is_concierge else AgentRole.ROBOT_WAITER,
                position=position,
                state=AgentState.SERVICING,
                mood="Operational",
            )
        )
    return agents
