"""Per-tick movement and behaviour rules for hotel agents.

Movement is a greedy random walk: agents pick a nearby walkable target and
take one unit step per tick toward it, choosing at random among the
walkable horizontal/vertical/diagonal steps. There is no pathfinding; an
agent boxed in by obstacles drops its target and picks a new one next tick.
"""

from __future__ import annotations

import random
from typing import Iterable

from packages.seedcore_core.maps.hotel import HotelMap
from packages.seedcore_core.maps.map_utils import Coordinates, Grid, is_walkable

from .agents import Agent, AgentRole, AgentState

DEFAULT_PAUSE_CHANCE = 0.2
DEFAULT_CONVERSATION_EXIT_CHANCE = 0.02
DEFAULT_TARGET_ATTEMPTS = 15

# (width, height) of the sampling window around each anchor point.
CONCIERGE_WINDOW = (8, 6)
WANDER_WINDOW = (16, 10)


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def sample_target(
    agent: Agent,
    hotel_map: HotelMap,
    *,
    rng: random.Random,
    attempts: int = DEFAULT_TARGET_ATTEMPTS,
) -> Coordinates:
    """Pick a walkable cell near the agent's anchor, or stay put.

    Concierges keep to the reception desk; everyone else wanders around the
    atrium centre. Returns the agent's own position when no candidate in
    ``attempts`` draws is walkable.
    """
    if agent.role == AgentRole.ROBOT_CONCIERGE:
        anchor = hotel_map.layout.reception
        span_x, span_y = CONCIERGE_WINDOW
    else:
        anchor = hotel_map.layout.atrium_center
        span_x, span_y = WANDER_WINDOW

    for _ in range(max(0, attempts)):
        tx = anchor[0] + rng.randrange(span_x) - span_x // 2
        ty = anchor[1] + rng.randrange(span_y) - span_y // 2
        if is_walkable(hotel_map.grid, tx, ty):
            return tx, ty
    return agent.position


def candidate_steps(position: Coordinates, target: Coordinates) -> list[Coordinates]:
    dx = _sign(target[0] - position[0])
    dy = _sign(target[1] - position[1])
    x, y = position
    moves: list[Coordinates] = []
    if dx != 0:
        moves.append((x + dx, y))
    if dy != 0:
        moves.append((x, y + dy))
    if dx != 0 and dy != 0:
        moves.append((x + dx, y + dy))
    return moves


def step_agent(
    agent: Agent,
    hotel_map: HotelMap,
    *,
    rng: random.Random,
    pause_chance: float = DEFAULT_PAUSE_CHANCE,
    conversation_exit_chance: float = DEFAULT_CONVERSATION_EXIT_CHANCE,
    target_attempts: int = DEFAULT_TARGET_ATTEMPTS,
) -> Agent:
    """Advance one agent by a single tick, mutating it in place.

    Leaving ``CONVERSING`` here does not touch the conversation lock; the
    engine reconciles the lock after the whole tick.
    """
    grid: Grid = hotel_map.grid
    agent.previous_position = agent.position

    if agent.state == AgentState.CONVERSING:
        agent.target = agent.position
        if rng.random() < conversation_exit_chance:
            agent.state = AgentState.PAUSING
        return agent

    if agent.target is None or agent.position == agent.target:
        if rng.random() < pause_chance:
            agent.state = AgentState.PAUSING
            agent.target = agent.position
        else:
            agent.state = AgentState.WALKING
            agent.target = sample_target(agent, hotel_map, rng=rng, attempts=target_attempts)

    if agent.target is not None and agent.target != agent.position:
        walkable = [move for move in candidate_steps(agent.position, agent.target) if is_walkable(grid, *move)]
        if walkable:
            agent.position = rng.choice(walkable)
        else:
            agent.target = None
    return agent


def update_agents(
    agents: Iterable[Agent],
    hotel_map: HotelMap,
    *,
    rng: random.Random,
    pause_chance: float = DEFAULT_PAUSE_CHANCE,
    conversation_exit_chance: float = DEFAULT_CONVERSATION_EXIT_CHANCE,
    target_attempts: int = DEFAULT_TARGET_ATTEMPTS,
) -> list[Agent]:
    return [
        step_agent(
            agent,
            hotel_map,
            rng=rng,
            pause_chance=pause_chance,
            conversation_exit_chance=conversation_exit_chance,
            target_attempts=target_attempts,
        )
        for agent in agents
    ]
