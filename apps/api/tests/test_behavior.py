#!/usr/bin/env python3

from __future__ import annotations

import random
import unittest

from packages.seedcore_core.maps.hotel import HotelLayout, HotelMap, generate_hotel_map
from packages.seedcore_core.maps.map_utils import Cell, is_walkable
from packages.seedcore_core.sim.agents import Agent, AgentRole, AgentState, spawn_agents
from packages.seedcore_core.sim.behavior import candidate_steps, sample_target, step_agent, update_agents


class _ScriptedRandom:
    """Deterministic stand-in for ``random.Random`` in single-step tests."""

    def __init__(self, values: list[float], default: float = 0.99) -> None:
        self._values = list(values)
        self._default = default
        self.randrange_calls = 0

    def random(self) -> float:
        return self._values.pop(0) if self._values else self._default

    def randrange(self, stop: int) -> int:
        self.randrange_calls += 1
        return stop // 2

    def choice(self, seq):
        return seq[0]


def _blocked_map(width: int = 40, height: int = 24) -> HotelMap:
    grid = tuple(tuple(Cell.EMPTY for _ in range(width)) for _ in range(height))
    return HotelMap(layout=HotelLayout.for_dimensions(width, height), grid=grid, rooms=())


def _agent(agent_id: str = "G-0", *, role: AgentRole = AgentRole.GUEST, position=(40, 34), state=AgentState.WALKING) -> Agent:
    return Agent(agent_id=agent_id, role=role, position=position, state=state, mood="Neutral")


class BehaviorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.hotel = generate_hotel_map(rng=random.Random(11))

    def test_candidate_steps_cover_axes_and_diagonal(self) -> None:
        self.assertEqual(candidate_steps((5, 5), (8, 2)), [(6, 5), (5, 4), (6, 4)])
        self.assertEqual(candidate_steps((5, 5), (5, 9)), [(5, 6)])
        self.assertEqual(candidate_steps((5, 5), (5, 5)), [])

    def test_conversing_agent_stays_put(self) -> None:
        agent = _agent(state=AgentState.CONVERSING)
        agent.target = (44, 34)

        step_agent(agent, self.hotel, rng=_ScriptedRandom([0.5]))

        self.assertEqual(agent.state, AgentState.CONVERSING)
        self.assertEqual(agent.position, (40, 34))
        self.assertEqual(agent.target, (40, 34))
        self.assertEqual(agent.previous_position, (40, 34))

    def test_conversing_agent_may_drift_to_pausing(self) -> None:
        agent = _agent(state=AgentState.CONVERSING)
        step_agent(agent, self.hotel, rng=_ScriptedRandom([0.01]))
        self.assertEqual(agent.state, AgentState.PAUSING)
        self.assertEqual(agent.position, (40, 34))

    def test_reached_target_can_pause(self) -> None:
        agent = _agent()
        agent.target = agent.position
        rng = _ScriptedRandom([0.1])

        step_agent(agent, self.hotel, rng=rng)

        self.assertEqual(agent.state, AgentState.PAUSING)
        self.assertEqual(agent.target, (40, 34))
        self.assertEqual(rng.randrange_calls, 0)

    def test_new_target_is_sampled_around_anchor(self) -> None:
        guest = _agent()
        target = sample_target(guest, self.hotel, rng=_ScriptedRandom([]))
        self.assertEqual(target, self.hotel.layout.atrium_center)

        concierge = _agent("R-0", role=AgentRole.ROBOT_CONCIERGE, state=AgentState.SERVICING)
        target = sample_target(concierge, self.hotel, rng=_ScriptedRandom([]))
        self.assertEqual(target, self.hotel.layout.reception)

    def test_exhausted_sampler_keeps_agent_in_place(self) -> None:
        blocked = _blocked_map()
        agent = _agent(position=(5, 5))
        rng = _ScriptedRandom([0.9])

        step_agent(agent, blocked, rng=rng, target_attempts=15)

        self.assertEqual(agent.state, AgentState.WALKING)
        self.assertEqual(agent.target, (5, 5))
        self.assertEqual(agent.position, (5, 5))
        self.assertEqual(rng.randrange_calls, 30)

    def test_boxed_in_agent_drops_target(self) -> None:
        blocked = _blocked_map()
        agent = _agent(position=(5, 5))
        agent.target = (9, 9)

        step_agent(agent, blocked, rng=_ScriptedRandom([]))

        self.assertIsNone(agent.target)
        self.assertEqual(agent.position, (5, 5))

    def test_step_moves_one_cell_toward_target(self) -> None:
        agent = _agent()
        agent.target = (45, 34)

        step_agent(agent, self.hotel, rng=_ScriptedRandom([]))

        self.assertEqual(agent.position, (41, 34))
        self.assertEqual(agent.previous_position, (40, 34))

    def test_agents_only_ever_occupy_walkable_cells(self) -> None:
        rng = random.Random(99)
        agents = spawn_agents(self.hotel, guest_count=10, robot_count=5, rng=rng)
        for agent in agents:
            self.assertTrue(is_walkable(self.hotel.grid, *agent.position))
        for _ in range(300):
            update_agents(agents, self.hotel, rng=rng)
            for agent in agents:
                self.assertTrue(is_walkable(self.hotel.grid, *agent.position), agent.agent_id)
                if agent.previous_position is not None:
                    self.assertLessEqual(abs(agent.position[0] - agent.previous_position[0]), 1)
                    self.assertLessEqual(abs(agent.position[1] - agent.previous_position[1]), 1)

    def test_spawn_assigns_roles_by_index(self) -> None:
        agents = spawn_agents(self.hotel, guest_count=3, robot_count=4, rng=random.Random(0))
        by_id = {agent.agent_id: agent for agent in agents}

        self.assertEqual(by_id["G-2"].role, AgentRole.GUEST)
        self.assertEqual(by_id["G-2"].state, AgentState.WALKING)
        self.assertEqual(by_id["R-0"].role, AgentRole.ROBOT_CONCIERGE)
        self.assertEqual(by_id["R-0"].position, self.hotel.layout.reception)
        self.assertEqual(by_id["R-1"].role, AgentRole.ROBOT_WAITER)
        self.assertEqual(by_id["R-3"].state, AgentState.SERVICING)


if __name__ == "__main__":
    unittest.main()
