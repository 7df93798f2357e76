#!/usr/bin/env python3

from __future__ import annotations

import os
import unittest

from packages.seedcore_core.sim.config import SimulationConfig


class SimulationConfigTests(unittest.TestCase):
    _env_keys = (
        "SEEDCORE_GUEST_COUNT",
        "SEEDCORE_SEED",
        "SEEDCORE_AI_ENABLED",
        "SEEDCORE_DIALOGUE_CHANCE",
        "SEEDCORE_TICK_INTERVAL_SECONDS",
    )

    def setUp(self) -> None:
        self._env_backup = {k: os.environ.get(k) for k in self._env_keys}
        for key in self._env_keys:
            os.environ.pop(key, None)

    def tearDown(self) -> None:
        for key, value in self._env_backup.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    def test_defaults(self) -> None:
        config = SimulationConfig.from_env()
        self.assertEqual((config.grid_width, config.grid_height), (80, 44))
        self.assertEqual((config.guest_count, config.robot_count), (10, 5))
        self.assertEqual(config.dialogue_cooldown_seconds, 15.0)
        self.assertEqual(config.dialogue_chance, 0.15)
        self.assertEqual(config.dialogue_sweep_interval_seconds, 20.0)
        self.assertFalse(config.ai_enabled)
        self.assertIsNone(config.seed)

    def test_env_overrides(self) -> None:
        os.environ["SEEDCORE_GUEST_COUNT"] = "4"
        os.environ["SEEDCORE_SEED"] = "17"
        os.environ["SEEDCORE_AI_ENABLED"] = "yes"
        os.environ["SEEDCORE_DIALOGUE_CHANCE"] = "0.5"
        os.environ["SEEDCORE_TICK_INTERVAL_SECONDS"] = "0.25"

        config = SimulationConfig.from_env()

        self.assertEqual(config.guest_count, 4)
        self.assertEqual(config.seed, 17)
        self.assertTrue(config.ai_enabled)
        self.assertEqual(config.dialogue_chance, 0.5)
        self.assertEqual(config.tick_interval_seconds, 0.25)

    def test_bad_number_is_reported(self) -> None:
        os.environ["SEEDCORE_GUEST_COUNT"] = "many"
        with self.assertRaises(ValueError):
            SimulationConfig.from_env()


if __name__ == "__main__":
    unittest.main()
