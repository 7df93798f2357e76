"""Tunable simulation constants, overridable from the environment."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Optional
import os

from packages.seedcore_core.maps.hotel import DEFAULT_GRID_HEIGHT, DEFAULT_GRID_WIDTH


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = str(os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SimulationConfig:
    grid_width: int = DEFAULT_GRID_WIDTH
    grid_height: int = DEFAULT_GRID_HEIGHT
    guest_count: int = 10
    robot_count: int = 5
    seed: Optional[int] = None

    tick_interval_seconds: float = 1.0
    dialogue_sweep_interval_seconds: float = 20.0
    time_of_day_start: float = 8.0
    time_of_day_step: float = 0.05
    max_log_entries: int = 200

    pause_chance: float = 0.2
    conversation_exit_chance: float = 0.02
    target_attempts: int = 15

    ai_enabled: bool = False
    dialogue_cooldown_seconds: float = 15.0
    dialogue_chance: float = 0.15
    dialogue_inter_job_delay_seconds: float = 0.5
    neighbor_radius: int = 5

    @classmethod
    def from_env(cls, prefix: str = "SEEDCORE_") -> SimulationConfig:
        """Read ``SEEDCORE_<FIELD_NAME>`` overrides, e.g. ``SEEDCORE_GUEST_COUNT``."""
        overrides: dict[str, Any] = {}
        for item in fields(cls):
            env_name = f"{prefix}{item.name.upper()}"
            raw = os.environ.get(env_name)
            if raw is None or not raw.strip():
                continue
            if item.name == "ai_enabled":
                overrides[item.name] = _truthy_env(env_name)
            elif item.name == "seed" or item.type in ("int", int):
                try:
                    overrides[item.name] = int(raw)
                except ValueError:
                    raise ValueError(f"{env_name} must be an integer, got {raw!r}") from None
            else:
                try:
                    overrides[item.name] = float(raw)
                except ValueError:
                    raise ValueError(f"{env_name} must be a number, got {raw!r}") from None
        return cls(**overrides)
