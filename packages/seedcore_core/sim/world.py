"""Process-wide scene state: clock, atmosphere and the director log."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
import time
import uuid
from typing import Any


class Atmosphere(str, Enum):
    MORNING_LIGHT = "MORNING_LIGHT"
    GOLDEN_HOUR = "GOLDEN_HOUR"
    EVENING_CHIC = "EVENING_CHIC"
    MIDNIGHT_LOUNGE = "MIDNIGHT_LOUNGE"


class CorePlane(str, Enum):
    NARRATIVE = "NARRATIVE"
    DIRECTOR = "DIRECTOR"
    ACTORS = "ACTORS"
    SET = "SET"


LOG_MOODS = ("NEUTRAL", "WARM", "TENSE")


@dataclass(frozen=True)
class CoreLog:
    log_id: str
    timestamp: float
    plane: CorePlane
    message: str
    mood: str = "NEUTRAL"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.log_id,
            "timestamp": self.timestamp,
            "plane": self.plane.value,
            "message": self.message,
            "mood": self.mood,
        }


@dataclass
class CoreState:
    time_of_day: float = 8.0
    atmosphere: Atmosphere = Atmosphere.MORNING_LIGHT
    max_log_entries: int = 200
    logs: deque = field(default_factory=deque)

    def advance(self, hours: float) -> float:
        self.time_of_day = (self.time_of_day + hours) % 24
        return self.time_of_day

    def append_log(self, plane: CorePlane, message: str, *, mood: str = "NEUTRAL") -> CoreLog:
        if mood not in LOG_MOODS:
            raise ValueError(f"Unknown log mood: {mood}")
        entry = CoreLog(
            log_id=uuid.uuid4().hex[:12],
            timestamp=time.time(),
            plane=plane,
            message=message,
            mood=mood,
        )
        self.logs.append(entry)
        while len(self.logs) > max(1, self.max_log_entries):
            self.logs.popleft()
        return entry

    def snapshot(self) -> CoreState:
        return CoreState(
            time_of_day=self.time_of_day,
            atmosphere=self.atmosphere,
            max_log_entries=self.max_log_entries,
            logs=deque(self.logs),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "time_of_day": round(self.time_of_day, 4),
            "atmosphere": self.atmosphere.value,
            "logs": [entry.to_dict() for entry in self.logs],
        }
