"""Process-wide simulation engine used by the API and the runtime scheduler."""

from __future__ import annotations

import logging
import threading

from packages.seedcore_core.llm.speech import SpeechSynthesizer
from packages.seedcore_core.llm.task_runner import PolicyTaskRunner, TextGenerator
from packages.seedcore_core.sim.config import SimulationConfig
from packages.seedcore_core.sim.runner import SimulationEngine

from ..storage.llm_control import get_policy as get_llm_policy
from ..storage.llm_control import insert_call_log


logger = logging.getLogger("seedcore_api.services.simulation")

_ENGINE: SimulationEngine | None = None
_ENGINE_LOCK = threading.Lock()


def build_engine(config: SimulationConfig | None = None) -> SimulationEngine:
    logger.info("[SIM] Building hotel engine")
    runner = PolicyTaskRunner(policy_lookup=get_llm_policy, log_sink=insert_call_log)
    return SimulationEngine(
        config=config or SimulationConfig.from_env(),
        text_generator=TextGenerator(runner=runner),
        speech_synthesizer=SpeechSynthesizer(policy_lookup=get_llm_policy, log_sink=insert_call_log),
    )


def get_engine() -> SimulationEngine:
    global _ENGINE
    with _ENGINE_LOCK:
        if _ENGINE is None:
            _ENGINE = build_engine()
        return _ENGINE


def set_engine_for_tests(engine: SimulationEngine | None) -> None:
    global _ENGINE
    with _ENGINE_LOCK:
        _ENGINE = engine


def reset_engine_for_tests() -> None:
    set_engine_for_tests(None)
