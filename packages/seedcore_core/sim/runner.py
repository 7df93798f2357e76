"""In-memory hotel simulation engine.

``SimulationEngine`` owns the map, the agent store, the scene state, the
conversation lock and the dialogue pipeline. Every mutation of the agent
store happens under one re-entrant lock, including the write-backs made by
the dialogue worker thread.
"""

from __future__ import annotations

from collections import OrderedDict
from concurrent.futures import Future
import functools
import logging
import random
import threading
import time
from typing import Any, Callable, Optional

from packages.seedcore_core.llm.speech import AudioClip, SpeechSynthesizer, TranscriptionResult
from packages.seedcore_core.llm.task_runner import TextGenerator
from packages.seedcore_core.maps.hotel import HotelMap, LayoutError, generate_hotel_map
from packages.seedcore_core.maps.validator import validate_hotel_map

from .agents import CONVERSATIONAL_ROLES, Agent, AgentState, spawn_agents
from .behavior import update_agents
from .config import SimulationConfig
from .conversation import ConversationCoordinator, end_conversation, release_stale_holder, start_conversation
from .dialogue import (
    DialogueOutcome,
    DialoguePipeline,
    DialogueRequest,
    SpeechSynthesisCapability,
    TextGenerationCapability,
    should_generate_dialogue,
)
from .world import Atmosphere, CorePlane, CoreState


logger = logging.getLogger("seedcore_core.sim.runner")

MAX_STORED_AUDIO_CLIPS = 100


class UnknownAgentError(KeyError):
    def __init__(self, agent_id: str) -> None:
        super().__init__(agent_id)
        self.agent_id = agent_id

    def __str__(self) -> str:
        return f"Unknown agent: {self.agent_id}"


class SimulationEngine:
    def __init__(
        self,
        *,
        config: SimulationConfig | None = None,
        text_generator: TextGenerationCapability | None = None,
        speech_synthesizer: SpeechSynthesisCapability | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or SimulationConfig()
        self._rng = rng or random.Random(self.config.seed)
        self._clock = clock
        self._lock = threading.RLock()

        self.hotel_map: HotelMap = generate_hotel_map(
            self.config.grid_width,
            self.config.grid_height,
            rng=self._rng,
        )
        errors, warnings, summary = validate_hotel_map(self.hotel_map)
        if errors:
            raise LayoutError("; ".join(errors))
        for warning in warnings:
            logger.warning("[MAP] %s", warning)
        self.map_summary = summary

        self._agents: dict[str, Agent] = {
            agent.agent_id: agent
            for agent in spawn_agents(
                self.hotel_map,
                guest_count=self.config.guest_count,
                robot_count=self.config.robot_count,
                rng=self._rng,
            )
        }
        self.core = CoreState(
            time_of_day=self.config.time_of_day_start,
            max_log_entries=self.config.max_log_entries,
        )
        self.coordinator = ConversationCoordinator()
        self.speech = speech_synthesizer if speech_synthesizer is not None else SpeechSynthesizer()
        self.pipeline = DialoguePipeline(
            text_generator=text_generator or TextGenerator(),
            speech_synthesizer=self.speech,
            inter_job_delay_seconds=self.config.dialogue_inter_job_delay_seconds,
            neighbor_radius=self.config.neighbor_radius,
        )
        self._ai_enabled = bool(self.config.ai_enabled)
        self._audio: OrderedDict[str, AudioClip] = OrderedDict()
        self._step = 0
        self._job_seq = 0
        self._latest_jobs: dict[str, int] = {}
        logger.info(
            "[SIM] Engine ready: %dx%d map, %d agents, ai_enabled=%s",
            self.hotel_map.width,
            self.hotel_map.height,
            len(self._agents),
            self._ai_enabled,
        )

    @property
    def ai_enabled(self) -> bool:
        with self._lock:
            return self._ai_enabled

    @property
    def step(self) -> int:
        with self._lock:
            return self._step

    def _require_agent(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise UnknownAgentError(agent_id)
        return agent

    def agent(self, agent_id: str) -> Agent:
        """Return a copy of one agent's current record."""
        with self._lock:
            return self._require_agent(agent_id).snapshot()

    def agents(self) -> list[Agent]:
        with self._lock:
            return [agent.snapshot() for agent in self._agents.values()]

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "step": self._step,
                "ai_enabled": self._ai_enabled,
                "conversation_holder": self.coordinator.holder,
                "core": self.core.to_dict(),
                "agents": [agent.to_dict() for agent in self._agents.values()],
                "dialogue_queue": self.pipeline.stats(),
            }

    def tick(self, steps: int = 1) -> dict[str, Any]:
        with self._lock:
            for _ in range(max(1, int(steps))):
                self._step += 1
                update_agents(
                    self._agents.values(),
                    self.hotel_map,
                    rng=self._rng,
                    pause_chance=self.config.pause_chance,
                    conversation_exit_chance=self.config.conversation_exit_chance,
                    target_attempts=self.config.target_attempts,
                )
                released = release_stale_holder(self.coordinator, self._agents)
                if released is not None:
                    logger.debug("[TICK] '%s' drifted out of conversation", released)
                self.core.advance(self.config.time_of_day_step)
            return self.snapshot()

    def begin_conversation(self, agent_id: str) -> Optional[dict[str, Any]]:
        """Select an agent for conversation.

        Returns ``None`` when the agent's role cannot converse. With AI enabled
        an immediate dialogue job is queued for the new holder.
        """
        with self._lock:
            self._require_agent(agent_id)
            handoff = start_conversation(self.coordinator, self._agents, agent_id)
            if handoff is None:
                return None
            if handoff.previous_agent_id is not None and handoff.previous_agent_id != agent_id:
                self.core.append_log(
                    CorePlane.DIRECTOR,
                    f"{handoff.previous_agent_id} steps back as {agent_id} takes the floor.",
                )
            agent = self._agents[agent_id]
            if self._ai_enabled:
                self._submit(agent, immediate=True)
            else:
                # Nothing will be generated, so do not leave the flag dangling.
                agent.is_generating_dialogue = False
            return {
                **handoff.to_dict(),
                "dialogue_queued": self._ai_enabled,
                "agent": agent.to_dict(),
            }

    def exit_conversation(self, agent_id: str) -> bool:
        with self._lock:
            self._require_agent(agent_id)
            return end_conversation(self.coordinator, self._agents, agent_id)

    def request_dialogue(self, agent_id: str, *, immediate: bool = False) -> Optional[Future]:
        """Queue one dialogue job for an agent, bypassing the sweep lottery."""
        with self._lock:
            agent = self._require_agent(agent_id)
            if agent.role not in CONVERSATIONAL_ROLES or agent.is_generating_dialogue:
                return None
            agent.is_generating_dialogue = True
            return self._submit(agent, immediate=immediate)

    def sweep_dialogue(self, now: float | None = None) -> list[str]:
        """Run one ambient dialogue pass; returns the ids that were queued."""
        with self._lock:
            if not self._ai_enabled:
                return []
            current = self._clock() if now is None else now
            queued: list[str] = []
            for agent in self._agents.values():
                if agent.is_generating_dialogue:
                    continue
                if not should_generate_dialogue(
                    agent,
                    current,
                    rng=self._rng,
                    cooldown_seconds=self.config.dialogue_cooldown_seconds,
                    chance=self.config.dialogue_chance,
                ):
                    continue
                agent.is_generating_dialogue = True
                self._submit(agent, immediate=False)
                queued.append(agent.agent_id)
            if queued:
                logger.info("[DIALOGUE] Sweep queued %d job(s): %s", len(queued), ", ".join(queued))
            return queued

    def wait_for_dialogue(self, timeout: float | None = None) -> bool:
        return self.pipeline.wait_idle(timeout)

    def set_atmosphere(self, atmosphere: Atmosphere | str) -> Atmosphere:
        value = Atmosphere(atmosphere)
        with self._lock:
            self.core.atmosphere = value
            self.core.append_log(CorePlane.SET, f"Atmosphere shifts to {value.value}.")
            return value

    def set_ai_enabled(self, enabled: bool) -> bool:
        with self._lock:
            self._ai_enabled = bool(enabled)
            logger.info("[SIM] AI dialogue %s", "enabled" if self._ai_enabled else "disabled")
            return self._ai_enabled

    def append_log(self, plane: CorePlane | str, message: str, *, mood: str = "NEUTRAL") -> dict[str, Any]:
        with self._lock:
            return self.core.append_log(CorePlane(plane), message, mood=mood).to_dict()

    def get_audio(self, audio_id: str) -> Optional[AudioClip]:
        with self._lock:
            return self._audio.get(audio_id)

    def transcribe(
        self,
        audio: bytes,
        *,
        filename: str = "audio.wav",
        content_type: str = "audio/wav",
    ) -> TranscriptionResult:
        # Not under the engine lock: this waits on the external service.
        return self.speech.transcribe(audio, filename=filename, content_type=content_type)

    def list_voices(self) -> list[dict[str, Any]]:
        return self.speech.list_voices()

    def _submit(self, agent: Agent, *, immediate: bool) -> Future:
        self._job_seq += 1
        token = self._job_seq
        self._latest_jobs[agent.agent_id] = token
        request = DialogueRequest(
            agent=agent.snapshot(),
            agents=tuple(other.snapshot() for other in self._agents.values()),
            core=self.core.snapshot(),
            layout=self.hotel_map.layout,
            immediate=immediate,
        )
        future = self.pipeline.submit(
            request,
            on_update=functools.partial(self._apply_dialogue_update, token=token),
        )
        future.add_done_callback(functools.partial(self._on_job_done, token=token))
        return future

    def _is_latest_job(self, agent_id: str, token: int) -> bool:
        return self._latest_jobs.get(agent_id) == token

    def _apply_dialogue_update(
        self,
        agent_id: str,
        dialogue: str,
        audio: Optional[AudioClip],
        *,
        token: int,
    ) -> None:
        with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None or agent.role not in CONVERSATIONAL_ROLES:
                logger.warning("[DIALOGUE] Dropping update for unavailable agent '%s'", agent_id)
                return
            agent.dialogue = dialogue
            agent.audio = audio
            agent.last_dialogue_at = self._clock()
            # A newer job for this agent still owns the in-progress flag.
            if self._is_latest_job(agent_id, token):
                agent.is_generating_dialogue = False
            if audio is not None:
                self._audio[audio.audio_id] = audio
                while len(self._audio) > MAX_STORED_AUDIO_CLIPS:
                    self._audio.popitem(last=False)
            self.core.append_log(CorePlane.ACTORS, f"{agent_id}: {dialogue}")

    def _on_job_done(self, future: Future, *, token: int) -> None:
        outcome: DialogueOutcome = future.result()
        with self._lock:
            if not self._is_latest_job(outcome.agent_id, token):
                logger.debug("[DIALOGUE] Superseded job for '%s' finished", outcome.agent_id)
                return
            del self._latest_jobs[outcome.agent_id]
            if outcome.dialogue is not None:
                return
            agent = self._agents.get(outcome.agent_id)
            if agent is None:
                return
            agent.is_generating_dialogue = False
            if not outcome.immediate:
                return
            if agent.state == AgentState.CONVERSING:
                agent.state = AgentState.PAUSING
            if self.coordinator.exit_conversation(outcome.agent_id):
                logger.info(
                    "[CONVERSATION] Released '%s' after failed dialogue (%s)",
                    outcome.agent_id,
                    outcome.failed_stage,
                )
