"""Serialized dialogue generation for hotel agents.

Each job asks the text provider for one spoken line and, when a line comes
back, asks the speech provider to voice it. Jobs run strictly one at a time
on a background worker so the external services never see overlapping
requests from this process.
"""

from __future__ import annotations

from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
import logging
import random
import re
import threading
import time
from typing import Any, Callable, Optional, Protocol, Sequence

from packages.seedcore_core.llm.speech import AudioClip, SpeechResult, VoiceSettings
from packages.seedcore_core.maps.hotel import HotelLayout

from .agents import CONVERSATIONAL_ROLES, Agent, AgentRole, AgentState
from .world import CoreState


logger = logging.getLogger("seedcore_core.sim.dialogue")

DEFAULT_COOLDOWN_SECONDS = 15.0
DEFAULT_DIALOGUE_CHANCE = 0.15
DEFAULT_NEIGHBOR_RADIUS = 5
DEFAULT_INTER_JOB_DELAY_SECONDS = 0.5

SWEEP_ELIGIBLE_STATES = frozenset(
    {
        AgentState.PAUSING,
        AgentState.SOCIALIZING,
        AgentState.OBSERVING,
        AgentState.SERVICING,
        AgentState.CONVERSING,
    }
)

VOICE_IDS = {
    AgentRole.GUEST: "21m00Tcm4TlvDq8ikWAM",
    AgentRole.ROBOT_WAITER: "EXAVITQu4vr4xnSDxMaL",
    AgentRole.ROBOT_CONCIERGE: "VR6AewLTigWG4xSOukaG",
    AgentRole.ROBOT_GARDENER: "ThT5KcBeYPX3keUQqHPh",
    AgentRole.STAFF_HUMAN: "21m00Tcm4TlvDq8ikWAM",
}

ROLE_NAMES = {
    AgentRole.GUEST: "Guest",
    AgentRole.ROBOT_WAITER: "Robot Waiter",
    AgentRole.ROBOT_CONCIERGE: "Robot Concierge",
    AgentRole.ROBOT_GARDENER: "Robot Gardener",
    AgentRole.STAFF_HUMAN: "Staff",
}

_ROBOT_VOICE = VoiceSettings(stability=0.5, similarity_boost=0.8)
_HUMAN_VOICE = VoiceSettings(stability=0.35, similarity_boost=0.75)

_WRAPPING_QUOTES_RE = re.compile(r"^[\"']|[\"']$")
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]")
_TERMINAL_PUNCTUATION = (".", "!", "?")


class TextGenerationCapability(Protocol):
    def generate(self, prompt: str, *, agent_id: str | None = None) -> str | None: ...


class SpeechSynthesisCapability(Protocol):
    def synthesize(
        self,
        text: str,
        voice_id: str | None = None,
        settings: VoiceSettings | None = None,
        *,
        agent_id: str | None = None,
    ) -> SpeechResult: ...


DialogueUpdate = Callable[[str, str, Optional[AudioClip]], None]


def voice_for_role(role: AgentRole) -> tuple[str, VoiceSettings]:
    voice_id = VOICE_IDS.get(role, VOICE_IDS[AgentRole.GUEST])
    # Waiter and concierge share the robot preset.
    if role in (AgentRole.ROBOT_WAITER, AgentRole.ROBOT_CONCIERGE):
        return voice_id, _ROBOT_VOICE
    return voice_id, _HUMAN_VOICE


def should_generate_dialogue(
    agent: Agent,
    now: float,
    *,
    rng: random.Random,
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
    chance: float = DEFAULT_DIALOGUE_CHANCE,
) -> bool:
    """Sweep eligibility; the coin flip only happens once every other check passes."""
    if agent.role not in CONVERSATIONAL_ROLES:
        return False
    if agent.last_dialogue_at is not None and now - agent.last_dialogue_at < cooldown_seconds:
        return False
    if agent.state not in SWEEP_ELIGIBLE_STATES:
        return False
    return rng.random() < chance


def find_nearby_agents(
    agent: Agent,
    agents: Sequence[Agent],
    *,
    radius: int = DEFAULT_NEIGHBOR_RADIUS,
) -> list[Agent]:
    ax, ay = agent.position
    return [
        other
        for other in agents
        if other.agent_id != agent.agent_id
        and abs(other.position[0] - ax) <= radius
        and abs(other.position[1] - ay) <= radius
    ]


def location_label(layout: HotelLayout, agent: Agent) -> str:
    return "Grand Atrium" if layout.in_atrium(*agent.position) else "Hotel Wing"


def build_dialogue_prompt(
    agent: Agent,
    core: CoreState,
    nearby: Sequence[Agent],
    *,
    location: str,
) -> str:
    role_name = ROLE_NAMES.get(agent.role, "Staff")
    count = len(nearby)
    if count:
        company = f"There are {count} other {'person' if count == 1 else 'people'} nearby."
    else:
        company = "You are alone in this area."
    return (
        f"You are a {role_name} in a luxury hotel simulation.\n"
        f"Current state: {agent.state.value}\n"
        f"Mood: {agent.mood}\n"
        f"Location: {location}\n"
        f"Time: {core.time_of_day:.1f} hours\n"
        f"Atmosphere: {core.atmosphere.value}\n"
        f"{company}\n\n"
        f"Generate ONE complete, natural sentence (15-25 words) that this {role_name} would say in this situation.\n"
        "- If you're a robot waiter: Be polite, helpful, service-oriented. Offer assistance or make an observation about the hotel.\n"
        "- If you're a guest: Be casual, conversational. Comment on the hotel atmosphere, your experience, or what you're noticing.\n"
        "- Make it a full, complete sentence. No markdown, no quotes, just plain text dialogue."
    )


def clean_dialogue_text(raw: str | None) -> str | None:
    """Normalize a model reply into a speakable line.

    Strips whitespace and one wrapping quote on each side. A reply cut off
    mid-sentence is trimmed back to its complete sentences; when it has none
    the text is kept as it is. Returns ``None`` when nothing is left.
    """
    text = (raw or "").strip()
    if not text:
        return None
    text = _WRAPPING_QUOTES_RE.sub("", text).strip()
    if text and not text.endswith(_TERMINAL_PUNCTUATION):
        sentences = [s.strip() for s in _SENTENCE_RE.findall(text) if s.strip()]
        if sentences:
            text = " ".join(sentences)
    return text or None


@dataclass(frozen=True)
class DialogueRequest:
    """Snapshot of everything a job needs, taken when it is queued."""

    agent: Agent
    agents: tuple[Agent, ...]
    core: CoreState
    layout: HotelLayout
    immediate: bool = False


@dataclass(frozen=True)
class DialogueOutcome:
    agent_id: str
    dialogue: Optional[str]
    audio: Optional[AudioClip]
    immediate: bool
    failed_stage: Optional[str] = None
    speech_error: Optional[str] = None

    @property
    def produced(self) -> bool:
        return self.dialogue is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "dialogue": self.dialogue,
            "audio": self.audio.to_dict() if self.audio is not None else None,
            "immediate": self.immediate,
            "failed_stage": self.failed_stage,
            "speech_error": self.speech_error,
        }


@dataclass
class _QueuedJob:
    request: DialogueRequest
    on_update: Optional[DialogueUpdate]
    future: Future = field(default_factory=Future)


class DialoguePipeline:
    """Single-slot FIFO of dialogue jobs.

    ``submit`` never blocks on the external services. A worker thread is
    started when the queue goes from idle to busy and exits when it drains;
    the processing flag guarantees there is never more than one.
    """

    def __init__(
        self,
        *,
        text_generator: TextGenerationCapability,
        speech_synthesizer: SpeechSynthesisCapability | None = None,
        inter_job_delay_seconds: float = DEFAULT_INTER_JOB_DELAY_SECONDS,
        neighbor_radius: int = DEFAULT_NEIGHBOR_RADIUS,
    ) -> None:
        self._text_generator = text_generator
        self._speech_synthesizer = speech_synthesizer
        self._inter_job_delay_seconds = max(0.0, float(inter_job_delay_seconds))
        self._neighbor_radius = neighbor_radius
        self._jobs: deque[_QueuedJob] = deque()
        self._cond = threading.Condition()
        self._processing = False
        self._enqueued = 0
        self._drained = 0
        self._produced = 0
        self._failed = 0
        self._last_finished_at: float | None = None

    @property
    def processing(self) -> bool:
        with self._cond:
            return self._processing

    def pending(self) -> int:
        with self._cond:
            return len(self._jobs)

    def stats(self) -> dict[str, int | bool]:
        with self._cond:
            return {
                "processing": self._processing,
                "pending": len(self._jobs),
                "enqueued": self._enqueued,
                "drained": self._drained,
                "produced": self._produced,
                "failed": self._failed,
            }

    def submit(self, request: DialogueRequest, on_update: DialogueUpdate | None = None) -> Future:
        job = _QueuedJob(request=request, on_update=on_update)
        with self._cond:
            self._jobs.append(job)
            self._enqueued += 1
            start_worker = not self._processing
            if start_worker:
                self._processing = True
        logger.debug(
            "[DIALOGUE] Queued job for '%s' (immediate=%s)",
            request.agent.agent_id,
            request.immediate,
        )
        if start_worker:
            threading.Thread(target=self._drain, name="seedcore-dialogue-worker", daemon=True).start()
        return job.future

    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: not self._processing and not self._jobs, timeout=timeout)

    def _drain(self) -> None:
        while True:
            with self._cond:
                if not self._jobs:
                    self._processing = False
                    self._cond.notify_all()
                    return
                job = self._jobs.popleft()
                last_finished_at = self._last_finished_at

            if last_finished_at is not None and self._inter_job_delay_seconds:
                wait = self._inter_job_delay_seconds - (time.monotonic() - last_finished_at)
                if wait > 0:
                    time.sleep(wait)

            outcome = self._run_job(job)
            with self._cond:
                self._drained += 1
                if outcome.produced:
                    self._produced += 1
                if outcome.failed_stage is not None:
                    self._failed += 1
                self._last_finished_at = time.monotonic()
            job.future.set_result(outcome)

    def _run_job(self, job: _QueuedJob) -> DialogueOutcome:
        request = job.request
        agent = request.agent
        stage = "context"
        try:
            nearby = find_nearby_agents(agent, request.agents, radius=self._neighbor_radius)
            prompt = build_dialogue_prompt(
                agent,
                request.core,
                nearby,
                location=location_label(request.layout, agent),
            )

            stage = "text_generation"
            dialogue = clean_dialogue_text(self._text_generator.generate(prompt, agent_id=agent.agent_id))
            if dialogue is None:
                logger.warning("[DIALOGUE] No dialogue generated for '%s'", agent.agent_id)
                return DialogueOutcome(
                    agent_id=agent.agent_id,
                    dialogue=None,
                    audio=None,
                    immediate=request.immediate,
                    failed_stage=stage,
                )
            logger.info("[DIALOGUE] Generated dialogue for '%s': %s", agent.agent_id, dialogue)

            stage = "speech_synthesis"
            audio, speech_error = self._synthesize(agent, dialogue)

            stage = "update_callback"
            if job.on_update is not None:
                job.on_update(agent.agent_id, dialogue, audio)
            return DialogueOutcome(
                agent_id=agent.agent_id,
                dialogue=dialogue,
                audio=audio,
                immediate=request.immediate,
                speech_error=speech_error,
            )
        except Exception:
            logger.exception("[DIALOGUE] Job for '%s' failed during %s", agent.agent_id, stage)
            return DialogueOutcome(
                agent_id=agent.agent_id,
                dialogue=None,
                audio=None,
                immediate=request.immediate,
                failed_stage=stage,
            )

    def _synthesize(self, agent: Agent, dialogue: str) -> tuple[Optional[AudioClip], Optional[str]]:
        if self._speech_synthesizer is None:
            return None, None
        voice_id, settings = voice_for_role(agent.role)
        try:
            result = self._speech_synthesizer.synthesize(dialogue, voice_id, settings, agent_id=agent.agent_id)
        except Exception as exc:
            logger.warning("[DIALOGUE] Speech synthesis raised for '%s': %s", agent.agent_id, exc)
            return None, "GENERIC_ERROR"
        if result.audio is None:
            code = result.error.value if result.error is not None else "GENERIC_ERROR"
            logger.warning(
                "[DIALOGUE] No audio for '%s' (%s): %s",
                agent.agent_id,
                code,
                result.message,
            )
            return None, code
        return result.audio, None
