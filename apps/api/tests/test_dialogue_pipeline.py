#!/usr/bin/env python3

from __future__ import annotations

import threading
import time
import unittest

from packages.seedcore_core.llm.speech import SpeechErrorCode
from packages.seedcore_core.maps.hotel import HotelLayout
from packages.seedcore_core.sim.agents import Agent, AgentRole, AgentState
from packages.seedcore_core.sim.dialogue import (
    VOICE_IDS,
    DialoguePipeline,
    DialogueRequest,
    build_dialogue_prompt,
    clean_dialogue_text,
    find_nearby_agents,
    should_generate_dialogue,
    voice_for_role,
)
from packages.seedcore_core.sim.world import Atmosphere, CoreState

from apps.api.tests.fakes import FakeSpeechSynthesizer, FakeTextGenerator


class _FixedRandom:
    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


def _agent(agent_id: str, role: AgentRole = AgentRole.GUEST, position=(40, 34), state=AgentState.PAUSING) -> Agent:
    return Agent(agent_id=agent_id, role=role, position=position, state=state, mood="Neutral")


def _request(agent: Agent, *, others: tuple[Agent, ...] = (), immediate: bool = False) -> DialogueRequest:
    return DialogueRequest(
        agent=agent,
        agents=(agent, *others),
        core=CoreState(),
        layout=HotelLayout.for_dimensions(80, 44),
        immediate=immediate,
    )


class DialogueTextTests(unittest.TestCase):
    def test_clean_keeps_complete_sentences(self) -> None:
        self.assertEqual(clean_dialogue_text('  "Lovely day."  '), "Lovely day.")
        self.assertEqual(
            clean_dialogue_text("The lobby is calm. The fountain sounds nice and I was going to"),
            "The lobby is calm.",
        )

    def test_clean_accepts_fragment_without_terminal_punctuation(self) -> None:
        self.assertEqual(clean_dialogue_text("Welcome to the hotel"), "Welcome to the hotel")

    def test_clean_rejects_empty(self) -> None:
        self.assertIsNone(clean_dialogue_text(None))
        self.assertIsNone(clean_dialogue_text("   "))
        self.assertIsNone(clean_dialogue_text('""'))

    def test_prompt_describes_situation(self) -> None:
        agent = _agent("R-1", AgentRole.ROBOT_WAITER, state=AgentState.SERVICING)
        core = CoreState(time_of_day=19.3, atmosphere=Atmosphere.EVENING_CHIC)

        prompt = build_dialogue_prompt(agent, core, [_agent("G-1")], location="Grand Atrium")

        self.assertIn("You are a Robot Waiter in a luxury hotel simulation.", prompt)
        self.assertIn("Current state: SERVICING", prompt)
        self.assertIn("Location: Grand Atrium", prompt)
        self.assertIn("Time: 19.3 hours", prompt)
        self.assertIn("Atmosphere: EVENING_CHIC", prompt)
        self.assertIn("There are 1 other person nearby.", prompt)

        alone = build_dialogue_prompt(agent, core, [], location="Hotel Wing")
        self.assertIn("You are alone in this area.", alone)

    def test_nearby_uses_chebyshev_radius(self) -> None:
        me = _agent("G-0", position=(10, 10))
        near = _agent("G-1", position=(15, 5))
        far = _agent("G-2", position=(16, 10))
        found = find_nearby_agents(me, [me, near, far], radius=5)
        self.assertEqual([a.agent_id for a in found], ["G-1"])

    def test_voice_mapping(self) -> None:
        voice_id, settings = voice_for_role(AgentRole.ROBOT_WAITER)
        self.assertEqual(voice_id, VOICE_IDS[AgentRole.ROBOT_WAITER])
        self.assertEqual((settings.stability, settings.similarity_boost), (0.5, 0.8))
        _, guest_settings = voice_for_role(AgentRole.GUEST)
        self.assertEqual((guest_settings.stability, guest_settings.similarity_boost), (0.35, 0.75))


class DialogueEligibilityTests(unittest.TestCase):
    def test_cooldown_blocks_recent_speakers(self) -> None:
        agent = _agent("G-0")
        agent.last_dialogue_at = 100.0
        rng = _FixedRandom(0.0)

        self.assertFalse(should_generate_dialogue(agent, 114.9, rng=rng))
        self.assertTrue(should_generate_dialogue(agent, 115.0, rng=rng))

    def test_role_state_and_chance_gate(self) -> None:
        rng = _FixedRandom(0.0)
        self.assertFalse(should_generate_dialogue(_agent("R-0", AgentRole.ROBOT_CONCIERGE), 0.0, rng=rng))
        self.assertFalse(should_generate_dialogue(_agent("G-0", state=AgentState.WALKING), 0.0, rng=rng))
        self.assertTrue(should_generate_dialogue(_agent("G-0", state=AgentState.CONVERSING), 0.0, rng=rng))
        self.assertFalse(should_generate_dialogue(_agent("G-0"), 0.0, rng=_FixedRandom(0.15)))
        self.assertTrue(should_generate_dialogue(_agent("G-0"), 0.0, rng=_FixedRandom(0.149)))


class DialoguePipelineTests(unittest.TestCase):
    def test_jobs_run_one_at_a_time_and_all_drain(self) -> None:
        text = FakeTextGenerator(delay_seconds=0.01)
        pipeline = DialoguePipeline(
            text_generator=text,
            speech_synthesizer=FakeSpeechSynthesizer(),
            inter_job_delay_seconds=0.0,
        )
        futures = []
        threads = [
            threading.Thread(target=lambda i=i: futures.append(pipeline.submit(_request(_agent(f"G-{i}")))))
            for i in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertTrue(pipeline.wait_idle(timeout=5.0))
        stats = pipeline.stats()
        self.assertEqual(text.max_concurrent, 1)
        self.assertEqual(stats["enqueued"], 8)
        self.assertEqual(stats["drained"], 8)
        self.assertEqual(stats["pending"], 0)
        self.assertFalse(stats["processing"])
        self.assertTrue(all(f.result(timeout=1.0).dialogue for f in futures))

    def test_jobs_drain_in_submission_order(self) -> None:
        text = FakeTextGenerator()
        pipeline = DialoguePipeline(text_generator=text, inter_job_delay_seconds=0.0)
        for i in range(4):
            pipeline.submit(_request(_agent(f"G-{i}")))
        self.assertTrue(pipeline.wait_idle(timeout=5.0))
        self.assertEqual([agent_id for agent_id, _ in text.calls], ["G-0", "G-1", "G-2", "G-3"])

    def test_quota_exceeded_still_reports_dialogue(self) -> None:
        updates: list[tuple] = []
        pipeline = DialoguePipeline(
            text_generator=FakeTextGenerator("Welcome to the hotel"),
            speech_synthesizer=FakeSpeechSynthesizer(error=SpeechErrorCode.QUOTA_EXCEEDED),
            inter_job_delay_seconds=0.0,
        )

        outcome = pipeline.submit(_request(_agent("G-0")), on_update=lambda *args: updates.append(args)).result(timeout=5.0)

        self.assertEqual(outcome.dialogue, "Welcome to the hotel")
        self.assertIsNone(outcome.audio)
        self.assertEqual(outcome.speech_error, "QUOTA_EXCEEDED")
        self.assertEqual(updates, [("G-0", "Welcome to the hotel", None)])

    def test_missing_text_skips_speech_and_update(self) -> None:
        speech = FakeSpeechSynthesizer()
        updates: list[tuple] = []
        pipeline = DialoguePipeline(text_generator=FakeTextGenerator(None), speech_synthesizer=speech)

        outcome = pipeline.submit(_request(_agent("G-0")), on_update=lambda *args: updates.append(args)).result(timeout=5.0)

        self.assertIsNone(outcome.dialogue)
        self.assertEqual(outcome.failed_stage, "text_generation")
        self.assertEqual(speech.calls, [])
        self.assertEqual(updates, [])

    def test_failing_job_does_not_stall_queue(self) -> None:
        def reply(prompt: str, agent_id: str | None) -> str:
            if agent_id == "G-0":
                raise RuntimeError("provider exploded")
            return "All good here."

        pipeline = DialoguePipeline(text_generator=FakeTextGenerator(reply), inter_job_delay_seconds=0.0)
        first = pipeline.submit(_request(_agent("G-0")))
        second = pipeline.submit(_request(_agent("G-1")))

        self.assertEqual(first.result(timeout=5.0).failed_stage, "text_generation")
        self.assertEqual(second.result(timeout=5.0).dialogue, "All good here.")
        self.assertTrue(pipeline.wait_idle(timeout=5.0))
        self.assertEqual(pipeline.stats()["failed"], 1)

    def test_job_queued_on_completion_still_waits_for_gap(self) -> None:
        started: list[float] = []

        def reply(prompt: str, agent_id: str | None) -> str:
            started.append(time.monotonic())
            return "Pleasant day."

        pipeline = DialoguePipeline(text_generator=FakeTextGenerator(reply), inter_job_delay_seconds=0.2)
        follow_ups: list = []
        first = pipeline.submit(_request(_agent("G-0")))
        first.add_done_callback(lambda _: follow_ups.append(pipeline.submit(_request(_agent("G-1")))))

        first.result(timeout=5.0)
        deadline = time.monotonic() + 5.0
        while not follow_ups and time.monotonic() < deadline:
            time.sleep(0.01)
        follow_ups[0].result(timeout=5.0)

        self.assertEqual(len(started), 2)
        self.assertGreaterEqual(started[1] - started[0], 0.19)

    def test_speech_uses_role_voice(self) -> None:
        speech = FakeSpeechSynthesizer()
        pipeline = DialoguePipeline(text_generator=FakeTextGenerator(), speech_synthesizer=speech)
        waiter = _agent("R-1", AgentRole.ROBOT_WAITER, state=AgentState.SERVICING)

        pipeline.submit(_request(waiter, others=(_agent("G-0", position=(41, 34)),))).result(timeout=5.0)

        _, voice_id, settings = speech.calls[0]
        self.assertEqual(voice_id, "EXAVITQu4vr4xnSDxMaL")
        self.assertEqual(settings.stability, 0.5)


if __name__ == "__main__":
    unittest.main()
