"""Stand-ins for the external text and speech services used across tests."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional, Union

from packages.seedcore_core.llm.speech import (
    AudioClip,
    SpeechErrorCode,
    SpeechResult,
    TranscriptionResult,
    VoiceSettings,
)


class FakeTextGenerator:
    """Returns a fixed reply (or calls a function) and records every prompt.

    Tracks how many calls overlap so tests can assert the queue is serial.
    """

    def __init__(
        self,
        reply: Union[Optional[str], Callable[[str, Optional[str]], Optional[str]]] = "Lovely evening in the atrium.",
        *,
        delay_seconds: float = 0.0,
    ) -> None:
        self._reply = reply
        self._delay_seconds = delay_seconds
        self._lock = threading.Lock()
        self._active = 0
        self.max_concurrent = 0
        self.calls: list[tuple[Optional[str], str]] = []

    def generate(self, prompt: str, *, agent_id: str | None = None) -> str | None:
        with self._lock:
            self._active += 1
            self.max_concurrent = max(self.max_concurrent, self._active)
            self.calls.append((agent_id, prompt))
        try:
            if self._delay_seconds:
                time.sleep(self._delay_seconds)
            if callable(self._reply):
                return self._reply(prompt, agent_id)
            return self._reply
        finally:
            with self._lock:
                self._active -= 1


class FakeSpeechSynthesizer:
    def __init__(self, *, error: SpeechErrorCode | None = None, transcript: str | None = "room service please") -> None:
        self._error = error
        self._transcript = transcript
        self.calls: list[tuple[str, Optional[str], Optional[VoiceSettings]]] = []
        self.transcriptions: list[tuple[bytes, str, str]] = []

    def synthesize(
        self,
        text: str,
        voice_id: str | None = None,
        settings: VoiceSettings | None = None,
        *,
        agent_id: str | None = None,
    ) -> SpeechResult:
        self.calls.append((text, voice_id, settings))
        if self._error is not None:
            return SpeechResult(audio=None, error=self._error, message="fake failure")
        clip = AudioClip(audio_id=f"clip-{len(self.calls)}", content_type="audio/mpeg", data=b"ID3fake")
        return SpeechResult(audio=clip)

    def transcribe(
        self,
        audio: bytes,
        *,
        filename: str = "audio.wav",
        content_type: str = "audio/wav",
    ) -> TranscriptionResult:
        self.transcriptions.append((audio, filename, content_type))
        if not audio:
            return TranscriptionResult(text=None, error=SpeechErrorCode.INVALID_INPUT, message="Audio is empty")
        if self._error is not None:
            return TranscriptionResult(text=None, error=self._error, message="fake failure")
        return TranscriptionResult(text=self._transcript)

    def list_voices(self) -> list[dict]:
        return [{"voice_id": "21m00Tcm4TlvDq8ikWAM", "name": "Rachel"}]
