"""ElevenLabs speech adapters: text-to-speech, speech-to-text and voices.

Every public call returns a result object instead of raising; the
``error`` field carries a ``SpeechErrorCode`` when no audio/text came back.
Timeouts come from the ``speech_synthesis`` task policy, looked up on each
call so runtime overrides apply to the next request.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from hashlib import sha256
from time import perf_counter
from typing import Any, Optional
import json
import logging
import os
import threading
import time
import uuid

import httpx

from .policy import TaskPolicy, default_policy_for_task, estimate_token_count
from .task_runner import LogSink, PolicyLookup


logger = logging.getLogger("seedcore_core.llm.speech")

DEFAULT_ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"
DEFAULT_TTS_MODEL_ID = "eleven_multilingual_v2"
DEFAULT_STT_MODEL_ID = "scribe_v1"
SPEECH_TASK_NAME = "speech_synthesis"
TRANSCRIPTION_TASK_NAME = "speech_transcription"
MAX_CACHE_SIZE = 50
TTS_COOLDOWN_SECONDS = 0.1


class SpeechErrorCode(str, Enum):
    API_KEY_MISSING = "API_KEY_MISSING"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    INVALID_VOICE = "INVALID_VOICE"
    INVALID_INPUT = "INVALID_INPUT"
    GENERIC_ERROR = "GENERIC_ERROR"


_STATUS_ERRORS = {
    401: (SpeechErrorCode.API_KEY_MISSING, "Invalid API key"),
    429: (SpeechErrorCode.QUOTA_EXCEEDED, "Rate limit exceeded"),
    404: (SpeechErrorCode.INVALID_VOICE, "Voice ID not found"),
    400: (SpeechErrorCode.INVALID_INPUT, "Request rejected as invalid"),
    422: (SpeechErrorCode.INVALID_INPUT, "Request rejected as invalid"),
}


@dataclass(frozen=True)
class VoiceSettings:
    stability: float = 0.35
    similarity_boost: float = 0.75
    style: Optional[float] = None
    use_speaker_boost: Optional[bool] = None

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
        }
        if self.style is not None:
            payload["style"] = self.style
        if self.use_speaker_boost is not None:
            payload["use_speaker_boost"] = self.use_speaker_boost
        return payload


@dataclass(frozen=True)
class AudioClip:
    """Opaque handle to one synthesized utterance."""

    audio_id: str
    content_type: str
    data: bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "audio_id": self.audio_id,
            "content_type": self.content_type,
            "size_bytes": len(self.data),
        }


@dataclass(frozen=True)
class SpeechResult:
    audio: Optional[AudioClip]
    error: Optional[SpeechErrorCode] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class TranscriptionResult:
    text: Optional[str]
    error: Optional[SpeechErrorCode] = None
    message: Optional[str] = None


def _first_non_empty(*values: str | None) -> str | None:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


class SpeechSynthesizer:
    """Speech-synthesis capability backed by the ElevenLabs REST API."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model_id: str | None = None,
        timeout_ms: int | None = None,
        client: httpx.Client | None = None,
        policy_lookup: PolicyLookup | None = None,
        log_sink: LogSink | None = None,
        cooldown_seconds: float = TTS_COOLDOWN_SECONDS,
        max_cache_size: int = MAX_CACHE_SIZE,
    ) -> None:
        self._api_key = api_key
        self._base_url = (
            base_url
            or _first_non_empty(os.environ.get("SEEDCORE_TTS_BASE_URL"))
            or DEFAULT_ELEVENLABS_BASE_URL
        ).rstrip("/")
        self._model_id = model_id or _first_non_empty(os.environ.get("SEEDCORE_TTS_MODEL")) or DEFAULT_TTS_MODEL_ID
        self._timeout_ms = timeout_ms
        self._external_client = client
        self._client = client or httpx.Client()
        self._policy_lookup = policy_lookup or default_policy_for_task
        self._log_sink = log_sink
        self._cooldown_seconds = max(0.0, float(cooldown_seconds))
        self._max_cache_size = max(1, int(max_cache_size))
        self._cache: OrderedDict[str, AudioClip] = OrderedDict()
        self._cache_lock = threading.Lock()
        self._throttle_lock = threading.Lock()
        self._last_request_at = 0.0

    def close(self) -> None:
        if self._external_client is None:
            self._client.close()

    def _resolve_api_key(self) -> str | None:
        return _first_non_empty(
            self._api_key,
            os.environ.get("ELEVENLABS_API_KEY"),
            os.environ.get("VITE_ELEVENLABS_API_KEY"),
        )

    def _timeout_seconds(self) -> float:
        if self._timeout_ms is not None:
            return max(0.2, self._timeout_ms / 1000.0)
        policy = self._policy_lookup(SPEECH_TASK_NAME)
        if not isinstance(policy, TaskPolicy):
            policy = default_policy_for_task(SPEECH_TASK_NAME)
        return max(0.2, policy.timeout_ms / 1000.0)

    @staticmethod
    def _cache_key(text: str, voice_id: str, settings: VoiceSettings) -> str:
        settings_json = json.dumps(settings.as_payload(), sort_keys=True)
        return f"{voice_id}-{text[:100]}-{settings_json}"

    def _throttle(self) -> None:
        with self._throttle_lock:
            wait = self._cooldown_seconds - (time.monotonic() - self._last_request_at)
            if wait > 0:
                time.sleep(wait)
            self._last_request_at = time.monotonic()

    def _emit_log(
        self,
        *,
        agent_id: str | None,
        task_name: str,
        model_name: str,
        prompt_tokens: int,
        latency_ms: int,
        error_code: SpeechErrorCode | None,
    ) -> None:
        if not self._log_sink:
            return
        self._log_sink(
            {
                "id": str(uuid.uuid4()),
                "agent_id": agent_id,
                "task_name": task_name,
                "model_name": model_name,
                "prompt_tokens": int(prompt_tokens),
                "completion_tokens": 0,
                "latency_ms": int(latency_ms),
                "success": error_code is None,
                "error_code": error_code.value if error_code is not None else None,
            }
        )

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()
        logger.info("[SPEECH] Cache cleared")

    def cache_size(self) -> int:
        with self._cache_lock:
            return len(self._cache)

    def synthesize(
        self,
        text: str,
        voice_id: str | None = None,
        settings: VoiceSettings | None = None,
        *,
        agent_id: str | None = None,
    ) -> SpeechResult:
        api_key = self._resolve_api_key()
        if not api_key:
            return SpeechResult(
                audio=None,
                error=SpeechErrorCode.API_KEY_MISSING,
                message="ELEVENLABS_API_KEY not configured",
            )
        clean_text = (text or "").strip()
        if not clean_text:
            return SpeechResult(audio=None, error=SpeechErrorCode.INVALID_INPUT, message="Text cannot be empty")

        selected_voice = voice_id or DEFAULT_VOICE_ID
        voice_settings = settings or VoiceSettings()
        cache_key = self._cache_key(clean_text, selected_voice, voice_settings)
        with self._cache_lock:
            cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("[SPEECH] Serving cached audio for: %s", clean_text[:50])
            return SpeechResult(audio=cached)

        payload = {
            "text": clean_text,
            "model_id": self._model_id,
            "voice_settings": voice_settings.as_payload(),
        }
        self._throttle()
        started = perf_counter()
        error_code: SpeechErrorCode | None = None
        message: str | None = None
        body = b""
        try:
            response = self._client.post(
                f"{self._base_url}/text-to-speech/{selected_voice}",
                json=payload,
                headers={"xi-api-key": api_key, "Accept": "audio/mpeg"},
                timeout=self._timeout_seconds(),
            )
            response.raise_for_status()
            body = response.content
            if not body:
                error_code, message = SpeechErrorCode.GENERIC_ERROR, "Empty audio response"
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            error_code, message = _STATUS_ERRORS.get(status, (SpeechErrorCode.GENERIC_ERROR, None))
            message = message or exc.response.text[:240] or "TTS request failed"
            logger.warning("[SPEECH] TTS API error for voice '%s': HTTP %d", selected_voice, status)
        except httpx.HTTPError as exc:
            error_code, message = SpeechErrorCode.GENERIC_ERROR, str(exc) or "TTS request failed"
            logger.warning("[SPEECH] TTS request failed for voice '%s': %s", selected_voice, exc)

        self._emit_log(
            agent_id=agent_id,
            task_name=SPEECH_TASK_NAME,
            model_name=self._model_id,
            prompt_tokens=estimate_token_count(clean_text),
            latency_ms=int((perf_counter() - started) * 1000),
            error_code=error_code,
        )
        if error_code is not None:
            return SpeechResult(audio=None, error=error_code, message=message)

        clip = AudioClip(
            audio_id=sha256(cache_key.encode("utf-8")).hexdigest()[:16],
            content_type="audio/mpeg",
            data=body,
        )
        with self._cache_lock:
            if len(self._cache) >= self._max_cache_size:
                self._cache.popitem(last=False)
            self._cache[cache_key] = clip
        return SpeechResult(audio=clip)

    def transcribe(
        self,
        audio: bytes,
        *,
        filename: str = "audio.wav",
        content_type: str = "audio/wav",
        model_id: str | None = None,
    ) -> TranscriptionResult:
        api_key = self._resolve_api_key()
        if not api_key:
            return TranscriptionResult(
                text=None,
                error=SpeechErrorCode.API_KEY_MISSING,
                message="ELEVENLABS_API_KEY not configured",
            )
        if not audio:
            return TranscriptionResult(text=None, error=SpeechErrorCode.INVALID_INPUT, message="Audio is empty")

        stt_model = model_id or DEFAULT_STT_MODEL_ID
        started = perf_counter()
        result = self._transcribe_remote(api_key, audio, filename, content_type, stt_model)
        self._emit_log(
            agent_id=None,
            task_name=TRANSCRIPTION_TASK_NAME,
            model_name=stt_model,
            prompt_tokens=0,
            latency_ms=int((perf_counter() - started) * 1000),
            error_code=result.error,
        )
        return result

    def _transcribe_remote(
        self,
        api_key: str,
        audio: bytes,
        filename: str,
        content_type: str,
        model_id: str,
    ) -> TranscriptionResult:
        try:
            response = self._client.post(
                f"{self._base_url}/speech-to-text",
                data={"model_id": model_id},
                files={"file": (filename, audio, content_type)},
                headers={"xi-api-key": api_key},
                timeout=self._timeout_seconds(),
            )
            response.raise_for_status()
            parsed = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            code, message = _STATUS_ERRORS.get(status, (SpeechErrorCode.GENERIC_ERROR, None))
            # There is no voice in a transcription request.
            if code is SpeechErrorCode.INVALID_VOICE:
                code, message = SpeechErrorCode.GENERIC_ERROR, None
            logger.warning("[SPEECH] STT API error: HTTP %d", status)
            return TranscriptionResult(text=None, error=code, message=message or exc.response.text[:240] or "STT request failed")
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("[SPEECH] STT request failed: %s", exc)
            return TranscriptionResult(text=None, error=SpeechErrorCode.GENERIC_ERROR, message=str(exc))

        text = parsed.get("text") if isinstance(parsed, dict) else None
        if not text:
            return TranscriptionResult(text=None, error=SpeechErrorCode.GENERIC_ERROR, message="No transcription returned")
        return TranscriptionResult(text=str(text))

    def list_voices(self) -> list[dict[str, Any]]:
        api_key = self._resolve_api_key()
        if not api_key:
            logger.warning("[SPEECH] Cannot list voices without ELEVENLABS_API_KEY")
            return []
        try:
            response = self._client.get(
                f"{self._base_url}/voices",
                headers={"xi-api-key": api_key},
                timeout=self._timeout_seconds(),
            )
            response.raise_for_status()
            parsed = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("[SPEECH] Listing voices failed: %s", exc)
            return []
        voices = parsed.get("voices") if isinstance(parsed, dict) else None
        return [
            {"voice_id": str(v.get("voice_id")), "name": str(v.get("name") or "")}
            for v in voices or []
            if isinstance(v, dict) and v.get("voice_id")
        ]
