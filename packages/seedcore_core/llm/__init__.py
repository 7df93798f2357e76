"""Adapters for the external text-generation and speech-synthesis services."""

from .policy import DEFAULT_TASK_POLICIES, TaskPolicy, default_policy_for_task, normalize_policy_row
from .providers import DEFAULT_MODEL_BY_PROVIDER, execute_text_model
from .speech import AudioClip, SpeechErrorCode, SpeechResult, SpeechSynthesizer, VoiceSettings
from .task_runner import PolicyTaskRunner, TextGenerator

__all__ = [
    "DEFAULT_TASK_POLICIES",
    "TaskPolicy",
    "default_policy_for_task",
    "normalize_policy_row",
    "DEFAULT_MODEL_BY_PROVIDER",
    "execute_text_model",
    "AudioClip",
    "SpeechErrorCode",
    "SpeechResult",
    "SpeechSynthesizer",
    "VoiceSettings",
    "PolicyTaskRunner",
    "TextGenerator",
]
