"""Task policies for the external generation capabilities."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class TaskPolicy:
    task_name: str
    max_input_tokens: int
    max_output_tokens: int
    temperature: float
    timeout_ms: int
    retry_limit: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


DEFAULT_TASK_POLICIES: dict[str, TaskPolicy] = {
    # One spoken sentence per agent; no retries so a slow provider cannot
    # hold the dialogue queue for long.
    "agent_dialogue": TaskPolicy(
        task_name="agent_dialogue",
        max_input_tokens=600,
        max_output_tokens=150,
        temperature=0.9,
        timeout_ms=8000,
        retry_limit=0,
    ),
    "speech_synthesis": TaskPolicy(
        task_name="speech_synthesis",
        max_input_tokens=400,
        max_output_tokens=1,
        temperature=0.0,
        timeout_ms=15000,
        retry_limit=0,
    ),
}


def default_policy_for_task(task_name: str) -> TaskPolicy:
    key = str(task_name).strip()
    if key in DEFAULT_TASK_POLICIES:
        return DEFAULT_TASK_POLICIES[key]
    return TaskPolicy(
        task_name=key or "unknown_task",
        max_input_tokens=900,
        max_output_tokens=160,
        temperature=0.2,
        timeout_ms=2500,
        retry_limit=1,
    )


def normalize_policy_row(task_name: str, row: dict[str, Any]) -> TaskPolicy:
    return TaskPolicy(
        task_name=task_name,
        max_input_tokens=max(1, int(row.get("max_input_tokens") or 1)),
        max_output_tokens=max(1, int(row.get("max_output_tokens") or 1)),
        temperature=float(row.get("temperature") if row.get("temperature") is not None else 0.2),
        timeout_ms=max(100, int(row.get("timeout_ms") or 100)),
        retry_limit=max(0, int(row.get("retry_limit") or 0)),
    )


def estimate_token_count(text: str) -> int:
    return max(1, len(text) // 4)


def trim_prompt_to_budget(prompt: str, max_input_tokens: int) -> tuple[str, bool, int]:
    estimated = estimate_token_count(prompt)
    if estimated <= max_input_tokens:
        return prompt, False, estimated

    # Keep the head: the persona and situation lead the prompt.
    max_chars = max(32, int(max_input_tokens * 4))
    trimmed = prompt[:max_chars]
    return trimmed, True, estimate_token_count(trimmed)
