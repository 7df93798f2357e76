"""Policy-aware text generation runner with retry and logging hooks."""

from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Callable, Optional
import logging
import uuid

from .policy import TaskPolicy, default_policy_for_task, estimate_token_count, trim_prompt_to_budget
from .providers import (
    ProviderExecutionError,
    ProviderExecutionResult,
    ProviderUnavailableError,
    execute_text_model,
)


logger = logging.getLogger("seedcore_core.llm.task_runner")

PolicyLookup = Callable[[str], TaskPolicy]
LogSink = Callable[[dict[str, Any]], None]
ProviderInvoker = Callable[..., ProviderExecutionResult]


@dataclass(frozen=True)
class TaskExecutionResult:
    task_name: str
    route: str
    text: Optional[str]
    model_name: str
    prompt_tokens: int
    completion_tokens: int
    latency_ms: int
    attempts: int
    prompt_trimmed: bool
    error_code: Optional[str]

    @property
    def ok(self) -> bool:
        return self.text is not None

    def as_dict(self) -> dict[str, Any]:
        return {
            "task_name": self.task_name,
            "route": self.route,
            "text": self.text,
            "model_name": self.model_name,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "latency_ms": self.latency_ms,
            "attempts": self.attempts,
            "prompt_trimmed": self.prompt_trimmed,
            "error_code": self.error_code,
        }


class PolicyTaskRunner:
    """Runs text tasks under explicit policy constraints.

    Provider failures never propagate: an unavailable provider (missing key,
    unsupported vendor) stops immediately, execution errors are retried up to
    the policy's ``retry_limit``, and the result then carries ``text=None``
    with the last error code.
    """

    def __init__(
        self,
        *,
        policy_lookup: PolicyLookup | None = None,
        log_sink: LogSink | None = None,
        provider_invoker: ProviderInvoker | None = None,
    ) -> None:
        self._policy_lookup = policy_lookup or default_policy_for_task
        self._log_sink = log_sink
        self._provider_invoker = provider_invoker or execute_text_model

    def run(
        self,
        *,
        task_name: str,
        agent_id: str | None,
        prompt: str,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
    ) -> TaskExecutionResult:
        policy = self._policy_lookup(task_name)
        if not isinstance(policy, TaskPolicy):
            policy = default_policy_for_task(task_name)

        bounded_prompt, trimmed, prompt_tokens = trim_prompt_to_budget(prompt, policy.max_input_tokens)
        temp = policy.temperature if temperature is None else float(temperature)
        max_tokens = policy.max_output_tokens if max_output_tokens is None else int(max_output_tokens)

        attempts = 0
        unavailable = False
        error_code: str | None = None
        model_name = "provider"
        started = perf_counter()
        for _ in range(max(1, policy.retry_limit + 1)):
            attempts += 1
            start = perf_counter()
            try:
                provider_result = self._provider_invoker(
                    prompt=bounded_prompt,
                    temperature=temp,
                    max_output_tokens=max_tokens,
                    timeout_ms=policy.timeout_ms,
                )
                latency_ms = int((perf_counter() - start) * 1000)
                completion_tokens = int(
                    provider_result.completion_tokens
                    if provider_result.completion_tokens is not None
                    else estimate_token_count(provider_result.text)
                )
                result = TaskExecutionResult(
                    task_name=task_name,
                    route="provider",
                    text=provider_result.text,
                    model_name=provider_result.model_name,
                    prompt_tokens=int(provider_result.prompt_tokens or prompt_tokens),
                    completion_tokens=completion_tokens,
                    latency_ms=latency_ms,
                    attempts=attempts,
                    prompt_trimmed=trimmed,
                    error_code=None,
                )
                self._emit_log(
                    agent_id=agent_id,
                    task_name=task_name,
                    model_name=provider_result.model_name,
                    prompt_tokens=result.prompt_tokens,
                    completion_tokens=completion_tokens,
                    latency_ms=latency_ms,
                    success=True,
                    error_code=None,
                )
                return result
            except ProviderUnavailableError as exc:
                unavailable = True
                error_code = exc.error_code
                model_name = exc.model_name or model_name
                self._emit_log(
                    agent_id=agent_id,
                    task_name=task_name,
                    model_name=model_name,
                    prompt_tokens=prompt_tokens,
                    completion_tokens=0,
                    latency_ms=int((perf_counter() - start) * 1000),
                    success=False,
                    error_code=error_code,
                )
                break
            except ProviderExecutionError as exc:
                error_code = exc.error_code
                model_name = exc.model_name or model_name
                logger.warning(
                    "[LLM] %s attempt %d failed for agent '%s': %s",
                    task_name,
                    attempts,
                    agent_id,
                    exc,
                )
            except Exception as exc:
                error_code = f"provider_exception:{exc.__class__.__name__}"
                logger.exception("[LLM] %s attempt %d raised for agent '%s'", task_name, attempts, agent_id)
            self._emit_log(
                agent_id=agent_id,
                task_name=task_name,
                model_name=model_name,
                prompt_tokens=prompt_tokens,
                completion_tokens=0,
                latency_ms=int((perf_counter() - start) * 1000),
                success=False,
                error_code=error_code,
            )

        return TaskExecutionResult(
            task_name=task_name,
            route="unavailable" if unavailable else "failed",
            text=None,
            model_name=model_name,
            prompt_tokens=prompt_tokens,
            completion_tokens=0,
            latency_ms=int((perf_counter() - started) * 1000),
            attempts=attempts,
            prompt_trimmed=trimmed,
            error_code=error_code,
        )

    def _emit_log(
        self,
        *,
        agent_id: str | None,
        task_name: str,
        model_name: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int,
        success: bool,
        error_code: str | None,
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
                "completion_tokens": int(completion_tokens),
                "latency_ms": int(latency_ms),
                "success": bool(success),
                "error_code": error_code,
            }
        )


class TextGenerator:
    """Text-generation capability: ``generate(prompt) -> str | None``."""

    def __init__(self, *, runner: PolicyTaskRunner | None = None, task_name: str = "agent_dialogue") -> None:
        self._runner = runner or PolicyTaskRunner()
        self._task_name = task_name

    def generate(
        self,
        prompt: str,
        *,
        agent_id: str | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
    ) -> str | None:
        result = self._runner.run(
            task_name=self._task_name,
            agent_id=agent_id,
            prompt=prompt,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        if not result.ok:
            logger.info(
                "[LLM] No text produced for agent '%s' (route=%s, error=%s)",
                agent_id,
                result.route,
                result.error_code,
            )
        return result.text
