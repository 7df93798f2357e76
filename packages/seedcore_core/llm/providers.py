"""Text-generation provider adapters.

Two REST contracts are supported: Google's Gemini ``generateContent`` API
(the default) and any OpenAI-compatible Chat Completions endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib import error, request
import json
import os

from .policy import estimate_token_count


DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_OPENAI_COMPATIBLE_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL_BY_PROVIDER = {
    "gemini": "gemini-2.5-flash",
    "openai_compatible": "gpt-4o-mini",
}
SUPPORTED_PROVIDERS = set(DEFAULT_MODEL_BY_PROVIDER)


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _first_non_empty(*values: str | None) -> str | None:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


@dataclass(frozen=True)
class ProviderExecutionResult:
    text: str
    model_name: str
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


class ProviderError(RuntimeError):
    def __init__(self, message: str, *, error_code: str, model_name: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.model_name = model_name


class ProviderUnavailableError(ProviderError):
    pass


class ProviderExecutionError(ProviderError):
    pass


@dataclass(frozen=True)
class TextProviderConfig:
    provider: str
    model: str
    base_url: str
    api_key: str | None

    def model_name(self) -> str:
        return f"{self.provider}:{self.model}"


def text_provider_config() -> TextProviderConfig:
    provider = (_first_non_empty(os.environ.get("SEEDCORE_LLM_PROVIDER")) or "gemini").lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ProviderUnavailableError(
            f"Unsupported provider: {provider}",
            error_code="unsupported_provider",
        )

    model = _first_non_empty(os.environ.get("SEEDCORE_LLM_MODEL")) or DEFAULT_MODEL_BY_PROVIDER[provider]

    default_base = DEFAULT_GEMINI_BASE_URL if provider == "gemini" else DEFAULT_OPENAI_COMPATIBLE_BASE_URL
    base_url = _first_non_empty(os.environ.get("SEEDCORE_LLM_BASE_URL")) or default_base

    if provider == "gemini":
        api_key = _first_non_empty(
            os.environ.get("SEEDCORE_LLM_API_KEY"),
            os.environ.get("GEMINI_API_KEY"),
            os.environ.get("API_KEY"),
        )
    else:
        api_key = _first_non_empty(
            os.environ.get("SEEDCORE_LLM_API_KEY"),
            os.environ.get("OPENAI_API_KEY"),
        )
    if not api_key and not _truthy_env("SEEDCORE_LLM_ALLOW_EMPTY_API_KEY", False):
        raise ProviderUnavailableError(
            f"No API key configured for provider: {provider}",
            error_code="missing_api_key",
        )

    return TextProviderConfig(
        provider=provider,
        model=model,
        base_url=base_url.rstrip("/"),
        api_key=api_key,
    )


def _post_json(
    *,
    config: TextProviderConfig,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout_ms: int,
) -> dict[str, Any]:
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    req = request.Request(url, method="POST", data=body, headers={"Content-Type": "application/json"})
    for key, value in headers.items():
        req.add_header(key, value)

    timeout_s = max(0.2, float(timeout_ms) / 1000.0)
    try:
        with request.urlopen(req, timeout=timeout_s) as response:
            raw = response.read().decode("utf-8", errors="replace")
    except error.HTTPError as exc:
        detail = ""
        try:
            detail = exc.read().decode("utf-8", errors="replace")
        except Exception:
            detail = ""
        raise ProviderExecutionError(
            f"Provider HTTP error {exc.code}: {detail[:240]}",
            error_code=f"http_{exc.code}",
            model_name=config.model_name(),
        ) from exc
    except Exception as exc:
        raise ProviderExecutionError(
            f"Provider network error: {exc}",
            error_code="network_error",
            model_name=config.model_name(),
        ) from exc

    try:
        parsed = json.loads(raw)
    except Exception as exc:
        raise ProviderExecutionError(
            "Provider returned non-JSON response",
            error_code="invalid_provider_response",
            model_name=config.model_name(),
        ) from exc
    if not isinstance(parsed, dict):
        raise ProviderExecutionError(
            "Provider returned an unexpected payload",
            error_code="invalid_provider_response",
            model_name=config.model_name(),
        )
    return parsed


def _parse_content_text(message: Any) -> str:
    if isinstance(message, str):
        return message
    if isinstance(message, list):
        chunks: list[str] = []
        for item in message:
            if isinstance(item, dict):
                text = item.get("text")
                if text:
                    chunks.append(str(text))
        return "".join(chunks)
    return str(message or "")


def _optional_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except Exception:
        return None


def _post_gemini(
    *,
    config: TextProviderConfig,
    prompt: str,
    temperature: float,
    max_output_tokens: int,
    timeout_ms: int,
) -> ProviderExecutionResult:
    payload = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": float(temperature),
            "maxOutputTokens": int(max_output_tokens),
        },
    }
    headers = {"x-goog-api-key": config.api_key} if config.api_key else {}
    parsed = _post_json(
        config=config,
        url=f"{config.base_url}/models/{config.model}:generateContent",
        payload=payload,
        headers=headers,
        timeout_ms=timeout_ms,
    )

    candidates = parsed.get("candidates") or []
    if not candidates:
        raise ProviderExecutionError(
            "Provider response missing candidates",
            error_code="missing_candidates",
            model_name=config.model_name(),
        )
    content = (candidates[0] or {}).get("content") or {}
    text = _parse_content_text(content.get("parts")).strip()
    if not text:
        raise ProviderExecutionError("Empty model response", error_code="empty_response", model_name=config.model_name())

    usage = parsed.get("usageMetadata") or {}
    return ProviderExecutionResult(
        text=text,
        model_name=str(parsed.get("modelVersion") or config.model_name()),
        prompt_tokens=_optional_int(usage.get("promptTokenCount")) or estimate_token_count(prompt),
        completion_tokens=_optional_int(usage.get("candidatesTokenCount")) or estimate_token_count(text),
    )


def _post_openai_compatible(
    *,
    config: TextProviderConfig,
    prompt: str,
    temperature: float,
    max_output_tokens: int,
    timeout_ms: int,
) -> ProviderExecutionResult:
    payload = {
        "model": config.model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": float(temperature),
        "max_tokens": int(max_output_tokens),
    }
    headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else {}
    parsed = _post_json(
        config=config,
        url=f"{config.base_url}/chat/completions",
        payload=payload,
        headers=headers,
        timeout_ms=timeout_ms,
    )

    choices = parsed.get("choices") or []
    if not choices:
        raise ProviderExecutionError(
            "Provider response missing choices",
            error_code="missing_choices",
            model_name=config.model_name(),
        )
    message = ((choices[0] or {}).get("message") or {}).get("content")
    text = _parse_content_text(message).strip()
    if not text:
        raise ProviderExecutionError("Empty model response", error_code="empty_response", model_name=config.model_name())

    usage = parsed.get("usage") or {}
    return ProviderExecutionResult(
        text=text,
        model_name=str(parsed.get("model") or config.model_name()),
        prompt_tokens=_optional_int(usage.get("prompt_tokens")) or estimate_token_count(prompt),
        completion_tokens=_optional_int(usage.get("completion_tokens")) or estimate_token_count(text),
    )


def execute_text_model(
    *,
    prompt: str,
    temperature: float,
    max_output_tokens: int,
    timeout_ms: int,
) -> ProviderExecutionResult:
    """Run one prompt against the configured text provider."""
    config = text_provider_config()
    post = _post_gemini if config.provider == "gemini" else _post_openai_compatible
    return post(
        config=config,
        prompt=prompt,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
        timeout_ms=timeout_ms,
    )
