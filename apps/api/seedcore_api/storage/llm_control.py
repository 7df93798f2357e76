"""In-process storage for LLM task policies and call telemetry."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional
import logging
import threading

from packages.seedcore_core.llm.policy import DEFAULT_TASK_POLICIES, TaskPolicy, default_policy_for_task


logger = logging.getLogger("seedcore_api.storage.llm_control")
MAX_CALL_LOGS = 1000


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class LlmControlStore(ABC):
    @abstractmethod
    def upsert_policy(self, policy: TaskPolicy) -> TaskPolicy:
        raise NotImplementedError

    @abstractmethod
    def get_policy(self, task_name: str) -> Optional[TaskPolicy]:
        raise NotImplementedError

    @abstractmethod
    def list_policies(self) -> list[TaskPolicy]:
        raise NotImplementedError

    @abstractmethod
    def insert_call_log(self, record: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_call_logs(self, *, limit: int = 100, task_name: Optional[str] = None) -> list[dict[str, Any]]:
        raise NotImplementedError


class MemoryLlmControlStore(LlmControlStore):
    """Policy overrides and a bounded ring of call records, newest last."""

    def __init__(self, *, max_call_logs: int = MAX_CALL_LOGS) -> None:
        self._lock = threading.Lock()
        self._policies: dict[str, TaskPolicy] = {}
        self._logs: deque[dict[str, Any]] = deque(maxlen=max(1, int(max_call_logs)))

    def upsert_policy(self, policy: TaskPolicy) -> TaskPolicy:
        with self._lock:
            self._policies[policy.task_name] = policy
        logger.info("[LLM] Policy updated for task '%s'", policy.task_name)
        return policy

    def get_policy(self, task_name: str) -> Optional[TaskPolicy]:
        with self._lock:
            return self._policies.get(task_name)

    def list_policies(self) -> list[TaskPolicy]:
        with self._lock:
            return list(self._policies.values())

    def insert_call_log(self, record: dict[str, Any]) -> None:
        row = dict(record)
        row.setdefault("created_at", _utc_now())
        with self._lock:
            self._logs.append(row)

    def list_call_logs(self, *, limit: int = 100, task_name: Optional[str] = None) -> list[dict[str, Any]]:
        with self._lock:
            rows = list(self._logs)
        if task_name:
            rows = [row for row in rows if row.get("task_name") == task_name]
        rows.reverse()
        return rows[: max(1, int(limit))]


_STORE: LlmControlStore = MemoryLlmControlStore()


def reset_backend_for_tests() -> None:
    global _STORE
    _STORE = MemoryLlmControlStore()


def upsert_policy(policy: TaskPolicy) -> TaskPolicy:
    return _STORE.upsert_policy(policy)


def get_policy(task_name: str) -> TaskPolicy:
    stored = _STORE.get_policy(task_name)
    if stored:
        return stored
    return default_policy_for_task(task_name)


def list_policies() -> list[TaskPolicy]:
    merged = dict(DEFAULT_TASK_POLICIES)
    for policy in _STORE.list_policies():
        merged[policy.task_name] = policy
    return [merged[name] for name in sorted(merged)]


def insert_call_log(record: dict[str, Any]) -> None:
    _STORE.insert_call_log(record)


def list_call_logs(*, limit: int = 100, task_name: Optional[str] = None) -> list[dict[str, Any]]:
    return _STORE.list_call_logs(limit=limit, task_name=task_name)
