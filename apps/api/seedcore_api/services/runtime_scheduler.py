"""Background scheduler driving the hotel clock and the ambient dialogue sweep."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import threading
import time

from .simulation import get_engine


logger = logging.getLogger("seedcore_api.runtime_scheduler")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HotelRuntimeScheduler:
    """One thread, two cadences: a fast tick and a slow dialogue sweep."""

    def __init__(self) -> None:
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._tick_interval_seconds = 1.0
        self._sweep_interval_seconds = 20.0
        self._tick_count = 0
        self._sweep_count = 0
        self._last_tick_at: str | None = None
        self._last_sweep_at: str | None = None
        self._last_error: str | None = None

    def start(
        self,
        *,
        tick_interval_seconds: float | None = None,
        sweep_interval_seconds: float | None = None,
    ) -> bool:
        with self._state_lock:
            if self._thread and self._thread.is_alive():
                return False
            config = get_engine().config
            self._tick_interval_seconds = max(
                0.05, float(tick_interval_seconds or config.tick_interval_seconds)
            )
            self._sweep_interval_seconds = max(
                self._tick_interval_seconds,
                float(sweep_interval_seconds or config.dialogue_sweep_interval_seconds),
            )
            self._stop_event.clear()
            thread = threading.Thread(
                target=self._run_loop,
                name="seedcore-hotel-runtime-scheduler",
                daemon=True,
            )
            thread.start()
            self._thread = thread
            logger.info(
                "[RUNTIME] Hotel scheduler started (tick=%.2fs, sweep=%.2fs)",
                self._tick_interval_seconds,
                self._sweep_interval_seconds,
            )
            return True

    def stop(self, *, join_timeout_seconds: float = 3.0) -> bool:
        with self._state_lock:
            thread = self._thread
            if not thread:
                return False
            self._stop_event.set()
        thread.join(timeout=max(0.1, float(join_timeout_seconds)))
        with self._state_lock:
            if self._thread is thread:
                self._thread = None
        logger.info("[RUNTIME] Hotel scheduler stopped")
        return True

    def status(self) -> dict[str, object]:
        with self._state_lock:
            running = bool(self._thread and self._thread.is_alive())
            thread_name = self._thread.name if self._thread else None
        return {
            "running": running,
            "thread_name": thread_name,
            "tick_interval_seconds": self._tick_interval_seconds,
            "sweep_interval_seconds": self._sweep_interval_seconds,
            "tick_count": self._tick_count,
            "sweep_count": self._sweep_count,
            "last_tick_at": self._last_tick_at,
            "last_sweep_at": self._last_sweep_at,
            "last_error": self._last_error,
        }

    def _run_loop(self) -> None:
        next_sweep = time.monotonic() + self._sweep_interval_seconds
        while not self._stop_event.is_set():
            try:
                engine = get_engine()
                engine.tick()
                self._tick_count += 1
                self._last_tick_at = _utc_now()
                if time.monotonic() >= next_sweep:
                    next_sweep = time.monotonic() + self._sweep_interval_seconds
                    engine.sweep_dialogue()
                    self._sweep_count += 1
                    self._last_sweep_at = _utc_now()
            except Exception as exc:
                self._last_error = f"{exc.__class__.__name__}: {exc}"
                logger.exception("[RUNTIME] Scheduler loop error: %s", exc)
            self._stop_event.wait(self._tick_interval_seconds)


_SCHEDULER = HotelRuntimeScheduler()


def start_hotel_runtime_scheduler(
    *,
    tick_interval_seconds: float | None = None,
    sweep_interval_seconds: float | None = None,
) -> bool:
    return _SCHEDULER.start(
        tick_interval_seconds=tick_interval_seconds,
        sweep_interval_seconds=sweep_interval_seconds,
    )


def stop_hotel_runtime_scheduler() -> bool:
    return _SCHEDULER.stop()


def hotel_runtime_scheduler_status() -> dict[str, object]:
    return _SCHEDULER.status()
