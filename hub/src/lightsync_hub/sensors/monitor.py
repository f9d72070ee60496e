"""Edge-triggered polling monitor for a boolean sensor.

One long-lived loop task polls an injected probe. The change handler fires
exactly once per transition; identical consecutive readings never re-fire.
The interval can be changed at runtime without restarting the loop, and the
monitor can be paused without stopping it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

Probe = Callable[[], bool | Awaitable[bool]]
ChangeHandler = Callable[[bool], Awaitable[None] | None]


def poll_interval_seconds(interval_ms: int, min_ms: int = 500, fallback_ms: int = 1000) -> float:
    """Convert a stored poll interval to seconds, replacing too-small values."""
    if interval_ms < min_ms:
        logger.warning("Poll interval %dms is below %dms, using %dms", interval_ms, min_ms, fallback_ms)
        interval_ms = fallback_ms
    return interval_ms / 1000


class SensorMonitor:
    """Poll a probe and report value changes.

    Parameters
    ----------
    probe:
        Returns the current sensor value. Plain functions run in the default
        executor so a slow OS call cannot block the event loop.
    interval:
        Seconds between polls.
    on_change:
        Called with the new value after each transition.
    """

    def __init__(
        self,
        probe: Probe,
        interval: float = 1.0,
        on_change: ChangeHandler | None = None,
    ) -> None:
        self._probe = probe
        self._interval = interval
        self._on_change = on_change
        self._enabled = True
        self._value = False
        self._reset = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Properties and setters
    # ------------------------------------------------------------------

    @property
    def value(self) -> bool:
        """Last observed sensor value."""
        return self._value

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def on_change(self, handler: ChangeHandler | None) -> None:
        self._on_change = handler

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        logger.info("Sensor monitoring %s", "enabled" if enabled else "disabled")

    def set_interval(self, interval: float) -> None:
        """Change the poll interval; the running loop picks it up immediately."""
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._interval = interval
        self._reset.set()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _read(self) -> bool:
        if inspect.iscoroutinefunction(self._probe):
            return bool(await self._probe())
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self._probe)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    async def tick(self) -> None:
        """Run one poll cycle: probe if enabled, fire the handler on change."""
        if not self._enabled:
            return
        try:
            value = await self._read()
        except Exception:
            logger.warning("Sensor probe failed; skipping this tick", exc_info=True)
            return
        if value == self._value:
            return
        self._value = value
        logger.info("Sensor state changed: %s", value)
        if self._on_change is None:
            return
        try:
            outcome = self._on_change(value)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Sensor change handler failed")

    async def check_now(self) -> bool:
        """Probe immediately and store the value without firing the handler."""
        value = await self._read()
        logger.info("Sensor check now: %s", value)
        self._value = value
        return value

    async def _run(self) -> None:
        logger.info("Sensor monitor started (interval: %.2fs)", self._interval)
        while True:
            try:
                await asyncio.wait_for(self._reset.wait(), timeout=self._interval)
            except TimeoutError:
                await self.tick()
            else:
                self._reset.clear()
                logger.info("Sensor monitor interval updated to %.2fs", self._interval)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="sensor-monitor")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sensor monitor stopped")

    def snapshot(self) -> dict[str, Any]:
        return {
            "value": self._value,
            "enabled": self._enabled,
            "interval_ms": round(self._interval * 1000),
            "running": self.running,
        }
