"""Heartbeat driver — periodic keep-alive comments on idle streams.

Learn: Proxies and load balancers drop connections that stay silent for
too long. The driver beats once right away, then every `interval` seconds.
Ticks are not drift-corrected and missed ticks are never replayed: a
heartbeat carries no data, so catching up would be pointless.

Usage:
    driver = HeartbeatDriver(interval=180, beat=relay.heartbeat)
    task = asyncio.create_task(driver.run_loop())
    ...
    driver.stop(); task.cancel()
"""

import asyncio
from typing import Callable

import structlog

logger = structlog.get_logger()


class HeartbeatDriver:
    """Calls `beat` on a fixed period until stopped."""

    def __init__(self, interval: float, beat: Callable[[], None]):
        self.interval = interval
        self.beat = beat
        self._running = False
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._running

    async def run_loop(self) -> None:
        """Beat, sleep, repeat. A failing beat is logged, never fatal."""
        self._running = True
        logger.info("heartbeat.started", interval=self.interval)

        while self._running:
            try:
                self.beat()
                self.ticks += 1
            except Exception:
                logger.exception("heartbeat.error")
            await asyncio.sleep(self.interval)

    def stop(self) -> None:
        self._running = False
