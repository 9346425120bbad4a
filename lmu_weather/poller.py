"""
Polling engine for the LMU weather and schedule endpoints.

Polling only runs while the game is actually being driven: it starts when the
gating predicate turns true and stops as soon as it turns false. Fetch errors
are absorbed per tick; the last good snapshot stays published.
"""

import asyncio
import contextlib
import logging
from typing import Callable, Optional

from lmu_weather import config
from lmu_weather.api import LMURestClient, parse_schedule, parse_weather
from lmu_weather.exceptions import ParseError, TransportError
from lmu_weather.model import PollerState, SessionKind, TelemetryFrame
from lmu_weather.store import WeatherSnapshotStore

logger = logging.getLogger(__name__)


def gate_open(frame: TelemetryFrame, expected_game: str = config.EXPECTED_GAME) -> bool:
    """Running, not paused, not in a menu, and the host reports the expected game."""
    return (
        bool(frame.game_running)
        and not frame.game_paused
        and not frame.game_in_menu
        and frame.game_name.strip().upper() == expected_game.strip().upper()
    )


class PollingEngine:
    """Stopped/Running state machine driving periodic REST fetches."""

    def __init__(
        self,
        client: LMURestClient,
        store: WeatherSnapshotStore,
        session_kind: Callable[[], SessionKind],
        interval: float = config.POLL_INTERVAL,
    ):
        self.client = client
        self.store = store
        self.interval = interval
        self.state = PollerState.STOPPED
        self._session_kind = session_kind
        self._task: Optional[asyncio.Task] = None

        # Counters for diagnostics
        self.ticks = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self.state is PollerState.RUNNING

    def update(self, gate: bool) -> PollerState:
        """Apply the gating predicate for this telemetry tick."""
        if gate and not self.running:
            self.start()
        elif not gate and self.running:
            self.stop()
        return self.state

    def start(self):
        """Enter RUNNING and make sure a poll loop is scheduled.

        Raises:
            RuntimeError: If called outside a running asyncio event loop.
        """
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self.state = PollerState.RUNNING
        logger.info(f"▶️  Weather polling started (every {self.interval}s)")

        # A loop stopped moments ago may still be finishing its last fetch; it
        # re-checks the state before sleeping again, so reuse it
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._run())

    def stop(self):
        """Enter STOPPED. An in-flight fetch completes and its result is still applied."""
        if not self.running:
            return
        self.state = PollerState.STOPPED
        logger.info("⏸️  Weather polling stopped")

    async def _run(self):
        while self.running:
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Unexpected error in weather poll: {e}", exc_info=True)
            if not self.running:
                break
            await asyncio.sleep(self.interval)

    async def tick(self) -> bool:
        """
        Run one fetch cycle: weather for the current session, then the schedule.

        Returns:
            True if both fetches succeeded, False if the cycle was aborted.
        """
        self.ticks += 1
        kind = self._session_kind()
        try:
            weather = await self.client.fetch_weather(kind)
            self.store.replace(parse_weather(weather, kind))

            sessions = await self.client.fetch_sessions()
            self.store.update_session_lengths(parse_schedule(sessions))
        except (TransportError, ParseError) as e:
            self.failures += 1
            logger.error(f"❌ Failed to fetch weather data: {e}")
            return False

        logger.debug(f"Weather poll #{self.ticks} ok ({kind.value})")
        return True

    async def close(self):
        """Stop polling and wait for the loop task to go away."""
        self.stop()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
