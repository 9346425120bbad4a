"""
Weather plugin: wires telemetry ticks, the poller and the property resolver.

The host calls `init` once, `data_update` on every telemetry tick, and `end`
on shutdown. All properties are attached during `init`; the host freezes its
registry afterwards.
"""

import logging
from typing import Callable, Dict, Optional

from lmu_weather import config
from lmu_weather.api import LMURestClient
from lmu_weather.exceptions import RegistrationClosedError
from lmu_weather.model import PollerState, TelemetryFrame
from lmu_weather.poller import PollingEngine, gate_open
from lmu_weather.properties import PropertyResolver, Value, property_names
from lmu_weather.session import SessionState, SessionTracker
from lmu_weather.store import WeatherSnapshotStore

logger = logging.getLogger(__name__)


class PropertyRegistry:
    """Named value getters declared up front; no names may be added once frozen."""

    def __init__(self):
        self._getters: Dict[str, Callable[[], Value]] = {}
        self.frozen = False

    def attach_delegate(self, name: str, getter: Callable[[], Value]):
        if self.frozen:
            raise RegistrationClosedError(f"Cannot attach '{name}': registry is frozen")
        self._getters[name] = getter

    def freeze(self):
        self.frozen = True

    def names(self):
        return list(self._getters)

    def get(self, name: str) -> Optional[Value]:
        getter = self._getters.get(name)
        return getter() if getter is not None else None

    def values(self) -> Dict[str, Value]:
        return {name: getter() for name, getter in self._getters.items()}


class WeatherPlugin:
    """LMU weather fetcher exposing per-checkpoint weather properties."""

    def __init__(
        self,
        client: Optional[LMURestClient] = None,
        poll_interval: float = config.POLL_INTERVAL,
        expected_game: str = config.EXPECTED_GAME,
    ):
        self.client = client or LMURestClient()
        self.expected_game = expected_game
        self.store = WeatherSnapshotStore()
        self.tracker = SessionTracker()
        self.poller = PollingEngine(
            self.client,
            self.store,
            session_kind=lambda: self.tracker.state.kind,
            interval=poll_interval,
        )
        self.resolver = PropertyResolver(self.store, lambda: self.tracker.state)
        self.registry: Optional[PropertyRegistry] = None

    def init(self, registry: PropertyRegistry):
        """Attach every weather property to the host registry and freeze it."""
        self.registry = registry
        for name in property_names():
            self.resolver.register(name)
            registry.attach_delegate(name, self._getter(name))
        registry.freeze()
        logger.info(f"✅ Weather plugin initialized ({len(registry.names())} properties)")

    def _getter(self, name: str) -> Callable[[], Value]:
        return lambda: self.resolver.resolve(name)

    def data_update(self, frame: TelemetryFrame) -> SessionState:
        """
        Handle one telemetry tick: refresh session kind and node, then gate polling.

        Never touches the network; fetching happens on the poller's own task,
        so this must be called from within a running asyncio event loop.

        Raises:
            RuntimeError: If the gate opens while no event loop is running. The
                polling state is left unchanged.
        """
        state = self.tracker.update(frame, self.store.session_length_minutes)
        self.poller.update(gate_open(frame, self.expected_game))
        return state

    @property
    def polling_state(self) -> PollerState:
        return self.poller.state

    async def end(self):
        await self.poller.close()
        await self.client.close()
        logger.info("🛑 Weather plugin has been stopped.")
