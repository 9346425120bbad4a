"""Value types shared by the poller, the resolver and the host."""

import math
import time
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


class CheckpointNode(str, Enum):
    """Elapsed-time markers of a session, in chronological order."""
    START = "START"
    NODE_25 = "NODE_25"
    NODE_50 = "NODE_50"
    NODE_75 = "NODE_75"
    FINISH = "FINISH"


class SessionKind(str, Enum):
    PRACTICE = "PRACTICE"
    QUALIFY = "QUALIFY"
    RACE = "RACE"


class MetricId(str, Enum):
    """Weather metrics reported by the LMU forecast endpoint."""
    TEMPERATURE = "WNV_TEMPERATURE"
    WIND_DIRECTION = "WNV_WINDDIRECTION"
    RAIN_CHANCE = "WNV_RAIN_CHANCE"
    WIND_SPEED = "WNV_WINDSPEED"
    START_TIME = "WNV_STARTTIME"
    SKY = "WNV_SKY"
    DURATION = "WNV_DURATION"
    HUMIDITY = "WNV_HUMIDITY"


class ValueKind(Enum):
    NUMERIC = "numeric"
    STRING = "string"

    @property
    def default(self):
        return "" if self is ValueKind.STRING else 0.0


class PollerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class MetricValue:
    """One metric as reported: `currentValue` and `stringValue` may each be null."""
    current_value: Optional[float] = None
    string_value: Optional[str] = None


@dataclass(frozen=True)
class WeatherSnapshot:
    """Forecast for one session, keyed by checkpoint node then metric."""
    session_kind: SessionKind
    nodes: Mapping[CheckpointNode, Mapping[MetricId, MetricValue]]
    fetched_at: float = field(default_factory=time.time)

    def __post_init__(self):
        frozen = {node: MappingProxyType(dict(metrics)) for node, metrics in self.nodes.items()}
        object.__setattr__(self, "nodes", MappingProxyType(frozen))

    def get(self, node: CheckpointNode, metric: MetricId) -> Optional[MetricValue]:
        metrics = self.nodes.get(node)
        if metrics is None:
            return None
        return metrics.get(metric)


@dataclass(frozen=True)
class SessionScheduleEntry:
    name: str
    length_minutes: int


@dataclass(frozen=True)
class TelemetryFrame:
    """
    One tick of host telemetry.

    `game_running` is None when the host did not report it; the server then
    falls back to a process check.
    """
    game_running: Optional[bool] = False
    game_paused: bool = False
    game_in_menu: bool = False
    game_name: str = ""
    session_type_name: Optional[str] = None
    session_time_left: timedelta = timedelta(0)

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "TelemetryFrame":
        """Build a frame from a host JSON message (time left given in seconds).

        Raises:
            ValueError: If `sessionTimeLeft` is not a finite number.
        """
        running = message.get("gameRunning")
        time_left = float(message.get("sessionTimeLeft") or 0)
        if not math.isfinite(time_left):
            raise ValueError(f"sessionTimeLeft must be finite, got {time_left}")
        return cls(
            game_running=bool(running) if running is not None else None,
            game_paused=bool(message.get("gamePaused", False)),
            game_in_menu=bool(message.get("gameInMenu", False)),
            game_name=str(message.get("gameName") or ""),
            session_type_name=message.get("sessionTypeName"),
            session_time_left=timedelta(seconds=time_left),
        )
