"""
Client for the LMU REST API (weather forecast and session schedule).

The game serves these endpoints on localhost without authentication. Every
failure is translated to TransportError or ParseError so the poller only has
two things to catch.
"""

import asyncio
import logging
import math
from typing import Any, Dict, List, Optional

import aiohttp

from lmu_weather import config
from lmu_weather.exceptions import ParseError, TransportError
from lmu_weather.model import (
    CheckpointNode,
    MetricId,
    MetricValue,
    SessionKind,
    SessionScheduleEntry,
    WeatherSnapshot,
)

logger = logging.getLogger(__name__)


class LMURestClient:
    """Thin async wrapper around the two LMU endpoints the adapter needs."""

    def __init__(self, base_url: str = config.API_BASE_URL, timeout: float = config.REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Accept": "application/json"},
            )
        return self._session

    async def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        session = self._get_session()
        try:
            async with session.get(url) as response:
                response.raise_for_status()
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise TransportError(f"GET {url} timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise ParseError(f"GET {url} returned invalid JSON: {e}") from e

    async def fetch_weather(self, kind: SessionKind) -> Any:
        return await self._get_json(config.WEATHER_PATH.format(session=kind.value))

    async def fetch_sessions(self) -> Any:
        return await self._get_json(config.SESSIONS_PATH)

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


# ============================================================================
# PAYLOAD PARSING
# ============================================================================

def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_weather(payload: Any, kind: SessionKind) -> WeatherSnapshot:
    """
    Parse a `/rest/sessions/weather/{session}` response.

    Args:
        payload: Decoded JSON; an object keyed by node name whose values map
            metric names to `{currentValue, stringValue}`.
        kind: Session the forecast was requested for.

    Returns:
        A WeatherSnapshot. Unknown nodes or metrics are skipped.

    Raises:
        ParseError: If the payload is not a JSON object.
    """
    if not isinstance(payload, dict):
        raise ParseError(f"Weather payload must be an object, got {type(payload).__name__}")

    nodes: Dict[CheckpointNode, Dict[MetricId, MetricValue]] = {}
    for node_name, metrics in payload.items():
        try:
            node = CheckpointNode(node_name)
        except ValueError:
            logger.debug(f"Ignoring unknown weather node '{node_name}'")
            continue
        if not isinstance(metrics, dict):
            continue

        values: Dict[MetricId, MetricValue] = {}
        for metric_name, raw in metrics.items():
            try:
                metric = MetricId(metric_name)
            except ValueError:
                logger.debug(f"Ignoring unknown weather metric '{metric_name}'")
                continue
            if not isinstance(raw, dict):
                continue
            string_value = raw.get("stringValue")
            values[metric] = MetricValue(
                current_value=_to_float(raw.get("currentValue")),
                string_value=str(string_value) if string_value is not None else None,
            )
        nodes[node] = values

    return WeatherSnapshot(session_kind=kind, nodes=nodes)


def parse_schedule(payload: Any) -> List[SessionScheduleEntry]:
    """
    Parse a `GetSessionsInfoForEvent` response into schedule entries.

    A missing `scheduledSessions` key yields an empty list. A `lengthTime` that
    is null or not a number is read as 0 minutes.
    """
    if not isinstance(payload, dict):
        raise ParseError(f"Sessions payload must be an object, got {type(payload).__name__}")

    sessions = payload.get("scheduledSessions")
    if sessions is None:
        return []
    if not isinstance(sessions, list):
        raise ParseError("'scheduledSessions' must be an array")

    entries = []
    for session in sessions:
        if not isinstance(session, dict):
            continue
        length = _to_float(session.get("lengthTime"))
        entries.append(SessionScheduleEntry(
            name=str(session.get("name") or ""),
            length_minutes=int(length) if length is not None else 0,
        ))
    return entries
