"""Fixtures used by pytest."""

from typing import Any, List, Optional

import pytest

from lmu_weather.model import SessionKind


class FakeClient:
    """Stands in for LMURestClient; records calls and can be told to fail."""

    def __init__(self, weather: Any = None, sessions: Any = None):
        self.weather = weather
        self.sessions = sessions
        self.weather_error: Optional[Exception] = None
        self.sessions_error: Optional[Exception] = None
        self.calls: List[Any] = []
        self.closed = False

    async def fetch_weather(self, kind: SessionKind) -> Any:
        self.calls.append(("weather", kind))
        if self.weather_error is not None:
            raise self.weather_error
        return self.weather

    async def fetch_sessions(self) -> Any:
        self.calls.append(("sessions",))
        if self.sessions_error is not None:
            raise self.sessions_error
        return self.sessions

    async def close(self):
        self.closed = True


@pytest.fixture
def weather_payload() -> dict:
    """Forecast as returned by /rest/sessions/weather/RACE."""
    def metrics(temperature: float, sky: str) -> dict:
        return {
            "WNV_TEMPERATURE": {"currentValue": temperature, "stringValue": f"{temperature}C"},
            "WNV_SKY": {"currentValue": 2, "stringValue": sky},
            "WNV_RAIN_CHANCE": {"currentValue": 10, "stringValue": "10%"},
            "WNV_HUMIDITY": {"currentValue": None, "stringValue": None},
        }

    return {
        "START": metrics(15.0, "Clear"),
        "NODE_25": metrics(16.0, "Clear"),
        "NODE_50": metrics(18.5, "Partly Cloudy"),
        "NODE_75": metrics(17.0, "Overcast"),
        "FINISH": metrics(14.0, "Light Rain"),
    }


@pytest.fixture
def sessions_payload() -> dict:
    """Schedule as returned by /rest/sessions/GetSessionsInfoForEvent."""
    return {
        "scheduledSessions": [
            {"name": "Practice 1", "lengthTime": 60},
            {"name": "Qualify 1", "lengthTime": 20},
            {"name": "Qualify 2", "lengthTime": 15},
            {"name": "Race", "lengthTime": 120},
        ]
    }


@pytest.fixture
def fake_client(weather_payload: dict, sessions_payload: dict) -> FakeClient:
    return FakeClient(weather=weather_payload, sessions=sessions_payload)
