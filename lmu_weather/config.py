"""
Runtime configuration for the LMU weather adapter.

Every constant can be overridden from the environment so the same build runs
against a local game or a forwarded REST port.
"""

import logging
import os

# ============================================================================
# CONSTANTS
# ============================================================================

API_BASE_URL = os.environ.get("LMU_API_BASE_URL", "http://localhost:6397")
WEATHER_PATH = "/rest/sessions/weather/{session}"
SESSIONS_PATH = "/rest/sessions/GetSessionsInfoForEvent"

POLL_INTERVAL = float(os.environ.get("LMU_WEATHER_POLL_INTERVAL", "1.0"))       # Seconds between REST fetches
REQUEST_TIMEOUT = float(os.environ.get("LMU_WEATHER_REQUEST_TIMEOUT", "3.0"))   # Upper bound for one request
EXPECTED_GAME = os.environ.get("LMU_WEATHER_EXPECTED_GAME", "LMU")

WEBSOCKET_HOST = os.environ.get("LMU_WEATHER_WS_HOST", "0.0.0.0")
WEBSOCKET_PORT = int(os.environ.get("LMU_WEATHER_WS_PORT", "8767"))
BROADCAST_INTERVAL = float(os.environ.get("LMU_WEATHER_BROADCAST_INTERVAL", "1.0"))
PROCESS_CHECK_INTERVAL = float(os.environ.get("LMU_WEATHER_PROCESS_CHECK_INTERVAL", "5.0"))  # Seconds between background process scans

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure root logging once and return the package logger."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    logger = logging.getLogger("lmu_weather")
    logger.setLevel(level)
    return logger
