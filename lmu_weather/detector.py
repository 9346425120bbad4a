"""Process-based detection of a running Le Mans Ultimate instance."""

import logging
import os

import psutil

logger = logging.getLogger(__name__)

# Exact executable names only; the adapter's own `lmu-weather` script must not match
LMU_PROCESSES = frozenset(name.lower() for name in (
    "Le Mans Ultimate",
    "Le Mans Ultimate.exe",
    "LMU.exe",
    "LeMansUltimate.exe",
))


def is_lmu_running() -> bool:
    """True if an LMU executable other than this process is running. Blocking."""
    own_pid = os.getpid()
    try:
        for proc in psutil.process_iter(["name"]):
            if proc.pid == own_pid:
                continue
            name = (proc.info.get("name") or "").lower()
            if name in LMU_PROCESSES:
                return True
    except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
        logger.debug(f"Error checking LMU processes: {e}")
    return False
