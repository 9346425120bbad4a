"""
Session classification and race-progress tracking.

The telemetry feed reports many raw session labels and the remaining session
time; this module collapses the label to a SessionKind and turns the time into
the checkpoint node the session is currently in.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from lmu_weather.model import CheckpointNode, SessionKind, TelemetryFrame

logger = logging.getLogger(__name__)

# ============================================================================
# SESSION CLASSIFIER
# ============================================================================

SESSION_LABELS = {
    "PRACTICE": SessionKind.PRACTICE,
    "FREEPRACTICE": SessionKind.PRACTICE,
    "PRACTICE1": SessionKind.PRACTICE,
    "PRACTICE2": SessionKind.PRACTICE,
    "QUALIFY": SessionKind.QUALIFY,
    "QUALIFYING": SessionKind.QUALIFY,
    "QUALIFY1": SessionKind.QUALIFY,
    "QUALIFY2": SessionKind.QUALIFY,
    "RACE": SessionKind.RACE,
    "RACEMAIN": SessionKind.RACE,
}

DEFAULT_SESSION = SessionKind.RACE


def classify(raw_label: Optional[str]) -> SessionKind:
    """Map a raw session-type label to its SessionKind; unknown labels are races."""
    if not raw_label:
        return DEFAULT_SESSION
    return SESSION_LABELS.get(raw_label.strip().upper(), DEFAULT_SESSION)


def matches_session_name(display_name: Optional[str], kind: Optional[SessionKind]) -> bool:
    """True if a scheduled session's display name belongs to `kind` (e.g. "Race 1" -> RACE)."""
    if not display_name or kind is None:
        return False
    return kind.value in display_name.upper()


# ============================================================================
# PROGRESS TRACKER
# ============================================================================

# Lower bound of each bucket; a progress equal to the bound belongs to that node
NODE_THRESHOLDS = (
    (1.0, CheckpointNode.FINISH),
    (0.75, CheckpointNode.NODE_75),
    (0.5, CheckpointNode.NODE_50),
    (0.25, CheckpointNode.NODE_25),
)

NODE_FRACTIONS = {
    CheckpointNode.NODE_25: 0.25,
    CheckpointNode.NODE_50: 0.50,
    CheckpointNode.NODE_75: 0.75,
    CheckpointNode.FINISH: 1.00,
}


def current_node(total_minutes: float, time_left: timedelta) -> CheckpointNode:
    """Checkpoint node for a session of `total_minutes` with `time_left` remaining."""
    if total_minutes <= 0:
        # Length unknown until the schedule has been fetched
        return CheckpointNode.START

    total_seconds = total_minutes * 60.0
    elapsed = total_seconds - time_left.total_seconds()
    elapsed = min(max(elapsed, 0.0), total_seconds)
    progress = elapsed / total_seconds

    for threshold, node in NODE_THRESHOLDS:
        if progress >= threshold:
            return node
    return CheckpointNode.START


def time_until(node: CheckpointNode, total_minutes: float, time_left_minutes: float) -> float:
    """
    Minutes until the session reaches `node`, estimated from the last sample.

    Returns 0.0 for START, for nodes already passed, and while the session
    length or the remaining time is still unknown.
    """
    fraction = NODE_FRACTIONS.get(node)
    if fraction is None or total_minutes <= 0 or time_left_minutes <= 0:
        return 0.0

    elapsed_minutes = total_minutes - time_left_minutes
    target = total_minutes * fraction
    return max(0.0, target - elapsed_minutes)


@dataclass(frozen=True)
class SessionState:
    """Per-tick derived state, replaced as a whole on every telemetry tick."""
    kind: SessionKind = DEFAULT_SESSION
    length_minutes: int = 0
    node: CheckpointNode = CheckpointNode.START
    time_left_minutes: float = 0.0


class SessionTracker:
    """Single writer of SessionState; readers take `state` and never see a half update."""

    def __init__(self):
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    def update(self, frame: TelemetryFrame, length_lookup: Callable[[SessionKind], int]) -> SessionState:
        kind = classify(frame.session_type_name)
        length = length_lookup(kind)
        node = current_node(length, frame.session_time_left)
        previous = self._state

        self._state = SessionState(
            kind=kind,
            length_minutes=length,
            node=node,
            time_left_minutes=frame.session_time_left.total_seconds() / 60.0,
        )

        if kind is not previous.kind:
            logger.info(f"🏁 Session changed: {previous.kind.value} -> {kind.value}")
        if node is not previous.node:
            logger.info(f"📍 Checkpoint node: {previous.node.value} -> {node.value}")
        return self._state
