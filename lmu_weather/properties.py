"""
Property namespace exposed to the dashboard host.

Names are parsed once into request objects; resolving a request never raises
and always returns a value of the requested kind, so dashboards bound at
startup never see a missing value.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Union

from lmu_weather.exceptions import LookupMiss, StateUninitialized
from lmu_weather.model import CheckpointNode, MetricId, ValueKind
from lmu_weather.session import SessionState, time_until
from lmu_weather.store import WeatherSnapshotStore

logger = logging.getLogger(__name__)

STRING_SUFFIX = "Str"
TIME_UNTIL_PREFIX = "TimeUntil_"
CURRENT_NODE_PREFIX = "CURRENTNODE_"

SESSION_LENGTH = "CurrentSessionLengthMinutes"
NODE_DURATION = "CurrentNodeDurationMinutes"
NODE_NAME = "CurrentNodeName"

# Dashboards assume five equal node intervals
NODE_DURATION_DIVISOR = 5.0

TIME_UNTIL_NODES = (
    CheckpointNode.NODE_25,
    CheckpointNode.NODE_50,
    CheckpointNode.NODE_75,
    CheckpointNode.FINISH,
)

Value = Union[float, int, str]


# ============================================================================
# REQUESTS
# ============================================================================

@dataclass(frozen=True)
class StaticSession:
    name: str
    value_kind: ValueKind


@dataclass(frozen=True)
class TimeUntil:
    node: CheckpointNode
    value_kind: ValueKind = ValueKind.NUMERIC


@dataclass(frozen=True)
class CurrentNodeMetric:
    metric: MetricId
    value_kind: ValueKind


@dataclass(frozen=True)
class ExplicitNodeMetric:
    node: CheckpointNode
    metric: MetricId
    value_kind: ValueKind


@dataclass(frozen=True)
class Unresolvable:
    """A name outside the namespace; always resolves to the default."""
    name: str
    value_kind: ValueKind


PropertyRequest = Union[StaticSession, TimeUntil, CurrentNodeMetric, ExplicitNodeMetric, Unresolvable]

STATIC_SESSION = {
    SESSION_LENGTH: StaticSession(SESSION_LENGTH, ValueKind.NUMERIC),
    NODE_DURATION: StaticSession(NODE_DURATION, ValueKind.NUMERIC),
    NODE_NAME: StaticSession(NODE_NAME, ValueKind.STRING),
}


def _node(token: str) -> Optional[CheckpointNode]:
    try:
        return CheckpointNode(token)
    except ValueError:
        return None


def _metric(token: str) -> Optional[MetricId]:
    try:
        return MetricId(token)
    except ValueError:
        return None


@lru_cache(maxsize=1024)
def parse_property_name(name: str) -> PropertyRequest:
    """Turn a property name into the request it denotes."""
    if name in STATIC_SESSION:
        return STATIC_SESSION[name]

    value_kind = ValueKind.STRING if name.endswith(STRING_SUFFIX) else ValueKind.NUMERIC
    unresolvable = Unresolvable(name, value_kind)

    if name.startswith(TIME_UNTIL_PREFIX):
        node = _node(name[len(TIME_UNTIL_PREFIX):])
        return TimeUntil(node) if node is not None else unresolvable

    clean = name[:-len(STRING_SUFFIX)] if value_kind is ValueKind.STRING else name

    if clean.startswith(CURRENT_NODE_PREFIX):
        metric = _metric(clean[len(CURRENT_NODE_PREFIX):])
        return CurrentNodeMetric(metric, value_kind) if metric is not None else unresolvable

    parts = clean.split("_")
    if len(parts) < 2:
        return unresolvable

    if parts[0] == "NODE" and len(parts) >= 3 and parts[1].isdigit():
        node_token = f"{parts[0]}_{parts[1]}"
        metric_token = "_".join(parts[2:])
    else:
        node_token = parts[0]
        metric_token = "_".join(parts[1:])

    node = _node(node_token)
    metric = _metric(metric_token)
    if node is None or metric is None:
        return unresolvable
    return ExplicitNodeMetric(node, metric, value_kind)


def property_names() -> List[str]:
    """Every property the adapter registers with the host, in registration order."""
    names = []
    for node in CheckpointNode:
        for metric in MetricId:
            names.append(f"{node.value}_{metric.value}")
            names.append(f"{node.value}_{metric.value}{STRING_SUFFIX}")

    names.extend([SESSION_LENGTH, NODE_DURATION, NODE_NAME])

    for metric in MetricId:
        names.append(f"{CURRENT_NODE_PREFIX}{metric.value}")
        names.append(f"{CURRENT_NODE_PREFIX}{metric.value}{STRING_SUFFIX}")

    names.extend(f"{TIME_UNTIL_PREFIX}{node.value}" for node in TIME_UNTIL_NODES)
    return names


# ============================================================================
# RESOLVER
# ============================================================================

class PropertyResolver:
    """Evaluates property requests against the latest session state and snapshot."""

    def __init__(self, store: WeatherSnapshotStore, session_state: Callable[[], SessionState]):
        self.store = store
        self._session_state = session_state
        self._requests: Dict[str, PropertyRequest] = {}

    def register(self, name: str) -> PropertyRequest:
        request = parse_property_name(name)
        if isinstance(request, Unresolvable):
            logger.warning(f"⚠️ Property '{name}' is outside the weather namespace")
        self._requests[name] = request
        return request

    def resolve(self, name: str) -> Value:
        request = self._requests.get(name)
        if request is None:
            request = parse_property_name(name)
        try:
            return self.evaluate(request)
        except (LookupMiss, StateUninitialized) as e:
            logger.debug(f"Property '{name}' defaulted: {e!r}")
            return request.value_kind.default

    def evaluate(self, request: PropertyRequest) -> Value:
        """Evaluate one request; raises LookupMiss or StateUninitialized when data is missing."""
        state = self._session_state()

        if isinstance(request, StaticSession):
            length = self.store.session_length_minutes(state.kind)
            if request.name == SESSION_LENGTH:
                return length
            if request.name == NODE_DURATION:
                return length / NODE_DURATION_DIVISOR
            return state.node.value

        if isinstance(request, TimeUntil):
            length = self.store.session_length_minutes(state.kind)
            return time_until(request.node, length, state.time_left_minutes)

        if isinstance(request, CurrentNodeMetric):
            return self._metric_value(state.node, request.metric, request.value_kind)

        if isinstance(request, ExplicitNodeMetric):
            return self._metric_value(request.node, request.metric, request.value_kind)

        raise LookupMiss(request.name)

    def _metric_value(self, node: CheckpointNode, metric: MetricId, value_kind: ValueKind) -> Value:
        snapshot = self.store.current()
        if snapshot is None:
            raise StateUninitialized("no weather snapshot yet")

        value = snapshot.get(node, metric)
        if value is None:
            raise LookupMiss(f"{node.value}/{metric.value}")

        if value_kind is ValueKind.STRING:
            if value.string_value is None:
                raise LookupMiss(f"{node.value}/{metric.value}/stringValue")
            return value.string_value

        if value.current_value is None:
            raise LookupMiss(f"{node.value}/{metric.value}/currentValue")
        return value.current_value
