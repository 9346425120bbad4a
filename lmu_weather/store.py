"""Latest weather snapshot and session lengths, published by the poller."""

import logging
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from lmu_weather.model import SessionKind, SessionScheduleEntry, WeatherSnapshot
from lmu_weather.session import matches_session_name

logger = logging.getLogger(__name__)


class WeatherSnapshotStore:
    """
    Holds the most recent forecast and scheduled session lengths.

    Both are immutable objects swapped in with a single assignment, so the
    resolver always reads a complete snapshot or none at all.
    """

    def __init__(self):
        self._snapshot: Optional[WeatherSnapshot] = None
        self._lengths: Mapping[SessionKind, int] = MappingProxyType({})

    def replace(self, snapshot: WeatherSnapshot) -> None:
        self._snapshot = snapshot
        logger.debug(f"Weather snapshot replaced ({snapshot.session_kind.value}, {len(snapshot.nodes)} nodes)")

    def current(self) -> Optional[WeatherSnapshot]:
        return self._snapshot

    def session_length_minutes(self, kind: SessionKind) -> int:
        """Last scheduled length for `kind`, 0 if the schedule never listed it."""
        return self._lengths.get(kind, 0)

    def update_session_lengths(
        self,
        entries: Iterable[SessionScheduleEntry],
        kinds: Iterable[SessionKind] = tuple(SessionKind),
    ) -> Mapping[SessionKind, int]:
        """
        Adopt the length of the first scheduled entry matching each kind.

        Kinds with no matching entry keep their previous length.
        """
        entries = list(entries)
        lengths = dict(self._lengths)

        for kind in kinds:
            for entry in entries:
                if matches_session_name(entry.name, kind):
                    if lengths.get(kind) != entry.length_minutes:
                        logger.info(f"⏱️ {kind.value} length: {entry.length_minutes} min ('{entry.name}')")
                    lengths[kind] = entry.length_minutes
                    break

        self._lengths = MappingProxyType(lengths)
        return self._lengths
