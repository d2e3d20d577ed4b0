# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.

from __future__ import annotations
from typing import Dict, Iterable, List, Optional

from .config import TOPIC_SEPARATOR, SensorEntry


def toggle_separator(topic: str) -> str:
    """Strip one leading separator if present, otherwise prepend one."""
    if topic.startswith(TOPIC_SEPARATOR):
        return topic[len(TOPIC_SEPARATOR):]
    return TOPIC_SEPARATOR + topic


class TopicResolver:
    """
    Maps topics as stored in a bag to configured sensors.

    Configured topics and bag topics may disagree by exactly one leading
    ``/``. The index holds the configured spellings only, and ``resolve``
    tries the bag topic as stored, then with one leading ``/`` stripped
    (when it has one) or prepended (when it has none). Anything else does
    not resolve.
    """

    def __init__(self, entries: Iterable[SensorEntry]):
        self._entries: List[SensorEntry] = list(entries)
        self._index: Dict[str, SensorEntry] = {e.topic: e for e in self._entries}

    @property
    def entries(self) -> List[SensorEntry]:
        return list(self._entries)

    def resolve(self, raw_topic: str) -> Optional[SensorEntry]:
        entry = self._index.get(raw_topic)
        if entry is None:
            entry = self._index.get(toggle_separator(raw_topic))
        return entry

    def routed_topics(self, bag_topics: Iterable[str]) -> List[str]:
        """Bag topics that resolve to a sensor, in input order."""
        return [t for t in bag_topics if t in self]

    def unmatched_sensors(self, bag_topics: Iterable[str]) -> List[SensorEntry]:
        """Configured sensors with no topic in the bag."""
        matched = {e.name for e in map(self.resolve, bag_topics) if e is not None}
        return [e for e in self._entries if e.name not in matched]

    def __contains__(self, raw_topic: str) -> bool:
        return self.resolve(raw_topic) is not None

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["toggle_separator", "TopicResolver"]
