"""Lookup of CFA topic areas by id or loosely typed name."""
from __future__ import annotations

import logging
from functools import lru_cache

from rapidfuzz import fuzz, process

from config.curriculum import CFA_LEVEL_1_TOPICS, TOPIC_NAMES

logger = logging.getLogger(__name__)

FUZZY_THRESHOLD = 85


class InvalidTopicError(ValueError):
    """Raised when a topic area is not part of the curriculum."""

    def __init__(self, topic: str):
        super().__init__(
            f"Invalid topic area: {topic}. Must be one of: {', '.join(TOPIC_NAMES)}"
        )
        self.topic = topic


@lru_cache(maxsize=1)
def _index() -> dict[str, dict]:
    index: dict[str, dict] = {}
    for topic in CFA_LEVEL_1_TOPICS:
        index[topic["id"]] = topic
        index[topic["name"].lower()] = topic
        index[topic["folder"].lower()] = topic
    return index


def find_topic(value: str | None) -> dict | None:
    """Resolve a topic by id, exact name, folder name or close spelling.

    Returns:
        The curriculum entry, or None when nothing scores above the threshold
    """
    if not value or not value.strip():
        return None

    key = value.strip().lower()
    exact = _index().get(key)
    if exact is not None:
        return exact

    match = process.extractOne(
        key,
        [name.lower() for name in TOPIC_NAMES],
        scorer=fuzz.WRatio,
    )
    if match and match[1] >= FUZZY_THRESHOLD:
        topic = CFA_LEVEL_1_TOPICS[match[2]]
        logger.debug(f"Fuzzy-resolved topic '{value}' to '{topic['name']}' ({match[1]:.0f})")
        return topic
    return None


def resolve_topic(value: str) -> dict:
    """Like :func:`find_topic` but raises for unknown topics.

    Raises:
        InvalidTopicError: If the value does not resolve
    """
    topic = find_topic(value)
    if topic is None:
        raise InvalidTopicError(value)
    return topic
