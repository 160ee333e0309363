# gatekeeper/services/topic_router.py
"""
Topic parsing for door hardware messages.

Door firmware publishes on either a bare subtype (`card_input`) or a
door-qualified topic (`{base}/{door_key}/card_input`). The router splits a
topic into (door_key, subtype); the AccessEngine decides what to do with it.
"""

from dataclasses import dataclass
from typing import Optional

SUBTYPE_CARD = "card_input"
SUBTYPE_CODE = "code_input"
SUBTYPE_EGRESS = "egress_request"
SUBTYPES = (SUBTYPE_CARD, SUBTYPE_CODE, SUBTYPE_EGRESS)

RESULT_TOPIC_GRANTED = "access_granted"
RESULT_TOPIC_DENIED = "access_denied"


@dataclass(frozen=True)
class TopicRoute:
    door_key: Optional[str]   # None for bare topics -> default door
    subtype: str

    @property
    def is_known(self) -> bool:
        return self.subtype in SUBTYPES


def parse_topic(topic: str, base: str) -> TopicRoute:
    prefix = f"{base}/"
    if not topic.startswith(prefix):
        return TopicRoute(door_key=None, subtype=topic)
    door_key, _, subtype = topic[len(prefix):].partition("/")
    return TopicRoute(door_key=door_key or None, subtype=subtype)


def subscription_topics(base: str) -> list[str]:
    """Bare subtypes plus `{base}/+/{subtype}` for every subtype."""
    return list(SUBTYPES) + [f"{base}/+/{subtype}" for subtype in SUBTYPES]


def result_topic(base: str, door_key: Optional[str], granted: bool) -> str:
    name = RESULT_TOPIC_GRANTED if granted else RESULT_TOPIC_DENIED
    return f"{base}/{door_key}/{name}" if door_key else name
