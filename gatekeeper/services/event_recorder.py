# gatekeeper/services/event_recorder.py
"""
Audit + notify for access decisions.

Every decision becomes one row in `events` and one empty MQTT message on
`{base}/{door_key}/access_granted|access_denied`. The publish always
happens, even when the insert is skipped or fails.

PIN events get a second write right after the insert: sha256 of the
submitted PIN plus its length. Nothing else ever touches an event row.
"""

import asyncio
import hashlib
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from gatekeeper.models.access_event import AccessEvent, RESULT_DENIED, RESULT_GRANTED
from gatekeeper.services.topic_router import result_topic
from gatekeeper.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AccessDecision:
    door_id: Optional[int]
    door_key: Optional[str]
    credential_type: str
    granted: bool
    user_id: Optional[int] = None
    presented_uid: Optional[str] = None
    reason: Optional[str] = None


class EventRecorder:
    def __init__(self, publisher, topic_base: str, default_door_id: Optional[int] = None,
                 record_unresolved: bool = False):
        self.publisher = publisher
        self.topic_base = topic_base
        self.default_door_id = default_door_id
        self.record_unresolved = record_unresolved

    async def record_and_notify(self, db: Session, decision: AccessDecision) -> Optional[int]:
        """Insert the audit row (when a door is known), then notify the door. Returns the event id."""
        event_id = await asyncio.to_thread(self._insert, db, decision)
        await self._notify(decision)
        return event_id

    def attach_pin_forensics(self, db: Session, event_id: int, pin: str) -> None:
        try:
            db.query(AccessEvent).filter(AccessEvent.id == event_id).update(
                {
                    AccessEvent.pin_sha: hashlib.sha256(pin.encode("utf-8")).hexdigest(),
                    AccessEvent.pin_len: len(pin),
                },
                synchronize_session=False,
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"[PIN_LOG] update error for event {event_id}: {e}", exc_info=True)

    def _insert(self, db: Session, decision: AccessDecision) -> Optional[int]:
        door_id = decision.door_id
        if door_id is None and not decision.door_key:
            door_id = self.default_door_id
        if door_id is None and not self.record_unresolved:
            logger.warning(
                f"No door_id for door_key={decision.door_key!r}; skipping events insert "
                f"({decision.credential_type} {'granted' if decision.granted else 'denied'})"
            )
            return None

        event = AccessEvent(
            door_id=door_id,
            user_id=decision.user_id if decision.granted else None,
            credential_type=decision.credential_type,
            presented_uid=decision.presented_uid,
            result=RESULT_GRANTED if decision.granted else RESULT_DENIED,
            reason=decision.reason,
        )
        try:
            db.add(event)
            db.flush()
            event_id = event.id
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Insert event error: {e}", exc_info=True)
            return None
        return event_id

    async def _notify(self, decision: AccessDecision) -> None:
        topic = result_topic(self.topic_base, decision.door_key, decision.granted)
        try:
            await asyncio.to_thread(self.publisher.publish, topic)
        except Exception as e:
            logger.error(f"Publish error on {topic}: {e}", exc_info=True)
