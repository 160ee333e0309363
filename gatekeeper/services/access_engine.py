# gatekeeper/services/access_engine.py
"""
Access decision pipeline for door hardware messages.

    topic -> door id -> credential -> door grant -> audit row + MQTT reply

Each message gets its own DB session. The three reads (door, credential,
grant) are separate round-trips with no transaction around them; only the
audit insert commits. Every blocking DB step runs in a worker thread
(asyncio.to_thread), never on the event loop. Any exception in the pipeline
is turned into a denied UNKNOWN event with reason "handler_error" and a deny reply.
"""

import asyncio
from typing import Optional, Union

from sqlalchemy.orm import Session

from gatekeeper.config import settings
from gatekeeper.models.access_event import (
    CREDENTIAL_PIN, CREDENTIAL_RFID, CREDENTIAL_UNKNOWN,
    REASON_EGRESS, REASON_HANDLER_ERROR, REASON_NO_ACCESS,
    REASON_PIN_NO_MATCH, REASON_RFID_NOT_FOUND,
)
from gatekeeper.services.access_policy import is_allowed
from gatekeeper.services.credential_verifier import PinVerifier, find_rfid_owner, load_pin_candidates
from gatekeeper.services.door_resolver import DoorResolver
from gatekeeper.services.event_recorder import AccessDecision, EventRecorder
from gatekeeper.services.topic_router import (
    SUBTYPE_CARD, SUBTYPE_CODE, SUBTYPE_EGRESS, TopicRoute, parse_topic,
)
from gatekeeper.utils.logger import get_logger

logger = get_logger(__name__)


class AccessEngine:
    def __init__(self, session_factory, publisher, *, topic_base: str = "doors",
                 default_door_id: Optional[int] = None, pin_workers: int = 2,
                 pin_timeout: Optional[float] = 10.0, max_inflight: int = 16,
                 record_unresolved: bool = False):
        self.session_factory = session_factory
        self.topic_base = topic_base
        self.door_resolver = DoorResolver(default_door_id)
        self.pin_verifier = PinVerifier(max_workers=pin_workers, timeout=pin_timeout)
        self.recorder = EventRecorder(publisher, topic_base, default_door_id, record_unresolved)
        self._inflight = asyncio.Semaphore(max_inflight)

    @classmethod
    def from_settings(cls, session_factory, publisher) -> "AccessEngine":
        return cls(
            session_factory,
            publisher,
            topic_base=settings.MQTT_TOPIC_BASE,
            default_door_id=settings.DEFAULT_DOOR_ID,
            pin_workers=settings.PIN_VERIFY_WORKERS,
            pin_timeout=settings.PIN_VERIFY_TIMEOUT_SEC,
            max_inflight=settings.MAX_INFLIGHT_MESSAGES,
            record_unresolved=settings.RECORD_UNRESOLVED_DOOR_EVENTS,
        )

    async def handle_message(self, topic: str, payload: Union[bytes, str, None]) -> Optional[int]:
        """Process one bus message. Returns the inserted event id, if any."""
        route = parse_topic(topic, self.topic_base)
        if not route.is_known:
            logger.debug(f"Ignoring topic {topic}")
            return None

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        text = (payload or "").strip()
        if not text and route.subtype != SUBTYPE_EGRESS:
            logger.debug(f"Empty payload on {topic}: ignored")
            return None

        async with self._inflight:
            db = self.session_factory()
            try:
                return await self._process(db, route, text)
            except Exception as e:
                logger.error(f"Handler error on {topic}: {e}", exc_info=True)
                try:
                    await asyncio.to_thread(db.rollback)
                except Exception as rollback_error:
                    logger.error(f"Rollback failed after handler error: {rollback_error}")
                return await self.recorder.record_and_notify(db, AccessDecision(
                    door_id=self.door_resolver.peek(route.door_key),
                    door_key=route.door_key,
                    credential_type=CREDENTIAL_UNKNOWN,
                    granted=False,
                    reason=REASON_HANDLER_ERROR,
                ))
            finally:
                await asyncio.to_thread(db.close)

    async def _process(self, db: Session, route: TopicRoute, text: str) -> Optional[int]:
        door_id = await asyncio.to_thread(self.door_resolver.resolve, route.door_key, db)

        if route.subtype == SUBTYPE_EGRESS:
            decision = AccessDecision(door_id, route.door_key, CREDENTIAL_UNKNOWN,
                                      granted=True, reason=REASON_EGRESS)
        elif route.subtype == SUBTYPE_CARD:
            decision = await asyncio.to_thread(self._check_card, db, door_id, route.door_key, text)
        else:
            decision = await self._check_code(db, door_id, route.door_key, text)

        logger.info(
            f"[{route.subtype}] door={route.door_key or '-'}({door_id}) "
            f"{'GRANTED' if decision.granted else 'DENIED'} "
            f"user={decision.user_id} reason={decision.reason}"
        )
        event_id = await self.recorder.record_and_notify(db, decision)

        if route.subtype == SUBTYPE_CODE and event_id is not None:
            await asyncio.to_thread(self.recorder.attach_pin_forensics, db, event_id, text)
        return event_id

    def _check_card(self, db: Session, door_id, door_key, uid: str) -> AccessDecision:
        user_id = find_rfid_owner(db, uid)
        if user_id is None:
            return AccessDecision(door_id, door_key, CREDENTIAL_RFID, granted=False,
                                  presented_uid=uid, reason=REASON_RFID_NOT_FOUND)
        if not is_allowed(db, door_id, user_id):
            return AccessDecision(door_id, door_key, CREDENTIAL_RFID, granted=False,
                                  presented_uid=uid, reason=REASON_NO_ACCESS)
        return AccessDecision(door_id, door_key, CREDENTIAL_RFID, granted=True,
                              user_id=user_id, presented_uid=uid)

    async def _check_code(self, db: Session, door_id, door_key, pin: str) -> AccessDecision:
        candidates = await asyncio.to_thread(load_pin_candidates, db)
        user_id = await self.pin_verifier.verify(pin, candidates)
        if user_id is None:
            return AccessDecision(door_id, door_key, CREDENTIAL_PIN, granted=False,
                                  reason=REASON_PIN_NO_MATCH)
        if not await asyncio.to_thread(is_allowed, db, door_id, user_id):
            return AccessDecision(door_id, door_key, CREDENTIAL_PIN, granted=False,
                                  reason=REASON_NO_ACCESS)
        return AccessDecision(door_id, door_key, CREDENTIAL_PIN, granted=True, user_id=user_id)

    def close(self):
        self.pin_verifier.close()
